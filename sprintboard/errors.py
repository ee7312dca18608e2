"""Exceptions raised by the data layer and app setup."""


class SprintboardError(Exception):
    """Base error for the dashboard."""


class ConfigError(SprintboardError):
    pass


class DataServiceError(SprintboardError):
    """A call to the data service failed.

    Carries the relation and operation so views and logs can say what was
    being done when the backend refused it.
    """

    def __init__(self, message, relation=None, operation=None, status_code=None):
        self.message = message
        self.relation = relation
        self.operation = operation
        self.status_code = status_code
        super().__init__(message)

    def __str__(self):
        if self.relation and self.operation:
            return f'{self.operation} on {self.relation} failed: {self.message}'
        return self.message


class RecordNotFound(DataServiceError):
    pass
