# forms.py
from flask_wtf import FlaskForm
from wtforms import DateField, FloatField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, NumberRange, Optional, ValidationError


def _strip(value):
    return value.strip() if isinstance(value, str) else value


PROJECT_STATUS_CHOICES = [('planning', 'Planning'), ('active', 'Active'), ('on_hold', 'On Hold'), ('completed', 'Completed')]
SPRINT_STATUS_CHOICES = [('planned', 'Planned'), ('active', 'Active'), ('completed', 'Completed')]
TASK_STATUS_CHOICES = [('todo', 'To Do'), ('in_progress', 'In Progress'), ('review', 'In Review'), ('done', 'Done')]
TASK_PRIORITY_CHOICES = [('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('critical', 'Critical')]


class DateRangeMixin:
    def validate_end_date(self, end_date):
        if end_date.data and self.start_date.data and end_date.data < self.start_date.data:
            raise ValidationError('End date must not be before the start date.')


class ProjectForm(DateRangeMixin, FlaskForm):
    name = StringField('Project Name', validators=[DataRequired(), Length(max=200)], filters=[_strip])
    description = TextAreaField('Description', filters=[_strip])
    status = SelectField('Status', choices=PROJECT_STATUS_CHOICES, default='planning')
    start_date = DateField('Start Date', format='%Y-%m-%d', validators=[Optional()])
    end_date = DateField('End Date', format='%Y-%m-%d', validators=[Optional()])

    def to_row(self):
        return {
            'name': self.name.data,
            'description': self.description.data or '',
            'status': self.status.data,
            'start_date': self.start_date.data,
            'end_date': self.end_date.data,
        }


class SprintForm(DateRangeMixin, FlaskForm):
    name = StringField('Sprint Name', validators=[DataRequired(), Length(max=200)], filters=[_strip])
    description = TextAreaField('Description', filters=[_strip])
    start_date = DateField('Start Date', format='%Y-%m-%d', validators=[DataRequired()])
    end_date = DateField('End Date', format='%Y-%m-%d', validators=[DataRequired()])
    status = SelectField('Status', choices=SPRINT_STATUS_CHOICES, default='planned')

    def to_row(self):
        return {
            'name': self.name.data,
            'description': self.description.data or '',
            'start_date': self.start_date.data,
            'end_date': self.end_date.data,
            'status': self.status.data,
        }


class TaskForm(FlaskForm):
    title = StringField('Task Title', validators=[DataRequired(), Length(max=200)], filters=[_strip])
    description = TextAreaField('Description', filters=[_strip])
    status = SelectField('Status', choices=TASK_STATUS_CHOICES, default='todo')
    priority = SelectField('Priority', choices=TASK_PRIORITY_CHOICES, default='medium')
    sprint_id = SelectField('Sprint', choices=[('', 'No sprint')], default='')
    assigned_to = StringField('Assigned To', validators=[Length(max=200)], filters=[_strip])
    estimated_hours = FloatField('Estimated Hours', validators=[Optional(), NumberRange(min=0)])
    actual_hours = FloatField('Actual Hours', validators=[Optional(), NumberRange(min=0)])
    due_date = DateField('Due Date', format='%Y-%m-%d', validators=[Optional()])

    def set_sprints(self, sprints):
        """Only the project's own sprints can be picked."""
        self.sprint_id.choices = [('', 'No sprint')] + [(s.id, s.name) for s in sprints]

    def to_row(self):
        return {
            'title': self.title.data,
            'description': self.description.data or '',
            'status': self.status.data,
            'priority': self.priority.data,
            'sprint_id': self.sprint_id.data or None,
            'assigned_to': self.assigned_to.data or '',
            'estimated_hours': self.estimated_hours.data or 0,
            'actual_hours': self.actual_hours.data or 0,
            'due_date': self.due_date.data,
        }


class CommentForm(FlaskForm):
    comment = TextAreaField('Comment', validators=[DataRequired()], filters=[_strip])
    author = StringField('Your Name', validators=[DataRequired(), Length(max=200)], filters=[_strip])

    def to_row(self):
        return {'comment': self.comment.data, 'author': self.author.data}
