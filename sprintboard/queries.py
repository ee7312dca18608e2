"""Page-level reads.

Each loader issues the independent fetches a page needs in parallel, waits
for all of them and returns one view object. A failed fetch leaves its part
of the page empty, the other parts are still filled, and the error is kept
on the view so the page can report it.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, List, NamedTuple, Optional

from flask import current_app, has_app_context

from data import RECORD_TYPES, Comment, Project, Sprint, Task
from errors import DataServiceError
from reports import ProjectReport, SprintProgress, aggregate, group_by_status, project_stats, sprint_progress

logger = logging.getLogger(__name__)


class QueryResult(NamedTuple):
    data: Any
    error: Optional[DataServiceError] = None

    @property
    def ok(self):
        return self.error is None


def _run(call: Callable[[], Any]) -> QueryResult:
    try:
        return QueryResult(call())
    except DataServiceError as exc:
        logger.warning('Fetch failed: %s', exc)
        return QueryResult(None, exc)


def fan_out(*calls: Callable[[], Any]) -> List[QueryResult]:
    """Run the calls concurrently and return their results in call order."""
    if not has_app_context():
        with ThreadPoolExecutor(max_workers=len(calls)) as pool:
            return list(pool.map(_run, calls))

    app = current_app._get_current_object()
    workers = max(1, min(len(calls), app.config.get('FETCH_WORKERS', 3)))

    def run_in_context(call):
        with app.app_context():
            return _run(call)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(run_in_context, calls))


def _records(relation, rows):
    record_type = RECORD_TYPES[relation]
    return [record_type.from_row(row) for row in rows]


def _select(service, relation, filters=None, descending=False):
    return lambda: _records(relation, service.select(relation, filters, 'created_at', descending))


def fetch_record(service, relation, record_id):
    """One record by id, or None when it does not exist."""
    rows = service.select(relation, {'id': record_id}, order_by=None)
    if not rows:
        return None
    return RECORD_TYPES[relation].from_row(rows[0])


@dataclass
class DashboardView:
    projects: List[Project] = field(default_factory=list)
    stats: dict = field(default_factory=lambda: project_stats([]))
    errors: List[DataServiceError] = field(default_factory=list)


@dataclass
class TaskBoardView:
    sprints: List[Sprint] = field(default_factory=list)
    tasks: List[Task] = field(default_factory=list)
    selected_sprint: Optional[str] = None
    errors: List[DataServiceError] = field(default_factory=list)

    @property
    def columns(self):
        return group_by_status(self.tasks)


@dataclass
class SprintOverview:
    sprints: List[Sprint] = field(default_factory=list)
    tasks: List[Task] = field(default_factory=list)
    errors: List[DataServiceError] = field(default_factory=list)

    @property
    def progress(self) -> List[SprintProgress]:
        return sprint_progress(self.tasks, self.sprints)


@dataclass
class ReportView:
    tasks: List[Task] = field(default_factory=list)
    sprints: List[Sprint] = field(default_factory=list)
    errors: List[DataServiceError] = field(default_factory=list)

    @property
    def report(self) -> ProjectReport:
        return aggregate(self.tasks, self.sprints)


@dataclass
class TaskDetailView:
    task: Optional[Task] = None
    comments: List[Comment] = field(default_factory=list)
    errors: List[DataServiceError] = field(default_factory=list)


def load_dashboard(service) -> DashboardView:
    view = DashboardView()
    result = _run(_select(service, 'projects', descending=True))
    if result.ok:
        view.projects = result.data
        view.stats = project_stats(result.data)
    else:
        view.errors.append(result.error)
    return view


def load_task_board(service, project_id, sprint_id=None) -> TaskBoardView:
    task_filters = {'project_id': project_id}
    if sprint_id and sprint_id != 'all':
        task_filters['sprint_id'] = sprint_id
    sprints, tasks = fan_out(
        _select(service, 'sprints', {'project_id': project_id}, descending=True),
        _select(service, 'tasks', task_filters, descending=True),
    )
    view = TaskBoardView(selected_sprint=task_filters.get('sprint_id'))
    _commit(view, sprints=sprints, tasks=tasks)
    return view


def load_sprint_overview(service, project_id) -> SprintOverview:
    sprints, tasks = fan_out(
        _select(service, 'sprints', {'project_id': project_id}, descending=True),
        _select(service, 'tasks', {'project_id': project_id}),
    )
    view = SprintOverview()
    _commit(view, sprints=sprints, tasks=tasks)
    return view


def load_report(service, project_id) -> ReportView:
    tasks, sprints = fan_out(
        _select(service, 'tasks', {'project_id': project_id}),
        _select(service, 'sprints', {'project_id': project_id}),
    )
    view = ReportView()
    _commit(view, tasks=tasks, sprints=sprints)
    return view


def load_task_detail(service, task_id) -> TaskDetailView:
    task, comments = fan_out(
        lambda: fetch_record(service, 'tasks', task_id),
        _select(service, 'task_comments', {'task_id': task_id}),
    )
    view = TaskDetailView()
    _commit(view, task=task, comments=comments)
    return view


def _commit(view, **results):
    # Each branch lands on its own; failures only record the error
    for name, result in results.items():
        if result.ok:
            setattr(view, name, result.data)
        else:
            view.errors.append(result.error)
