# data.py
"""Typed records built from data-service rows, and the demo project."""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional


def parse_date(value) -> Optional[date]:
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    # Timestamps are accepted too, only the day is kept
    return date.fromisoformat(str(value)[:10])


def parse_datetime(value) -> Optional[datetime]:
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return datetime.fromisoformat(text)


def _hours(value) -> float:
    return float(value) if value not in (None, '') else 0.0


@dataclass
class Project:
    id: str
    name: str
    description: str = ''
    status: str = 'planning'
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Project':
        return cls(
            id=row['id'],
            name=row['name'],
            description=row.get('description') or '',
            status=row.get('status') or 'planning',
            start_date=parse_date(row.get('start_date')),
            end_date=parse_date(row.get('end_date')),
            created_at=parse_datetime(row.get('created_at')),
            updated_at=parse_datetime(row.get('updated_at')),
        )


@dataclass
class Sprint:
    id: str
    project_id: str
    name: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    description: str = ''
    status: str = 'planned'
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Sprint':
        return cls(
            id=row['id'],
            project_id=row['project_id'],
            name=row['name'],
            start_date=parse_date(row.get('start_date')),
            end_date=parse_date(row.get('end_date')),
            description=row.get('description') or '',
            status=row.get('status') or 'planned',
            created_at=parse_datetime(row.get('created_at')),
        )

    def is_overdue(self, today: Optional[date] = None) -> bool:
        """True when the sprint ended before today and was never completed."""
        if self.end_date is None or self.status == 'completed':
            return False
        return self.end_date < (today or date.today())


@dataclass
class Task:
    id: str
    project_id: str
    title: str
    sprint_id: Optional[str] = None
    description: str = ''
    status: str = 'todo'
    priority: str = 'medium'
    estimated_hours: float = 0.0
    actual_hours: float = 0.0
    assigned_to: str = ''
    due_date: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Task':
        return cls(
            id=row['id'],
            project_id=row['project_id'],
            title=row['title'],
            sprint_id=row.get('sprint_id') or None,
            description=row.get('description') or '',
            status=row.get('status') or 'todo',
            priority=row.get('priority') or 'medium',
            estimated_hours=_hours(row.get('estimated_hours')),
            actual_hours=_hours(row.get('actual_hours')),
            assigned_to=row.get('assigned_to') or '',
            due_date=parse_date(row.get('due_date')),
            created_at=parse_datetime(row.get('created_at')),
            updated_at=parse_datetime(row.get('updated_at')),
        )


@dataclass
class Comment:
    id: str
    task_id: str
    comment: str
    author: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Comment':
        return cls(
            id=row['id'],
            task_id=row['task_id'],
            comment=row['comment'],
            author=row['author'],
            created_at=parse_datetime(row.get('created_at')),
        )


RECORD_TYPES = {
    'projects': Project,
    'sprints': Sprint,
    'tasks': Task,
    'task_comments': Comment,
}


# Demo content loaded by `flask seed-demo`. Tasks point at sprints by list index.
@dataclass
class DemoTask:
    title: str
    status: str = 'todo'
    priority: str = 'medium'
    estimated_hours: float = 0
    actual_hours: float = 0
    assigned_to: str = ''
    sprint: Optional[int] = None
    comments: List[str] = field(default_factory=list)


@dataclass
class DemoSprint:
    name: str
    start_date: str
    end_date: str
    description: str = ''
    status: str = 'planned'


@dataclass
class DemoProject:
    name: str
    description: str
    status: str
    start_date: str
    end_date: str
    sprints: List[DemoSprint] = field(default_factory=list)
    tasks: List[DemoTask] = field(default_factory=list)


demo_project = DemoProject(
    name='Customer Portal Relaunch',
    description='Rebuild the customer portal on the new design system and retire the legacy pages.',
    status='active',
    start_date='2025-12-01',
    end_date='2026-02-27',
    sprints=[
        DemoSprint(
            name='Sprint 1 - Foundations',
            start_date='2025-12-01',
            end_date='2025-12-14',
            description='Set up the app skeleton, routing and the base templates.',
            status='completed',
        ),
        DemoSprint(
            name='Sprint 2 - Account pages',
            start_date='2025-12-15',
            end_date='2025-12-28',
            description='Profile, billing and notification settings.',
            status='active',
        ),
    ],
    tasks=[
        DemoTask('Configure base app structure', 'done', 'high', 6, 7, 'Alice', sprint=0),
        DemoTask('Implement main routes', 'done', 'medium', 8, 6, 'Bruno', sprint=0),
        DemoTask('Integrate base UI template', 'done', 'medium', 4, 5, 'Alice', sprint=0,
                 comments=['Switched to the new grid, looks good on mobile.']),
        DemoTask('Profile page', 'in_progress', 'high', 10, 4, 'Chloe', sprint=1),
        DemoTask('Billing history table', 'review', 'medium', 6, 6, 'Bruno', sprint=1),
        DemoTask('Notification preferences', 'todo', 'low', 5, 0, '', sprint=1),
        DemoTask('Fix session expiry on the legacy login', 'todo', 'critical', 3, 0, 'Alice'),
    ],
)
