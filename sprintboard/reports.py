"""Display statistics derived from the tasks and sprints of one project.

Everything here is a pure function of already-fetched records and is
recomputed from scratch on every page load.
"""
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from data import Project, Sprint, Task
from models import PROJECT_STATUSES, TASK_PRIORITIES, TASK_STATUSES


def round_half_up(value: float) -> int:
    """Round the way a percentage label is read: 12.5 -> 13, -12.5 -> -12."""
    return int(math.floor(value + 0.5))


def percentage(part: float, whole: float) -> float:
    return part / whole * 100 if whole else 0.0


@dataclass
class TaskStats:
    total: int = 0
    todo: int = 0
    in_progress: int = 0
    review: int = 0
    done: int = 0
    by_priority: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(TASK_PRIORITIES, 0))

    @property
    def completion_rate(self) -> int:
        return round_half_up(percentage(self.done, self.total))

    def by_status(self) -> Dict[str, int]:
        return {status: getattr(self, status) for status in TASK_STATUSES}

    def status_share(self, status: str) -> float:
        return percentage(getattr(self, status), self.total)

    def priority_share(self, priority: str) -> float:
        return percentage(self.by_priority[priority], self.total)

    def to_dict(self):
        return {
            'total': self.total,
            'by_status': self.by_status(),
            'by_priority': dict(self.by_priority),
            'completion_rate': self.completion_rate,
        }


@dataclass
class TimeStats:
    total_estimated: float = 0.0
    total_actual: float = 0.0

    @property
    def variance(self) -> float:
        """Overrun of actual over estimated hours, in percent of the estimate."""
        if not self.total_estimated:
            return 0.0
        return (self.total_actual - self.total_estimated) / self.total_estimated * 100

    @property
    def efficiency(self) -> float:
        if not self.total_actual:
            return 100.0
        return self.total_estimated / self.total_actual * 100

    def to_dict(self):
        return {
            'total_estimated': self.total_estimated,
            'total_actual': self.total_actual,
            'variance': self.variance,
            'efficiency': self.efficiency,
        }


@dataclass
class SprintProgress:
    sprint: Sprint
    completed: int = 0
    total: int = 0

    @property
    def progress(self) -> int:
        return round_half_up(percentage(self.completed, self.total))

    def to_dict(self):
        return {
            'sprint_id': self.sprint.id,
            'name': self.sprint.name,
            'completed': self.completed,
            'total': self.total,
            'progress': self.progress,
        }


@dataclass
class ProjectReport:
    task_stats: TaskStats
    time_stats: TimeStats
    sprint_progress: List[SprintProgress]

    def to_dict(self):
        return {
            'task_stats': self.task_stats.to_dict(),
            'time_stats': self.time_stats.to_dict(),
            'sprint_progress': [p.to_dict() for p in self.sprint_progress],
        }


def task_stats(tasks: Iterable[Task]) -> TaskStats:
    stats = TaskStats()
    for task in tasks:
        stats.total += 1
        if task.status in TASK_STATUSES:
            setattr(stats, task.status, getattr(stats, task.status) + 1)
        if task.priority in stats.by_priority:
            stats.by_priority[task.priority] += 1
    return stats


def time_stats(tasks: Iterable[Task]) -> TimeStats:
    stats = TimeStats()
    for task in tasks:
        stats.total_estimated += task.estimated_hours or 0
        stats.total_actual += task.actual_hours or 0
    return stats


def sprint_progress(tasks: Iterable[Task], sprints: Iterable[Sprint]) -> List[SprintProgress]:
    totals = Counter()
    completed = Counter()
    for task in tasks:
        if task.sprint_id is None:
            continue
        totals[task.sprint_id] += 1
        if task.status == 'done':
            completed[task.sprint_id] += 1
    return [SprintProgress(sprint, completed[sprint.id], totals[sprint.id]) for sprint in sprints]


def aggregate(tasks: Iterable[Task], sprints: Iterable[Sprint]) -> ProjectReport:
    tasks = list(tasks)
    return ProjectReport(
        task_stats=task_stats(tasks),
        time_stats=time_stats(tasks),
        sprint_progress=sprint_progress(tasks, sprints),
    )


def project_stats(projects: Iterable[Project]) -> Dict[str, int]:
    projects = list(projects)
    counts = {status: 0 for status in PROJECT_STATUSES}
    for project in projects:
        if project.status in counts:
            counts[project.status] += 1
    return {
        'total_projects': len(projects),
        'active_projects': counts['active'],
        'completed_projects': counts['completed'],
        'on_hold_projects': counts['on_hold'],
    }


def group_by_status(tasks: Iterable[Task]) -> List[Tuple[str, List[Task]]]:
    """Board columns in workflow order."""
    columns = {status: [] for status in TASK_STATUSES}
    for task in tasks:
        if task.status in columns:
            columns[task.status].append(task)
    return list(columns.items())
