import uuid
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

PROJECT_STATUSES = ('planning', 'active', 'on_hold', 'completed')
SPRINT_STATUSES = ('planned', 'active', 'completed')
TASK_STATUSES = ('todo', 'in_progress', 'review', 'done')
TASK_PRIORITIES = ('low', 'medium', 'high', 'critical')


def _new_id():
    return str(uuid.uuid4())


def _in(column, values):
    quoted = ', '.join(f"'{v}'" for v in values)
    return db.CheckConstraint(f'{column} IN ({quoted})', name=f'ck_{column}_enum')


class RowMixin:
    """Serializes a model to the JSON-compatible row the data service hands out."""

    def to_row(self):
        row = {}
        for column in self.__table__.columns:
            value = getattr(self, column.name)
            if hasattr(value, 'isoformat'):
                value = value.isoformat()
            row[column.name] = value
        return row


class Project(RowMixin, db.Model):
    __tablename__ = 'projects'
    __table_args__ = (_in('status', PROJECT_STATUSES),)
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    status = db.Column(db.String(20), nullable=False, default='planning')
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    sprints = db.relationship('Sprint', backref='project', cascade='all, delete-orphan')
    tasks = db.relationship('Task', backref='project', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Project {self.name}>'


class Sprint(RowMixin, db.Model):
    __tablename__ = 'sprints'
    __table_args__ = (_in('status', SPRINT_STATUSES),)
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    project_id = db.Column(db.String(36), db.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='planned')
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    # Deleting a sprint detaches its tasks instead of deleting them
    tasks = db.relationship('Task', backref='sprint')

    def __repr__(self):
        return f'<Sprint {self.name}>'


class Task(RowMixin, db.Model):
    __tablename__ = 'tasks'
    __table_args__ = (
        _in('status', TASK_STATUSES),
        _in('priority', TASK_PRIORITIES),
        db.CheckConstraint('estimated_hours >= 0', name='ck_estimated_hours_positive'),
        db.CheckConstraint('actual_hours >= 0', name='ck_actual_hours_positive'),
    )
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    project_id = db.Column(db.String(36), db.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True)
    sprint_id = db.Column(db.String(36), db.ForeignKey('sprints.id', ondelete='SET NULL'), nullable=True, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    status = db.Column(db.String(20), nullable=False, default='todo')
    priority = db.Column(db.String(20), nullable=False, default='medium')
    estimated_hours = db.Column(db.Float, nullable=False, default=0)
    actual_hours = db.Column(db.Float, nullable=False, default=0)
    assigned_to = db.Column(db.String(200), nullable=False, default='')
    due_date = db.Column(db.Date)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    comments = db.relationship('TaskComment', backref='task', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Task {self.title}>'


class TaskComment(RowMixin, db.Model):
    __tablename__ = 'task_comments'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    task_id = db.Column(db.String(36), db.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False, index=True)
    comment = db.Column(db.Text, nullable=False)
    author = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f'<TaskComment by {self.author}>'


# Relation name -> model, the names the hosted backend uses for its tables
RELATIONS = {
    'projects': Project,
    'sprints': Sprint,
    'tasks': Task,
    'task_comments': TaskComment,
}
