"""Row-level CRUD over the four relations, backed by SQLAlchemy or a hosted REST API."""
from __future__ import annotations

import logging
import threading
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from flask import Flask, current_app
from requests.adapters import HTTPAdapter
from sqlalchemy.exc import SQLAlchemyError
from urllib3.util.retry import Retry

from data import demo_project, parse_date, parse_datetime
from errors import ConfigError, DataServiceError, RecordNotFound
from models import RELATIONS, db

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

TIMESTAMPED_RELATIONS = ('projects', 'tasks')


class DataService:
    """select / insert / update / delete over named relations.

    Rows go in and come out as JSON-compatible dicts. Failures raise
    DataServiceError; update and delete of a missing id raise RecordNotFound.
    """

    relations = tuple(RELATIONS)

    def select(self, relation: str, filters: Optional[Row] = None,
               order_by: Optional[str] = 'created_at', descending: bool = False) -> List[Row]:
        raise NotImplementedError

    def insert(self, relation: str, values: Row) -> Row:
        raise NotImplementedError

    def update(self, relation: str, record_id: str, values: Row) -> Row:
        raise NotImplementedError

    def delete(self, relation: str, record_id: str) -> None:
        raise NotImplementedError

    def _check_relation(self, relation: str, operation: str) -> None:
        if relation not in self.relations:
            raise DataServiceError(f"unknown relation '{relation}'", relation, operation)


class SqlDataService(DataService):
    """Keeps rows in the Flask-SQLAlchemy models. Needs an app context."""

    def _model(self, relation, operation):
        self._check_relation(relation, operation)
        return RELATIONS[relation]

    @staticmethod
    def _column(model, relation, name, operation):
        column = model.__table__.columns.get(name)
        if column is None:
            raise DataServiceError(f"unknown column '{name}'", relation, operation)
        return column

    @staticmethod
    def _coerce(column, value):
        if value is None:
            return None
        if isinstance(column.type, db.DateTime):
            return parse_datetime(value)
        if isinstance(column.type, db.Date):
            return parse_date(value)
        if isinstance(column.type, db.Float) and value != '':
            return float(value)
        return value

    def _values(self, model, relation, values, operation):
        coerced = {}
        for name, value in values.items():
            column = self._column(model, relation, name, operation)
            coerced[name] = self._coerce(column, value)
        return coerced

    def _get(self, model, relation, record_id, operation):
        record = db.session.get(model, record_id)
        if record is None:
            raise RecordNotFound(f"no row with id '{record_id}'", relation, operation)
        return record

    def _commit(self, relation, operation):
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            message = str(getattr(exc, 'orig', None) or exc)
            logger.warning('%s on %s failed: %s', operation, relation, message)
            raise DataServiceError(message, relation, operation) from exc

    def select(self, relation, filters=None, order_by='created_at', descending=False):
        model = self._model(relation, 'select')
        query = db.select(model)
        for name, value in (filters or {}).items():
            column = self._column(model, relation, name, 'select')
            if value is None:
                query = query.where(column.is_(None))
            else:
                query = query.where(column == self._coerce(column, value))
        if order_by:
            column = self._column(model, relation, order_by, 'select')
            query = query.order_by(column.desc() if descending else column.asc())
        try:
            records = db.session.scalars(query).all()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.warning('select on %s failed: %s', relation, exc)
            raise DataServiceError(str(exc), relation, 'select') from exc
        return [record.to_row() for record in records]

    def insert(self, relation, values):
        model = self._model(relation, 'insert')
        values = {k: v for k, v in values.items() if not (k == 'id' and v is None)}
        record = model(**self._values(model, relation, values, 'insert'))
        db.session.add(record)
        self._commit(relation, 'insert')
        logger.info('Inserted %s into %s', record.id, relation)
        return record.to_row()

    def update(self, relation, record_id, values):
        model = self._model(relation, 'update')
        record = self._get(model, relation, record_id, 'update')
        values = {k: v for k, v in values.items() if k != 'id'}
        for name, value in self._values(model, relation, values, 'update').items():
            setattr(record, name, value)
        self._commit(relation, 'update')
        logger.info('Updated %s in %s', record_id, relation)
        return record.to_row()

    def delete(self, relation, record_id):
        model = self._model(relation, 'delete')
        record = self._get(model, relation, record_id, 'delete')
        db.session.delete(record)
        self._commit(relation, 'delete')
        logger.info('Deleted %s from %s', record_id, relation)


def _jsonable(values: Row) -> Row:
    return {k: v.isoformat() if isinstance(v, (date, datetime)) else v for k, v in values.items()}


class RestDataService(DataService):
    """Talks to a PostgREST endpoint (the REST surface of a hosted Supabase project)."""

    def __init__(self, url: str, api_key: str, timeout: float = 10, retries: int = 2,
                 session: Optional[requests.Session] = None):
        self.base_url = url.rstrip('/') + '/rest/v1'
        self.timeout = timeout
        self.api_key = api_key
        self.retries = retries
        # Page loads fan out over worker threads; each thread gets its own session
        self._local = threading.local()
        self._shared = self._configure(session) if session is not None else None

    def _configure(self, session):
        session.headers.update({
            'apikey': self.api_key,
            'Authorization': f'Bearer {self.api_key}',
            'Accept': 'application/json',
            'Content-Type': 'application/json',
        })
        if self.retries:
            # Only idempotent requests are replayed
            retry = Retry(
                total=self.retries,
                backoff_factor=0.3,
                status_forcelist=(502, 503, 504),
                allowed_methods=frozenset({'GET', 'DELETE'}),
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry)
            session.mount('http://', adapter)
            session.mount('https://', adapter)
        return session

    @property
    def session(self) -> requests.Session:
        """The injected session, or one owned by the calling thread."""
        if self._shared is not None:
            return self._shared
        session = getattr(self._local, 'session', None)
        if session is None:
            session = self._local.session = self._configure(requests.Session())
        return session

    @staticmethod
    def _error_message(response):
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason or f'HTTP {response.status_code}'
        if isinstance(body, dict):
            return body.get('message') or body.get('error') or str(body)
        return str(body)

    def _request(self, method, relation, operation, params=None, payload=None, prefer=None):
        self._check_relation(relation, operation)
        headers = {'Prefer': prefer} if prefer else None
        try:
            response = self.session.request(
                method,
                f'{self.base_url}/{relation}',
                params=params,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning('%s on %s failed: %s', operation, relation, exc)
            raise DataServiceError(str(exc), relation, operation) from exc
        if not response.ok:
            message = self._error_message(response)
            logger.warning('%s on %s failed with HTTP %s: %s', operation, relation, response.status_code, message)
            raise DataServiceError(message, relation, operation, response.status_code)
        if response.status_code == 204 or not response.content:
            return []
        return response.json()

    @staticmethod
    def _id_filter(record_id):
        return {'id': f'eq.{record_id}'}

    def select(self, relation, filters=None, order_by='created_at', descending=False):
        params = {'select': '*'}
        for name, value in (filters or {}).items():
            params[name] = 'is.null' if value is None else f'eq.{value}'
        if order_by:
            params['order'] = f"{order_by}.{'desc' if descending else 'asc'}"
        return self._request('GET', relation, 'select', params=params)

    def insert(self, relation, values):
        values = {k: v for k, v in values.items() if not (k == 'id' and v is None)}
        rows = self._request('POST', relation, 'insert', payload=_jsonable(values),
                             prefer='return=representation')
        if not rows:
            raise DataServiceError('backend returned no row', relation, 'insert')
        logger.info('Inserted %s into %s', rows[0].get('id'), relation)
        return rows[0]

    def update(self, relation, record_id, values):
        values = {k: v for k, v in values.items() if k != 'id'}
        if relation in TIMESTAMPED_RELATIONS:
            values['updated_at'] = datetime.now(timezone.utc)
        rows = self._request('PATCH', relation, 'update', params=self._id_filter(record_id),
                             payload=_jsonable(values), prefer='return=representation')
        if not rows:
            raise RecordNotFound(f"no row with id '{record_id}'", relation, 'update')
        logger.info('Updated %s in %s', record_id, relation)
        return rows[0]

    def delete(self, relation, record_id):
        rows = self._request('DELETE', relation, 'delete', params=self._id_filter(record_id),
                             prefer='return=representation')
        if not rows:
            raise RecordNotFound(f"no row with id '{record_id}'", relation, 'delete')
        logger.info('Deleted %s from %s', record_id, relation)


def create_data_service(config) -> DataService:
    backend = config.get('DATA_BACKEND', 'sql')
    if backend == 'sql':
        return SqlDataService()
    if backend == 'rest':
        url = config.get('SUPABASE_URL')
        key = config.get('SUPABASE_ANON_KEY')
        if not url or not key:
            raise ConfigError('DATA_BACKEND=rest needs SUPABASE_URL and SUPABASE_ANON_KEY')
        return RestDataService(url, key, timeout=config.get('REST_TIMEOUT', 10),
                               retries=config.get('REST_RETRIES', 2))
    raise ConfigError(f"unknown DATA_BACKEND '{backend}'")


def get_data_service() -> DataService:
    return current_app.extensions['data_service']


def ensure_db(app: Flask) -> None:
    """Create tables when rows live in the local database."""
    if isinstance(app.extensions.get('data_service'), SqlDataService):
        with app.app_context():
            db.create_all()
        app.logger.info('Database ready')


def seed_demo(service: DataService) -> bool:
    """Load the demo project if there are no projects yet. Returns True if it seeded."""
    if service.select('projects', order_by=None):
        return False
    project = service.insert('projects', {
        'name': demo_project.name,
        'description': demo_project.description,
        'status': demo_project.status,
        'start_date': demo_project.start_date,
        'end_date': demo_project.end_date,
    })
    sprint_ids = []
    for sprint in demo_project.sprints:
        row = service.insert('sprints', {
            'project_id': project['id'],
            'name': sprint.name,
            'description': sprint.description,
            'start_date': sprint.start_date,
            'end_date': sprint.end_date,
            'status': sprint.status,
        })
        sprint_ids.append(row['id'])
    for task in demo_project.tasks:
        row = service.insert('tasks', {
            'project_id': project['id'],
            'sprint_id': sprint_ids[task.sprint] if task.sprint is not None else None,
            'title': task.title,
            'status': task.status,
            'priority': task.priority,
            'estimated_hours': task.estimated_hours,
            'actual_hours': task.actual_hours,
            'assigned_to': task.assigned_to,
        })
        for comment in task.comments:
            service.insert('task_comments', {
                'task_id': row['id'],
                'comment': comment,
                'author': task.assigned_to or 'Demo',
            })
    logger.info('Seeded demo project %s', project['id'])
    return True
