import re
from unittest.mock import patch

import pytest

from app import create_app
from errors import DataServiceError
from models import db


@pytest.fixture
def csrf_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'WTF_CSRF_ENABLED': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'sprintboard_csrf.db'}",
        'DATA_BACKEND': 'sql',
        'SEED_DEMO_DATA': False,
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


def test_dashboard_empty(client):
    response = client.get('/')

    assert response.status_code == 200
    assert b'No projects yet' in response.data


def test_create_project_then_listed(client, service):
    response = client.post('/projects/new', data={
        'name': 'Portal', 'description': 'Relaunch', 'status': 'active',
        'start_date': '2026-01-01', 'end_date': '2026-03-01',
    })

    [project] = service.select('projects')
    assert response.status_code == 302
    assert response.headers['Location'].endswith(f"/projects/{project['id']}")
    assert project['status'] == 'active'

    page = client.get('/')
    assert b'Portal' in page.data


def test_create_project_invalid_rerenders_form(client, service):
    response = client.post('/projects/new', data={'name': '', 'status': 'active'})

    assert response.status_code == 200
    assert service.select('projects') == []


def test_edit_and_delete_project(client, service, project):
    response = client.post(f"/projects/{project['id']}/edit", data={'name': 'Renamed', 'status': 'completed'})
    assert response.status_code == 302
    [row] = service.select('projects')
    assert (row['name'], row['status']) == ('Renamed', 'completed')

    response = client.post(f"/projects/{project['id']}/delete")
    assert response.status_code == 302
    assert service.select('projects') == []


def test_unknown_records_are_404(client):
    assert client.get('/projects/nope/tasks').status_code == 404
    assert client.get('/tasks/nope').status_code == 404
    assert client.post('/projects/nope/delete').status_code == 404


def test_project_detail_redirects_to_board(client, project):
    response = client.get(f"/projects/{project['id']}")

    assert response.status_code == 302
    assert response.headers['Location'].endswith(f"/projects/{project['id']}/tasks")


def test_sprint_and_task_flow(client, service, project):
    response = client.post(f"/projects/{project['id']}/sprints/new", data={
        'name': 'Sprint 1', 'status': 'active', 'start_date': '2026-01-01', 'end_date': '2026-01-14',
    })
    assert response.status_code == 302
    [sprint] = service.select('sprints', {'project_id': project['id']})

    response = client.post(f"/projects/{project['id']}/tasks/new", data={
        'title': 'Build login', 'status': 'done', 'priority': 'high', 'sprint_id': sprint['id'],
        'estimated_hours': '4', 'actual_hours': '5', 'assigned_to': 'Ann',
    })
    assert response.status_code == 302
    client.post(f"/projects/{project['id']}/tasks/new", data={
        'title': 'Write tests', 'status': 'todo', 'priority': 'medium', 'sprint_id': '',
        'estimated_hours': '2',
    })

    board = client.get(f"/projects/{project['id']}/tasks")
    assert b'Build login' in board.data and b'Write tests' in board.data

    filtered = client.get(f"/projects/{project['id']}/tasks?sprint={sprint['id']}")
    assert b'Build login' in filtered.data
    assert b'Write tests' not in filtered.data

    sprints_page = client.get(f"/projects/{project['id']}/sprints")
    assert b'Sprint 1' in sprints_page.data
    assert b'1 / 1' in sprints_page.data

    report = client.get(f"/api/projects/{project['id']}/report").get_json()
    assert report['task_stats']['total'] == 2
    assert report['task_stats']['completion_rate'] == 50
    assert report['time_stats']['total_estimated'] == 6
    assert round(report['time_stats']['variance'], 1) == -16.7
    assert report['time_stats']['efficiency'] == 120
    assert report['sprint_progress'][0]['progress'] == 100
    assert report['errors'] == []

    page = client.get(f"/projects/{project['id']}/reports")
    assert page.status_code == 200
    assert b'50%' in page.data


def test_task_detail_edit_and_comment(client, service, project):
    task = service.insert('tasks', {'project_id': project['id'], 'title': 'Draft'})

    page = client.get(f"/tasks/{task['id']}")
    assert page.status_code == 200
    assert b'No comments yet' in page.data

    response = client.post(f"/tasks/{task['id']}", data={
        'title': 'Draft v2', 'status': 'review', 'priority': 'low', 'sprint_id': '', 'actual_hours': '1.5',
    })
    assert response.status_code == 302
    [row] = service.select('tasks')
    assert (row['title'], row['status'], row['actual_hours']) == ('Draft v2', 'review', 1.5)

    response = client.post(f"/tasks/{task['id']}/comments", data={'comment': 'Ready for review', 'author': 'Ann'})
    assert response.status_code == 302
    assert [c['author'] for c in service.select('task_comments', {'task_id': task['id']})] == ['Ann']
    assert b'Ready for review' in client.get(f"/tasks/{task['id']}").data


def test_blank_comment_is_not_saved(client, service, project):
    task = service.insert('tasks', {'project_id': project['id'], 'title': 'Draft'})

    client.post(f"/tasks/{task['id']}/comments", data={'comment': '  ', 'author': 'Ann'})

    assert service.select('task_comments') == []


def test_delete_task_and_sprint(client, service, project):
    sprint = service.insert('sprints', {'project_id': project['id'], 'name': 'S',
                                        'start_date': '2026-01-01', 'end_date': '2026-01-02'})
    keep = service.insert('tasks', {'project_id': project['id'], 'title': 'Keep', 'sprint_id': sprint['id']})
    drop = service.insert('tasks', {'project_id': project['id'], 'title': 'Drop'})

    assert client.post(f"/tasks/{drop['id']}/delete").status_code == 302
    assert client.post(f"/sprints/{sprint['id']}/delete").status_code == 302

    [row] = service.select('tasks')
    assert row['id'] == keep['id']
    assert row['sprint_id'] is None


def test_failed_write_is_reported(client, app, project):
    service = app.extensions['data_service']
    with patch.object(service, 'update', side_effect=DataServiceError('read-only', 'projects', 'update')):
        response = client.post(f"/projects/{project['id']}/edit", data={'name': 'X', 'status': 'active'})

    assert response.status_code == 200
    assert b'Could not save' in response.data


def test_failed_fetch_is_reported_not_swallowed(client, app):
    service = app.extensions['data_service']
    with patch.object(service, 'select', side_effect=DataServiceError('timeout', 'projects', 'select')):
        response = client.get('/')

    assert response.status_code == 200
    assert b'Could not load data' in response.data


def test_delete_without_csrf_token_is_rejected(csrf_app):
    service = csrf_app.extensions['data_service']
    with csrf_app.app_context():
        project = service.insert('projects', {'name': 'Website'})
        sprint = service.insert('sprints', {'project_id': project['id'], 'name': 'S',
                                            'start_date': '2026-01-01', 'end_date': '2026-01-02'})
        task = service.insert('tasks', {'project_id': project['id'], 'title': 'Keep'})
    client = csrf_app.test_client()

    assert client.post(f"/projects/{project['id']}/delete").status_code == 400
    assert client.post(f"/sprints/{sprint['id']}/delete").status_code == 400
    assert client.post(f"/tasks/{task['id']}/delete").status_code == 400

    with csrf_app.app_context():
        assert [p['id'] for p in service.select('projects')] == [project['id']]
        assert len(service.select('sprints')) == 1
        assert len(service.select('tasks')) == 1


def test_delete_with_csrf_token_from_form_succeeds(csrf_app):
    service = csrf_app.extensions['data_service']
    with csrf_app.app_context():
        project = service.insert('projects', {'name': 'Website'})
    client = csrf_app.test_client()

    page = client.get(f"/projects/{project['id']}/edit")
    token = re.search(r'name="csrf_token" type="hidden" value="([^"]+)"', page.get_data(as_text=True)).group(1)
    response = client.post(f"/projects/{project['id']}/delete", data={'csrf_token': token})

    assert response.status_code == 302
    with csrf_app.app_context():
        assert service.select('projects') == []


def test_templates_resolve_from_app_root(app):
    templates = set(app.jinja_env.list_templates())

    assert {'dashboard.html', 'project_detail.html', 'task_detail.html'} <= templates
