import logging

import click
from flask import Blueprint, Flask, abort, current_app, flash, jsonify, redirect, render_template, request, url_for
from flask.cli import with_appcontext
from flask_wtf.csrf import CSRFProtect

from config import Config
from data import Sprint
from db import create_data_service, ensure_db, get_data_service, seed_demo
from errors import DataServiceError, RecordNotFound
from forms import (CommentForm, ProjectForm, SprintForm, TaskForm, PROJECT_STATUS_CHOICES,
                   SPRINT_STATUS_CHOICES, TASK_PRIORITY_CHOICES, TASK_STATUS_CHOICES)
from models import db
from queries import (fetch_record, load_dashboard, load_report, load_sprint_overview,
                     load_task_board, load_task_detail)

bp = Blueprint('dashboard', __name__)
csrf = CSRFProtect()

LABELS = {
    'project_status': dict(PROJECT_STATUS_CHOICES),
    'sprint_status': dict(SPRINT_STATUS_CHOICES),
    'task_status': dict(TASK_STATUS_CHOICES),
    'priority': dict(TASK_PRIORITY_CHOICES),
}


def _flash_errors(errors):
    for error in errors:
        flash(f'Could not load data: {error}', 'danger')


def _get_or_404(relation, record_id):
    try:
        record = fetch_record(get_data_service(), relation, record_id)
    except DataServiceError as exc:
        flash(f'Could not load data: {exc}', 'danger')
        abort(503)
    if record is None:
        abort(404)
    return record


def _write(action, *args):
    """Run a data-service write, flashing the failure. Returns the result or None."""
    try:
        return action(*args) or True
    except RecordNotFound:
        abort(404)
    except DataServiceError as exc:
        flash(f'Could not save: {exc}', 'danger')
        return None


@bp.route('/')
def index():
    view = load_dashboard(get_data_service())
    _flash_errors(view.errors)
    return render_template('dashboard.html', projects=view.projects, stats=view.stats)


@bp.route('/projects/new', methods=['GET', 'POST'])
def create_project():
    form = ProjectForm()
    if form.validate_on_submit():
        project = _write(get_data_service().insert, 'projects', form.to_row())
        if project:
            flash(f'Project "{project["name"]}" created!', 'success')
            return redirect(url_for('dashboard.project_detail', project_id=project['id']))
    return render_template('project_form.html', form=form, title='Create Project')


@bp.route('/projects/<project_id>')
def project_detail(project_id):
    return redirect(url_for('dashboard.task_board', project_id=project_id))


@bp.route('/projects/<project_id>/edit', methods=['GET', 'POST'])
def edit_project(project_id):
    project = _get_or_404('projects', project_id)
    form = ProjectForm(obj=project)
    if form.validate_on_submit():
        if _write(get_data_service().update, 'projects', project.id, form.to_row()):
            flash('Project updated!', 'success')
            return redirect(url_for('dashboard.project_detail', project_id=project.id))
    return render_template('project_form.html', form=form, title='Edit Project', project=project)


@bp.route('/projects/<project_id>/delete', methods=['POST'])
def delete_project(project_id):
    if _write(get_data_service().delete, 'projects', project_id):
        flash('Project deleted.', 'success')
    return redirect(url_for('dashboard.index'))


@bp.route('/projects/<project_id>/tasks')
def task_board(project_id):
    project = _get_or_404('projects', project_id)
    view = load_task_board(get_data_service(), project.id, request.args.get('sprint', 'all'))
    _flash_errors(view.errors)
    return render_template('project_detail.html', project=project, tab='tasks', board=view)


@bp.route('/projects/<project_id>/sprints')
def sprint_overview(project_id):
    project = _get_or_404('projects', project_id)
    view = load_sprint_overview(get_data_service(), project.id)
    _flash_errors(view.errors)
    return render_template('project_detail.html', project=project, tab='sprints', overview=view)


@bp.route('/projects/<project_id>/reports')
def project_report(project_id):
    project = _get_or_404('projects', project_id)
    view = load_report(get_data_service(), project.id)
    _flash_errors(view.errors)
    return render_template('project_detail.html', project=project, tab='reports',
                           report=view.report, sprint_count=len(view.sprints))


@bp.route('/api/projects/<project_id>/report')
def report_api(project_id):
    project = _get_or_404('projects', project_id)
    view = load_report(get_data_service(), project.id)
    payload = view.report.to_dict()
    payload['project_id'] = project.id
    payload['errors'] = [str(e) for e in view.errors]
    return jsonify(payload), (200 if not view.errors else 502)


@bp.route('/projects/<project_id>/sprints/new', methods=['GET', 'POST'])
def create_sprint(project_id):
    project = _get_or_404('projects', project_id)
    form = SprintForm()
    if form.validate_on_submit():
        row = dict(form.to_row(), project_id=project.id)
        if _write(get_data_service().insert, 'sprints', row):
            flash('Sprint created!', 'success')
            return redirect(url_for('dashboard.sprint_overview', project_id=project.id))
    return render_template('sprint_form.html', form=form, project=project, title='Create Sprint')


@bp.route('/sprints/<sprint_id>/edit', methods=['GET', 'POST'])
def edit_sprint(sprint_id):
    sprint = _get_or_404('sprints', sprint_id)
    project = _get_or_404('projects', sprint.project_id)
    form = SprintForm(obj=sprint)
    if form.validate_on_submit():
        if _write(get_data_service().update, 'sprints', sprint.id, form.to_row()):
            flash('Sprint updated!', 'success')
            return redirect(url_for('dashboard.sprint_overview', project_id=project.id))
    return render_template('sprint_form.html', form=form, project=project, title='Edit Sprint', sprint=sprint)


@bp.route('/sprints/<sprint_id>/delete', methods=['POST'])
def delete_sprint(sprint_id):
    sprint = _get_or_404('sprints', sprint_id)
    if _write(get_data_service().delete, 'sprints', sprint.id):
        flash('Sprint deleted.', 'success')
    return redirect(url_for('dashboard.sprint_overview', project_id=sprint.project_id))


def _sprints_of(project_id):
    try:
        rows = get_data_service().select('sprints', {'project_id': project_id}, descending=True)
    except DataServiceError as exc:
        flash(f'Could not load sprints: {exc}', 'danger')
        return []
    return [Sprint.from_row(row) for row in rows]


@bp.route('/projects/<project_id>/tasks/new', methods=['GET', 'POST'])
def create_task(project_id):
    project = _get_or_404('projects', project_id)
    form = TaskForm()
    form.set_sprints(_sprints_of(project.id))
    if request.method == 'GET' and request.args.get('sprint'):
        form.sprint_id.data = request.args['sprint']
    if form.validate_on_submit():
        row = dict(form.to_row(), project_id=project.id)
        if _write(get_data_service().insert, 'tasks', row):
            flash('Task created!', 'success')
            return redirect(url_for('dashboard.task_board', project_id=project.id))
    return render_template('task_form.html', form=form, project=project, title='Create Task')


@bp.route('/tasks/<task_id>', methods=['GET', 'POST'])
def task_detail(task_id):
    view = load_task_detail(get_data_service(), task_id)
    if view.task is None:
        _flash_errors(view.errors)
        abort(404 if not view.errors else 503)
    task = view.task
    project = _get_or_404('projects', task.project_id)
    form = TaskForm(obj=task)
    form.set_sprints(_sprints_of(project.id))
    if form.validate_on_submit():
        if _write(get_data_service().update, 'tasks', task.id, form.to_row()):
            flash('Task updated!', 'success')
            return redirect(url_for('dashboard.task_board', project_id=project.id))
    _flash_errors(view.errors)
    return render_template('task_detail.html', form=form, project=project, task=task,
                           comments=view.comments, comment_form=CommentForm(formdata=None))


@bp.route('/tasks/<task_id>/delete', methods=['POST'])
def delete_task(task_id):
    task = _get_or_404('tasks', task_id)
    if _write(get_data_service().delete, 'tasks', task.id):
        flash('Task deleted.', 'success')
    return redirect(url_for('dashboard.task_board', project_id=task.project_id))


@bp.route('/tasks/<task_id>/comments', methods=['POST'])
def add_comment(task_id):
    task = _get_or_404('tasks', task_id)
    form = CommentForm()
    if form.validate_on_submit():
        if _write(get_data_service().insert, 'task_comments', dict(form.to_row(), task_id=task.id)):
            flash('Comment added.', 'success')
    else:
        flash('A comment needs both text and an author.', 'warning')
    return redirect(url_for('dashboard.task_detail', task_id=task.id))


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create the database tables."""
    ensure_db(current_app)
    click.echo('Database ready.')


@click.command('seed-demo')
@with_appcontext
def seed_demo_command():
    """Load the demo project into an empty store."""
    if seed_demo(get_data_service()):
        click.echo('Demo project loaded.')
    else:
        click.echo('Projects already exist, nothing loaded.')


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    level = app.config['LOG_LEVEL']
    app.logger.setLevel(level)
    for name in ('db', 'queries'):
        logging.getLogger(name).setLevel(level)

    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite'):
        # Page loads read from worker threads
        options = app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', {})
        options.setdefault('connect_args', {}).setdefault('check_same_thread', False)
    db.init_app(app)

    app.extensions['data_service'] = create_data_service(app.config)
    app.logger.info('Using %s data backend', app.config['DATA_BACKEND'])
    ensure_db(app)

    csrf.init_app(app)
    app.register_blueprint(bp)
    app.cli.add_command(init_db_command)
    app.cli.add_command(seed_demo_command)
    app.jinja_env.globals['labels'] = LABELS

    if app.config['SEED_DEMO_DATA']:
        with app.app_context():
            seed_demo(app.extensions['data_service'])
    return app


if __name__ == '__main__':
    create_app().run(debug=True)
