import logging
from datetime import datetime
from flask import Blueprint, request, jsonify
from sqlalchemy.exc import IntegrityError
from agency_ops.models import db, Task, Client, TeamMember
from agency_ops.services.caching import cache_response, invalidate_cache_on_change
from agency_ops.services.task_status import TaskStatus, TERMINAL_STATUSES, normalize_status, stored_values
from agency_ops.utils.error_handling import (
    handle_validation_error,
    handle_invalid_identifier,
    handle_database_error,
    handle_not_found_error,
    validate_required_fields,
    validate_json_body,
    handle_exception
)
from agency_ops.utils.validation import is_valid_uuid, parse_datetime

logger = logging.getLogger(__name__)

task_bp = Blueprint('task', __name__)

SORT_ORDERS = {
    'newest': Task.created_at.desc(),
    'oldest': Task.created_at.asc(),
    'deadline': Task.timer_end.asc().nullslast(),
}


def _resolve_assignee(value):
    if not value:
        return None
    member = db.session.get(TeamMember, value)
    if not member:
        raise ValueError(f"Team member {value} not found")
    return member.id


@task_bp.route('/tasks', methods=['POST'])
@invalidate_cache_on_change('tasks')
def create_task():
    """Create a task for a client."""
    try:
        data = request.get_json(silent=True)

        validation_error = validate_required_fields(data, ['title', 'client_id'])
        if validation_error:
            return validation_error

        # Reject malformed identifiers before touching the database
        if not is_valid_uuid(data['client_id']):
            logger.warning(f"Rejected task with invalid client_id format: {data['client_id']}")
            return handle_invalid_identifier('client_id', data['client_id'])

        status = normalize_status(data.get('status'))
        deadline = parse_datetime(data.get('deadline') or data.get('timer_end'), 'deadline')

        client = db.session.get(Client, data['client_id'])
        if not client:
            return handle_not_found_error("Client", data['client_id'])

        task = Task(
            title=str(data['title']).strip(),
            description=data.get('description'),
            client_id=client.id,
            assigned_to=_resolve_assignee(data.get('assigned_to')),
            status=status.value,
            timer_end=deadline,
            created_by=data.get('created_by')
        )
        db.session.add(task)
        db.session.commit()

        logger.info(f"Created task {task.id} for client {client.id}")
        return jsonify({
            'message': 'Task created successfully',
            'task': task.to_dict()
        }), 201

    except IntegrityError as e:
        db.session.rollback()
        return handle_database_error(e, "task creation")
    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "task creation")


@task_bp.route('/tasks', methods=['GET'])
@cache_response('tasks')
def get_tasks():
    """List tasks with client names, optionally filtered and sorted."""
    try:
        query = Task.query

        status = request.args.get('status')
        if status and status != 'all':
            query = query.filter(Task.status.in_(stored_values(normalize_status(status))))

        client_id = request.args.get('client_id')
        if client_id:
            query = query.filter(Task.client_id == client_id)

        sort = request.args.get('sort', 'newest')
        if sort not in SORT_ORDERS:
            return handle_validation_error(
                f"Invalid sort '{sort}'",
                {'allowed': list(SORT_ORDERS)}
            )

        tasks = query.order_by(SORT_ORDERS[sort]).all()
        return jsonify({
            'tasks': [task.to_dict() for task in tasks],
            'count': len(tasks)
        }), 200

    except Exception as e:
        return handle_exception(e, "task listing")


@task_bp.route('/tasks/<task_id>', methods=['GET'])
@cache_response('tasks', key_args=['task_id'])
def get_task(task_id):
    """Get a specific task."""
    try:
        task = db.session.get(Task, task_id)
        if not task:
            return handle_not_found_error("Task", task_id)

        return jsonify({
            'task': task.to_dict()
        }), 200
    except Exception as e:
        return handle_exception(e, "task retrieval")


@task_bp.route('/tasks/<task_id>', methods=['PUT'])
@invalidate_cache_on_change('tasks')
def update_task(task_id):
    """Update a task."""
    try:
        task = db.session.get(Task, task_id)
        if not task:
            return handle_not_found_error("Task", task_id)

        data = request.get_json(silent=True)
        validation_error = validate_json_body(data)
        if validation_error:
            return validation_error

        if 'client_id' in data:
            if not is_valid_uuid(data['client_id']):
                return handle_invalid_identifier('client_id', data['client_id'])
            if not db.session.get(Client, data['client_id']):
                return handle_not_found_error("Client", data['client_id'])
            task.client_id = data['client_id']
        if 'title' in data:
            if not data['title']:
                return handle_validation_error("title can not be empty")
            task.title = str(data['title']).strip()
        if 'description' in data:
            task.description = data['description']
        if 'status' in data:
            task.status = normalize_status(data['status']).value
        if 'assigned_to' in data:
            task.assigned_to = _resolve_assignee(data['assigned_to'])
        if 'timer_start' in data:
            task.timer_start = parse_datetime(data['timer_start'], 'timer_start')
        if 'timer_end' in data or 'deadline' in data:
            value = data['timer_end'] if 'timer_end' in data else data['deadline']
            task.timer_end = parse_datetime(value, 'timer_end')

        db.session.commit()

        return jsonify({
            'message': 'Task updated successfully',
            'task': task.to_dict()
        }), 200

    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "task update")


def _transition(task_id, status, timer_field, operation):
    """Stamp a timer field with now and move the task to ``status``."""
    try:
        task = db.session.get(Task, task_id)
        if not task:
            return handle_not_found_error("Task", task_id)

        current = normalize_status(task.status)
        if current in TERMINAL_STATUSES:
            return handle_validation_error(
                f"Task is already {current.value}",
                {'status': current.value}
            )

        setattr(task, timer_field, datetime.utcnow())
        task.status = status.value
        db.session.commit()

        logger.info(f"Task {task_id} moved from {current.value} to {status.value}")
        return jsonify({
            'message': f'Task {operation} successfully',
            'task': task.to_dict()
        }), 200

    except Exception as e:
        db.session.rollback()
        return handle_exception(e, f"task {operation}")


@task_bp.route('/tasks/<task_id>/start', methods=['POST'])
@invalidate_cache_on_change('tasks')
def start_task(task_id):
    """Start the timer on a task."""
    return _transition(task_id, TaskStatus.IN_PROGRESS, 'timer_start', 'started')


@task_bp.route('/tasks/<task_id>/complete', methods=['POST'])
@invalidate_cache_on_change('tasks')
def complete_task(task_id):
    """Stop the timer and complete a task."""
    return _transition(task_id, TaskStatus.COMPLETED, 'timer_end', 'completed')


@task_bp.route('/tasks/<task_id>/cancel', methods=['POST'])
@invalidate_cache_on_change('tasks')
def cancel_task(task_id):
    """Cancel a task."""
    return _transition(task_id, TaskStatus.CANCELED, 'timer_end', 'canceled')


@task_bp.route('/tasks/<task_id>', methods=['DELETE'])
@invalidate_cache_on_change('tasks')
def delete_task(task_id):
    """Delete a task."""
    try:
        task = db.session.get(Task, task_id)
        if not task:
            return handle_not_found_error("Task", task_id)

        db.session.delete(task)
        db.session.commit()

        return jsonify({
            'message': 'Task deleted successfully'
        }), 200

    except Exception as e:
        db.session.rollback()
        return handle_exception(e, "task deletion")
