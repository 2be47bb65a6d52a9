import logging
from flask import Blueprint, jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError
from agency_ops.services.caching import cache_response, invalidate_cache_on_change
from agency_ops.services.dashboard import DashboardService
from agency_ops.utils.error_handling import handle_database_error, handle_exception

logger = logging.getLogger(__name__)

dashboard_bp = Blueprint('dashboard', __name__)


@dashboard_bp.route('/dashboard', methods=['GET'])
@cache_response('dashboard')
def get_dashboard():
    """Dashboard tiles, percentage changes, recent tasks and upcoming deadlines."""
    try:
        service = DashboardService()
        payload = service.build()
        payload['comparison_days'] = service.comparison_days
        return jsonify(payload), 200
    except Exception as e:
        current_app.logger.error(f"Error building dashboard: {str(e)}")
        return handle_exception(e, "dashboard aggregation")


@dashboard_bp.route('/dashboard/snapshots', methods=['POST'])
@invalidate_cache_on_change('dashboard')
def capture_dashboard_snapshot():
    """Persist the current tiles as a future comparison baseline."""
    try:
        snapshot = DashboardService().capture_snapshot()
        return jsonify({
            'message': 'Dashboard snapshot captured successfully',
            'snapshot': snapshot.to_dict()
        }), 201
    except SQLAlchemyError as e:
        return handle_database_error(e, "dashboard snapshot")
    except Exception as e:
        return handle_exception(e, "dashboard snapshot")
