import os
import logging
import click
from flask import Flask, jsonify

from agency_ops.config import config
from agency_ops.extensions import db, cors
from agency_ops.services.caching import get_cache_service


def configure_logging(app):
    """Write application logs to a file outside debug mode."""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    if not app.debug and not app.testing:
        log_dir = app.config.get('LOG_DIR', 'logs')
        if not os.path.exists(log_dir):
            os.mkdir(log_dir)
        file_handler = logging.FileHandler(os.path.join(log_dir, 'agency_ops.log'))
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(level)
        app.logger.addHandler(file_handler)
        logging.getLogger('agency_ops').addHandler(file_handler)
    app.logger.setLevel(level)
    logging.getLogger('agency_ops').setLevel(level)
    app.logger.info('Agency Ops API startup')


def register_blueprints(app):
    from agency_ops.routes.client import client_bp
    from agency_ops.routes.task import task_bp
    from agency_ops.routes.finance import finance_bp
    from agency_ops.routes.work import work_bp
    from agency_ops.routes.team import team_bp
    from agency_ops.routes.dashboard import dashboard_bp

    for name, blueprint in (
        ('client', client_bp),
        ('task', task_bp),
        ('finance', finance_bp),
        ('work', work_bp),
        ('team', team_bp),
        ('dashboard', dashboard_bp),
    ):
        app.register_blueprint(blueprint, url_prefix='/api/v1')
        app.logger.info(f"Registered {name} blueprint")


def register_commands(app):
    """Maintenance commands available through ``flask --app agency_ops.main``."""

    @app.cli.command('init-db')
    def init_db():
        """Create all database tables."""
        db.create_all()
        click.echo('Database tables created')

    @app.cli.command('normalize-task-statuses')
    def normalize_task_statuses():
        """Rewrite legacy task status values to the canonical vocabulary."""
        from agency_ops.services.task_status import migrate_legacy_statuses
        updated = migrate_legacy_statuses(db.session)
        click.echo(f'Normalized {updated} task status value(s)')

    @app.cli.command('capture-dashboard-snapshot')
    def capture_dashboard_snapshot():
        """Store the current dashboard tiles as a comparison baseline."""
        from agency_ops.services.dashboard import DashboardService
        snapshot = DashboardService().capture_snapshot()
        click.echo(f'Captured dashboard snapshot {snapshot.id} at {snapshot.captured_at.isoformat()}')


def create_app(config_name=None):
    """Application factory pattern."""
    app = Flask(__name__)

    # Load configuration
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app.config.from_object(config[config_name])

    # Validate production configuration if needed
    if config_name == 'production':
        config[config_name].validate_config()

    # Initialize extensions
    cors.init_app(app, origins=app.config['CORS_ORIGINS'], supports_credentials=True)
    db.init_app(app)

    configure_logging(app)
    register_blueprints(app)

    # Create database tables (skipped in production unless explicitly enabled)
    with app.app_context():
        if config_name != 'production' or os.environ.get('STARTUP_DB_CREATE_ALL', 'false').lower() == 'true':
            db.create_all()
            app.logger.info("Database tables created/verified")
        else:
            app.logger.info("Skipping db.create_all() on startup in production")

    from agency_ops.utils.error_handlers import register_error_handlers
    register_error_handlers(app)
    app.logger.info("Registered global error handlers")

    register_commands(app)

    # Simple health check endpoint
    @app.route('/')
    def index():
        return jsonify({
            'status': 'ok',
            'message': 'Agency Ops API is running',
            'cache': get_cache_service().get_cache_stats()
        })

    return app


if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=5001, debug=True)
