# Flask application factory

import logging
import os
import sys

import click
from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException

import config as default_config
from app.extensions import db, socketio, login_manager
from app.functions.errors import ChatError

logger = logging.getLogger(__name__)

_logging_configured = False


def configure_logging(level='INFO', log_file=None):
    # Configure root logging once per process: optional file plus stdout
    global _logging_configured
    if _logging_configured:
        return
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    log_level = getattr(logging, str(level or 'INFO').upper(), logging.INFO)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        logging.basicConfig(level=log_level, format=log_format, filename=log_file, filemode='a')
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(log_format))
        logging.getLogger().addHandler(handler)
    else:
        logging.basicConfig(level=log_level, format=log_format, stream=sys.stdout)

    _logging_configured = True
    logging.info('Logging configured (level=%s)', logging.getLevelName(log_level))


def create_app(config=None):
    # Create and configure Flask application
    flask_app = Flask(__name__)

    # Load config: module defaults first, then the given object on top
    flask_app.config.update(default_config.as_flask_config())
    if config:
        flask_app.config.from_object(config)

    upload_dir = flask_app.config['UPLOAD_FOLDER']
    if not os.path.isabs(upload_dir):
        root_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        upload_dir = os.path.join(root_dir, upload_dir)
    flask_app.config['UPLOAD_FOLDER'] = upload_dir
    default_config.init_upload_folders(upload_dir)

    configure_logging(flask_app.config.get('LOG_LEVEL'), flask_app.config.get('LOG_FILE'))

    # Socket handlers go in before init_app, which copies them onto each new server
    import app.sockets  # noqa

    # Initialize extensions
    db.init_app(flask_app)
    socketio.init_app(flask_app, async_mode=flask_app.config.get('SOCKETIO_ASYNC_MODE'))
    login_manager.init_app(flask_app)

    from app.services.notifier import FanoutNotifier
    flask_app.extensions['notifier'] = FanoutNotifier(socketio)

    # Return JSON 401 when not authenticated
    @login_manager.unauthorized_handler
    def _unauthorized():
        return jsonify({'error': 'Unauthorized'}), 401

    # Set up login manager
    @login_manager.user_loader
    def load_user(user_id):
        from app.models import User
        return db.session.get(User, int(user_id))

    _register_error_handlers(flask_app)

    # Register blueprints
    from app.routes import auth_bp, main_bp, rooms_bp, chat_bp, direct_bp
    flask_app.register_blueprint(auth_bp)
    flask_app.register_blueprint(main_bp)
    flask_app.register_blueprint(rooms_bp)
    flask_app.register_blueprint(chat_bp)
    flask_app.register_blueprint(direct_bp)

    _register_commands(flask_app)

    # Create database tables
    with flask_app.app_context():
        import app.models  # noqa
        db.create_all()

    logger.info('[STARTUP] app created (db=%s, async_mode=%s)',
                flask_app.config['SQLALCHEMY_DATABASE_URI'],
                flask_app.config.get('SOCKETIO_ASYNC_MODE'))
    return flask_app


def _register_error_handlers(flask_app):

    @flask_app.errorhandler(ChatError)
    def _chat_error(e):
        db.session.rollback()
        if e.status_code >= 500:
            logger.error('[ERROR] %s on %s %s', e.message, request.method, request.path)
        return jsonify(e.to_dict()), e.status_code

    @flask_app.errorhandler(HTTPException)
    def _http_error(e):
        if request.path.startswith('/api/') or request.path.startswith('/uploads/'):
            return jsonify({'error': e.description or e.name}), e.code
        return e

    @flask_app.errorhandler(Exception)
    def _unhandled(e):
        db.session.rollback()
        logger.exception('[ERROR] unhandled exception on %s %s', request.method, request.path)
        return jsonify({'error': 'Internal server error'}), 500


def _register_commands(flask_app):
    from app.services import janitor, presence

    @flask_app.cli.group('online-members')
    def online_members_cli():
        """Presence maintenance."""

    @online_members_cli.command('cleanup')
    def online_members_cleanup():
        """Remove online-member rows past the sweep TTL."""
        count = presence.sweep_stale()
        click.echo(f'Cleaned up {count} stale online member records.')

    @flask_app.cli.group('room-usage')
    def room_usage_cli():
        """Room creation usage maintenance."""

    @room_usage_cli.command('cleanup')
    def room_usage_cleanup():
        """Remove monthly usage records older than the retention window."""
        count = janitor.prune_room_usage()
        click.echo(f'Successfully cleaned up {count} old room usage records.')

    @flask_app.cli.group('posts')
    def posts_cli():
        """Post maintenance."""

    @posts_cli.command('convert-old-public')
    def posts_convert_old_public():
        """Make public posts private once their public window has passed."""
        count = janitor.decay_public_posts()
        click.echo(f'Successfully converted {count} posts from public to private.')

    @flask_app.cli.group('janitor')
    def janitor_cli():
        """Background cleanup loop."""

    @janitor_cli.command('run')
    @click.option('--once', is_flag=True, help='Run every job once and exit.')
    def janitor_run(once):
        """Run the cleanup jobs in the foreground."""
        worker = janitor.Janitor(flask_app)
        if once:
            results = worker.run_due_jobs()
            for name, count in results.items():
                click.echo(f'{name}: {count}')
            return
        worker.run_forever()
