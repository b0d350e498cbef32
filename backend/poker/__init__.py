from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    allowed_origins = flask_app.config.get('CORS_ORIGINS', [])
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Subscriptions and disconnect cleanup are per-app, not module globals
    from poker.services.sessions.feed import SnapshotFeed
    from poker.services.sessions.presence import Presence
    flask_app.extensions['snapshot_feed'] = SnapshotFeed(socketio)
    flask_app.extensions['presence'] = Presence()

    from poker.routes import main
    flask_app.register_blueprint(main)

    from poker.api.sessions import sessions
    # Mount session routes under /api to match the mobile client
    flask_app.register_blueprint(sessions, url_prefix='/api')

    from poker.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates every session table."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('sessions-list')
    def sessions_list_command():
        """Prints the active sessions with their participant counts."""
        from poker.models import PlanningSession
        with flask_app.app_context():
            rows = PlanningSession.query.order_by(PlanningSession.created_at).all()
            if not rows:
                print('No active sessions.')
            for row in rows:
                print(f"{row.id}  {row.name!r}  participants={len(row.participants)} revealed={row.is_revealed}")

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(sessions_list_command)

    return flask_app
