from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    allowed_origins = flask_app.config.get('CORS_ORIGINS', [])
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from casino.errors import register_error_handlers
    register_error_handlers(flask_app)

    # Import and register blueprints here
    from casino.main import main
    flask_app.register_blueprint(main)

    from casino.api.auth import auth
    flask_app.register_blueprint(auth, url_prefix='/api/auth')

    from casino.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/game')

    from casino.api.admin import admin
    flask_app.register_blueprint(admin, url_prefix='/api/admin')

    from casino.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    # Flask-Login user loader
    from casino.errors import AuthenticationRequired
    from casino.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        raise AuthenticationRequired()

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from casino.models import GameSettings, DEFAULT_GAME_SETTINGS
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed verified demo users and one admin
            users = [('player1', 'user'), ('player2', 'user'), ('admin', 'admin')]
            for name, role in users:
                user = User(username=name, email=f'{name}@gmail.com', role=role, email_verified=True)
                user.set_password('Password1!')
                db.session.add(user)
            db.session.flush()

            admin_id = User.query.filter_by(username='admin').first().id
            for game_type, values in DEFAULT_GAME_SETTINGS.items():
                db.session.add(GameSettings(game_type=game_type, updated_by=admin_id, **values))

            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
