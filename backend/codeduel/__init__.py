from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from sqlalchemy.exc import SQLAlchemyError
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from codeduel.api.rooms import rooms
    from codeduel.api.matches import matches
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')
    flask_app.register_blueprint(matches, url_prefix='/api/matches')

    from codeduel.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from codeduel.errors import DuelError

    @flask_app.errorhandler(DuelError)
    def handle_duel_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    @flask_app.errorhandler(SQLAlchemyError)
    def handle_storage_error(exc):
        db.session.rollback()
        flask_app.logger.exception(f"[storage-error] {exc.__class__.__name__}")
        return jsonify({'error': 'InternalError', 'message': 'The request could not be completed'}), 500

    @flask_app.route('/')
    def index():
        return jsonify({'message': 'Welcome to the Code Duel match server!'})

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from codeduel.models import Problem, TestCase
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed one problem per difficulty
            samples = [
                ('easy', 'Sum of Two', 'Read two integers and print their sum.',
                 [('1 2\n', '3\n'), ('10 -4\n', '6\n'), ('0 0\n', '0\n')]),
                ('medium', 'Reverse Words', 'Print the words of the line in reverse order.',
                 [('hello world\n', 'world hello\n'), ('a b c\n', 'c b a\n')]),
                ('hard', 'Longest Increasing Run', 'Print the length of the longest strictly increasing run.',
                 [('5\n1 2 3 1 2\n', '3\n'), ('3\n3 2 1\n', '1\n')]),
            ]
            for difficulty, title, description, cases in samples:
                problem = Problem(title=title, description=description, difficulty=difficulty)
                db.session.add(problem)
                db.session.flush()
                for idx, (stdin, expected) in enumerate(cases):
                    db.session.add(TestCase(
                        problem_id=problem.id,
                        input=stdin,
                        expected_output=expected,
                        is_hidden=idx == len(cases) - 1,
                        order_index=idx,
                    ))

            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
