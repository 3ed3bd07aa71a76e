import json
import logging

import click
from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO

from config import Config

socketio = SocketIO(async_mode=None)


def create_app(config_class=Config, question_provider=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(getattr(logging, str(flask_app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'
    if allowed_origins == ['*']:
        allowed_origins = '*'
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Room state lives for the life of this app object only
    from witlink.services.questions import build_question_provider
    from witlink.services.rooms import IdentityGate, RoomBroadcaster, RoomCoordinator, RoomRegistry
    from witlink.services.rooms.coordinator import run_inline

    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/')
    if flask_app.config.get('TESTING') or flask_app.config.get('RUN_TASKS_INLINE'):
        run_task = run_inline
    else:
        run_task = socketio.start_background_task
    coordinator = RoomCoordinator(
        registry=RoomRegistry(code_length=int(flask_app.config.get('ROOM_CODE_LENGTH', 6))),
        broadcaster=RoomBroadcaster(socketio, namespace=namespace),
        question_provider=question_provider or build_question_provider(flask_app.config),
        identities=IdentityGate(),
        logger=flask_app.logger,
        run_task=run_task,
        default_max_players=int(flask_app.config.get('DEFAULT_MAX_PLAYERS', 5)),
    )
    flask_app.extensions['witlink'] = coordinator

    from witlink.api.rooms import rooms
    flask_app.register_blueprint(rooms)

    # Register Socket.IO event handlers
    from witlink.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace=namespace)

    @click.command('generate-questions')
    @click.argument('topic')
    @click.option('--difficulty', default='EASY', show_default=True,
                  type=click.Choice(['EASY', 'MEDIUM', 'HARD'], case_sensitive=False))
    def generate_questions_command(topic, difficulty):
        """Generates a question set for TOPIC and prints it as JSON."""
        from witlink.errors import ExternalServiceError
        from witlink.models import Difficulty
        try:
            questions = coordinator.question_provider(topic, Difficulty.parse(difficulty))
        except ExternalServiceError as exc:
            raise click.ClickException(exc.message)
        click.echo(json.dumps([q.to_dict() for q in questions], indent=2))

    flask_app.cli.add_command(generate_questions_command)

    return flask_app
