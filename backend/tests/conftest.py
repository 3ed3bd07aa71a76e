import os
import sys
from collections import defaultdict

import pytest

# Ensure the backend root (containing the `witlink` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from witlink import create_app, socketio
from witlink.errors import ExternalServiceError
from witlink.models import AnswerKey, Question


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = ['*']
    SOCKETIO_NAMESPACE = '/'
    DEFAULT_MAX_PLAYERS = 5
    ROOM_CODE_LENGTH = 6
    QUESTION_COUNT = 3
    LOG_LEVEL = 'DEBUG'


def make_questions(count=3):
    return [
        Question(
            text=f'Question {i}?',
            options=('A) one', 'B) two', 'C) three', 'D) four'),
            correct_answer=AnswerKey.B,
        )
        for i in range(count)
    ]


class FakeQuestionProvider:
    """Stands in for the text-generation service."""

    def __init__(self):
        self.calls = []
        self.fail = False
        self.questions = make_questions()

    def __call__(self, topic, difficulty):
        self.calls.append((topic, difficulty))
        if self.fail:
            raise ExternalServiceError()
        return list(self.questions)


@pytest.fixture()
def question_provider():
    return FakeQuestionProvider()


@pytest.fixture()
def flask_app(question_provider):
    application = create_app(TestConfig, question_provider=question_provider)
    yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def connect(flask_app):
    """Factory for named Socket.IO test clients; all are disconnected on teardown."""
    clients = []

    def _connect(name='Alice', auth=None):
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            auth=auth if auth is not None else {'name': name},
        )
        clients.append(test_client)
        return test_client

    yield _connect
    for test_client in clients:
        try:
            if test_client.is_connected():
                test_client.disconnect()
        except Exception:
            pass


@pytest.fixture()
def sio_client(connect):
    return connect('Alice')


@pytest.fixture()
def events():
    return received_events


def received_events(test_client):
    """Received payloads grouped by event name. Flushes the client's queue."""
    found = defaultdict(list)
    for pkt in test_client.get_received():
        args = pkt['args']
        # The test client unwraps 'message' events
        if isinstance(args, list):
            found[pkt['name']].append(args[0] if len(args) == 1 else args)
        else:
            found[pkt['name']].append(args)
    return found
