import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma separated list, '*' allows any origin
    CORS_ORIGINS = [o.strip() for o in os.environ.get('CORS_ORIGINS', '*').split(',') if o.strip()]
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/')
    PORT = int(os.environ.get('PORT', '8000'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Room defaults
    DEFAULT_MAX_PLAYERS = int(os.environ.get('DEFAULT_MAX_PLAYERS', '5'))
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '6'))
    # Question generation (any OpenAI-compatible endpoint)
    QUESTION_COUNT = int(os.environ.get('QUESTION_COUNT', '10'))
    OPENAI_API_KEY = os.environ.get('OPENAI_API_KEY')
    QUESTION_MODEL = os.environ.get('QUESTION_MODEL', 'gpt-4.1-mini')
    QUESTION_API_BASE_URL = os.environ.get('QUESTION_API_BASE_URL') or None
    QUESTION_TIMEOUT_SEC = int(os.environ.get('QUESTION_TIMEOUT_SEC', '60'))
    # Run start-game generation on the handler thread instead of a background task
    RUN_TASKS_INLINE = os.environ.get('RUN_TASKS_INLINE', '0') == '1'
