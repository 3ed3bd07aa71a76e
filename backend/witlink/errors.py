"""Errors raised by room operations.

Every error carries a human-readable ``message`` (sent to the client as the
``room-error`` reason) and a machine-readable ``kind``.
"""


class RoomError(Exception):
    kind = 'room_error'
    message = 'Something went wrong'

    def __init__(self, message=None):
        if message:
            self.message = message
        super().__init__(self.message)

    def to_dict(self):
        return {'kind': self.kind, 'message': self.message}


class AuthenticationError(RoomError):
    kind = 'authentication'
    message = 'Name is required'


class NotFoundError(RoomError):
    kind = 'not_found'
    message = 'Room does not exist'


class AuthorizationError(RoomError):
    kind = 'forbidden'
    message = 'Only the host can do that'


class CapacityError(RoomError):
    kind = 'room_full'
    message = 'Room is full'


class StateError(RoomError):
    kind = 'invalid_state'
    message = 'Game is not running'


class ExternalServiceError(RoomError):
    kind = 'external_service'
    message = 'Failed to generate questions'


class CallerNotInRoomError(RoomError):
    kind = 'not_in_room'
    message = 'Player not found in room'


class InvalidPayloadError(RoomError):
    kind = 'invalid_payload'
    message = 'Invalid request'
