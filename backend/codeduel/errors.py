"""Error kinds surfaced to callers.

Each error carries a short machine-readable ``kind`` plus a human message;
the Flask error handler renders them as ``{"error": kind, "message": ...}``.
"""


class DuelError(Exception):
    kind = 'Error'
    status_code = 400
    default_message = 'Request failed'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {'error': self.kind, 'message': self.message}


class InvalidRequest(DuelError):
    kind = 'InvalidRequest'
    status_code = 400
    default_message = 'Malformed request'


class Unauthorized(DuelError):
    kind = 'Unauthorized'
    status_code = 403
    default_message = 'You are not a participant of this room'


class NotFound(DuelError):
    kind = 'NotFound'
    status_code = 404
    default_message = 'Not found'


class InvalidRoomState(DuelError):
    kind = 'InvalidRoomState'
    status_code = 409
    default_message = 'Operation not allowed in the current room state'


class NoProblemsAvailable(DuelError):
    kind = 'NoProblemsAvailable'
    status_code = 404
    default_message = 'No problems available for this difficulty'


class RoomCodeExhausted(DuelError):
    kind = 'RoomCodeExhausted'
    status_code = 503
    default_message = 'Could not allocate a unique room code'


class JudgeExecutionFailed(DuelError):
    kind = 'JudgeExecutionFailed'
    status_code = 502
    default_message = 'The judge could not evaluate this submission'


class JudgeTimeout(JudgeExecutionFailed):
    kind = 'JudgeTimeout'
    status_code = 504
    default_message = 'The judge did not finish in time'
