# Error taxonomy shared by services and routes
# Each error knows the HTTP status it maps to; app/__init__.py renders them as JSON


class ChatError(Exception):
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {'error': self.message}


class AuthorizationError(ChatError):
    # Not a room participant, not the message owner, wrong identity
    status_code = 403
    default_message = 'Unauthorized'


class ValidationError(ChatError):
    # Bad input; `fields` maps field name -> list of messages
    status_code = 422
    default_message = 'The given data was invalid'

    def __init__(self, message=None, fields=None):
        super().__init__(message)
        self.fields = fields or {}

    @classmethod
    def for_field(cls, field, message):
        return cls(message, {field: [message]})

    def to_dict(self):
        body = {'error': self.message}
        if self.fields:
            body['errors'] = self.fields
        return body


class NotFoundError(ChatError):
    status_code = 404
    default_message = 'Not found'


class TransientInfraError(ChatError):
    # Storage/broadcast failure on the critical path
    status_code = 500
    default_message = 'Service temporarily unavailable'
