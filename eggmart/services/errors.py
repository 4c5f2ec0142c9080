from flask import jsonify


class ServiceError(Exception):
    """Base error raised by services; carries the HTTP status to answer with."""

    status_code = 400
    default_message = 'Bad request'

    def __init__(self, message=None, details=None, status_code=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        body = {'error': self.message}
        if self.details is not None:
            body['details'] = self.details
        return body


class InvalidRequest(ServiceError):
    default_message = 'Invalid request'


class Unauthenticated(ServiceError):
    status_code = 401
    default_message = 'Not authenticated'


class Unauthorized(ServiceError):
    status_code = 401
    default_message = 'Not authorized'


class NotFound(ServiceError):
    status_code = 404
    default_message = 'Not found'


class Conflict(ServiceError):
    status_code = 409
    default_message = 'Conflict'


class Unavailable(ServiceError):
    default_message = 'Product is not available'


class InsufficientStock(ServiceError):
    default_message = 'Insufficient stock'


class AlreadyRated(ServiceError):
    default_message = (
        'You have already rated this order. '
        'Each order can only be rated once.'
    )


def error_response(exc):
    return jsonify(exc.to_dict()), exc.status_code
