"""
Service-level errors.

Each error carries the HTTP status the routes answer with and a message that
is safe to show to the caller.
"""


class ServiceError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidPayloadError(ServiceError):
    status_code = 400
    default_message = "All fields are required"


class NotFoundError(ServiceError):
    status_code = 404
    default_message = "Collection not found"


class AuthorizationError(ServiceError):
    status_code = 403
    default_message = "You are not authorized to modify this collection"


class ExternalServiceError(ServiceError):
    """Database or image host failure. Never carries the underlying detail."""


class ImageUploadError(Exception):
    pass
