"""
Error taxonomy shared by every resource.

Domain code raises one of these; the exception handlers in ``main`` turn them
into the failure envelope ``{"status": ..., "errorMessage": ...}``.
"""


class ApiError(Exception):
    status_code = 500
    default_message = "Something went wrong."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid request."


class Unauthorized(ApiError):
    status_code = 401
    default_message = "Could not validate credentials."


class Forbidden(ApiError):
    status_code = 403
    default_message = "Forbidden."


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found."


class Conflict(ApiError):
    status_code = 409
    default_message = "Conflict."


class Internal(ApiError):
    status_code = 500
    default_message = "An internal error occurred."
