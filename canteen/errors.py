"""Error taxonomy shared by the workflows and the HTTP layer.

Every error carries the HTTP status it maps to; ``main`` renders them as
``{"error": message}``.
"""


class CanteenError(Exception):
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message


class ValidationError(CanteenError, ValueError):
    status_code = 400


class InvalidPin(ValidationError):
    def __init__(self, message: str = "Invalid PIN"):
        super().__init__(message)


class PinExpired(ValidationError):
    def __init__(self, message: str = "PIN expired"):
        super().__init__(message)


class NotFound(CanteenError, LookupError):
    status_code = 404


class Unauthorized(CanteenError):
    status_code = 401


class Forbidden(CanteenError):
    status_code = 403


class Conflict(CanteenError):
    status_code = 409


class Internal(CanteenError):
    status_code = 500
