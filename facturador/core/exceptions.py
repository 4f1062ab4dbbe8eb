"""
FACTURADOR-DIAN — Domain exceptions
Each carries a human-readable `message` and a machine `code`; main.py maps
them to HTTP status codes and the response envelope.
"""


class FacturadorError(Exception):
    status_code = 500

    def __init__(self, message: str, code: str = "FACTURADOR_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)


class NotFoundError(FacturadorError):
    status_code = 404

    def __init__(self, message: str, code: str = "NOT_FOUND"):
        super().__init__(message, code)


class ForbiddenError(FacturadorError):
    """Caller is authenticated but acts on another company's resources."""
    status_code = 403

    def __init__(self, message: str = "No tiene permisos para realizar esta acción", code: str = "FORBIDDEN"):
        super().__init__(message, code)


class BusinessRuleError(FacturadorError):
    """Request is well-formed but not acceptable in the current state."""
    status_code = 400

    def __init__(self, message: str, code: str = "BAD_REQUEST"):
        super().__init__(message, code)
