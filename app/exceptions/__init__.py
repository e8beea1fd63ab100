"""Custom exceptions for the proposals application."""

class SaasError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class BusinessLogicError(SaasError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(SaasError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class AuthenticationError(SaasError):
    """Raised when credentials are missing or invalid."""
    def __init__(self, message="Authentication required"):
        super().__init__(message, 401)

class UnauthorizedError(SaasError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 403)

class SubscriptionRequiredError(SaasError):
    """Raised when the account has no active subscription."""
    def __init__(self, message="Assinatura inativa."):
        super().__init__(message, 402)

class PersistenceError(SaasError):
    """
    Raised when the database rejects or fails a write.

    Signals a storage outage, not invalid input (see BusinessLogicError).
    """
    def __init__(self, message="Erro ao salvar no banco de dados.", payload=None):
        super().__init__(message, 503, payload)

class AccountCreationError(SaasError):
    """Raised when an account cannot be provisioned for a paying customer."""
    def __init__(self, message="Erro ao criar usuário"):
        super().__init__(message, 500)
