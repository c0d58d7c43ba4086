"""Error taxonomy for the auth service.

Every error carries the HTTP status it maps to and the message the client is
allowed to see. Credential and token failures share one generic public
message so a caller cannot tell an unknown email from a bad token; the real
cause stays in ``str(exc)`` for the server log.
"""

GENERIC_UNAUTHORIZED_MESSAGE = 'Invalid or expired credentials.'


class AuthError(Exception):
    status_code = 500
    error_code = 'auth_error'
    public_message = None

    def __init__(self, message=''):
        super().__init__(message)
        self.message = message

    def to_payload(self):
        return {
            'error': self.error_code,
            'message': self.public_message or self.message,
        }


class ValidationError(AuthError):
    status_code = 400
    error_code = 'validation_error'


class DuplicateAccountError(AuthError):
    status_code = 409
    error_code = 'duplicate_account'


class SessionExpiredError(AuthError):
    status_code = 400
    error_code = 'signup_session_expired'


class AccountNotFoundError(AuthError):
    status_code = 404
    error_code = 'account_not_found'


class UnauthorizedError(AuthError):
    status_code = 401
    error_code = 'unauthorized'
    public_message = GENERIC_UNAUTHORIZED_MESSAGE


class InvalidCredentialsError(UnauthorizedError):
    pass


class InvalidTokenError(UnauthorizedError):
    pass


class TokenExpiredError(UnauthorizedError):
    pass


class TokenInvalidError(UnauthorizedError):
    pass


class ProviderMismatchError(AuthError):
    """Account exists under another credential type and must be linked explicitly.

    Rendered as a 200 so the client can branch into its linking UI instead of
    treating the response as a failed login.
    """

    status_code = 200
    error_code = 'provider_mismatch'

    def __init__(self, message='', email='', providers=()):
        super().__init__(message)
        self.email = email
        self.providers = tuple(providers)
        self.needs_linking = True

    def to_payload(self):
        return {
            'ok': False,
            'accountExists': True,
            'needsLinking': True,
            'email': self.email,
            'message': 'An account with this email already exists. Sign in with your password to link Google.',
        }
