"""Firebase Auth adapter: the authority of record for account existence."""

import logging

from firebase_admin import exceptions as firebase_exceptions

from fliply_auth.errors import DuplicateAccountError, InvalidTokenError, TokenExpiredError
from fliply_auth.models import ProviderAccount, normalize_email

logger = logging.getLogger('fliply_auth.identity')


def to_provider_account(user_record):
    provider_ids = frozenset(
        str(getattr(info, 'provider_id', '') or '')
        for info in (getattr(user_record, 'provider_data', None) or [])
        if getattr(info, 'provider_id', '')
    )
    return ProviderAccount(
        account_id=user_record.uid,
        email=normalize_email(getattr(user_record, 'email', '')),
        display_name=str(getattr(user_record, 'display_name', '') or ''),
        provider_ids=provider_ids,
    )


class FirebaseIdentityProvider:
    """Wraps ``firebase_admin.auth``.

    The module is passed in rather than imported so the Flask factory owns
    the initialized Firebase app.
    """

    def __init__(self, auth_module):
        self.auth = auth_module

    def get_account_by_email(self, email):
        try:
            return to_provider_account(self.auth.get_user_by_email(email))
        except self.auth.UserNotFoundError:
            return None

    def get_account(self, account_id):
        try:
            return to_provider_account(self.auth.get_user(account_id))
        except (self.auth.UserNotFoundError, ValueError):
            return None

    def create_account(self, email, password, display_name=None):
        try:
            user_record = self.auth.create_user(email=email, password=password, display_name=display_name or None)
        except self.auth.EmailAlreadyExistsError as exc:
            raise DuplicateAccountError('An account with this email already exists.') from exc
        logger.info(f"Identity created for {email}: {user_record.uid}")
        return to_provider_account(user_record)

    def verify_identity_token(self, token):
        """Return the decoded claims of a Firebase ID token."""
        try:
            return self.auth.verify_id_token(token)
        except self.auth.ExpiredIdTokenError as exc:
            raise TokenExpiredError(f'Identity token expired: {exc}') from exc
        except (self.auth.InvalidIdTokenError, ValueError, firebase_exceptions.FirebaseError) as exc:
            raise InvalidTokenError(f'Identity token rejected: {exc}') from exc

    def create_custom_token(self, account_id):
        token = self.auth.create_custom_token(account_id)
        if isinstance(token, bytes):
            return token.decode('utf-8')
        return str(token)

    def generate_password_reset_link(self, email):
        return self.auth.generate_password_reset_link(email)
