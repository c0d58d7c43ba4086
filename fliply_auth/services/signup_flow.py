"""Two-phase signup: stage credentials, then finalize with profile data.

A staged signup lives in ``pending_signups`` until ``finalize`` turns it into
a Firebase Auth account plus a ``users`` profile. Finalize runs
create-identity, write-profile, delete-staging in that order with no
transaction around them, so a crash in between can leave an identity without
a profile. That window is logged, not repaired.
"""

import logging
import time

from fliply_auth.errors import DuplicateAccountError, SessionExpiredError, ValidationError
from fliply_auth.logging_config import log_event
from fliply_auth.models import (
    AUTH_PROVIDER_PASSWORD,
    StagedSignup,
    UserAccount,
    clean_text,
    validate_email,
    validate_username,
)

logger = logging.getLogger('fliply_auth.signup')


class SignupFlow:
    def __init__(self, store, identity_provider, session_codec, clock=time.time):
        self.store = store
        self.identity_provider = identity_provider
        self.session_codec = session_codec
        self.clock = clock

    def initiate(self, email, password, username):
        staged = StagedSignup.create(email, password, username, now=self.clock())

        if self.identity_provider.get_account_by_email(staged.email) is not None:
            raise DuplicateAccountError('An account with this email already exists.')
        if self.store.get_staged_signup(staged.email) is not None:
            raise DuplicateAccountError('A signup for this email is already in progress.')
        if not self.check_username_availability(staged.username):
            raise DuplicateAccountError('Username is already taken.')

        self.store.save_staged_signup(staged)
        log_event(logging.INFO, 'signup_staged', email=staged.email)
        return staged

    def finalize(self, email, university, field_of_study=None):
        if not clean_text(email):
            raise ValidationError('Email is required.')
        if not clean_text(university):
            raise ValidationError('University is required.')
        email = validate_email(email)

        staged = self.store.get_staged_signup(email)
        if staged is None:
            raise SessionExpiredError('Signup session expired. Please start again.')

        self._reject_already_finalized(staged.email)

        identity = self.identity_provider.create_account(staged.email, staged.password, display_name=staged.username)
        account = UserAccount.create(
            identity.account_id,
            staged.email,
            staged.username,
            university,
            auth_provider=AUTH_PROVIDER_PASSWORD,
            field_of_study=field_of_study,
            now=self.clock(),
        )
        try:
            self.store.save_account(account)
        except Exception as e:
            logger.error(f"Profile write failed after identity creation for {account.account_id}: {e}")
            raise
        self.store.delete_staged_signup(staged.email)

        token = self.session_codec.issue(account.account_id, account.email, account.username)
        log_event(logging.INFO, 'signup_finalized', uid=account.account_id, email=account.email)
        return account, token

    def _reject_already_finalized(self, email):
        existing = self.identity_provider.get_account_by_email(email)
        if existing is None:
            return
        if self.store.get_account(existing.account_id) is not None:
            # Finalized earlier but the staging delete never landed.
            self.store.delete_staged_signup(email)
            raise DuplicateAccountError('An account with this email already exists.')
        logger.warning(f"Orphaned identity {existing.account_id} for {email} has no profile document")
        raise DuplicateAccountError('An account with this email already exists.')

    def check_username_availability(self, username):
        """Case-insensitive scan of accounts and staged signups. Advisory only."""
        wanted = validate_username(username).lower()
        return wanted not in self.store.taken_usernames()
