"""Field-level write policy for profiles reached through a login.

First write wins: once a ``users`` document exists, a login may only bump
``last_login_at``. Username, university and photo supplied by a later Google
sign-in are dropped even when they differ from what is stored.
"""

import logging
import time

from fliply_auth.errors import AccountNotFoundError, ValidationError
from fliply_auth.logging_config import log_event
from fliply_auth.models import AUTH_PROVIDER_GOOGLE, UserAccount, clean_text, email_local_part, normalize_email

logger = logging.getLogger('fliply_auth.merger')


class AccountMerger:
    def __init__(self, store, clock=time.time):
        self.store = store
        self.clock = clock

    def find_existing(self, account_id, email):
        # Email first: the same person can come back with a different provider uid.
        # An empty email means the caller only trusts the account id.
        account = None
        if normalize_email(email):
            account = self.store.find_account_by_email(normalize_email(email))
        if account is None:
            account = self.store.get_account(account_id)
        return account

    def touch_login(self, account):
        now = self.clock()
        self.store.update_last_login(account.account_id, now)
        return account.with_login(now)

    def free_username(self, base):
        """``base`` if unused, else the first free ``base2``, ``base3``, ... (case-insensitive)."""
        taken = self.store.taken_usernames()
        candidate = base
        suffix = 2
        while candidate.lower() in taken:
            candidate = f"{base}{suffix}"
            suffix += 1
        return candidate

    def merge(self, account_id, email, profile=None, is_new_signup=False, auth_provider=AUTH_PROVIDER_GOOGLE):
        """Return ``(account, created)`` for a resolved identity.

        ``profile`` may carry displayName, university, fieldOfStudy and
        photoURL; they are only written when no profile exists yet.
        """
        profile = profile or {}
        existing = self.find_existing(account_id, email)
        if existing is not None:
            ignored = sorted(key for key, value in profile.items() if clean_text(value))
            if ignored:
                logger.debug(f"Discarding incoming profile fields for {existing.account_id}: {ignored}")
            return self.touch_login(existing), False

        university = clean_text(profile.get('university'))
        if not university:
            if is_new_signup:
                raise ValidationError('University is required for new accounts.')
            raise AccountNotFoundError('No profile exists for this account. Please complete signup.')

        username = self.free_username(clean_text(profile.get('displayName')) or email_local_part(email))
        account = UserAccount.create(
            account_id,
            email,
            username,
            university,
            auth_provider=auth_provider,
            field_of_study=profile.get('fieldOfStudy'),
            photo_url=profile.get('photoURL'),
            now=self.clock(),
        )
        self.store.save_account(account)
        log_event(logging.INFO, 'account_created', uid=account.account_id, email=account.email,
                  auth_provider=auth_provider)
        return account, True
