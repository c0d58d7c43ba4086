"""Map heterogeneous login signals onto a single account id.

Each verification path is a strategy returning a ``StrategyResult``. Callers
hand an ordered list of strategies to ``run_strategies`` which takes the first
success; a strategy may still raise when the outcome is a decision rather than
a failure (the Google linking conflict).
"""

import logging
from dataclasses import dataclass, field

from fliply_auth.errors import (
    AuthError,
    InvalidCredentialsError,
    InvalidTokenError,
    ProviderMismatchError,
    UnauthorizedError,
    ValidationError,
)
from fliply_auth.logging_config import log_event
from fliply_auth.models import normalize_email

logger = logging.getLogger('fliply_auth.resolver')

BEARER_PREFIX = 'Bearer '
SOURCE_SESSION = 'session'
SOURCE_IDENTITY_TOKEN = 'identity_token'
SOURCE_PROVIDER_LINK = 'provider_link'


@dataclass(frozen=True)
class StrategyResult:
    ok: bool
    account_id: str = ''
    email: str = ''
    source: str = ''
    claims: dict = field(default_factory=dict)
    reason: str = ''

    @classmethod
    def success(cls, account_id, email='', source='', claims=None):
        return cls(ok=True, account_id=account_id, email=normalize_email(email), source=source, claims=dict(claims or {}))

    @classmethod
    def failure(cls, reason):
        return cls(ok=False, reason=str(reason))


@dataclass(frozen=True)
class ResolvedIdentity:
    account_id: str
    email: str
    source: str
    claims: dict = field(default_factory=dict)


def run_strategies(strategies, label):
    reasons = []
    for name, strategy in strategies:
        result = strategy()
        if result.ok:
            return result
        reasons.append(f"{name}: {result.reason}")
    raise InvalidTokenError(f"{label} rejected ({'; '.join(reasons)})")


def extract_bearer_token(header_value):
    header_value = str(header_value or '')
    if not header_value.startswith(BEARER_PREFIX):
        return ''
    return header_value[len(BEARER_PREFIX):].strip()


class AccountResolver:
    def __init__(self, identity_provider, session_codec):
        self.identity_provider = identity_provider
        self.session_codec = session_codec

    # --- strategies ---

    def _session_token_strategy(self, token):
        def _verify():
            try:
                credential = self.session_codec.verify(token)
            except AuthError as exc:
                return StrategyResult.failure(exc)
            return StrategyResult.success(
                credential.account_id,
                credential.email,
                SOURCE_SESSION,
                {'username': credential.username},
            )
        return _verify

    def _identity_token_strategy(self, token):
        def _verify():
            try:
                claims = self.identity_provider.verify_identity_token(token)
            except AuthError as exc:
                return StrategyResult.failure(exc)
            account_id = str(claims.get('uid') or claims.get('sub') or '')
            if not account_id:
                return StrategyResult.failure('identity token carries no account id')
            return StrategyResult.success(account_id, claims.get('email', ''), SOURCE_IDENTITY_TOKEN, claims)
        return _verify

    def _provider_link_strategy(self, email):
        def _lookup():
            account = self.identity_provider.get_account_by_email(email)
            if account is None:
                return StrategyResult.failure('no provider account for email')
            if not account.has_google:
                log_event(logging.INFO, 'google_linking_conflict', uid=account.account_id, email=email,
                          providers=sorted(account.provider_ids))
                raise ProviderMismatchError('Account exists without a Google provider link', email=email,
                                            providers=account.provider_ids)
            return StrategyResult.success(account.account_id, account.email, SOURCE_PROVIDER_LINK)
        return _lookup

    # --- resolution entrypoints ---

    def by_password(self, email):
        """Look up a password login target. The password itself is checked by Firebase, never here."""
        email = normalize_email(email)
        if not email:
            raise ValidationError('Email is required.')
        account = self.identity_provider.get_account_by_email(email)
        if account is None:
            raise InvalidCredentialsError(f'No identity for {email}')
        return account

    def by_google_token(self, token):
        result = run_strategies([('identity_token', self._identity_token_strategy(token))], 'Google identity token')
        return ResolvedIdentity(result.account_id, result.email, result.source, result.claims)

    def by_google_email_fallback(self, email, token):
        email = normalize_email(email)
        if not email or not str(token or '').strip():
            raise ValidationError('Email and token are required.')
        result = run_strategies(
            [
                ('identity_token', self._identity_token_strategy(token)),
                ('provider_link', self._provider_link_strategy(email)),
            ],
            'Google login',
        )
        # No fallback to the request email: a token without an email claim resolves by uid only.
        return ResolvedIdentity(result.account_id, result.email, result.source, result.claims)

    def by_bearer_session(self, header_value):
        token = extract_bearer_token(header_value)
        if not token:
            raise UnauthorizedError('Missing bearer token')
        result = run_strategies(
            [
                ('session_token', self._session_token_strategy(token)),
                ('identity_token', self._identity_token_strategy(token)),
            ],
            'Bearer token',
        )
        return ResolvedIdentity(result.account_id, result.email, result.source, result.claims)

    def provider_links(self, email):
        account = self.identity_provider.get_account_by_email(normalize_email(email))
        if account is None:
            return None
        return account.provider_ids
