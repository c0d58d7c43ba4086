"""Stateless session credentials signed as HS256 JWTs."""

import time

import jwt

from fliply_auth.errors import TokenExpiredError, TokenInvalidError
from fliply_auth.models import SessionCredential

SESSION_TOKEN_ALGORITHM = 'HS256'
SESSION_TOKEN_TTL_SECONDS = 7 * 24 * 60 * 60
SESSION_TOKEN_ISSUER = 'fliply-auth'
REQUIRED_CLAIMS = ('accountId', 'email', 'username')


class SessionTokenCodec:
    def __init__(self, secret, issuer=SESSION_TOKEN_ISSUER, ttl_seconds=SESSION_TOKEN_TTL_SECONDS, clock=time.time):
        if not str(secret or '').strip():
            raise RuntimeError('Session token signing key is not configured.')
        self.secret = secret
        self.issuer = issuer
        self.ttl_seconds = int(ttl_seconds)
        self.clock = clock

    def issue(self, account_id, email, username):
        """Encode a session credential that expires ``ttl_seconds`` from now."""
        issued_at = int(self.clock())
        payload = {
            'accountId': account_id,
            'email': email,
            'username': username,
            'iat': issued_at,
            'exp': issued_at + self.ttl_seconds,
            'iss': self.issuer,
        }
        return jwt.encode(payload, self.secret, algorithm=SESSION_TOKEN_ALGORITHM)

    def verify(self, token):
        """Decode a session credential.

        Raises ``TokenExpiredError`` once ``exp`` has passed and
        ``TokenInvalidError`` for anything else the codec does not accept.
        """
        try:
            data = jwt.decode(
                token,
                self.secret,
                algorithms=[SESSION_TOKEN_ALGORITHM],
                issuer=self.issuer,
                options={'require': ['exp', 'iat', 'iss']},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpiredError('Session token expired') from exc
        except jwt.InvalidTokenError as exc:
            raise TokenInvalidError(f'Not a valid session token: {exc}') from exc

        if any(not str(data.get(claim) or '').strip() for claim in REQUIRED_CLAIMS):
            raise TokenInvalidError('Session token is missing required claims')
        return SessionCredential(
            account_id=data['accountId'],
            email=data['email'],
            username=data['username'],
            issued_at=int(data['iat']),
            expires_at=int(data['exp']),
        )
