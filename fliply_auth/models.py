"""Typed entities for staged signups, user accounts and session credentials."""

import re
import time
from dataclasses import dataclass, field, replace
from typing import Optional

from .errors import ValidationError

AUTH_PROVIDER_PASSWORD = 'password'
AUTH_PROVIDER_GOOGLE = 'google'
AUTH_PROVIDERS = {AUTH_PROVIDER_PASSWORD, AUTH_PROVIDER_GOOGLE}

GOOGLE_PROVIDER_ID = 'google.com'
PASSWORD_PROVIDER_ID = 'password'

MIN_USERNAME_LENGTH = 3
EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def clean_text(value):
    return str(value or '').strip()


def normalize_email(value):
    return clean_text(value).lower()


def require_fields(payload, *names):
    missing = [name for name in names if not clean_text(payload.get(name))]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def validate_email(email):
    email = normalize_email(email)
    if not email:
        raise ValidationError('Email is required.')
    if not EMAIL_RE.match(email):
        raise ValidationError('Email address is not valid.')
    return email


def validate_username(username):
    username = clean_text(username)
    if not username:
        raise ValidationError('Username is required.')
    if len(username) < MIN_USERNAME_LENGTH:
        raise ValidationError(f'Username must be at least {MIN_USERNAME_LENGTH} characters.')
    return username


def email_local_part(email):
    return normalize_email(email).split('@', 1)[0]


@dataclass(frozen=True)
class StagedSignup:
    email: str
    password: str
    username: str
    created_at: float = 0.0

    @classmethod
    def create(cls, email, password, username, now=None):
        require_fields({'email': email, 'password': password, 'username': username}, 'email', 'password', 'username')
        return cls(
            email=validate_email(email),
            password=str(password),
            username=validate_username(username),
            created_at=time.time() if now is None else now,
        )

    @classmethod
    def from_document(cls, data):
        data = data or {}
        require_fields(data, 'email', 'password', 'username')
        return cls(
            email=normalize_email(data['email']),
            password=str(data['password']),
            username=clean_text(data['username']),
            created_at=float(data.get('created_at') or 0.0),
        )

    def to_document(self):
        return {
            'email': self.email,
            'password': self.password,
            'username': self.username,
            'username_lower': self.username.lower(),
            'created_at': self.created_at,
        }


@dataclass(frozen=True)
class UserAccount:
    account_id: str
    email: str
    username: str
    university: str
    auth_provider: str = AUTH_PROVIDER_PASSWORD
    field_of_study: Optional[str] = None
    photo_url: Optional[str] = None
    likes: int = 0
    created_at: float = 0.0
    last_login_at: float = 0.0

    def __post_init__(self):
        if self.auth_provider not in AUTH_PROVIDERS:
            raise ValidationError(f'Unknown auth provider: {self.auth_provider}')

    @classmethod
    def create(cls, account_id, email, username, university, *, auth_provider=AUTH_PROVIDER_PASSWORD,
               field_of_study=None, photo_url=None, now=None):
        require_fields(
            {'account_id': account_id, 'email': email, 'username': username, 'university': university},
            'account_id', 'email', 'username', 'university',
        )
        now = time.time() if now is None else now
        return cls(
            account_id=clean_text(account_id),
            email=normalize_email(email),
            username=clean_text(username),
            university=clean_text(university),
            auth_provider=auth_provider,
            field_of_study=clean_text(field_of_study) or None,
            photo_url=clean_text(photo_url) or None,
            likes=0,
            created_at=now,
            last_login_at=now,
        )

    @classmethod
    def from_document(cls, account_id, data):
        data = data or {}
        require_fields(dict(data, account_id=account_id), 'account_id', 'email', 'username')
        return cls(
            account_id=clean_text(account_id),
            email=normalize_email(data['email']),
            username=clean_text(data['username']),
            university=clean_text(data.get('university')),
            auth_provider=clean_text(data.get('auth_provider')) or AUTH_PROVIDER_PASSWORD,
            field_of_study=clean_text(data.get('field_of_study')) or None,
            photo_url=clean_text(data.get('photo_url')) or None,
            likes=int(data.get('likes') or 0),
            created_at=float(data.get('created_at') or 0.0),
            last_login_at=float(data.get('last_login_at') or 0.0),
        )

    def with_login(self, now=None):
        return replace(self, last_login_at=time.time() if now is None else now)

    def to_document(self):
        return {
            'uid': self.account_id,
            'email': self.email,
            'username': self.username,
            'username_lower': self.username.lower(),
            'university': self.university,
            'field_of_study': self.field_of_study,
            'photo_url': self.photo_url,
            'auth_provider': self.auth_provider,
            'likes': self.likes,
            'created_at': self.created_at,
            'last_login_at': self.last_login_at,
        }

    def to_public_dict(self):
        return {
            'uid': self.account_id,
            'email': self.email,
            'username': self.username,
            'university': self.university,
            'fieldOfStudy': self.field_of_study,
            'photoURL': self.photo_url,
            'authProvider': self.auth_provider,
            'likes': self.likes,
            'createdAt': self.created_at,
            'lastLoginAt': self.last_login_at,
        }


@dataclass(frozen=True)
class ProviderAccount:
    """What the identity provider knows about an account."""

    account_id: str
    email: str
    display_name: str = ''
    provider_ids: frozenset = field(default_factory=frozenset)

    @property
    def has_google(self):
        return GOOGLE_PROVIDER_ID in self.provider_ids

    @property
    def has_password(self):
        return PASSWORD_PROVIDER_ID in self.provider_ids


@dataclass(frozen=True)
class SessionCredential:
    account_id: str
    email: str
    username: str
    issued_at: int
    expires_at: int
