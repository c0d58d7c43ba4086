import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .services.session_tokens import SESSION_TOKEN_ISSUER, SESSION_TOKEN_TTL_SECONDS

DEV_ENV_NAMES = {'development', 'dev', 'local', 'test'}
DEFAULT_CORS_ALLOWED_ORIGINS = frozenset({
    'http://127.0.0.1:5173',
    'http://localhost:5173',
    'http://localhost:6500',
    'https://fliply-backend.onrender.com',
})


@dataclass(frozen=True)
class AppConfig:
    """Central config object, built once per process by ``load_config``."""

    flask_secret_key: str = ''
    session_token_secret: str = ''
    session_token_issuer: str = SESSION_TOKEN_ISSUER
    session_token_ttl_seconds: int = SESSION_TOKEN_TTL_SECONDS
    log_level: str = 'INFO'
    runtime_env: str = 'development'
    firebase_credentials: str = ''
    firebase_credentials_path: str = 'firebase-credentials.json'
    sentry_dsn: str = ''
    sentry_environment: str = 'production'
    sentry_release: str = 'fliply-auth'
    cors_allowed_origins: frozenset = field(default_factory=lambda: DEFAULT_CORS_ALLOWED_ORIGINS)

    @property
    def is_dev_like(self):
        return self.runtime_env in DEV_ENV_NAMES


def detect_runtime_env():
    return (
        os.getenv('SENTRY_ENVIRONMENT')
        or os.getenv('FLASK_ENV')
        or os.getenv('ENV')
        or ('production' if os.getenv('RENDER') else 'development')
    ).strip().lower()


def parse_cors_allowed_origins(raw):
    raw = (raw or '').strip()
    if not raw:
        return DEFAULT_CORS_ALLOWED_ORIGINS
    return frozenset(part.strip().lower() for part in raw.split(',') if part.strip())


def safe_int_env(name, default, minimum=1):
    raw = (os.getenv(name, str(default)) or '').strip()
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(value, minimum)


def load_config() -> AppConfig:
    load_dotenv()
    runtime_env = detect_runtime_env()
    is_dev_like = runtime_env in DEV_ENV_NAMES

    flask_secret_key = (os.getenv('FLASK_SECRET_KEY', '') or '').strip()
    session_token_secret = (os.getenv('SESSION_TOKEN_SECRET', '') or '').strip()
    if not is_dev_like and not flask_secret_key:
        raise RuntimeError('FLASK_SECRET_KEY must be set in non-development environments.')
    if not is_dev_like and not session_token_secret:
        raise RuntimeError('SESSION_TOKEN_SECRET must be set in non-development environments.')
    if not session_token_secret:
        # Dev only: sessions do not survive a restart.
        session_token_secret = os.urandom(32).hex()

    return AppConfig(
        flask_secret_key=flask_secret_key,
        session_token_secret=session_token_secret,
        session_token_issuer=(os.getenv('SESSION_TOKEN_ISSUER', SESSION_TOKEN_ISSUER) or SESSION_TOKEN_ISSUER).strip(),
        session_token_ttl_seconds=safe_int_env('SESSION_TOKEN_TTL_SECONDS', SESSION_TOKEN_TTL_SECONDS),
        log_level=(os.getenv('LOG_LEVEL', 'INFO') or 'INFO').strip().upper(),
        runtime_env=runtime_env,
        firebase_credentials=(os.getenv('FIREBASE_CREDENTIALS', '') or '').strip(),
        firebase_credentials_path=(os.getenv('FIREBASE_CREDENTIALS_PATH', 'firebase-credentials.json') or '').strip(),
        sentry_dsn=(os.getenv('SENTRY_DSN', '') or '').strip(),
        sentry_environment=(os.getenv('SENTRY_ENVIRONMENT', os.getenv('FLASK_ENV', 'production')) or 'production').strip(),
        sentry_release=(os.getenv('SENTRY_RELEASE', 'fliply-auth') or 'fliply-auth').strip(),
        cors_allowed_origins=parse_cors_allowed_origins(os.getenv('CORS_ALLOWED_ORIGINS', '')),
    )
