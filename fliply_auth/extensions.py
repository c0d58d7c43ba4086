"""Runtime services: Firebase, Sentry, and the per-app auth service container."""

import json
import logging
import os
import uuid
from dataclasses import dataclass

import firebase_admin
import sentry_sdk
from firebase_admin import auth, credentials, firestore
from flask import g, request
from sentry_sdk.integrations.flask import FlaskIntegration

from .services.account_merger import AccountMerger
from .services.account_resolver import AccountResolver
from .services.credential_store import FirestoreCredentialStore
from .services.identity_provider import FirebaseIdentityProvider
from .services.signup_flow import SignupFlow

logger = logging.getLogger('fliply_auth')

EXTENSION_KEY = 'fliply_auth'


@dataclass
class AuthServices:
    store: object
    identity_provider: object
    session_codec: object
    signup_flow: SignupFlow
    resolver: AccountResolver
    merger: AccountMerger
    logger: logging.Logger = logger


def build_services(store, identity_provider, session_codec):
    return AuthServices(
        store=store,
        identity_provider=identity_provider,
        session_codec=session_codec,
        signup_flow=SignupFlow(store, identity_provider, session_codec),
        resolver=AccountResolver(identity_provider, session_codec),
        merger=AccountMerger(store),
    )


def init_firebase(config):
    """Return ``(store, identity_provider)``, or ``(None, None)`` when Firebase is unavailable."""
    try:
        if config.firebase_credentials_path and os.path.exists(config.firebase_credentials_path):
            cred = credentials.Certificate(config.firebase_credentials_path)
        else:
            if not config.firebase_credentials:
                raise ValueError("FIREBASE_CREDENTIALS is not set and firebase-credentials.json was not found.")
            cred = credentials.Certificate(json.loads(config.firebase_credentials))
        if not firebase_admin._apps:
            firebase_admin.initialize_app(cred)
        db = firestore.client()
    except Exception as e:
        logger.info(f"⚠️ Firebase initialization skipped: {e}")
        return None, None
    return FirestoreCredentialStore(db), FirebaseIdentityProvider(auth)


def init_sentry(config):
    if not config.sentry_dsn:
        return False
    sentry_sdk.init(
        dsn=config.sentry_dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=0.0,
        send_default_pii=False,
        environment=config.sentry_environment,
        release=config.sentry_release,
    )
    return True


def apply_cors_headers(response, allowed_origins):
    origin = str(request.headers.get('Origin', '') or '').strip()
    if not origin:
        return response
    if not request.path.startswith('/api/'):
        return response
    if origin.lower() not in allowed_origins:
        return response
    response.headers['Access-Control-Allow-Origin'] = origin
    response.headers['Vary'] = 'Origin'
    response.headers['Access-Control-Allow-Headers'] = 'Authorization, Content-Type'
    response.headers['Access-Control-Allow-Methods'] = 'GET, POST, OPTIONS'
    return response


def init_request_hooks(app, config):
    @app.before_request
    def attach_request_context():
        request_id = str(request.headers.get('X-Request-ID', '') or '').strip()[:120] or uuid.uuid4().hex
        g.request_id = request_id
        if config.sentry_dsn:
            sentry_sdk.set_tag('request.id', request_id)
            sentry_sdk.set_tag('route.path', request.path)
            sentry_sdk.set_tag('route.auth_header_present', 'true' if request.headers.get('Authorization') else 'false')

    @app.after_request
    def attach_response_context(response):
        request_id = str(getattr(g, 'request_id', '') or '').strip()
        if request_id:
            response.headers['X-Request-ID'] = request_id
        return apply_cors_headers(response, config.cors_allowed_origins)


def init_extensions(app, services) -> None:
    app.extensions.setdefault(EXTENSION_KEY, {})
    app.extensions[EXTENSION_KEY]['services'] = services


def get_services(app):
    return app.extensions.get(EXTENSION_KEY, {}).get('services')
