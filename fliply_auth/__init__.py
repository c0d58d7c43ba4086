import os

from flask import Flask, jsonify

from .config import load_config
from .extensions import build_services, init_extensions, init_firebase, init_request_hooks, init_sentry
from .logging_config import configure_logging, logger
from .services.session_tokens import SessionTokenCodec


def create_app(config=None, store=None, identity_provider=None):
    """App factory entrypoint.

    ``store`` and ``identity_provider`` default to the Firestore and Firebase
    Auth adapters; tests pass in-memory doubles instead.
    """
    config = config or load_config()
    configure_logging(config.log_level)
    init_sentry(config)

    app = Flask(__name__)
    app.secret_key = config.flask_secret_key or os.urandom(32).hex()
    app.config['FLIPLY_AUTH_CONFIG'] = config

    if store is None or identity_provider is None:
        firebase_store, firebase_provider = init_firebase(config)
        store = store or firebase_store
        identity_provider = identity_provider or firebase_provider

    session_codec = SessionTokenCodec(
        config.session_token_secret,
        issuer=config.session_token_issuer,
        ttl_seconds=config.session_token_ttl_seconds,
    )
    services = None
    if store is not None and identity_provider is not None:
        services = build_services(store, identity_provider, session_codec)
    else:
        logger.warning('Auth routes disabled: credential store or identity provider unavailable.')
    init_extensions(app, services)
    init_request_hooks(app, config)

    from .blueprints import auth_bp

    app.register_blueprint(auth_bp)

    @app.route('/healthz')
    def healthz():
        return jsonify({'status': 'ok'}), 200

    return app
