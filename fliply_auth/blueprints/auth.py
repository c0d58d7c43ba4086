import logging

from flask import Blueprint, current_app, jsonify, request

from fliply_auth.errors import AuthError, UnauthorizedError
from fliply_auth.extensions import get_services
from fliply_auth.logging_config import log_event
from fliply_auth.services import auth_api_service

auth_bp = Blueprint('auth_api', __name__)


def _services():
    return get_services(current_app)


@auth_bp.before_request
def require_backend():
    if _services() is None:
        return jsonify({'error': 'backend_unavailable', 'message': 'Authentication backend unavailable'}), 503
    return None


@auth_bp.errorhandler(AuthError)
def handle_auth_error(exc):
    if isinstance(exc, UnauthorizedError):
        log_event(logging.INFO, 'auth_rejected', kind=type(exc).__name__, detail=str(exc), path=request.path)
    elif exc.status_code >= 400:
        log_event(logging.INFO, 'auth_request_failed', kind=type(exc).__name__, detail=str(exc), path=request.path)
    return jsonify(exc.to_payload()), exc.status_code


@auth_bp.route('/api/auth/signup', methods=['POST'])
@auth_bp.route('/api/auth/signup-init', methods=['POST'])
def signup_init():
    return auth_api_service.initiate_signup(_services(), request)


@auth_bp.route('/api/auth/signup/complete', methods=['POST'])
@auth_bp.route('/api/auth/complete-signup', methods=['POST'])
def complete_signup():
    return auth_api_service.finalize_signup(_services(), request)


@auth_bp.route('/api/auth/login', methods=['POST'])
def login():
    return auth_api_service.login(_services(), request)


@auth_bp.route('/api/auth/forgot-password', methods=['POST'])
def forgot_password():
    return auth_api_service.forgot_password(_services(), request)


@auth_bp.route('/api/auth/user', methods=['GET'])
def get_current_user():
    return auth_api_service.get_current_user(_services(), request)


@auth_bp.route('/api/auth/check-username', methods=['POST'])
def check_username():
    return auth_api_service.check_username(_services(), request)


@auth_bp.route('/api/auth/verify-token', methods=['GET'])
def verify_token():
    return auth_api_service.verify_token(_services(), request)


@auth_bp.route('/api/auth/logout', methods=['POST'])
def logout():
    return auth_api_service.logout(_services(), request)


@auth_bp.route('/api/auth/google-signup', methods=['POST'])
def google_signup():
    return auth_api_service.google_signup(_services(), request)


@auth_bp.route('/api/auth/exchange-token', methods=['POST'])
def exchange_google_token():
    return auth_api_service.exchange_google_token(_services(), request)


@auth_bp.route('/api/auth/google-login', methods=['POST'])
def google_login():
    return auth_api_service.google_login(_services(), request)


@auth_bp.route('/api/auth/check-existing-account', methods=['POST'])
def check_existing_account():
    return auth_api_service.check_existing_account(_services(), request)
