"""Business logic handlers for the auth APIs.

Handlers take the per-app service container and the Flask request, and
return a Flask response. ``AuthError`` subclasses propagate to the blueprint's
error handler, which turns them into JSON.
"""

import logging

from flask import jsonify

from fliply_auth.errors import (
    AccountNotFoundError,
    AuthError,
    InvalidCredentialsError,
    ProviderMismatchError,
    ValidationError,
)
from fliply_auth.logging_config import log_event
from fliply_auth.models import (
    GOOGLE_PROVIDER_ID,
    PASSWORD_PROVIDER_ID,
    clean_text,
    normalize_email,
    require_fields,
    validate_email,
    validate_username,
)
from fliply_auth.services.account_resolver import SOURCE_IDENTITY_TOKEN, extract_bearer_token

PASSWORD_RESET_MESSAGE = 'If your email is registered, you will receive reset instructions.'
TRUE_VALUES = {'1', 'true', 'yes', 'on'}


def parse_bool(value):
    if isinstance(value, bool):
        return value
    return str(value or '').strip().lower() in TRUE_VALUES


def _json_body(request):
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _session_response(app_ctx, account, status=200, **extra):
    token = app_ctx.session_codec.issue(account.account_id, account.email, account.username)
    body = {'ok': True, 'token': token, 'user': account.to_public_dict()}
    body.update(extra)
    return jsonify(body), status


def _require_profile(app_ctx, account_id, email):
    account = app_ctx.merger.find_existing(account_id, email)
    if account is None:
        raise AccountNotFoundError('No profile exists for this account. Please complete signup.')
    return account


def initiate_signup(app_ctx, request):
    payload = _json_body(request)
    staged = app_ctx.signup_flow.initiate(payload.get('email'), payload.get('password'), payload.get('username'))
    return jsonify({
        'ok': True,
        'message': 'Signup started. Add your university to finish creating your account.',
        'email': staged.email,
    }), 201


def finalize_signup(app_ctx, request):
    payload = _json_body(request)
    try:
        account, token = app_ctx.signup_flow.finalize(
            payload.get('email'),
            payload.get('university'),
            payload.get('fieldOfStudy'),
        )
    except AuthError:
        raise
    except Exception as e:
        app_ctx.logger.error(f"Error completing signup for {normalize_email(payload.get('email'))}: {e}")
        return jsonify({'error': 'signup_failed', 'message': 'Could not complete signup'}), 500
    return jsonify({'ok': True, 'token': token, 'user': account.to_public_dict()}), 201


def login(app_ctx, request):
    payload = _json_body(request)
    require_fields(payload, 'email', 'password')
    identity = app_ctx.resolver.by_password(payload.get('email'))
    profile = app_ctx.merger.find_existing(identity.account_id, identity.email)
    if profile is None:
        # Same 401 as an unknown email so the response does not reveal registration.
        raise InvalidCredentialsError(f'Identity {identity.account_id} has no profile')
    account = app_ctx.merger.touch_login(profile)
    custom_token = app_ctx.identity_provider.create_custom_token(account.account_id)
    log_event(logging.INFO, 'login', uid=account.account_id, method='password')
    return _session_response(app_ctx, account, customToken=custom_token)


def google_login(app_ctx, request):
    payload = _json_body(request)
    email = normalize_email(payload.get('email'))
    identity = app_ctx.resolver.by_google_email_fallback(email, payload.get('token'))
    lookup_email = identity.email
    if identity.source == SOURCE_IDENTITY_TOKEN and identity.email != email:
        # The token's uid is authoritative; a disagreeing request email is ignored.
        app_ctx.logger.warning(f"Google login email mismatch for {identity.account_id}; resolving by uid")
        lookup_email = ''
    account, _created = app_ctx.merger.merge(identity.account_id, lookup_email)
    log_event(logging.INFO, 'login', uid=account.account_id, method='google', source=identity.source)
    return _session_response(app_ctx, account)


def google_signup(app_ctx, request):
    payload = _json_body(request)
    account_id = clean_text(payload.get('accountId') or payload.get('uid'))
    if not account_id:
        raise ValidationError('Account id is required.')
    email = validate_email(payload.get('email'))

    identity = app_ctx.identity_provider.get_account(account_id)
    if identity is None:
        raise AccountNotFoundError(f'No identity for account id {account_id}')
    if identity.email and identity.email != email:
        raise ValidationError('Email does not match the signed-in Google account.')
    if not identity.has_google:
        log_event(logging.INFO, 'google_linking_conflict', uid=identity.account_id, email=email,
                  providers=sorted(identity.provider_ids))
        raise ProviderMismatchError('Account exists without a Google provider link', email=email,
                                    providers=identity.provider_ids)

    profile = {
        'displayName': payload.get('displayName'),
        'university': payload.get('university'),
        'fieldOfStudy': payload.get('fieldOfStudy'),
        'photoURL': payload.get('photoURL'),
    }
    try:
        account, created = app_ctx.merger.merge(
            account_id,
            email,
            profile,
            is_new_signup=parse_bool(payload.get('isNewSignup')),
        )
    except AuthError:
        raise
    except Exception as e:
        app_ctx.logger.error(f"Error saving Google profile for {account_id}: {e}")
        return jsonify({'error': 'signup_failed', 'message': 'Could not save profile'}), 500
    return _session_response(app_ctx, account, status=201 if created else 200, isNewUser=created)


def exchange_google_token(app_ctx, request):
    payload = _json_body(request)
    token = clean_text(payload.get('idToken') or payload.get('token')) or extract_bearer_token(
        request.headers.get('Authorization', '')
    )
    if not token:
        raise ValidationError('Identity token is required.')
    identity = app_ctx.resolver.by_google_token(token)
    account = app_ctx.merger.touch_login(_require_profile(app_ctx, identity.account_id, identity.email))
    log_event(logging.INFO, 'login', uid=account.account_id, method='token_exchange')
    return _session_response(app_ctx, account)


def _current_account(app_ctx, request):
    identity = app_ctx.resolver.by_bearer_session(request.headers.get('Authorization', ''))
    return _require_profile(app_ctx, identity.account_id, identity.email)


def verify_token(app_ctx, request):
    account = _current_account(app_ctx, request)
    return jsonify({'success': True, 'user': account.to_public_dict()})


def get_current_user(app_ctx, request):
    account = _current_account(app_ctx, request)
    return jsonify({'user': account.to_public_dict()})


def check_existing_account(app_ctx, request):
    payload = _json_body(request)
    email = validate_email(payload.get('email'))
    providers = app_ctx.resolver.provider_links(email)
    profile = app_ctx.store.find_account_by_email(email)
    provider_ids = providers or frozenset()
    return jsonify({
        'exists': providers is not None or profile is not None,
        'hasProfile': profile is not None,
        'hasGoogleProvider': GOOGLE_PROVIDER_ID in provider_ids,
        'hasPasswordProvider': PASSWORD_PROVIDER_ID in provider_ids,
    })


def check_username(app_ctx, request):
    payload = _json_body(request)
    username = validate_username(payload.get('username'))
    available = app_ctx.signup_flow.check_username_availability(username)
    return jsonify({'available': available, 'username': username})


def forgot_password(app_ctx, request):
    payload = _json_body(request)
    email = normalize_email(payload.get('email'))
    if not email:
        raise ValidationError('Email address is required.')
    try:
        app_ctx.identity_provider.generate_password_reset_link(email)
        log_event(logging.INFO, 'password_reset_requested', email=email)
    except Exception as e:
        app_ctx.logger.info(f"Password reset link not generated for {email}: {e}")
    return jsonify({'ok': True, 'message': PASSWORD_RESET_MESSAGE})


def logout(app_ctx, request):
    return jsonify({'ok': True, 'message': 'Logged out. Discard the session token on the client.'})
