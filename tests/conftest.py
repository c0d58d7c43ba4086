import copy
import threading
import time

import pytest

from fliply_auth import create_app
from fliply_auth.config import AppConfig
from fliply_auth.errors import DuplicateAccountError, InvalidTokenError
from fliply_auth.extensions import build_services
from fliply_auth.models import GOOGLE_PROVIDER_ID, PASSWORD_PROVIDER_ID, ProviderAccount, UserAccount
from fliply_auth.services.credential_store import FirestoreCredentialStore
from fliply_auth.services.session_tokens import SessionTokenCodec

TEST_SECRET = 'test-session-secret'


class _FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = copy.deepcopy(data) if data is not None else None
        self.exists = data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class _FakeDocument:
    def __init__(self, collection, doc_id):
        self._collection = collection
        self.id = doc_id

    def get(self):
        with self._collection.lock:
            return _FakeSnapshot(self.id, self._collection.docs.get(self.id))

    def set(self, data, merge=False):
        with self._collection.lock:
            current = self._collection.docs.get(self.id) if merge else None
            merged = dict(current or {})
            merged.update(copy.deepcopy(data))
            self._collection.docs[self.id] = merged

    def update(self, updates):
        with self._collection.lock:
            if self.id not in self._collection.docs:
                raise KeyError(f"No document to update: {self.id}")
            self._collection.docs[self.id].update(copy.deepcopy(updates))

    def delete(self):
        with self._collection.lock:
            self._collection.docs.pop(self.id, None)


class _FakeQuery:
    def __init__(self, collection, filters=(), limit_count=None):
        self._collection = collection
        self._filters = filters
        self._limit = limit_count

    def where(self, *args, **kwargs):
        if 'filter' in kwargs:
            raise TypeError('filter keyword unsupported')
        return _FakeQuery(self._collection, self._filters + (args,), self._limit)

    def limit(self, count):
        return _FakeQuery(self._collection, self._filters, count)

    def stream(self):
        with self._collection.lock:
            items = list(self._collection.docs.items())
        results = []
        for doc_id, data in items:
            if all(op == '==' and data.get(field) == value for field, op, value in self._filters):
                results.append(_FakeSnapshot(doc_id, data))
        if self._limit is not None:
            results = results[:self._limit]
        return iter(results)


class _FakeCollection(_FakeQuery):
    def __init__(self, lock):
        self.docs = {}
        self.lock = lock
        super().__init__(self)

    def document(self, doc_id):
        return _FakeDocument(self, doc_id)


class FakeFirestore:
    def __init__(self):
        self._lock = threading.RLock()
        self._collections = {}

    def collection(self, name):
        with self._lock:
            if name not in self._collections:
                self._collections[name] = _FakeCollection(self._lock)
            return self._collections[name]


class FakeIdentityProvider:
    """In-memory stand-in for Firebase Auth with the same uniqueness rules."""

    def __init__(self):
        self._lock = threading.Lock()
        self._accounts = {}
        self.passwords = {}
        self.identity_tokens = {}
        self.reset_requests = []
        self._next_id = 1

    def add_account(self, email, provider_ids=(PASSWORD_PROVIDER_ID,), account_id=None, display_name=''):
        with self._lock:
            account_id = account_id or f"uid-{self._next_id}"
            self._next_id += 1
            account = ProviderAccount(account_id, email.lower(), display_name, frozenset(provider_ids))
            self._accounts[account_id] = account
            return account

    def add_identity_token(self, token, account_id, email):
        self.identity_tokens[token] = {'uid': account_id, 'email': email, 'firebase': {'sign_in_provider': 'google.com'}}

    def get_account_by_email(self, email):
        with self._lock:
            for account in self._accounts.values():
                if account.email == email.lower():
                    return account
        return None

    def get_account(self, account_id):
        return self._accounts.get(account_id)

    def create_account(self, email, password, display_name=None):
        if self.get_account_by_email(email) is not None:
            raise DuplicateAccountError('An account with this email already exists.')
        with self._lock:
            # Re-check under the lock: the email is the uniqueness key.
            if any(account.email == email.lower() for account in self._accounts.values()):
                raise DuplicateAccountError('An account with this email already exists.')
            account_id = f"uid-{self._next_id}"
            self._next_id += 1
            account = ProviderAccount(account_id, email.lower(), display_name or '', frozenset({PASSWORD_PROVIDER_ID}))
            self._accounts[account_id] = account
            self.passwords[account_id] = password
            return account

    def verify_identity_token(self, token):
        claims = self.identity_tokens.get(token)
        if claims is None:
            raise InvalidTokenError('Identity token rejected: unknown token')
        return dict(claims)

    def create_custom_token(self, account_id):
        return f"custom-{account_id}"

    def generate_password_reset_link(self, email):
        if self.get_account_by_email(email) is None:
            raise LookupError(f"No user record for {email}")
        self.reset_requests.append(email)
        return f"https://example.invalid/reset?email={email}"


@pytest.fixture()
def db():
    return FakeFirestore()


@pytest.fixture()
def store(db):
    return FirestoreCredentialStore(db)


@pytest.fixture()
def identity_provider():
    return FakeIdentityProvider()


@pytest.fixture()
def session_codec():
    return SessionTokenCodec(TEST_SECRET)


@pytest.fixture()
def services(store, identity_provider, session_codec):
    return build_services(store, identity_provider, session_codec)


@pytest.fixture()
def app_config():
    return AppConfig(
        flask_secret_key='test-flask-secret',
        session_token_secret=TEST_SECRET,
        runtime_env='test',
    )


@pytest.fixture()
def app(app_config, store, identity_provider):
    flask_app = create_app(app_config, store=store, identity_provider=identity_provider)
    flask_app.config['TESTING'] = True
    return flask_app


@pytest.fixture()
def client(app):
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture()
def make_account(store, identity_provider):
    def _make(email, username, university='MIT', auth_provider='password', provider_ids=(PASSWORD_PROVIDER_ID,), photo_url=None):
        identity = identity_provider.add_account(email, provider_ids=provider_ids)
        account = UserAccount.create(
            identity.account_id,
            email,
            username,
            university,
            auth_provider=auth_provider,
            photo_url=photo_url,
            now=time.time() - 3600,
        )
        store.save_account(account)
        return account
    return _make


@pytest.fixture()
def google_account(make_account):
    return make_account('gina@example.com', 'gina', provider_ids=(GOOGLE_PROVIDER_ID,), auth_provider='google')
