import threading

import pytest

from fliply_auth.errors import DuplicateAccountError, SessionExpiredError, ValidationError
from fliply_auth.models import StagedSignup
from fliply_auth.services.credential_store import FirestoreCredentialStore
from fliply_auth.services.signup_flow import SignupFlow


@pytest.fixture()
def flow(services):
    return services.signup_flow


def test_initiate_stages_without_creating_account(flow, store, identity_provider):
    staged = flow.initiate('A@X.com', 'p', 'abc')

    assert staged.email == 'a@x.com'
    assert store.get_staged_signup('a@x.com').username == 'abc'
    assert identity_provider.get_account_by_email('a@x.com') is None
    assert store.find_account_by_email('a@x.com') is None


@pytest.mark.parametrize('email,password,username', [
    ('', 'p', 'abc'),
    ('a@x.com', '', 'abc'),
    ('a@x.com', 'p', ''),
    ('not-an-email', 'p', 'abc'),
])
def test_initiate_rejects_missing_or_malformed_fields(flow, email, password, username):
    with pytest.raises(ValidationError):
        flow.initiate(email, password, username)


def test_initiate_rejects_existing_identity(flow, identity_provider):
    identity_provider.add_account('a@x.com')

    with pytest.raises(DuplicateAccountError):
        flow.initiate('a@x.com', 'p', 'abc')


def test_initiate_rejects_second_staging_for_same_email(flow):
    flow.initiate('a@x.com', 'p', 'abc')

    with pytest.raises(DuplicateAccountError):
        flow.initiate('a@x.com', 'p2', 'other')


def test_initiate_rejects_taken_username(flow, make_account):
    make_account('bob@example.com', 'Bob')

    with pytest.raises(DuplicateAccountError):
        flow.initiate('new@example.com', 'p', 'bob')


def test_finalize_without_initiate_is_session_expired(flow):
    with pytest.raises(SessionExpiredError):
        flow.finalize('ghost@x.com', 'MIT')


def test_finalize_requires_university(flow):
    flow.initiate('a@x.com', 'p', 'abc')

    with pytest.raises(ValidationError):
        flow.finalize('a@x.com', '  ')


def test_signup_end_to_end(flow, store, identity_provider, session_codec):
    flow.initiate('a@x.com', 'p', 'abc')

    account, token = flow.finalize('a@x.com', 'MIT')

    assert account.likes == 0
    assert account.auth_provider == 'password'
    assert account.university == 'MIT'
    assert account.username == 'abc'
    assert store.get_account(account.account_id) == account
    assert store.get_staged_signup('a@x.com') is None
    assert identity_provider.passwords[account.account_id] == 'p'
    credential = session_codec.verify(token)
    assert credential.account_id == account.account_id
    assert credential.email == 'a@x.com'
    assert credential.username == 'abc'

    with pytest.raises(SessionExpiredError):
        flow.finalize('a@x.com', 'MIT')


def test_finalize_keeps_optional_field_of_study(flow):
    flow.initiate('a@x.com', 'p', 'abc')

    account, _token = flow.finalize('a@x.com', 'MIT', 'Physics')

    assert account.field_of_study == 'Physics'


def test_finalize_retry_after_lost_staging_delete_is_duplicate(flow, store, make_account):
    existing = make_account('a@x.com', 'abc')
    store.save_staged_signup(StagedSignup.create('a@x.com', 'p', 'abc'))

    with pytest.raises(DuplicateAccountError):
        flow.finalize('a@x.com', 'MIT')

    assert store.get_staged_signup('a@x.com') is None
    assert store.get_account(existing.account_id) == existing


def test_finalize_with_orphaned_identity_is_duplicate(flow, store, identity_provider):
    identity_provider.add_account('a@x.com')
    store.save_staged_signup(StagedSignup.create('a@x.com', 'p', 'abc'))

    with pytest.raises(DuplicateAccountError):
        flow.finalize('a@x.com', 'MIT')

    assert store.find_account_by_email('a@x.com') is None


class _BarrierStore(FirestoreCredentialStore):
    """Holds every finalize at the staged read until both have read it."""

    def __init__(self, db, barrier):
        super().__init__(db)
        self.barrier = barrier

    def get_staged_signup(self, email):
        staged = super().get_staged_signup(email)
        self.barrier.wait()
        return staged


def test_concurrent_finalize_creates_exactly_one_account(db, identity_provider, session_codec):
    store = _BarrierStore(db, threading.Barrier(2, timeout=5))
    store.save_staged_signup(StagedSignup.create('race@x.com', 'p', 'racer'))
    flow = SignupFlow(store, identity_provider, session_codec)
    outcomes = []

    def _finalize():
        try:
            account, _token = flow.finalize('race@x.com', 'MIT')
            outcomes.append(('ok', account.account_id))
        except DuplicateAccountError:
            outcomes.append(('duplicate', None))

    threads = [threading.Thread(target=_finalize) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert sorted(kind for kind, _ in outcomes) == ['duplicate', 'ok']
    assert len(list(store.list_account_usernames())) == 1


def test_username_availability_is_case_insensitive_across_collections(flow, store, make_account):
    assert flow.check_username_availability('bob') is True

    make_account('bob@example.com', 'Bob')
    assert flow.check_username_availability('bob') is False

    store.save_staged_signup(StagedSignup.create('carl@example.com', 'p', 'CARL'))
    assert flow.check_username_availability('carl') is False
    assert flow.check_username_availability('dave') is True


def test_username_availability_requires_three_characters(flow):
    with pytest.raises(ValidationError):
        flow.check_username_availability('ab')
