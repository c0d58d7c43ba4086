"""Firestore-backed credential store for staged signups and user profiles."""

import logging

from fliply_auth.models import StagedSignup, UserAccount
from fliply_auth.repositories import pending_signups_repo, users_repo
from fliply_auth.repositories.query_utils import first_snapshot

logger = logging.getLogger('fliply_auth.store')


class FirestoreCredentialStore:
    """Document access for the ``pending_signups`` and ``users`` collections.

    Firestore gives per-document atomicity only; nothing here spans two
    documents in one transaction.
    """

    def __init__(self, db):
        self.db = db

    # --- staged signups ---

    def get_staged_signup(self, email):
        snapshot = pending_signups_repo.get_doc(self.db, email)
        if not snapshot.exists:
            return None
        return StagedSignup.from_document(snapshot.to_dict())

    def save_staged_signup(self, staged):
        pending_signups_repo.set_doc(self.db, staged.email, staged.to_document())

    def delete_staged_signup(self, email):
        pending_signups_repo.delete_doc(self.db, email)

    def list_staged_usernames(self):
        for snapshot in pending_signups_repo.stream_all(self.db):
            yield str((snapshot.to_dict() or {}).get('username', '') or '')

    # --- user accounts ---

    def get_account(self, account_id):
        if not account_id:
            return None
        snapshot = users_repo.get_doc(self.db, account_id)
        if not snapshot.exists:
            return None
        return UserAccount.from_document(snapshot.id, snapshot.to_dict())

    def find_account_by_email(self, email):
        if not email:
            return None
        snapshot = first_snapshot(users_repo.query_by_email(self.db, email))
        if snapshot is None:
            return None
        return UserAccount.from_document(snapshot.id, snapshot.to_dict())

    def save_account(self, account):
        users_repo.set_doc(self.db, account.account_id, account.to_document())

    def update_last_login(self, account_id, last_login_at):
        users_repo.update_doc(self.db, account_id, {'last_login_at': last_login_at})

    def list_account_usernames(self):
        for snapshot in users_repo.stream_all(self.db):
            yield str((snapshot.to_dict() or {}).get('username', '') or '')

    def taken_usernames(self):
        """Lower-cased usernames held by accounts or staged signups."""
        taken = {name.strip().lower() for name in self.list_account_usernames()}
        taken.update(name.strip().lower() for name in self.list_staged_usernames())
        taken.discard('')
        return taken
