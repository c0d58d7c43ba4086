"""Firestore accessors for the users collection."""

from .query_utils import apply_where

USERS_COLLECTION = 'users'


def doc_ref(db, uid):
    return db.collection(USERS_COLLECTION).document(uid)


def get_doc(db, uid):
    return doc_ref(db, uid).get()


def set_doc(db, uid, data, merge=False):
    return doc_ref(db, uid).set(data, merge=merge)


def update_doc(db, uid, updates):
    return doc_ref(db, uid).update(updates)


def query_by_email(db, email, limit=1):
    return list(apply_where(db.collection(USERS_COLLECTION), 'email', '==', email).limit(limit).stream())


def stream_all(db):
    return db.collection(USERS_COLLECTION).stream()
