"""Firestore accessors for staged signups, keyed by normalized email."""

PENDING_SIGNUPS_COLLECTION = 'pending_signups'


def doc_ref(db, email):
    return db.collection(PENDING_SIGNUPS_COLLECTION).document(email)


def get_doc(db, email):
    return doc_ref(db, email).get()


def set_doc(db, email, data):
    return doc_ref(db, email).set(data)


def delete_doc(db, email):
    return doc_ref(db, email).delete()


def stream_all(db):
    return db.collection(PENDING_SIGNUPS_COLLECTION).stream()
