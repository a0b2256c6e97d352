# documents.py
# Helpers shared by the services for reading Firestore documents

# Firestore has no joins; embedded relations (note.subject, note.student,
# history.note.subject) are resolved by reading the referenced documents.
# embed_notes() caches lookups per call so a page of notes from the same
# subject reads that subject once.

# @see: notes.py, approval.py, subjects.py, students.py - callers

from typing import Any, Dict, Iterable, List, Optional

from google.cloud import firestore

ASCENDING = firestore.Query.ASCENDING
DESCENDING = firestore.Query.DESCENDING


def snapshot_to_dict(snapshot) -> Dict[str, Any]:
    """Document data with its id under "id"."""
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return data


def get_document(db, collection: str, doc_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if not doc_id:
        return None
    snapshot = db.collection(collection).document(doc_id).get()
    if not snapshot.exists:
        return None
    return snapshot_to_dict(snapshot)


def stream_dicts(query) -> List[Dict[str, Any]]:
    return [snapshot_to_dict(doc) for doc in query.stream()]


def embed_notes(
    db,
    notes: Iterable[Dict[str, Any]],
    subject: bool = True,
    student: bool = False,
) -> List[Dict[str, Any]]:
    """Attach subject and/or student documents to each note dict."""
    cache: Dict[tuple, Optional[Dict[str, Any]]] = {}

    def lookup(collection: str, doc_id: Optional[str]):
        key = (collection, doc_id)
        if key not in cache:
            cache[key] = get_document(db, collection, doc_id)
        return cache[key]

    result = []
    for note in notes:
        if subject:
            note["subject"] = lookup("subjects", note.get("subject_id"))
        if student:
            note["student"] = lookup("students", note.get("student_id"))
        result.append(note)
    return result
