# Database module for Firestore operations
# Provides CRUD operations for user-scoped ideas and their related rows
#
# Layout:
#   users/<uid>/ideas/<idea_id>
#       chat_messages/<id>, research/<id>, features/<id>,
#       scores/<id>, exports/<id>, versions/<id>

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from google.cloud import firestore

logger = logging.getLogger(__name__)

# Firestore client (lazy initialization)
_db = None

IDEA_SUBCOLLECTIONS = ["chat_messages", "research", "features", "scores", "exports", "versions"]

# Fields returned by the ideas list
IDEA_SUMMARY_FIELDS = ["id", "title", "oneLiner", "iceScore", "riceScore", "phase", "createdAt", "updatedAt"]

PRIORITY_ORDER = {"MUST": 0, "SHOULD": 1, "COULD": 2}


def get_db() -> firestore.Client:
    """Get or create Firestore client."""
    global _db
    if _db is None:
        _db = firestore.Client()
    return _db


def _now() -> str:
    return datetime.utcnow().isoformat()


def _ideas(user_id: str):
    return get_db().collection("users").document(user_id).collection("ideas")


def _idea_ref(user_id: str, idea_id: str):
    return _ideas(user_id).document(idea_id)


def _rows(user_id: str, idea_id: str, name: str):
    return _idea_ref(user_id, idea_id).collection(name)


def _with_id(doc) -> Dict[str, Any]:
    data = doc.to_dict() or {}
    data["id"] = doc.id
    return data


# --- Ideas ---

def _sort_value(value):
    # Missing scores sort after present ones in ascending order
    return (value is None, value if value is not None else 0)


async def list_ideas(user_id: str, sort_by: str = "updatedAt", sort_order: str = "desc") -> List[Dict[str, Any]]:
    """List non-archived ideas for a user as summaries."""
    docs = _ideas(user_id).where("isArchived", "==", False).stream()

    ideas = []
    for doc in docs:
        data = _with_id(doc)
        ideas.append({field: data.get(field) for field in IDEA_SUMMARY_FIELDS})

    if sort_by == "title":
        key = lambda idea: (idea.get("title") or "").lower()
    else:
        key = lambda idea: _sort_value(idea.get(sort_by))
    ideas.sort(key=key, reverse=(sort_order == "desc"))
    return ideas


async def create_idea(user_id: str, title: str, one_liner: Optional[str] = None,
                      document_md: str = "") -> Dict[str, Any]:
    """Create an idea; the parent user document is created on first use."""
    db = get_db()
    user_ref = db.collection("users").document(user_id)
    if not user_ref.get().exists:
        user_ref.set({"created_at": _now(), "last_activity": _now()})
    else:
        user_ref.update({"last_activity": _now()})

    now = _now()
    data = {
        "title": title,
        "oneLiner": one_liner,
        "documentMd": document_md,
        "phase": "ideation",
        "iceScore": None,
        "riceScore": None,
        "isArchived": False,
        "createdAt": now,
        "updatedAt": now,
    }
    doc_ref = _ideas(user_id).document()
    doc_ref.set(data)
    return {**data, "id": doc_ref.id}


async def get_idea(user_id: str, idea_id: str) -> Optional[Dict[str, Any]]:
    """Get one idea; None when it does not exist for this user."""
    doc = _idea_ref(user_id, idea_id).get()
    if doc.exists:
        return _with_id(doc)
    return None


async def update_idea(user_id: str, idea_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    doc_ref = _idea_ref(user_id, idea_id)
    if not doc_ref.get().exists:
        return None
    doc_ref.update({**fields, "updatedAt": _now()})
    return _with_id(doc_ref.get())


async def delete_idea(user_id: str, idea_id: str) -> bool:
    """Delete an idea and every related row."""
    doc_ref = _idea_ref(user_id, idea_id)
    if not doc_ref.get().exists:
        return False
    for name in IDEA_SUBCOLLECTIONS:
        for doc in doc_ref.collection(name).stream():
            doc.reference.delete()
    doc_ref.delete()
    return True


async def title_exists(user_id: str, title: str, exclude_id: Optional[str] = None) -> bool:
    """Case-insensitive title check across the user's non-archived ideas."""
    wanted = title.strip().lower()
    for doc in _ideas(user_id).stream():
        if doc.id == exclude_id:
            continue
        data = doc.to_dict()
        if data.get("isArchived"):
            continue
        if (data.get("title") or "").strip().lower() == wanted:
            return True
    return False


# --- Chat messages ---

async def list_chat_messages(user_id: str, idea_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Messages oldest first; with ``limit`` only the most recent ones."""
    query = _rows(user_id, idea_id, "chat_messages").order_by("createdAt", direction=firestore.Query.ASCENDING)
    messages = [_with_id(doc) for doc in query.stream()]
    if limit is not None:
        messages = messages[-limit:]
    return messages


async def add_chat_message(user_id: str, idea_id: str, role: str, content: str) -> Dict[str, Any]:
    data = {"role": role, "content": content, "createdAt": _now()}
    doc_ref = _rows(user_id, idea_id, "chat_messages").document()
    doc_ref.set(data)
    return {**data, "id": doc_ref.id}


# --- Research findings ---

async def add_findings(user_id: str, idea_id: str, findings: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Store findings one document at a time."""
    collection = _rows(user_id, idea_id, "research")
    saved = []
    for finding in findings:
        data = {"isInserted": False, "createdAt": _now(), **finding}
        doc_ref = collection.document()
        doc_ref.set(data)
        saved.append({**data, "id": doc_ref.id})
    return saved


async def list_findings(user_id: str, idea_id: str, finding_type: Optional[str] = None) -> List[Dict[str, Any]]:
    """Findings newest first, optionally of one type."""
    query = _rows(user_id, idea_id, "research")
    if finding_type:
        query = query.where("type", "==", finding_type)
    findings = [_with_id(doc) for doc in query.stream()]
    findings.sort(key=lambda f: f.get("createdAt") or "", reverse=True)
    return findings


async def update_finding(user_id: str, idea_id: str, finding_id: str,
                         fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    doc_ref = _rows(user_id, idea_id, "research").document(finding_id)
    if not doc_ref.get().exists:
        return None
    doc_ref.update(fields)
    return _with_id(doc_ref.get())


async def delete_findings(user_id: str, idea_id: str, finding_type: str) -> int:
    count = 0
    for doc in _rows(user_id, idea_id, "research").where("type", "==", finding_type).stream():
        doc.reference.delete()
        count += 1
    return count


# --- Features ---

async def list_features(user_id: str, idea_id: str) -> List[Dict[str, Any]]:
    """Features ordered MUST, SHOULD, COULD then by creation."""
    features = [_with_id(doc) for doc in _rows(user_id, idea_id, "features").stream()]
    features.sort(key=lambda f: (PRIORITY_ORDER.get(f.get("priority"), 3), f.get("createdAt") or ""))
    return features


async def replace_features(user_id: str, idea_id: str, features: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    collection = _rows(user_id, idea_id, "features")
    for doc in collection.stream():
        doc.reference.delete()

    saved = []
    for feature in features:
        data = {**feature, "createdAt": _now()}
        doc_ref = collection.document()
        doc_ref.set(data)
        saved.append({**data, "id": doc_ref.id})
    saved.sort(key=lambda f: PRIORITY_ORDER.get(f.get("priority"), 3))
    return saved


async def update_feature(user_id: str, idea_id: str, feature_id: str,
                         fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    doc_ref = _rows(user_id, idea_id, "features").document(feature_id)
    if not doc_ref.get().exists:
        return None
    doc_ref.update(fields)
    return _with_id(doc_ref.get())


# --- Scores ---

async def add_score(user_id: str, idea_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    row = {**data, "createdAt": _now()}
    doc_ref = _rows(user_id, idea_id, "scores").document()
    doc_ref.set(row)
    return {**row, "id": doc_ref.id}


async def list_scores(user_id: str, idea_id: str) -> List[Dict[str, Any]]:
    """Score snapshots newest first."""
    query = _rows(user_id, idea_id, "scores").order_by("createdAt", direction=firestore.Query.DESCENDING)
    return [_with_id(doc) for doc in query.stream()]


# --- Exports ---

async def add_export(user_id: str, idea_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    row = {**data, "createdAt": _now()}
    doc_ref = _rows(user_id, idea_id, "exports").document()
    doc_ref.set(row)
    return {**row, "id": doc_ref.id}


async def list_exports(user_id: str, idea_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    query = _rows(user_id, idea_id, "exports").order_by("createdAt", direction=firestore.Query.DESCENDING)
    if limit:
        query = query.limit(limit)
    return [_with_id(doc) for doc in query.stream()]


async def get_latest_export(user_id: str, idea_id: str) -> Optional[Dict[str, Any]]:
    exports = await list_exports(user_id, idea_id, limit=1)
    return exports[0] if exports else None


# --- Document versions ---

async def add_version(user_id: str, idea_id: str, content: str, change_type: str = "manual",
                      summary: Optional[str] = None) -> Dict[str, Any]:
    data = {"content": content, "changeType": change_type, "summary": summary, "createdAt": _now()}
    doc_ref = _rows(user_id, idea_id, "versions").document()
    doc_ref.set(data)
    return {**data, "id": doc_ref.id}


async def list_versions(user_id: str, idea_id: str, limit: int = 20) -> List[Dict[str, Any]]:
    """Version summaries newest first, without content."""
    query = (_rows(user_id, idea_id, "versions")
             .order_by("createdAt", direction=firestore.Query.DESCENDING)
             .limit(limit))
    versions = []
    for doc in query.stream():
        data = _with_id(doc)
        data.pop("content", None)
        versions.append(data)
    return versions
