"""Document path helpers for the menu collections.

Layout::

    restaurants/{rid}
    restaurants/{rid}/categories/{cid}
    restaurants/{rid}/categories/{cid}/dishes/{did}
    users/{uid}
"""

RESTAURANTS = "restaurants"
USERS = "users"


def join(*segments: str) -> str:
    """Join path segments, rejecting empty ones and embedded slashes."""
    for segment in segments:
        if not segment or "/" in segment:
            raise ValueError(f"Invalid path segment: {segment!r}")
    return "/".join(segments)


def child(collection: str, doc_id: str) -> str:
    """Path of a document inside a (possibly nested) collection."""
    return join(*collection.split("/"), doc_id)


def split(path: str) -> tuple[str, str]:
    """Split a document path into (collection path, document id)."""
    collection, _, doc_id = path.rpartition("/")
    if not collection or not doc_id:
        raise ValueError(f"Not a document path: {path!r}")
    return collection, doc_id


def restaurant(rid: str) -> str:
    return join(RESTAURANTS, rid)


def categories(rid: str) -> str:
    return join(RESTAURANTS, rid, "categories")


def category(rid: str, cid: str) -> str:
    return join(RESTAURANTS, rid, "categories", cid)


def dishes(rid: str, cid: str) -> str:
    return join(RESTAURANTS, rid, "categories", cid, "dishes")


def dish(rid: str, cid: str, did: str) -> str:
    return join(RESTAURANTS, rid, "categories", cid, "dishes", did)


def user(uid: str) -> str:
    return join(USERS, uid)
