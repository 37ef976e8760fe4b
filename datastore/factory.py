from __future__ import annotations

from datastore.base import TreeStore
from settings import Settings


def build_store(settings: Settings) -> TreeStore:
    """Open the backing store selected by ``STORE_BACKEND``."""
    if settings.store_backend == "firestore":
        from datastore.firestore_tree import build_firestore_store

        return build_firestore_store(settings.firebase_project_id or "")

    from datastore.realtime_db import build_default_database

    return build_default_database()
