"""Firestore adapter for the tree store contract.

The first two path segments address ``collection/document``; any further
segments are nested map fields inside that document.  Multi-location updates
are committed as one ``WriteBatch``, which Firestore applies atomically.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.field_path import FieldPath

from datastore.base import split_path
from errors import StorageError

logger = logging.getLogger(__name__)


def _nest(fields: List[str], value: Any) -> Dict[str, Any]:
    nested: Any = value
    for segment in reversed(fields):
        nested = {segment: nested}
    return nested


def _deep_merge(target: Dict[str, Any], source: Dict[str, Any]) -> None:
    for key, value in source.items():
        existing = target.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            _deep_merge(existing, value)
        else:
            target[key] = value


class FirestoreTreeStore:

    def __init__(self, client: firestore.Client) -> None:
        self._client = client

    def _document(self, path: str) -> Tuple[Any, List[str]]:
        segments = split_path(path)
        if len(segments) < 2:
            raise ValueError(f"Path {path!r} does not address a document.")
        doc_ref = self._client.collection(segments[0]).document(segments[1])
        return doc_ref, segments[2:]

    def read(self, path: str) -> Optional[Any]:
        if len(split_path(path)) == 1:
            return self.read_collection(path) or None
        doc_ref, fields = self._document(path)
        try:
            if fields:
                # Masked read: only the addressed field leaves the server.
                snapshot = doc_ref.get(field_paths=[FieldPath(*fields).to_api_repr()])
            else:
                snapshot = doc_ref.get()
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc
        if not snapshot.exists:
            return None
        node: Any = snapshot.to_dict() or {}
        for segment in fields:
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return node

    def read_collection(self, path: str) -> Dict[str, Dict[str, Any]]:
        segments = split_path(path)
        if len(segments) != 1:
            raise ValueError(f"Path {path!r} does not address a collection.")
        try:
            return {
                doc.id: doc.to_dict() or {}
                for doc in self._client.collection(segments[0]).stream()
            }
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"Failed to read collection {path}: {exc}") from exc

    def read_fields(self, path: str, fields: Iterable[str]) -> Dict[str, Any]:
        doc_ref, nested = self._document(path)
        if nested:
            raise ValueError(f"Path {path!r} must address a document for a field read.")
        try:
            snapshot = doc_ref.get(field_paths=list(fields))
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"Failed to read fields of {path}: {exc}") from exc
        if not snapshot.exists:
            return {}
        return snapshot.to_dict() or {}

    def update(self, updates: Mapping[str, Any]) -> None:
        grouped: Dict[str, Tuple[Any, Dict[str, Any]]] = {}
        for path, value in updates.items():
            doc_ref, fields = self._document(path)
            doc_key = "/".join(split_path(path)[:2])
            _, payload = grouped.setdefault(doc_key, (doc_ref, {}))
            if fields:
                _deep_merge(payload, _nest(fields, value))
            elif isinstance(value, dict):
                _deep_merge(payload, value)
            else:
                raise ValueError(f"Document {path!r} must be written as a mapping.")

        batch = self._client.batch()
        for doc_ref, payload in grouped.values():
            batch.set(doc_ref, payload, merge=True)
        try:
            batch.commit()
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"Failed to commit {len(updates)} update(s): {exc}") from exc
        logger.debug("Committed batch", extra={"record_count": len(grouped)})

    def set(self, path: str, value: Any) -> None:
        doc_ref, fields = self._document(path)
        try:
            if fields:
                doc_ref.set(_nest(fields, value), merge=True)
            else:
                doc_ref.set(value)
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"Failed to write {path}: {exc}") from exc


@lru_cache
def build_firestore_store(project_id: str) -> FirestoreTreeStore:
    return FirestoreTreeStore(firestore.Client(project=project_id))
