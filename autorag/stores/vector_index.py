"""
Vector indexes: pgvector (cosine distance over the `vectors` table) and an
in-process numpy index with the same query semantics.
"""
from typing import Any, Dict, List, Optional

import numpy as np
from sqlalchemy import select, delete
from sqlalchemy.orm import sessionmaker

from ..interfaces import VectorMatch
from ..models import VectorRecord
from ..utils.helpers import PendingCalls


def _matches_filter(metadata: Dict[str, Any], filter: Optional[Dict[str, Any]]) -> bool:
    if not filter:
        return True
    return all(metadata.get(k) == v for k, v in filter.items())


class MemoryVectorIndex:
    """Exact cosine-similarity search over an in-memory dict."""

    def __init__(self):
        self._vectors: Dict[str, np.ndarray] = {}
        self._metadata: Dict[str, Dict[str, Any]] = {}

    def __len__(self):
        return len(self._vectors)

    async def upsert(self, id: str, vector: List[float], metadata: Dict[str, Any]) -> None:
        self._vectors[id] = np.asarray(vector, dtype=np.float32)
        self._metadata[id] = dict(metadata)

    async def query(
        self,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
        return_metadata: bool = True,
    ) -> List[VectorMatch]:
        q = np.asarray(vector, dtype=np.float32)
        q_norm = float(np.linalg.norm(q))

        scored = []
        for vid, vec in self._vectors.items():
            if not _matches_filter(self._metadata[vid], filter):
                continue
            denom = q_norm * float(np.linalg.norm(vec))
            score = float(np.dot(q, vec) / denom) if denom else 0.0
            scored.append((score, vid))

        # Stable sort keeps insertion order among equal scores
        scored.sort(key=lambda s: s[0], reverse=True)
        return [
            VectorMatch(
                id=vid,
                score=score,
                metadata=dict(self._metadata[vid]) if return_metadata else {},
            )
            for score, vid in scored[:top_k]
        ]

    async def delete_by_ids(self, ids: List[str]) -> None:
        for vid in ids:
            self._vectors.pop(vid, None)
            self._metadata.pop(vid, None)

    async def wait_pending(self) -> None:
        return None


class PgVectorIndex:
    """Vector index backed by the pgvector `vectors` table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._calls = PendingCalls()

    def _upsert(self, id: str, vector: List[float], metadata: Dict[str, Any]) -> None:
        with self._session_factory() as db, db.begin():
            db.merge(VectorRecord(
                id=id,
                document_id=metadata.get("id"),
                chunk_index=metadata.get("chunkIndex", 0),
                embedding=vector,
                meta=metadata,
            ))

    def _query(
        self,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]],
        return_metadata: bool,
    ) -> List[VectorMatch]:
        distance = VectorRecord.embedding.cosine_distance(vector)
        stmt = select(VectorRecord.id, VectorRecord.meta, (1 - distance).label("score"))

        for key, value in (filter or {}).items():
            if key == "id":
                stmt = stmt.where(VectorRecord.document_id == value)
            else:
                stmt = stmt.where(VectorRecord.meta[key].as_string() == str(value))

        # Cosine distance is undefined for a zero vector (used to enumerate ids)
        if any(vector):
            stmt = stmt.order_by(distance)
        else:
            stmt = stmt.order_by(VectorRecord.document_id, VectorRecord.chunk_index)
        stmt = stmt.limit(top_k)

        with self._session_factory() as db:
            rows = db.execute(stmt).all()

        return [
            VectorMatch(
                id=row.id,
                score=float(row.score) if row.score is not None else 0.0,
                metadata=dict(row.meta or {}) if return_metadata else {},
            )
            for row in rows
        ]

    def _delete_by_ids(self, ids: List[str]) -> None:
        if not ids:
            return
        with self._session_factory() as db, db.begin():
            db.execute(delete(VectorRecord).where(VectorRecord.id.in_(ids)))

    async def upsert(self, id: str, vector: List[float], metadata: Dict[str, Any]) -> None:
        await self._calls.run(self._upsert, id, vector, metadata)

    async def query(
        self,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
        return_metadata: bool = True,
    ) -> List[VectorMatch]:
        return await self._calls.run(self._query, vector, top_k, filter, return_metadata)

    async def delete_by_ids(self, ids: List[str]) -> None:
        await self._calls.run(self._delete_by_ids, list(ids))

    async def wait_pending(self) -> None:
        await self._calls.wait()
