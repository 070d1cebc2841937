"""
Document metadata stores: one record per uploaded document, written once at
ingestion time and read directly by the catalog.
"""
from typing import Dict, List, Optional

from sqlalchemy import select, delete
from sqlalchemy.orm import sessionmaker

from ..interfaces import Document
from ..models import DocumentRecord
from ..utils.helpers import PendingCalls


def _to_document(row: DocumentRecord) -> Document:
    return Document(
        id=row.id,
        title=row.title,
        source=row.source,
        timestamp=int(row.timestamp_ms),
        total_chunks=int(row.total_chunks),
    )


class MemoryDocumentStore:
    def __init__(self):
        self._docs: Dict[str, Document] = {}

    async def save(self, document: Document) -> None:
        self._docs[document.id] = document

    async def get(self, document_id: str) -> Optional[Document]:
        return self._docs.get(document_id)

    async def list(self) -> List[Document]:
        return sorted(self._docs.values(), key=lambda d: d.timestamp, reverse=True)

    async def delete(self, document_id: str) -> None:
        self._docs.pop(document_id, None)

    async def wait_pending(self) -> None:
        return None


class SqlDocumentStore:
    """Document metadata in the `documents` table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._calls = PendingCalls()

    def _save(self, document: Document) -> None:
        with self._session_factory() as db, db.begin():
            db.merge(DocumentRecord(
                id=document.id,
                title=document.title,
                source=document.source,
                timestamp_ms=document.timestamp,
                total_chunks=document.total_chunks,
            ))

    def _get(self, document_id: str) -> Optional[Document]:
        with self._session_factory() as db:
            row = db.get(DocumentRecord, document_id)
            return _to_document(row) if row else None

    def _list(self) -> List[Document]:
        with self._session_factory() as db:
            rows = db.execute(
                select(DocumentRecord).order_by(DocumentRecord.timestamp_ms.desc())
            ).scalars().all()
            return [_to_document(r) for r in rows]

    def _delete(self, document_id: str) -> None:
        with self._session_factory() as db, db.begin():
            db.execute(delete(DocumentRecord).where(DocumentRecord.id == document_id))

    async def save(self, document: Document) -> None:
        await self._calls.run(self._save, document)

    async def get(self, document_id: str) -> Optional[Document]:
        return await self._calls.run(self._get, document_id)

    async def list(self) -> List[Document]:
        return await self._calls.run(self._list)

    async def delete(self, document_id: str) -> None:
        await self._calls.run(self._delete, document_id)

    async def wait_pending(self) -> None:
        await self._calls.wait()
