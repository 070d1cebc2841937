"""
Document catalog.
Lists, fetches, updates and deletes documents across the blob store, vector index
and document metadata store.
"""
import asyncio
from dataclasses import dataclass, replace
from typing import List, Optional

from ..errors import NotFoundError, PartialFailureError, UpstreamError, ValidationError
from ..interfaces import BlobStore, Document, DocumentStore, EmbeddingProvider, VectorIndex
from ..keys import chunk_key, document_prefix
from ..logging_config import logger
from ..utils.helpers import call_upstream


@dataclass
class DeleteResult:
    success: bool
    document_id: str


class DocumentCatalog:
    def __init__(
        self,
        embedder: EmbeddingProvider,
        vector_index: VectorIndex,
        blob_store: BlobStore,
        document_store: DocumentStore,
        delete_page_size: int = 100,
        timeout: Optional[float] = 30.0,
    ):
        if delete_page_size <= 0:
            raise ValueError("delete_page_size must be positive")
        self.embedder = embedder
        self.vector_index = vector_index
        self.blob_store = blob_store
        self.document_store = document_store
        self.delete_page_size = delete_page_size
        self.timeout = timeout

    async def list(self) -> List[Document]:
        """All documents with at least one chunk, newest first."""
        documents = await call_upstream(
            self.document_store.list(), "document_store", "list", self.timeout
        )
        listed = [d for d in documents if d.total_chunks > 0]
        logger.info("Listed documents", count=len(listed))
        return listed

    async def get(self, document_id: str) -> Document:
        document = await call_upstream(
            self.document_store.get(document_id), "document_store", "get", self.timeout,
            document_id=document_id,
        )
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        return document

    async def update(
        self,
        document_id: str,
        title: Optional[str] = None,
        source: Optional[str] = None,
    ) -> Document:
        """
        Change a document's title and/or source. Omitted fields are kept.

        Only the metadata record changes; vector metadata keeps the values
        from upload time and retrieval reads the record instead.

        Raises:
            ValidationError: If title is given but blank
            NotFoundError: If the document does not exist
        """
        if title is not None and not title.strip():
            raise ValidationError("Title cannot be empty")

        document = await self.get(document_id)
        updated = replace(
            document,
            title=title.strip() if title is not None else document.title,
            source=(source.strip() or None) if source is not None else document.source,
        )
        await call_upstream(
            self.document_store.save(updated), "document_store", "save", self.timeout,
            document_id=document_id,
        )
        logger.info("Document updated", document_id=document_id,
                    title_changed=updated.title != document.title,
                    source_changed=updated.source != document.source)
        return updated

    async def delete(self, document_id: str) -> DeleteResult:
        """
        Remove every blob, vector record and the metadata record of a document.

        Blob and vector removal run independently; if either fails the other
        is not rolled back. Deleting an unknown id succeeds without effect.

        Raises:
            UpstreamError: If nothing could be removed
            PartialFailureError: If some sub-steps succeeded and others failed
        """
        log = logger.bind(document_id=document_id)

        results = await asyncio.gather(
            self._delete_blobs(document_id),
            self._delete_vectors(document_id),
            return_exceptions=True,
        )
        steps = ["blobs", "vectors"]
        failed = [step for step, r in zip(steps, results) if isinstance(r, BaseException)]

        # Each step already converted its failures to UpstreamError; anything
        # else is a bug and should surface as-is.
        for r in results:
            if isinstance(r, BaseException) and not isinstance(r, UpstreamError):
                raise r

        if not failed:
            try:
                await call_upstream(
                    self.document_store.delete(document_id), "document_store", "delete",
                    self.timeout, document_id=document_id,
                )
            except UpstreamError:
                failed.append("metadata")

        if failed:
            if failed == steps:
                raise UpstreamError("Failed to delete document", "catalog", "delete",
                                    details={"document_id": document_id})
            log.error("Document delete partial failure", failed_steps=failed,
                      blobs_deleted="blobs" not in failed,
                      vectors_deleted="vectors" not in failed)
            raise PartialFailureError(
                "Failed to delete document", "catalog", "delete", document_id,
                details={"failed_steps": failed},
            )

        log.info("Document deleted", blobs=results[0], vectors=results[1])
        return DeleteResult(success=True, document_id=document_id)

    async def _delete_blobs(self, document_id: str) -> int:
        prefix = document_prefix(document_id)
        keys = await call_upstream(
            self.blob_store.list(prefix=prefix), "blob_store", "list", self.timeout, prefix=prefix,
        )
        for key in keys:
            await call_upstream(
                self.blob_store.delete(key), "blob_store", "delete", self.timeout, key=key,
            )
        return len(keys)

    async def _delete_vectors(self, document_id: str) -> int:
        """Query-and-delete in pages until a page comes back short."""
        zero = [0.0] * self.embedder.dimension
        deleted = 0
        previous = None
        while True:
            matches = await call_upstream(
                self.vector_index.query(
                    zero,
                    top_k=self.delete_page_size,
                    filter={"id": document_id},
                    return_metadata=False,
                ),
                "vector_index", "query", self.timeout, document_id=document_id,
            )
            ids = [m.id for m in matches]
            if ids and ids == previous:
                # The index keeps returning what we just deleted
                raise UpstreamError("Vector deletion made no progress", "vector_index",
                                    "delete_by_ids", details={"document_id": document_id})
            previous = ids
            if ids:
                await call_upstream(
                    self.vector_index.delete_by_ids(ids), "vector_index", "delete_by_ids",
                    self.timeout, document_id=document_id, count=len(ids),
                )
                deleted += len(ids)
            if len(ids) < self.delete_page_size:
                return deleted

    async def rebuild_from_storage(self) -> List[Document]:
        """
        Reconstruct document records from blob keys and vector metadata and
        save them to the document store. Used to backfill data written before
        the metadata store existed.

        For every "{id}/" prefix in the blob store, chunk 0 is re-embedded and
        the index is queried (filtered to that id, top 1) to recover the stored
        metadata. Documents whose chunk 0 or vector match is missing are skipped.
        """
        prefixes = await call_upstream(
            self.blob_store.list(prefix="", delimiter="/"), "blob_store", "list", self.timeout,
        )
        document_ids = [p.rstrip("/") for p in prefixes if p.endswith("/")]

        rebuilt = []
        for document_id in document_ids:
            text = await call_upstream(
                self.blob_store.get(chunk_key(document_id, 0)), "blob_store", "get",
                self.timeout, document_id=document_id,
            )
            if text is None:
                logger.warning("Skipping document without chunk 0", document_id=document_id)
                continue

            vector = await call_upstream(
                self.embedder.embed(text), "embedding", "embed", self.timeout,
                document_id=document_id,
            )
            matches = await call_upstream(
                self.vector_index.query(vector, top_k=1, filter={"id": document_id},
                                        return_metadata=True),
                "vector_index", "query", self.timeout, document_id=document_id,
            )
            if not matches:
                logger.warning("Skipping document without vector metadata", document_id=document_id)
                continue

            meta = matches[0].metadata
            document = Document(
                id=document_id,
                title=meta.get("title") or "",
                source=meta.get("source"),
                timestamp=int(meta.get("timestamp") or 0),
                total_chunks=int(meta.get("totalChunks") or 0),
            )
            await call_upstream(
                self.document_store.save(document), "document_store", "save", self.timeout,
                document_id=document_id,
            )
            rebuilt.append(document)

        logger.info("Rebuilt document catalog", count=len(rebuilt), prefixes=len(document_ids))
        return rebuilt
