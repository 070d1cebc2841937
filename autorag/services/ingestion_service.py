"""
Ingestion pipeline.
Chunks a document, embeds every chunk and persists original text, chunk
blobs, vector records and the document metadata record.
"""
import asyncio
import uuid
from dataclasses import dataclass
from time import perf_counter
from typing import List, Optional

from ..chunking import chunk
from ..errors import AutoRAGError, PartialFailureError, UpstreamError
from ..interfaces import BlobStore, Document, DocumentStore, EmbeddingProvider, VectorIndex
from ..keys import chunk_key, original_key, vector_id
from ..logging_config import logger
from ..utils.helpers import call_upstream, now_ms
from .catalog_service import DocumentCatalog


@dataclass
class IngestionResult:
    document_id: str
    chunk_count: int


class IngestionPipeline:
    def __init__(
        self,
        embedder: EmbeddingProvider,
        vector_index: VectorIndex,
        blob_store: BlobStore,
        document_store: DocumentStore,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        concurrency: int = 4,
        timeout: Optional[float] = 30.0,
        catalog: Optional[DocumentCatalog] = None,
        settle_timeout: Optional[float] = None,
    ):
        if chunk_size <= 0 or not 0 <= chunk_overlap < chunk_size:
            raise ValueError("chunk_overlap must be >= 0 and smaller than chunk_size")
        self.embedder = embedder
        self.vector_index = vector_index
        self.blob_store = blob_store
        self.document_store = document_store
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.concurrency = max(1, concurrency)
        self.timeout = timeout
        # How long cleanup waits for writes still running in worker threads
        self.settle_timeout = settle_timeout if settle_timeout is not None else timeout
        # Used to undo partial writes when ingestion fails
        self.catalog = catalog or DocumentCatalog(
            embedder, vector_index, blob_store, document_store, timeout=timeout
        )

    async def ingest(self, file_content: str, title: str, source: Optional[str] = None) -> IngestionResult:
        """
        Store a document and index its chunks.

        Returns:
            IngestionResult with the new document id and chunk count

        Raises:
            UpstreamError: If any store or the embedding model fails; the
                pipeline has already tried to remove what it wrote
        """
        document_id = str(uuid.uuid4())
        timestamp = now_ms()
        t = perf_counter()
        log = logger.bind(document_id=document_id)

        try:
            await call_upstream(
                self.blob_store.put(original_key(document_id), file_content),
                "blob_store", "put", self.timeout, key=original_key(document_id),
            )

            parts = chunk(file_content, self.chunk_size, self.chunk_overlap)
            total_chunks = len(parts)
            log.info("Created chunks", title=title, chunk_count=total_chunks,
                     content_length=len(file_content))

            if total_chunks == 0:
                log.warning("Empty document; nothing to index")

            await self._index_chunks(document_id, parts, title, source, timestamp)

            await call_upstream(
                self.document_store.save(Document(
                    id=document_id,
                    title=title,
                    source=source,
                    timestamp=timestamp,
                    total_chunks=total_chunks,
                )),
                "document_store", "save", self.timeout, document_id=document_id,
            )
        except AutoRAGError as e:
            await self._cleanup(document_id, e)
            raise

        log.info("Document ingested", chunk_count=total_chunks,
                 time_ms=round((perf_counter() - t) * 1000, 2))
        return IngestionResult(document_id=document_id, chunk_count=total_chunks)

    async def _index_chunks(
        self,
        document_id: str,
        parts: List[str],
        title: str,
        source: Optional[str],
        timestamp: int,
    ) -> None:
        """Fan out per-chunk work with bounded concurrency; stop on first failure."""
        total_chunks = len(parts)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def process(index: int, text: str):
            async with semaphore:
                await call_upstream(
                    self.blob_store.put(chunk_key(document_id, index), text),
                    "blob_store", "put", self.timeout, key=chunk_key(document_id, index),
                )
                vector = await call_upstream(
                    self.embedder.embed(text),
                    "embedding", "embed", self.timeout, document_id=document_id, chunk_index=index,
                )
                await call_upstream(
                    self.vector_index.upsert(
                        vector_id(document_id, index),
                        vector,
                        {
                            "id": document_id,
                            "title": title,
                            "source": source,
                            "timestamp": timestamp,
                            "chunkIndex": index,
                            "totalChunks": total_chunks,
                        },
                    ),
                    "vector_index", "upsert", self.timeout, id=vector_id(document_id, index),
                )

        tasks = [asyncio.ensure_future(process(i, text)) for i, text in enumerate(parts)]
        if not tasks:
            return
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            # Cancelling stops the coroutines only; thread-backed writes are
            # waited for separately in _cleanup
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _cleanup(self, document_id: str, error: AutoRAGError) -> None:
        log = logger.bind(document_id=document_id)
        log.error("Ingestion partial failure; removing written data", error=str(error))
        await self._wait_for_pending_writes(document_id)
        try:
            await self.catalog.delete(document_id)
        except UpstreamError as cleanup_error:
            log.error("Ingestion cleanup failed; orphaned data may remain",
                      error=str(cleanup_error))
            service = getattr(error, "service", "ingestion")
            operation = getattr(error, "operation", "ingest")
            raise PartialFailureError(
                "Failed to upload document", service, operation, document_id,
                details={"cause": str(error), "cleanup_error": str(cleanup_error)},
            ) from error

    async def _wait_for_pending_writes(self, document_id: str) -> None:
        """
        Wait for store writes whose callers already gave up (timeouts) so that
        cleanup runs after them rather than before.
        """
        stores = {
            "blob_store": self.blob_store,
            "vector_index": self.vector_index,
            "document_store": self.document_store,
        }
        for name, store in stores.items():
            try:
                await asyncio.wait_for(store.wait_pending(), timeout=self.settle_timeout)
            except asyncio.TimeoutError:
                logger.error("Writes still running after failed ingestion; orphaned data may remain",
                             document_id=document_id, service=name)
