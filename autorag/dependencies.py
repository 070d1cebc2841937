"""
Wiring for the external service clients and pipelines.

Clients are built once per process by build_container() and stored on
app.state; routes reach them through the get_* dependencies below.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from sqlalchemy.engine import Engine

from .config import Settings
from .db import create_db_engine, make_session_factory
from .embedding import SentenceTransformerEmbedder
from .interfaces import BlobStore, DocumentStore, EmbeddingProvider, GenerationProvider, VectorIndex
from .services.catalog_service import DocumentCatalog
from .services.ingestion_service import IngestionPipeline
from .services.model_service import build_generator
from .services.retrieval_service import RetrievalPipeline
from .stores.blob_store import MemoryBlobStore, S3BlobStore, SqlBlobStore
from .stores.document_store import MemoryDocumentStore, SqlDocumentStore
from .stores.vector_index import MemoryVectorIndex, PgVectorIndex


@dataclass
class ServiceContainer:
    settings: Settings
    embedder: EmbeddingProvider
    vector_index: VectorIndex
    blob_store: BlobStore
    document_store: DocumentStore
    generator: GenerationProvider
    ingestion: IngestionPipeline
    retrieval: RetrievalPipeline
    catalog: DocumentCatalog
    engine: Optional[Engine] = None


def assemble(
    settings: Settings,
    embedder: EmbeddingProvider,
    vector_index: VectorIndex,
    blob_store: BlobStore,
    document_store: DocumentStore,
    generator: GenerationProvider,
    engine: Optional[Engine] = None,
) -> ServiceContainer:
    """Build the pipelines around already-constructed clients."""
    timeout = settings.upstream_timeout_seconds
    catalog = DocumentCatalog(
        embedder, vector_index, blob_store, document_store,
        delete_page_size=settings.delete_page_size,
        timeout=timeout,
    )
    ingestion = IngestionPipeline(
        embedder, vector_index, blob_store, document_store,
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
        concurrency=settings.ingest_concurrency,
        timeout=timeout,
        catalog=catalog,
    )
    retrieval = RetrievalPipeline(
        embedder, vector_index, blob_store, generator,
        top_k=settings.top_k,
        timeout=timeout,
        document_store=document_store,
    )
    return ServiceContainer(
        settings=settings,
        embedder=embedder,
        vector_index=vector_index,
        blob_store=blob_store,
        document_store=document_store,
        generator=generator,
        ingestion=ingestion,
        retrieval=retrieval,
        catalog=catalog,
        engine=engine,
    )


def build_container(settings: Settings) -> ServiceContainer:
    """Construct every client named by the settings."""
    engine = create_db_engine(settings.database_url) if settings.uses_sql else None
    session_factory = make_session_factory(engine) if engine is not None else None

    if settings.blob_backend == "sql":
        blob_store = SqlBlobStore(session_factory)
    elif settings.blob_backend == "s3":
        blob_store = S3BlobStore(settings.s3_bucket, settings.s3_region, settings.s3_endpoint_url)
    elif settings.blob_backend == "memory":
        blob_store = MemoryBlobStore()
    else:
        raise RuntimeError(f"Unknown BLOB_BACKEND: {settings.blob_backend}")

    if settings.vector_backend == "pgvector":
        vector_index = PgVectorIndex(session_factory)
    elif settings.vector_backend == "memory":
        vector_index = MemoryVectorIndex()
    else:
        raise RuntimeError(f"Unknown VECTOR_BACKEND: {settings.vector_backend}")

    if settings.document_backend == "sql":
        document_store = SqlDocumentStore(session_factory)
    elif settings.document_backend == "memory":
        document_store = MemoryDocumentStore()
    else:
        raise RuntimeError(f"Unknown DOCUMENT_BACKEND: {settings.document_backend}")

    embedder = SentenceTransformerEmbedder(settings.embed_model, settings.embed_dim)
    generator = build_generator(settings)

    return assemble(settings, embedder, vector_index, blob_store, document_store, generator, engine)


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_retrieval_pipeline(request: Request) -> RetrievalPipeline:
    return get_container(request).retrieval


def get_ingestion_pipeline(request: Request) -> IngestionPipeline:
    return get_container(request).ingestion


def get_catalog(request: Request) -> DocumentCatalog:
    return get_container(request).catalog


def get_app_settings(request: Request) -> Settings:
    return get_container(request).settings
