"""
Shared test fixtures.

Provides: deterministic fake embedder/generator, in-memory stores, a fully
wired service container, a FastAPI TestClient around it and an in-memory
SQLite session factory for the SQL-backed stores.
"""
import re
import zlib
from typing import List

import numpy as np
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from autorag.config import Settings
from autorag.dependencies import assemble
from autorag.interfaces import Generation
from autorag.main import create_app
from autorag.models import Base
from autorag.stores.blob_store import MemoryBlobStore
from autorag.stores.document_store import MemoryDocumentStore
from autorag.stores.vector_index import MemoryVectorIndex


class FakeEmbedder:
    """Hashed bag-of-words embeddings; identical texts get identical vectors."""

    def __init__(self, dimension: int = 64):
        self.dimension = dimension
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        vec = np.zeros(self.dimension, dtype=np.float32)
        for word in re.findall(r"\w+", text.lower()):
            vec[zlib.crc32(word.encode("utf-8")) % self.dimension] += 1.0
        norm = np.linalg.norm(vec)
        if norm:
            vec /= norm
        return vec.tolist()


class FakeGenerator:
    def __init__(self, answer: str = "Generated answer"):
        self.answer = answer
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> Generation:
        self.prompts.append(prompt)
        return Generation(text=self.answer, model="fake-llm")


@pytest.fixture
def settings():
    return Settings(
        blob_backend="memory",
        vector_backend="memory",
        document_backend="memory",
        chunk_size=50,
        chunk_overlap=10,
        top_k=5,
        ingest_concurrency=3,
        delete_page_size=100,
        upstream_timeout_seconds=5.0,
        max_upload_bytes=1024 * 1024,
    )


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def blob_store():
    return MemoryBlobStore()


@pytest.fixture
def vector_index():
    return MemoryVectorIndex()


@pytest.fixture
def document_store():
    return MemoryDocumentStore()


@pytest.fixture
def container(settings, embedder, vector_index, blob_store, document_store, generator):
    return assemble(settings, embedder, vector_index, blob_store, document_store, generator)


@pytest.fixture
def client(container):
    return TestClient(create_app(container))


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    Base.metadata.drop_all(engine)
    engine.dispose()
