"""
Contracts for the external services the pipelines depend on.
Concrete implementations live in embedding.py, openai_client.py,
ollama_client.py and stores/.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol


@dataclass
class VectorMatch:
    """One nearest-neighbour hit returned by a VectorIndex query."""
    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Generation:
    text: str
    model: Optional[str] = None


@dataclass
class Document:
    """Document-level metadata, one record per upload."""
    id: str
    title: str
    source: Optional[str]
    timestamp: int  # milliseconds since epoch
    total_chunks: int


class EmbeddingProvider(Protocol):
    dimension: int

    async def embed(self, text: str) -> List[float]:
        ...


class VectorIndex(Protocol):
    async def upsert(self, id: str, vector: List[float], metadata: Dict[str, Any]) -> None:
        ...

    async def query(
        self,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
        return_metadata: bool = True,
    ) -> List[VectorMatch]:
        ...

    async def delete_by_ids(self, ids: List[str]) -> None:
        ...

    async def wait_pending(self) -> None:
        """Return once every write started so far has finished."""
        ...


class BlobStore(Protocol):
    async def get(self, key: str) -> Optional[str]:
        ...

    async def put(self, key: str, content: str) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def list(self, prefix: str = "", delimiter: Optional[str] = None) -> List[str]:
        """
        List keys under prefix. With a delimiter, keys that contain it after the
        prefix are collapsed into their common prefix (up to and including the
        delimiter), like S3 CommonPrefixes.
        """
        ...

    async def wait_pending(self) -> None:
        ...


class GenerationProvider(Protocol):
    async def generate(self, prompt: str) -> Generation:
        ...


class DocumentStore(Protocol):
    async def save(self, document: Document) -> None:
        ...

    async def get(self, document_id: str) -> Optional[Document]:
        ...

    async def list(self) -> List[Document]:
        ...

    async def delete(self, document_id: str) -> None:
        ...

    async def wait_pending(self) -> None:
        ...
