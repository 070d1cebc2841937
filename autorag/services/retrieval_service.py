"""
RAG (Retrieval-Augmented Generation) service.
Handles query embedding, vector search, context building and answer generation.
"""
import asyncio
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Dict, List, Optional

from ..errors import ValidationError
from ..interfaces import (
    BlobStore,
    Document,
    DocumentStore,
    EmbeddingProvider,
    GenerationProvider,
    VectorIndex,
    VectorMatch,
)
from ..keys import chunk_key
from ..logging_config import logger
from ..utils.helpers import call_upstream

CONTENT_NOT_FOUND = "Content not found"

NO_ANSWER = "I don't have information about that in the uploaded documents."

PROMPT_TEMPLATE = """You are a strict Document Grounding Assistant for a recruitment team.

Answer the QUESTION using ONLY the information in the CONTEXT below.

Rules:
1. Use ONLY the text from the CONTEXT. Do NOT guess and do NOT add general knowledge.
2. If the CONTEXT does not contain the answer, or is empty, reply exactly:
   "{no_answer}"
3. If the CONTEXT contains partial information, only summarize what IS present.

CONTEXT:
{context}

QUESTION: {query}

ANSWER:"""


@dataclass
class Source:
    id: str
    title: str
    source: Optional[str]
    content: str
    similarity: float


@dataclass
class QueryResult:
    answer: str
    sources: List[Source] = field(default_factory=list)


def build_context(contents: List[str]) -> str:
    """Join chunk texts in rank order, separated by blank lines."""
    return "\n\n".join(contents)


def build_prompt(context: str, query: str) -> str:
    return PROMPT_TEMPLATE.format(no_answer=NO_ANSWER, context=context, query=query)


class RetrievalPipeline:
    def __init__(
        self,
        embedder: EmbeddingProvider,
        vector_index: VectorIndex,
        blob_store: BlobStore,
        generator: GenerationProvider,
        top_k: int = 5,
        timeout: Optional[float] = 30.0,
        document_store: Optional[DocumentStore] = None,
    ):
        self.embedder = embedder
        self.vector_index = vector_index
        self.blob_store = blob_store
        self.generator = generator
        self.top_k = top_k
        self.timeout = timeout
        # Current titles/sources; vector metadata only holds upload-time values
        self.document_store = document_store

    async def retrieve(self, query: Any, conversation_id: Optional[str] = None) -> QueryResult:
        """
        Answer a question from the indexed documents.

        Raises:
            ValidationError: If query is not a non-empty string
            UpstreamError: If embedding, vector search or generation fails
        """
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("Query is required")

        log = logger.bind(conversation_id=conversation_id)
        t = perf_counter()
        log.info("Processing query", query=query[:100])

        vector = await call_upstream(
            self.embedder.embed(query), "embedding", "embed", self.timeout
        )
        matches = await call_upstream(
            self.vector_index.query(vector, top_k=self.top_k, return_metadata=True),
            "vector_index", "query", self.timeout,
        )
        log.info("Retrieved matches", count=len(matches))

        contents = await asyncio.gather(*(self._fetch_chunk(m) for m in matches))
        documents = await self._load_documents(matches)

        sources = []
        for m, content in zip(matches, contents):
            document_id = m.metadata.get("id", "")
            document = documents.get(document_id)
            if document is not None:
                title, source = document.title, document.source
            else:
                title, source = m.metadata.get("title") or "", m.metadata.get("source")
            sources.append(Source(
                id=document_id,
                title=title,
                source=source,
                content=content,
                similarity=float(m.score),
            ))

        context = build_context(list(contents))
        prompt = build_prompt(context, query)
        log.info("Sending to LLM", context_length=len(context), sources_count=len(sources))

        generation = await call_upstream(
            self.generator.generate(prompt), "generation", "generate", self.timeout
        )

        log.info("Query completed", model=generation.model,
                 time_ms=round((perf_counter() - t) * 1000, 2))
        return QueryResult(answer=generation.text, sources=sources)

    async def _load_documents(self, matches: List[VectorMatch]) -> Dict[str, Document]:
        """
        Document records for the matched ids. Lookups that fail or find nothing
        are left out, and the caller falls back to the vector metadata.
        """
        if self.document_store is None:
            return {}

        ids = list(dict.fromkeys(m.metadata.get("id") for m in matches if m.metadata.get("id")))

        async def load(document_id: str) -> Optional[Document]:
            try:
                return await asyncio.wait_for(self.document_store.get(document_id), timeout=self.timeout)
            except Exception as e:
                logger.warning("Document lookup failed; using vector metadata",
                               document_id=document_id, error=str(e))
                return None

        found = await asyncio.gather(*(load(i) for i in ids))
        return {d.id: d for d in found if d is not None}

    async def _fetch_chunk(self, match: VectorMatch) -> str:
        """Chunk text for a match, or the sentinel when it cannot be read."""
        document_id = match.metadata.get("id")
        chunk_index = match.metadata.get("chunkIndex")
        if document_id is None or chunk_index is None:
            logger.warning("Match without chunk metadata", vector_id=match.id)
            return CONTENT_NOT_FOUND

        key = chunk_key(document_id, int(chunk_index))
        try:
            text = await asyncio.wait_for(self.blob_store.get(key), timeout=self.timeout)
        except Exception as e:
            logger.warning("Chunk fetch failed; using placeholder", key=key, error=str(e))
            return CONTENT_NOT_FOUND

        if text is None:
            logger.warning("Chunk not found; using placeholder", key=key)
            return CONTENT_NOT_FOUND
        return text
