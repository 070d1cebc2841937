"""
Pydantic schemas for request/response validation.
Field names follow the JSON contract consumed by the web UI (camelCase).
"""
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class QueryBody(BaseModel):
    """
    Request body for asking questions. `query` is validated by the pipeline;
    `conversationId` is passed through as-is, whatever its JSON type.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    query: Any = Field(None, description="The question to ask")
    conversation_id: Any = Field(
        None, alias="conversationId", description="Client conversation identifier"
    )


class DocumentUpdate(BaseModel):
    """Fields of a document that can be changed after upload."""
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    source: Optional[str] = None


class Source(BaseModel):
    """A chunk used as context for an answer."""
    id: str
    title: str
    source: Optional[str] = None
    content: str
    similarity: float


class QueryResponse(BaseModel):
    answer: str
    sources: List[Source]


class UploadResponse(BaseModel):
    success: bool = True
    documentId: str
    chunks: int


class DocumentOut(BaseModel):
    id: str
    title: str
    source: Optional[str] = None
    timestamp: int
    chunks: int


class DeleteResponse(BaseModel):
    success: bool = True
    documentId: str


class ErrorResponse(BaseModel):
    error: str
    status: int


def error_responses(*status_codes: int) -> dict:
    """OpenAPI `responses=` entries documenting the `{error, status}` body."""
    return {code: {"model": ErrorResponse} for code in status_codes}
