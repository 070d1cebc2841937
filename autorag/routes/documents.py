"""
Document management API routes.
Handles document upload, listing, update, and deletion.
"""
import os
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from ..config import Settings
from ..dependencies import get_app_settings, get_catalog, get_ingestion_pipeline
from ..errors import UpstreamError, ValidationError
from ..interfaces import Document
from ..logging_config import logger
from ..schemas import DeleteResponse, DocumentOut, DocumentUpdate, UploadResponse, error_responses
from ..services.catalog_service import DocumentCatalog
from ..services.ingestion_service import IngestionPipeline
from ..text_extraction import read_any

router = APIRouter(tags=["documents"])


def _document_out(document: Document) -> DocumentOut:
    return DocumentOut(
        id=document.id,
        title=document.title,
        source=document.source,
        timestamp=document.timestamp,
        chunks=document.total_chunks,
    )


# ==================== Document Upload ====================

@router.post("/upload", response_model=UploadResponse, responses=error_responses(400, 500))
async def upload_document(
    file: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    source: Optional[str] = Form(None),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
    settings: Settings = Depends(get_app_settings),
):
    """
    Upload a single document.

    Supported formats: PDF, DOCX, anything else is read as UTF-8 text.

    Process:
    1. Extract text from the file
    2. Store the original and split it into overlapping chunks
    3. Embed and index every chunk

    Returns:
        The new document id and its chunk count
    """
    if file is None:
        raise ValidationError("File is required")
    if title is None or not title.strip():
        raise ValidationError("Title is required")

    # Check file size before reading
    file.file.seek(0, os.SEEK_END)
    size_bytes = file.file.tell()
    file.file.seek(0)  # reset for later reading

    if size_bytes > settings.max_upload_bytes:
        raise ValidationError(
            f"File '{file.filename}' is too large. "
            f"Max size is {settings.max_upload_bytes // (1024 * 1024)} MB."
        )

    data = await file.read()
    logger.info("Processing file", filename=file.filename, content_type=file.content_type,
                size_bytes=len(data))
    text, kind = read_any(data, file.content_type or "", file.filename or "")

    try:
        result = await pipeline.ingest(text, title.strip(), (source or "").strip() or None)
    except UpstreamError as e:
        logger.error("Error uploading document", filename=file.filename, error=str(e), details=e.details)
        raise HTTPException(status_code=500, detail="Failed to upload document")

    logger.info("Document uploaded successfully",
                filename=file.filename,
                kind=kind,
                document_id=result.document_id,
                chunks=result.chunk_count)

    return UploadResponse(success=True, documentId=result.document_id, chunks=result.chunk_count)


# ==================== Document Listing ====================

@router.get("/documents", response_model=List[DocumentOut], responses=error_responses(500))
async def list_documents(catalog: DocumentCatalog = Depends(get_catalog)):
    """
    Returns all documents with chunk counts, newest first.
    """
    try:
        documents = await catalog.list()
    except UpstreamError as e:
        logger.error("Error listing documents", error=str(e), details=e.details)
        raise HTTPException(status_code=500, detail="Failed to list documents")

    return [_document_out(d) for d in documents]


@router.get("/documents/{document_id}", response_model=DocumentOut, responses=error_responses(404, 500))
async def get_document(document_id: str, catalog: DocumentCatalog = Depends(get_catalog)):
    try:
        document = await catalog.get(document_id)
    except UpstreamError as e:
        logger.error("Error fetching document", document_id=document_id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch document")

    return _document_out(document)


# ==================== Document Update ====================

@router.put("/documents/{document_id}", response_model=DocumentOut, responses=error_responses(400, 404, 500))
async def update_document(
    document_id: str,
    payload: DocumentUpdate,
    catalog: DocumentCatalog = Depends(get_catalog),
):
    """
    Rename a document or change its source label.

    Fields left out of the body keep their current value.
    """
    try:
        document = await catalog.update(document_id, title=payload.title, source=payload.source)
    except UpstreamError as e:
        logger.error("Error updating document", document_id=document_id, error=str(e), details=e.details)
        raise HTTPException(status_code=500, detail="Failed to update document")

    return _document_out(document)


# ==================== Document Deletion ====================

@router.delete("/documents/{document_id}", response_model=DeleteResponse, responses=error_responses(500))
async def delete_document(document_id: str, catalog: DocumentCatalog = Depends(get_catalog)):
    """
    Deletes a document's original text, chunks and vectors.

    Deleting an unknown id succeeds without effect.
    """
    try:
        result = await catalog.delete(document_id)
    except UpstreamError as e:
        logger.error("Error deleting document", error=str(e), details=e.details)
        raise HTTPException(status_code=500, detail="Failed to delete document")

    return DeleteResponse(success=result.success, documentId=result.document_id)
