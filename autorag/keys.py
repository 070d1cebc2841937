"""Blob keys and vector ids derived from a document id."""


def document_prefix(document_id: str) -> str:
    return f"{document_id}/"


def original_key(document_id: str) -> str:
    return f"{document_id}/original.txt"


def chunk_key(document_id: str, chunk_index: int) -> str:
    return f"{document_id}/chunk_{chunk_index}.txt"


def vector_id(document_id: str, chunk_index: int) -> str:
    return f"{document_id}_{chunk_index}"
