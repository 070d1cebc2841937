import uuid
from unittest.mock import AsyncMock

from starlette.datastructures import UploadFile as StarletteUploadFile

from autorag.errors import UpstreamError


def _upload(client, content=b"Hello world", title="T", source="S", filename="hello.txt"):
    data = {}
    if title is not None:
        data["title"] = title
    if source is not None:
        data["source"] = source
    files = {"file": (filename, content, "text/plain")} if content is not None else None
    return client.post("/upload", data=data, files=files)


def test_upload_returns_document_id_and_chunk_count(client):
    response = _upload(client)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["chunks"] == 1
    uuid.UUID(body["documentId"])


def test_upload_requires_file(client):
    response = client.post("/upload", data={"title": "T"})

    assert response.status_code == 400
    assert response.json()["error"] == "File is required"


def test_upload_requires_title(client):
    response = _upload(client, title="  ")

    assert response.status_code == 400
    assert response.json()["error"] == "Title is required"


def test_upload_rejects_oversized_file(client, container):
    response = _upload(client, content=b"x" * (container.settings.max_upload_bytes + 1))

    assert response.status_code == 400
    assert "too large" in response.json()["error"]


def test_upload_pipeline_failure_is_500(client, container):
    container.embedder.embed = AsyncMock(side_effect=RuntimeError("model crashed"))

    response = _upload(client)

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to upload document"


def test_query_requires_query(client):
    response = client.post("/query", json={"query": ""})

    assert response.status_code == 400
    assert response.json() == {"error": "Query is required", "status": 400}


def test_query_rejects_non_string_query(client):
    response = client.post("/query", json={"query": 123})

    assert response.status_code == 400
    assert response.json()["error"] == "Query is required"


def test_query_rejects_malformed_body(client):
    response = client.post("/query", content=b"not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400


def test_query_with_no_matches_returns_empty_sources(client):
    response = client.post("/query", json={"query": "Who is the best candidate?"})

    assert response.status_code == 200
    assert response.json() == {"answer": "Generated answer", "sources": []}


def test_query_returns_sources_for_uploaded_document(client):
    doc_id = _upload(client, content=b"Bob knows Kubernetes", title="Bob CV", source="Resume").json()["documentId"]

    response = client.post("/query", json={"query": "Bob knows Kubernetes", "conversationId": "c-1"})

    assert response.status_code == 200
    sources = response.json()["sources"]
    assert sources[0]["id"] == doc_id
    assert sources[0]["title"] == "Bob CV"
    assert sources[0]["source"] == "Resume"
    assert sources[0]["content"] == "Bob knows Kubernetes"
    assert set(sources[0]) == {"id", "title", "source", "content", "similarity"}


def test_query_pipeline_failure_is_generic_500(client, container):
    container.generator.generate = AsyncMock(side_effect=RuntimeError("secret internal detail"))

    response = client.post("/query", json={"query": "hello"})

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to process query"
    assert "secret" not in response.text


def test_list_documents(client):
    doc_id = _upload(client, content=b"a" * 120, title="Long", source=None).json()["documentId"]

    response = client.get("/documents")

    assert response.status_code == 200
    documents = response.json()
    assert len(documents) == 1
    assert documents[0]["id"] == doc_id
    assert documents[0]["title"] == "Long"
    assert documents[0]["source"] is None
    assert documents[0]["chunks"] == 3
    assert isinstance(documents[0]["timestamp"], int)


def test_get_document_and_not_found(client):
    doc_id = _upload(client).json()["documentId"]

    assert client.get(f"/documents/{doc_id}").json()["title"] == "T"

    missing = client.get("/documents/does-not-exist")
    assert missing.status_code == 404
    assert "not found" in missing.json()["error"]


def test_list_failure_is_500(client, container):
    container.document_store.list = AsyncMock(side_effect=RuntimeError("db down"))

    response = client.get("/documents")

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to list documents"


def test_delete_document_removes_everything(client, container):
    doc_id = _upload(client, content=b"c" * 120).json()["documentId"]
    assert len(container.vector_index) == 3

    response = client.delete(f"/documents/{doc_id}")

    assert response.status_code == 200
    assert response.json() == {"success": True, "documentId": doc_id}
    assert len(container.vector_index) == 0
    assert client.get("/documents").json() == []


def test_delete_twice_is_idempotent(client):
    doc_id = _upload(client).json()["documentId"]

    assert client.delete(f"/documents/{doc_id}").status_code == 200
    assert client.delete(f"/documents/{doc_id}").json() == {"success": True, "documentId": doc_id}


def test_delete_failure_is_500(client, container):
    container.catalog.delete = AsyncMock(
        side_effect=UpstreamError("Failed to delete document", "catalog", "delete")
    )

    response = client.delete("/documents/doc-1")

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to delete document"


def test_options_preflight_returns_204_with_cors(client):
    response = client.options("/query")

    assert response.status_code == 204
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert "DELETE" in response.headers["Access-Control-Allow-Methods"]
    assert "Authorization" in response.headers["Access-Control-Allow-Headers"]


def test_cors_headers_on_regular_and_error_responses(client):
    ok = client.get("/documents")
    bad = client.post("/query", json={})

    for response in (ok, bad):
        assert response.headers["Access-Control-Allow-Origin"] == "*"


def test_unknown_routes_are_404(client):
    assert client.get("/nope").status_code == 404
    # Known path, unsupported method
    response = client.put("/query", json={"query": "x"})
    assert response.status_code == 404
    assert response.json()["error"] == "Not found"


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_query_accepts_non_string_conversation_id(client):
    response = client.post("/query", json={"query": "hi", "conversationId": 5})

    assert response.status_code == 200


def test_update_document(client):
    doc_id = _upload(client, title="Old", source="Resume").json()["documentId"]

    response = client.put(f"/documents/{doc_id}", json={"title": "New"})

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == doc_id
    assert body["title"] == "New"
    assert body["source"] == "Resume"
    assert client.get("/documents").json()[0]["title"] == "New"


def test_update_unknown_document_is_404(client):
    response = client.put("/documents/missing", json={"title": "New"})

    assert response.status_code == 404
    assert "not found" in response.json()["error"]


def test_update_with_blank_title_is_400(client):
    doc_id = _upload(client).json()["documentId"]

    response = client.put(f"/documents/{doc_id}", json={"title": ""})

    assert response.status_code == 400
    assert response.json()["error"] == "Title cannot be empty"


def test_error_body_is_documented(client):
    schema = client.get("/openapi.json").json()

    assert "ErrorResponse" in schema["components"]["schemas"]
    upload_responses = schema["paths"]["/upload"]["post"]["responses"]
    assert {"400", "500"} <= set(upload_responses)


def test_oversized_upload_is_rejected_before_reading(client, container, monkeypatch):
    read = AsyncMock(return_value=b"")
    monkeypatch.setattr(StarletteUploadFile, "read", read)

    response = _upload(client, content=b"x" * (container.settings.max_upload_bytes + 1))

    assert response.status_code == 400
    read.assert_not_awaited()
