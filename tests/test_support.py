"""Configuration, model resolution, text extraction and upstream-call helpers."""
import asyncio
import io
import time

import pytest
from docx import Document as DocxDocument

from autorag.config import Settings
from autorag.errors import UpstreamError, ValidationError
from autorag.ollama_client import OllamaGenerator
from autorag.openai_client import OpenAIGenerator
from autorag.services.model_service import build_generator, resolve_model
from autorag.text_extraction import read_any
from autorag.utils.helpers import PendingCalls, call_upstream


# ==================== Configuration ====================

def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("CHUNK_SIZE", "500")
    monkeypatch.setenv("CHUNK_OVERLAP", "50")
    monkeypatch.setenv("BLOB_BACKEND", "S3")
    monkeypatch.setenv("LOG_JSON", "true")

    settings = Settings.from_env()

    assert settings.chunk_size == 500
    assert settings.chunk_overlap == 50
    assert settings.blob_backend == "s3"
    assert settings.log_json is True


def test_settings_reject_bad_chunk_configuration():
    with pytest.raises(RuntimeError):
        Settings(chunk_size=100, chunk_overlap=100)


def test_settings_reject_non_integer(monkeypatch):
    monkeypatch.setenv("TOP_K", "five")
    with pytest.raises(RuntimeError):
        Settings.from_env()


def test_uses_sql_only_when_a_sql_backend_is_selected():
    assert Settings().uses_sql
    assert not Settings(blob_backend="memory", vector_backend="memory", document_backend="memory").uses_sql


# ==================== Model resolution ====================

@pytest.mark.parametrize(
    "model_string,expected",
    [
        (None, ("openai", "gpt-4o-mini")),
        ("openai:gpt-4o", ("openai", "gpt-4o")),
        ("ollama:qwen2.5:7b", ("ollama", "qwen2.5:7b")),
        ("mystery-model", ("openai", "gpt-4o-mini")),
        ("ollama:", ("openai", "gpt-4o-mini")),
    ],
)
def test_resolve_model(model_string, expected):
    assert resolve_model(model_string) == expected


def test_build_generator_picks_provider():
    ollama = build_generator(Settings(llm_model="ollama:llama3", ollama_url="http://localhost:11434/"))
    assert isinstance(ollama, OllamaGenerator)
    assert ollama.model == "llama3"
    assert ollama.base_url == "http://localhost:11434"

    openai = build_generator(Settings(llm_model="openai:gpt-4o-mini", openai_api_key="sk-test"))
    assert isinstance(openai, OpenAIGenerator)


def test_openai_generator_requires_key():
    with pytest.raises(RuntimeError):
        build_generator(Settings(llm_model="openai:gpt-4o-mini", openai_api_key=None))


# ==================== Text extraction ====================

def test_read_plain_text_ignores_undecodable_bytes():
    text, kind = read_any(b"Hello \xff world", "text/plain", "notes.txt")
    assert kind == "txt"
    assert text == "Hello  world"


def test_read_docx_paragraphs_and_tables():
    doc = DocxDocument()
    doc.add_paragraph("Senior Python Engineer")
    table = doc.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "Skill"
    table.rows[0].cells[1].text = "FastAPI"
    buf = io.BytesIO()
    doc.save(buf)

    text, kind = read_any(buf.getvalue(), "", "cv.docx")

    assert kind == "docx"
    assert "Senior Python Engineer" in text
    assert "Skill | FastAPI" in text


def test_read_corrupt_pdf_is_validation_error():
    with pytest.raises(ValidationError):
        read_any(b"definitely not a pdf", "application/pdf", "cv.pdf")


# ==================== Upstream calls ====================

async def test_call_upstream_returns_result():
    async def ok():
        return 7

    assert await call_upstream(ok(), "embedding", "embed", 1.0) == 7


async def test_call_upstream_wraps_failures():
    async def boom():
        raise ConnectionError("refused")

    with pytest.raises(UpstreamError) as exc_info:
        await call_upstream(boom(), "vector_index", "query", 1.0, document_id="d1")

    assert exc_info.value.service == "vector_index"
    assert exc_info.value.operation == "query"
    assert exc_info.value.details["document_id"] == "d1"
    assert isinstance(exc_info.value.__cause__, ConnectionError)


async def test_call_upstream_times_out():
    async def hang():
        await asyncio.sleep(10)

    with pytest.raises(UpstreamError, match="timed out"):
        await call_upstream(hang(), "generation", "generate", 0.01)


async def test_pending_calls_outlive_a_cancelled_caller():
    calls = PendingCalls()
    finished = []

    def slow_write():
        time.sleep(0.1)
        finished.append("written")

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(calls.run(slow_write), timeout=0.01)

    assert len(calls) == 1
    await calls.wait()
    assert finished == ["written"]
    assert len(calls) == 0


async def test_pending_calls_return_results_and_raise_errors():
    calls = PendingCalls()

    def fail():
        raise ValueError("bad row")

    assert await calls.run(sum, [1, 2, 3]) == 6
    with pytest.raises(ValueError):
        await calls.run(fail)
    await calls.wait()
