"""Shared fixtures for rollscan tests."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Callable, Optional

import fitz
import pytest
import structlog

PROJECT_ROOT = Path(__file__).resolve().parent.parent
for entry in (PROJECT_ROOT, PROJECT_ROOT / "src"):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))

from config.settings import Settings  # noqa: E402
from rollscan.processors.recognizer import RecognitionResponse  # noqa: E402
from rollscan.storage.scratch import ScratchStore  # noqa: E402


def build_pdf(pages: int) -> bytes:
    """An in-memory PDF whose page N carries the text ``Page N``."""
    doc = fitz.open()
    for number in range(1, pages + 1):
        page = doc.new_page()
        page.insert_text((72, 72), f"Page {number}")
    data = doc.tobytes()
    doc.close()
    return data


def first_page_number(payload: bytes) -> int:
    """Read back the ``Page N`` marker of a chunk's first page."""
    with fitz.open(stream=payload, filetype="pdf") as doc:
        text = doc.load_page(0).get_text()
    return int(text.split("Page", 1)[1].split()[0])


def voter(n: int, prefix: str = "V") -> dict[str, str]:
    return {
        "name": f"Name {prefix}{n}",
        "father_husband_name": f"Father {prefix}{n}",
        "address": str(n),
        "age": str(20 + n),
        "gender": "M" if n % 2 else "F",
        "voter_id": f"{prefix}{n:05d}",
    }


def payload_json(count: int, prefix: str = "V") -> str:
    return json.dumps({
        "total_voters": count,
        "voters": [voter(i, prefix) for i in range(1, count + 1)],
    })


def ok_response(count: int = 2, prefix: str = "V") -> RecognitionResponse:
    return RecognitionResponse(completion_status="stop", payload=payload_json(count, prefix))


class StubRecognizer:
    """
    Recognition client double.

    ``handler(credential, payload)`` decides each answer; it may return a
    ``RecognitionResponse`` or raise. Every call is recorded.
    """

    model = "stub-model"

    def __init__(self, handler: Optional[Callable[[str, bytes], Any]] = None):
        self.handler = handler or (lambda credential, payload: ok_response())
        self.calls: list[tuple[str, str]] = []

    async def recognize(self, credential, instruction, payload, schema, filename="chunk.pdf"):
        self.calls.append((credential, filename))
        result = self.handler(credential, payload)
        if hasattr(result, "__await__"):
            result = await result
        if isinstance(result, Exception):
            raise result
        return result

    @property
    def credentials_used(self) -> list[str]:
        return [credential for credential, _ in self.calls]


class RecordingSleep:
    """Async sleep replacement that records requested durations."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    structlog.reset_defaults()


@pytest.fixture
def pdf_file(tmp_path: Path) -> Callable[[int, str], Path]:
    def _make(pages: int, name: str = "roll") -> Path:
        path = tmp_path / f"{name}.pdf"
        path.write_bytes(build_pdf(pages))
        return path

    return _make


@pytest.fixture
def store(tmp_path: Path) -> ScratchStore:
    scratch = ScratchStore(tmp_path / "scratch")
    scratch.prepare()
    return scratch


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., Settings]:
    def _make(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "openai_api_keys": ["key-alpha-0001", "key-bravo-0002", "key-charlie-0003"],
            "max_pages_per_chunk": 5,
            "requests_before_break": 0,
            "break_duration_ms": 0,
            "temp_dir": str(tmp_path / "scratch"),
            "output_dir": str(tmp_path / "results"),
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make
