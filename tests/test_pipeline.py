from __future__ import annotations

import asyncio
import json

import pytest

from conftest import RecordingSleep, StubRecognizer, first_page_number, ok_response
from rollscan.core.exceptions import ConfigurationError, PartitionError
from rollscan.core.schemas import ChunkStatus
from rollscan.processors.pipeline import ExtractionPipeline, default_output_path
from rollscan.processors.recognizer import RecognitionResponse


def _by_first_page(failing_page: int = 0):
    """Answer with as many voters as the chunk has pages; fail one chunk."""

    def handler(credential, payload):
        first = first_page_number(payload)
        if first == failing_page:
            return RecognitionResponse(completion_status="SAFETY", payload="")
        return ok_response(2, prefix=f"P{first}-")

    return handler


def test_run_writes_consolidated_output_and_cleans_scratch(make_settings, pdf_file, tmp_path) -> None:
    settings = make_settings()
    recognizer = StubRecognizer(_by_first_page())
    pipeline = ExtractionPipeline(settings=settings, recognizer=recognizer, sleep=RecordingSleep())
    source = pdf_file(12, name="ward_7")

    result = asyncio.run(pipeline.run(source))

    output = default_output_path(settings, source)
    assert output == tmp_path / "results" / "ward_7_ocr.json"
    written = json.loads(output.read_text(encoding="utf-8"))

    assert result.total_records == 6
    assert written["total_records"] == 6
    assert [r["voter_id"] for r in written["records"]][::2] == ["P1-00001", "P6-00001", "P11-00001"]
    assert [s["page_label"] for s in written["per_chunk_summary"]] == ["01-05", "06-10", "11-12"]
    assert written["configuration"]["pages_per_chunk"] == 5
    assert written["source_document"] == str(source)
    assert not (tmp_path / "scratch").exists()


def test_failed_chunk_is_reported_without_aborting(make_settings, pdf_file) -> None:
    sleep = RecordingSleep()
    settings = make_settings(break_duration_ms=2000)
    recognizer = StubRecognizer(_by_first_page(failing_page=6))
    pipeline = ExtractionPipeline(settings=settings, recognizer=recognizer, sleep=sleep)

    result = asyncio.run(pipeline.run(pdf_file(12)))

    assert [s.status for s in result.per_chunk_summary] == [
        ChunkStatus.SUCCESS,
        ChunkStatus.ERROR,
        ChunkStatus.SUCCESS,
    ]
    assert result.total_records == 4
    # 3 first attempts + 2 retries of the failing chunk
    assert len(recognizer.calls) == 5
    # cooldown falls back to the break duration
    assert sleep.calls == [2.0, 2.0]


def test_throttle_and_cooldown_use_separate_durations(make_settings, pdf_file) -> None:
    sleep = RecordingSleep()
    settings = make_settings(
        openai_api_keys=["key-alpha-0001", "key-bravo-0002"],
        requests_before_break=2,
        break_duration_ms=60000,
        failover_cooldown_ms=500,
        max_pages_per_chunk=10,
    )
    recognizer = StubRecognizer(_by_first_page(failing_page=1))
    pipeline = ExtractionPipeline(settings=settings, recognizer=recognizer, sleep=sleep)

    asyncio.run(pipeline.run(pdf_file(4)))

    # single chunk, both keys fail: cooldown before retry, then the 2nd request throttles
    assert sleep.calls == [0.5, 60.0]


def test_keep_scratch_leaves_per_chunk_records(make_settings, pdf_file, tmp_path) -> None:
    settings = make_settings(keep_scratch=True)
    pipeline = ExtractionPipeline(
        settings=settings, recognizer=StubRecognizer(lambda c, p: ok_response(1))
    )

    asyncio.run(pipeline.run(pdf_file(3)))

    stored = sorted(p.name for p in (tmp_path / "scratch").iterdir())
    assert stored == ["attempt_original_1.json", "result_original.json"]


def test_undecodable_document_aborts_and_cleans_up(make_settings, tmp_path) -> None:
    broken = tmp_path / "broken.pdf"
    broken.write_bytes(b"%PDF-1.7 truncated")
    recognizer = StubRecognizer()
    pipeline = ExtractionPipeline(settings=make_settings(), recognizer=recognizer)

    with pytest.raises(PartitionError):
        asyncio.run(pipeline.run(broken))

    assert recognizer.calls == []
    assert not (tmp_path / "scratch").exists()
    assert not (tmp_path / "results").exists()


def test_empty_credential_list_is_fatal_before_any_work(make_settings) -> None:
    with pytest.raises(ConfigurationError):
        ExtractionPipeline(settings=make_settings(openai_api_keys=[]), recognizer=StubRecognizer())


def test_cleanup_spares_unrelated_files_in_shared_directory(make_settings, pdf_file, tmp_path) -> None:
    shared = tmp_path / "shared"
    shared.mkdir()
    (shared / "notes.txt").write_text("keep me", encoding="utf-8")
    (shared / "ward_1_ocr.json").write_text('{"records": []}', encoding="utf-8")
    settings = make_settings(temp_dir=str(shared), output_dir=str(shared))
    pipeline = ExtractionPipeline(
        settings=settings, recognizer=StubRecognizer(lambda c, p: ok_response(1))
    )

    asyncio.run(pipeline.run(pdf_file(8, name="ward_2")))

    assert sorted(p.name for p in shared.iterdir()) == [
        "notes.txt",
        "ward_1_ocr.json",
        "ward_2_ocr.json",
    ]
