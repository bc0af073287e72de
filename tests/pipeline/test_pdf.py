# ABOUTME: Tests for the isolated PDF extraction stage
# ABOUTME: Failures, crashed workers and timeouts must all end as "no extracted text"

import io
import multiprocessing
import os
import time
from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor
from concurrent.futures.process import BrokenProcessPool

import pytest
from pypdf import PdfWriter

from linkdump.core.models import Link
from linkdump.pipeline.pdf import PdfExtractStage

PDF_HEADERS = {"content-type": ["application/pdf"]}


def _pdf_link(src: bytes = b"%PDF-1.4 not really") -> Link:
    return Link(url="https://example.com/paper.pdf", src=src, http_headers=PDF_HEADERS)


class BrokenExecutor(Executor):
    """Executor whose worker always dies mid-task."""

    def __init__(self):
        self.shut_down = False

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        future.set_exception(BrokenProcessPool("worker exited abnormally"))
        return future

    def shutdown(self, wait=True, *, cancel_futures=False):
        self.shut_down = True


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=1)
    yield pool
    pool.shutdown(wait=True)


@pytest.mark.asyncio
async def test_extracted_text_from_worker(executor, monkeypatch):
    monkeypatch.setattr("linkdump.pipeline.pdf.extract_pdf_text", lambda data: "page one\npage two")

    link = await PdfExtractStage(executor).process(_pdf_link())

    assert link.last_processed is not None
    assert link.extracted_text == "page one\npage two"


@pytest.mark.asyncio
async def test_malformed_pdf_degrades_to_no_text(executor):
    link = await PdfExtractStage(executor).process(_pdf_link(b"this is not a pdf at all"))

    assert link.last_processed is not None
    assert link.extracted_text is None


@pytest.mark.asyncio
async def test_library_abort_is_contained(executor, monkeypatch):
    def abort(data):
        raise RuntimeError("abort() called")

    monkeypatch.setattr("linkdump.pipeline.pdf.extract_pdf_text", abort)

    link = await PdfExtractStage(executor).process(_pdf_link())

    assert link.last_processed is not None
    assert link.extracted_text is None


@pytest.mark.asyncio
async def test_timeout_degrades_to_no_text(executor, monkeypatch):
    def slow(data):
        time.sleep(0.5)
        return "too late"

    monkeypatch.setattr("linkdump.pipeline.pdf.extract_pdf_text", slow)

    link = await PdfExtractStage(executor, timeout_seconds=0.05).process(_pdf_link())

    assert link.last_processed is not None
    assert link.extracted_text is None


@pytest.mark.asyncio
async def test_broken_owned_pool_is_discarded():
    stage = PdfExtractStage()
    broken = BrokenExecutor()
    stage._executor = broken

    link = await stage.process(_pdf_link())

    assert link.extracted_text is None
    assert link.last_processed is not None
    assert broken.shut_down
    assert stage._executor is None


@pytest.mark.asyncio
async def test_injected_executor_is_never_discarded():
    broken = BrokenExecutor()
    stage = PdfExtractStage(broken)

    await stage.process(_pdf_link())
    await stage.close()

    assert not broken.shut_down
    assert stage.executor is broken


@pytest.mark.asyncio
async def test_non_pdf_is_skipped(executor):
    link = Link(url="https://a.dev", src=b"text", http_headers={"content-type": ["text/plain"]})

    link = await PdfExtractStage(executor).process(link)

    assert link.last_processed is None
    assert link.extracted_text is None


def _blank_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=72, height=72)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.mark.asyncio
async def test_aborting_worker_process_is_contained_and_replaced():
    stage = PdfExtractStage(timeout_seconds=30.0)
    # The worker calls abort() as soon as it starts, before running the task.
    stage._executor = ProcessPoolExecutor(
        max_workers=1, mp_context=multiprocessing.get_context("spawn"), initializer=os.abort
    )

    try:
        crashed = await stage.process(_pdf_link())

        assert crashed.last_processed is not None
        assert crashed.extracted_text is None
        assert stage._executor is None

        recovered = await stage.process(_pdf_link(_blank_pdf()))

        assert recovered.extracted_text == ""
        assert isinstance(stage._executor, ProcessPoolExecutor)
    finally:
        await stage.close()


@pytest.mark.asyncio
async def test_overrunning_worker_process_is_terminated():
    stage = PdfExtractStage(timeout_seconds=0.5)
    stage._executor = ProcessPoolExecutor(
        max_workers=1, mp_context=multiprocessing.get_context("spawn"), initializer=time.sleep, initargs=(30,)
    )

    started = time.monotonic()
    link = await stage.process(_pdf_link())

    assert link.extracted_text is None
    assert stage._executor is None
    assert time.monotonic() - started < 10
    await stage.close()
