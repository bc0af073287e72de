# ABOUTME: PDF text extraction stage running pypdf in an isolated worker with a deadline
# ABOUTME: Crashes, exceptions and timeouts all degrade to "no extracted text"

import asyncio
import io
from concurrent.futures import Executor, ProcessPoolExecutor
from concurrent.futures.process import BrokenProcessPool

from pypdf import PdfReader

from linkdump.core.models import Link, utcnow
from linkdump.pipeline.base import Stage, StageKind
from linkdump.utils.logging import get_logger, log_stage


def extract_pdf_text(data: bytes) -> str:
    """Extract the text of every page. Runs inside the worker."""
    reader = PdfReader(io.BytesIO(data))
    return "\n".join(page.extract_text() or "" for page in reader.pages)


class PdfExtractStage(Stage):
    """Extract text from fetched PDFs once per link.

    Args:
        executor: Where extraction runs; defaults to a lazily created
            single-worker process pool owned by the stage
        timeout_seconds: Deadline for one document
    """

    kind = StageKind.EXTRACT
    name = "pdf"

    def __init__(self, executor: Executor | None = None, timeout_seconds: float = 30.0):
        self.timeout_seconds = timeout_seconds
        self.logger = get_logger(__name__)
        self._executor = executor
        self._owns_executor = executor is None

    @property
    def executor(self) -> Executor:
        if self._executor is None:
            self._executor = ProcessPoolExecutor(max_workers=1)
        return self._executor

    def _discard_executor(self) -> None:
        """Kill an owned pool whose worker crashed or overran its deadline."""
        if not self._owns_executor or self._executor is None:
            return

        executor, self._executor = self._executor, None
        if isinstance(executor, ProcessPoolExecutor):
            if hasattr(executor, "terminate_workers"):
                # Python 3.14+; also shuts the pool down.
                executor.terminate_workers()
                return
            # Older CPython only exposes live workers through the private ``_processes`` map.
            for process in list((getattr(executor, "_processes", None) or {}).values()):
                process.terminate()
        executor.shutdown(wait=False, cancel_futures=True)

    async def _extract(self, data: bytes, url: str) -> str | None:
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(self.executor, extract_pdf_text, data),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            self.logger.warning("PDF extraction timed out", url=url, timeout_seconds=self.timeout_seconds)
            self._discard_executor()
        except BrokenProcessPool as e:
            self.logger.warning("PDF extraction worker died", url=url, error=str(e))
            self._discard_executor()
        except Exception as e:
            self.logger.warning("PDF extraction failed", url=url, error=str(e), error_type=type(e).__name__)
        return None

    @log_stage("pdf")
    async def process(self, link: Link) -> Link:
        if link.last_processed is not None or link.src is None or not link.is_pdf:
            return link

        link.last_processed = utcnow()
        link.extracted_text = await self._extract(link.src, link.url)
        return link

    async def close(self) -> None:
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=True)
            self._executor = None
