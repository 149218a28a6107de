"""Page-range processing: render, upload, extract, report, persist.

A session job renders every requested page concurrently, then extracts the
pages one at a time in ascending order through a single Extractor, so the
conversation sees the pages in reading order. Progress is written to the
session store after every page. Whatever rows have been extracted are
persisted even when the job fails part way.

The one-shot ``sheetify`` batch runs each page with its own Extractor, so
pages can be extracted concurrently; its rows are sorted before they are
stored. ``to_markdown`` transcribes pages to free-form markdown instead of
rows.
"""

import asyncio
import json
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from .config import Config
from .exceptions import InvalidPageRangeError, RemoteCallError, RenderError
from .extractor import Extractor
from .memory import Turn
from .modes import Mode, Row
from .prompts import MARKDOWN_PROMPT
from .progress import ProgressPublisher, ProgressRecord, Stage
from .providers.base import InferenceProvider
from .renderers.base import ImageRef, Renderer
from .retry import RetryingCaller
from .sheets import SheetAssembler, SheetFile, batch_key, session_key
from .store import SessionStore
from .utils import new_id

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressRecord], None]
ScanCallback = Callable[[int, int], Awaitable[None]]


def percent(done: int, total: int) -> int:
    if total <= 0:
        return 0
    return (done * 100) // total


def strip_fence(text: str) -> str:
    """Remove a markdown code fence the model may add anyway."""
    text = text.strip()
    if text.startswith("```") and text.endswith("```"):
        lines = text.splitlines()[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        return "\n".join(lines).strip()
    return text


class DocumentProcessor:
    """Drive extraction over a page range of one document."""

    def __init__(
        self, config: Config, provider: InferenceProvider, store: SessionStore
    ) -> None:
        """Initialize the processor.

        Args:
            config: Configuration object containing processing parameters
            provider: Inference provider used for uploads and generation
            store: Session store receiving progress records and sheet files
        """
        self.config = config
        self.provider = provider
        self.store = store
        self.caller = RetryingCaller(config.max_retries, config.retry_delay)
        self.progress = ProgressPublisher(store, config.session_ttl)
        self.assembler = SheetAssembler(store)

    def create_extractor(self, mode: Mode) -> Extractor:
        return Extractor(
            mode,
            self.provider,
            self.caller,
            self.config.memory_limit(mode.memory_limit_key),
        )

    @staticmethod
    def page_range(renderer: Renderer, start: int, end: int) -> List[int]:
        """Validate a 1-based inclusive range against the document.

        Raises:
            InvalidPageRangeError: If the range is empty or out of bounds
        """
        if start < 1 or end < start or end > renderer.page_count:
            raise InvalidPageRangeError(
                f"Invalid page range {start}-{end}. "
                f"The document has {renderer.page_count} pages."
            )
        return list(range(start, end + 1))

    async def scan_page(self, renderer: Renderer, page_number: int) -> ImageRef:
        image = await renderer.render(page_number)
        return await self.caller.call(self.provider.upload, image, "image/png")

    async def scan_pages(
        self,
        renderer: Renderer,
        pages: List[int],
        on_scanned: Optional[ScanCallback] = None,
    ) -> Dict[int, ImageRef]:
        """Render and upload all pages concurrently.

        Pages that fail to render are logged and left out of the result.
        Any other failure is re-raised once every page has settled.

        Returns:
            Uploaded image references keyed by page number
        """
        images: Dict[int, ImageRef] = {}
        done = 0

        async def scan(page_number: int) -> None:
            nonlocal done
            try:
                images[page_number] = await self.scan_page(renderer, page_number)
            except RenderError as e:
                logger.error(f"Skipping page {page_number}: {e}")
            done += 1
            if on_scanned:
                await on_scanned(page_number, done)

        results = await asyncio.gather(
            *(scan(page) for page in pages), return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

        logger.info(f"Scanned {len(images)} of {len(pages)} pages")
        return images

    async def _publish(
        self,
        session_id: str,
        record: ProgressRecord,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        await self.progress.set_progress(session_id, record)
        if progress_callback:
            progress_callback(record)

    async def process_range(
        self,
        session_id: str,
        renderer: Renderer,
        filename: str,
        start: int,
        end: int,
        mode: Mode,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> SheetFile:
        """Extract pages ``start``..``end`` for a session and persist the sheet.

        Args:
            session_id: Session whose progress record is updated
            renderer: Renderer for the uploaded document
            filename: Source filename stored with the sheet
            start: First page (1-based, inclusive)
            end: Last page (inclusive)
            mode: Extraction mode
            progress_callback: Optional callback receiving every progress record

        Returns:
            The persisted sheet file

        Raises:
            InvalidPageRangeError: If the range does not fit the document
        """
        pages = self.page_range(renderer, start, end)
        total = len(pages)
        extractor = self.create_extractor(mode)
        key = session_key(session_id)

        await self._publish(
            session_id,
            ProgressRecord(stage=Stage.IDLE, cursor=start, progress=0, details=[]),
            progress_callback,
        )

        async def on_scanned(page_number: int, done: int) -> None:
            await self._publish(
                session_id,
                ProgressRecord(
                    stage=Stage.SCANNING,
                    cursor=page_number,
                    progress=percent(done, total),
                    details="",
                ),
                progress_callback,
            )

        try:
            images = await self.scan_pages(renderer, pages, on_scanned)

            for done, page_number in enumerate(pages, start=1):
                image = images.get(page_number)
                rows: List[Row] = []
                if image is not None:
                    rows = await extractor.extract(page_number, image)

                details = json.dumps(
                    [mode.record(row) for row in rows], ensure_ascii=False
                )
                await self._publish(
                    session_id,
                    ProgressRecord(
                        stage=Stage.EXTRACTING,
                        cursor=page_number,
                        progress=percent(done, total),
                        details=details,
                    ),
                    progress_callback,
                )
        except Exception:
            logger.exception(
                f"Session {session_id} failed after {len(extractor.sheet)} rows; "
                "saving partial sheet"
            )
            await self.assembler.finalize(
                key, filename, mode.name, extractor.sheet, self.config.session_ttl
            )
            raise

        return await self.assembler.finalize(
            key, filename, mode.name, extractor.sheet, self.config.session_ttl
        )

    async def sheetify(
        self,
        renderer: Renderer,
        filename: str,
        mode: Mode,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> Tuple[str, SheetFile]:
        """Extract a page range in one shot and store it under a new sheet id.

        Pages are extracted concurrently, each without cross-page context.
        Pages whose extraction raises are logged and contribute no rows.

        Returns:
            The new sheet id and the persisted sheet file
        """
        pages = self.page_range(renderer, start or 1, end or renderer.page_count)
        images = await self.scan_pages(renderer, pages)

        semaphore = asyncio.Semaphore(self.config.concurrent_requests)
        sheet: List[Row] = []

        async def extract_with_semaphore(page_number: int) -> List[Row]:
            async with semaphore:
                extractor = self.create_extractor(mode)
                rows = await extractor.extract(page_number, images[page_number])
                sheet.extend(rows)
                return rows

        targets = [page for page in pages if page in images]
        results = await asyncio.gather(
            *(extract_with_semaphore(page) for page in targets),
            return_exceptions=True,
        )
        for page_number, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.error(f"Page {page_number} failed: {result}")

        sheet_id = new_id()
        sheet_file = await self.assembler.finalize(
            batch_key(sheet_id),
            filename,
            mode.name,
            sheet,
            self.config.batch_ttl,
            sort=True,
        )
        return sheet_id, sheet_file

    async def to_markdown(
        self,
        renderer: Renderer,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> List[str]:
        """Transcribe each page of a range to markdown.

        Pages are transcribed one at a time, each on its own. A page that
        fails to render or to transcribe yields an empty string.

        Returns:
            One markdown string per requested page, in page order
        """
        pages = self.page_range(renderer, start or 1, end or renderer.page_count)
        images = await self.scan_pages(renderer, pages)

        markdown: List[str] = []
        for page_number in pages:
            image = images.get(page_number)
            if image is None:
                markdown.append("")
                continue
            try:
                text = await self.caller.call(
                    self.provider.complete, MARKDOWN_PROMPT, [Turn.user(image)]
                )
            except RemoteCallError as e:
                logger.error(f"Markdown conversion failed for page {page_number}: {e}")
                text = ""
            markdown.append(strip_fence(text))

        logger.info(f"Converted {len(pages)} pages to markdown")
        return markdown
