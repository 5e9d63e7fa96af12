import asyncio
import logging
import random
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

import config
from database import create_standalone_connection
from repositories.novels_repo import NovelStore
from services.novel_parser import parse_novel_list
from utils.reporting import append_error
from utils.time import now_cst_naive
from .page_fetcher import PageFetchError, PageFetcher
from .session_state import SessionState

LOGGER = logging.getLogger(__name__)

STOP_COMPLETED = "completed"
STOP_EMPTY_PAGE = "empty_page"
STOP_TOO_MANY_ERRORS = "too_many_errors"
STOP_ERROR = "error"


@dataclass
class CrawlReport:
    start_page: int
    pages_requested: int
    pages_fetched: int = 0
    pages_failed: int = 0
    novels_saved: int = 0
    novels_failed: int = 0
    items_skipped: int = 0
    stopped_reason: Optional[str] = None
    errors: List[Dict[str, Any]] = field(default_factory=list)
    started_at: Optional[str] = None
    finished_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class NovelCrawler:
    """
    Drives a range of listing pages through the fetcher and parser and
    upserts every parsed novel. At most one run is active per process.
    """

    DISPLAY_NAME = "Novel Listing"

    def __init__(
        self,
        fetcher: PageFetcher,
        store_factory: Callable[[], Any],
        *,
        base_url: str = config.NOVEL_BASE_URL,
        default_pages: int = config.NOVEL_MAX_PAGES,
        max_errors: int = config.NOVEL_MAX_ERRORS,
        delay_seconds: float = config.NOVEL_CRAWL_DELAY_SECONDS,
        per_page_delay_seconds: float = config.NOVEL_CRAWL_DELAY_PER_PAGE_SECONDS,
        jitter_seconds: float = config.NOVEL_CRAWL_DELAY_JITTER_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = now_cst_naive,
    ):
        self.fetcher = fetcher
        self.store_factory = store_factory
        self.base_url = base_url.rstrip("/")
        self.default_pages = default_pages
        self.max_errors = max_errors
        self.delay_seconds = delay_seconds
        self.per_page_delay_seconds = per_page_delay_seconds
        self.jitter_seconds = jitter_seconds
        self._sleep = sleep
        self._clock = clock
        self._running = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="novel-crawl")
        self.last_report: Optional[CrawlReport] = None

    def is_running(self) -> bool:
        return self._running.locked()

    def start(self, start_page: int = 0, pages: Optional[int] = None) -> Optional[Future]:
        """
        Launch a crawl on the background worker and return its future right away.

        Returns ``None`` without queueing anything when a run is already active.
        """
        pages = self.default_pages if pages is None else pages
        if not self._running.acquire(blocking=False):
            LOGGER.info("Crawl already running, skipping start_page=%s pages=%s", start_page, pages)
            return None
        try:
            return self._executor.submit(self._run_and_release, start_page, pages)
        except Exception:
            self._running.release()
            raise

    def start_scheduled(self) -> Optional[Future]:
        if self.is_running():
            LOGGER.info("Scheduled crawl skipped, a crawl is already running")
            return None
        return self.start(0, self.default_pages)

    def _run_and_release(self, start_page: int, pages: int) -> CrawlReport:
        try:
            return asyncio.run(self.crawl_pages(start_page, pages))
        except Exception:
            LOGGER.error("Crawl run aborted by an unexpected error", exc_info=True)
            raise
        finally:
            self._running.release()
            LOGGER.info("Crawl finished, running flag reset")

    def pacing_delay(self, page: int) -> float:
        jitter = random.uniform(0, self.jitter_seconds) if self.jitter_seconds > 0 else 0.0
        return self.delay_seconds + page * self.per_page_delay_seconds + jitter

    async def crawl_pages(self, start_page: int, pages: int) -> CrawlReport:
        report = CrawlReport(start_page=start_page, pages_requested=pages)
        report.started_at = self._clock().isoformat()
        error_count = 0
        last_page = start_page + pages
        LOGGER.info("Starting %s crawl of pages %s..%s", self.DISPLAY_NAME, start_page + 1, last_page)

        store = None
        try:
            store = self.store_factory()
            async with self.fetcher.open_session() as session:
                for page in range(start_page + 1, last_page + 1):
                    try:
                        document = await self.fetcher.fetch(session, page)
                    except PageFetchError as exc:
                        error_count += 1
                        report.pages_failed += 1
                        append_error(report.errors, "PAGE_FETCH_FAILED", str(exc), {"page": page})
                        LOGGER.error("Skipping page %s: %s", page, exc)
                        if error_count > self.max_errors:
                            report.stopped_reason = STOP_TOO_MANY_ERRORS
                            LOGGER.warning("Stopping crawl, %s consecutive fetch failures", error_count)
                            break
                    else:
                        novels, skipped = parse_novel_list(document, base_url=self.base_url, now=self._clock())
                        report.pages_fetched += 1
                        report.items_skipped += skipped
                        saved = self._save_page(store, page, novels, report)
                        LOGGER.info(
                            "Page %s done, saved %s/%s novels (%s skipped)", page, saved, len(novels), skipped
                        )

                        if not novels:
                            report.stopped_reason = STOP_EMPTY_PAGE
                            LOGGER.info("Page %s has no novels, stopping crawl", page)
                            break
                        error_count = 0

                    if page < last_page:
                        await self._sleep(self.pacing_delay(page))
        except Exception as exc:
            report.stopped_reason = STOP_ERROR
            append_error(report.errors, "CRAWL_ABORTED", f"{type(exc).__name__}: {exc}")
            raise
        finally:
            if store is not None:
                store.close()
            report.finished_at = self._clock().isoformat()
            self.last_report = report

        report.stopped_reason = report.stopped_reason or STOP_COMPLETED
        LOGGER.info(
            "Crawl done: %s pages fetched, %s failed, %s novels saved, %s save failures, stopped_reason=%s",
            report.pages_fetched,
            report.pages_failed,
            report.novels_saved,
            report.novels_failed,
            report.stopped_reason,
        )
        return report

    def _save_page(self, store, page: int, novels, report: CrawlReport) -> int:
        saved = 0
        for novel in novels:
            try:
                store.upsert(novel)
            except Exception as exc:
                report.novels_failed += 1
                append_error(
                    report.errors,
                    "NOVEL_SAVE_FAILED",
                    f"{type(exc).__name__}: {exc}",
                    {"page": page, "novel_id": novel.id},
                )
                LOGGER.error("Failed to save novel %s from page %s", novel.id, page, exc_info=True)
                continue
            saved += 1
            report.novels_saved += 1
        return saved


def build_default_crawler() -> NovelCrawler:
    session_state = SessionState(config.NOVEL_COOKIE_FILE, config.NOVEL_DEFAULT_COOKIE)
    session_state.load()
    fetcher = PageFetcher(session_state)
    return NovelCrawler(fetcher, lambda: NovelStore(create_standalone_connection()))
