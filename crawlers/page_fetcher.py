import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

import aiohttp
from bs4 import BeautifulSoup
from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt

import config
from .session_state import SessionState

LOGGER = logging.getLogger(__name__)

OUTCOME_OK = "ok"
OUTCOME_CHALLENGE = "challenge"
OUTCOME_RETRY = "retry"
OUTCOME_BLOCKED = "blocked"


class PageFetchError(Exception):
    def __init__(self, page: int, attempts: int, last_error: Optional[BaseException] = None):
        reason = f"{type(last_error).__name__}: {last_error}" if last_error else "session challenge not resolved"
        super().__init__(f"Failed to fetch listing page {page} after {attempts} attempts ({reason})")
        self.page = page
        self.attempts = attempts
        self.last_error = last_error


@dataclass
class FetchAttempt:
    """Result of a single GET for one listing page."""

    outcome: str
    document: Optional[BeautifulSoup] = None
    error: Optional[BaseException] = None
    http_status: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.outcome == OUTCOME_OK


def is_upstream_block(exc: BaseException) -> bool:
    """The server hung up before sending a usable header block."""
    return isinstance(exc, aiohttp.ServerDisconnectedError)


class PageFetcher:
    def __init__(
        self,
        session_state: SessionState,
        *,
        base_url: str = config.NOVEL_BASE_URL,
        timeout_seconds: float = config.NOVEL_HTTP_TIMEOUT_SECONDS,
        user_agent: str = config.CRAWLER_HEADERS['User-Agent'],
        max_attempts: int = config.NOVEL_FETCH_MAX_ATTEMPTS,
        initial_retry_delay: float = config.NOVEL_RETRY_INITIAL_DELAY_SECONDS,
        block_cooldown: float = config.NOVEL_BLOCK_COOLDOWN_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session_state = session_state
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self.max_attempts = max(1, int(max_attempts))
        self.initial_retry_delay = initial_retry_delay
        self.block_cooldown = block_cooldown
        self._sleep = sleep

    def page_url(self, page: int) -> str:
        return f"{self.base_url}/html/{page}.html"

    def build_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Referer": self.base_url,
            "Cookie": self.session_state.current(),
        }

    def open_session(self) -> aiohttp.ClientSession:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        return aiohttp.ClientSession(timeout=timeout)

    async def fetch_attempt(self, session: aiohttp.ClientSession, page: int) -> FetchAttempt:
        url = self.page_url(page)
        LOGGER.info("Fetching listing page %s %s", page, url)
        try:
            async with session.get(url, headers=self.build_headers()) as response:
                set_cookies = response.headers.getall("Set-Cookie", [])
                if self.session_state.merge(set_cookies):
                    return FetchAttempt(OUTCOME_CHALLENGE, http_status=response.status)
                body = await response.read()
                http_status = response.status
        except Exception as exc:
            if is_upstream_block(exc):
                return FetchAttempt(OUTCOME_BLOCKED, error=exc)
            return FetchAttempt(OUTCOME_RETRY, error=exc)

        try:
            document = BeautifulSoup(body, "lxml")
        except Exception as exc:
            return FetchAttempt(OUTCOME_RETRY, error=exc, http_status=http_status)
        return FetchAttempt(OUTCOME_OK, document=document, http_status=http_status)

    def backoff_delay(self, failures: int) -> float:
        """Delay after the ``failures``-th plain failure of one page: 5s, 10s, 20s..."""
        return self.initial_retry_delay * 2 ** (failures - 1)

    def _make_wait(self):
        # Challenges and blocks do not advance the exponential backoff.
        failures = 0

        def wait(retry_state) -> float:
            nonlocal failures
            attempt = retry_state.outcome.result()
            if attempt.outcome == OUTCOME_CHALLENGE:
                return 0
            if attempt.outcome == OUTCOME_BLOCKED:
                return self.block_cooldown
            failures += 1
            return self.backoff_delay(failures)

        return wait

    def _log_retry(self, retry_state) -> None:
        attempt = retry_state.outcome.result()
        page = retry_state.args[1] if len(retry_state.args) > 1 else None
        if attempt.outcome == OUTCOME_CHALLENGE:
            LOGGER.info(
                "Session challenge on page %s (attempt %s/%s), retrying with merged cookie",
                page,
                retry_state.attempt_number,
                self.max_attempts,
            )
            return
        LOGGER.warning(
            "Failed to fetch page %s (attempt %s/%s, %s): %s; sleeping %.1fs",
            page,
            retry_state.attempt_number,
            self.max_attempts,
            attempt.outcome,
            attempt.error,
            retry_state.next_action.sleep,
        )

    async def fetch(self, session: aiohttp.ClientSession, page: int) -> BeautifulSoup:
        """Fetch and parse one listing page, raising ``PageFetchError`` once attempts run out."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._make_wait(),
            retry=retry_if_result(lambda attempt: not attempt.ok),
            before_sleep=self._log_retry,
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
            sleep=self._sleep,
        )
        result = await retrying(self.fetch_attempt, session, page)
        if result.ok:
            return result.document

        LOGGER.warning(
            "Giving up on page %s after %s attempts (%s): %s",
            page,
            self.max_attempts,
            result.outcome,
            result.error,
        )
        raise PageFetchError(page, self.max_attempts, result.error)
