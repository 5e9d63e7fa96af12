"""Cookie session shared by every page fetch, mirrored to a small text file.

The listing site rotates its session cookies as an anti-scraping challenge:
a response that carries ``Set-Cookie`` headers has to be re-requested with
the merged cookie. The last known cookie survives restarts through the
cookie file.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, Union

from utils.reporting import redact_cookies

LOGGER = logging.getLogger(__name__)

COOKIE_SEPARATOR = "; "


def parse_cookie_string(cookie: str) -> Dict[str, str]:
    """Split a ``name=value; name=value`` header into an ordered mapping."""
    pairs: Dict[str, str] = {}
    if not cookie:
        return pairs
    for segment in cookie.split(COOKIE_SEPARATOR):
        parts = segment.split("=", 1)
        if len(parts) == 2:
            pairs[parts[0]] = parts[1]
    return pairs


def serialize_cookies(pairs: Dict[str, str]) -> str:
    return COOKIE_SEPARATOR.join(f"{name}={value}" for name, value in pairs.items() if value)


class SessionState:
    def __init__(self, cookie_file: Union[str, Path], default_cookie: str):
        self.cookie_file = Path(cookie_file)
        self.default_cookie = default_cookie
        self._cookie = default_cookie

    def load(self) -> str:
        try:
            if self.cookie_file.exists():
                saved = self.cookie_file.read_text(encoding="utf-8").strip()
                if saved:
                    self._cookie = saved
                    LOGGER.info("Loaded cookie from %s: %s", self.cookie_file, redact_cookies(saved))
            else:
                LOGGER.info("Cookie file %s not found, using default cookie", self.cookie_file)
        except Exception:
            LOGGER.warning("Failed to load cookie file %s, using default cookie", self.cookie_file, exc_info=True)
        return self._cookie

    def current(self) -> str:
        return self._cookie

    def merge(self, set_cookie_headers: Iterable[str]) -> bool:
        """Fold ``Set-Cookie`` headers into the session. Returns whether any were present."""
        headers = [header for header in set_cookie_headers if header is not None]
        if not headers:
            return False

        pairs = parse_cookie_string(self._cookie)
        for header in headers:
            cookie_pair = header.split(";")[0]
            parts = cookie_pair.split("=", 1)
            name = parts[0]
            value = parts[1] if len(parts) > 1 else ""
            pairs[name] = value

        self._cookie = serialize_cookies(pairs)
        LOGGER.info("Updated session cookie: %s", redact_cookies(self._cookie))
        self.save()
        return True

    def save(self) -> None:
        try:
            self.cookie_file.parent.mkdir(parents=True, exist_ok=True)
            temp_path = self.cookie_file.with_suffix(self.cookie_file.suffix + ".tmp")
            temp_path.write_text(self._cookie, encoding="utf-8")
            temp_path.replace(self.cookie_file)
            LOGGER.debug("Saved session cookie to %s", self.cookie_file)
        except Exception:
            LOGGER.warning("Failed to save cookie file %s", self.cookie_file, exc_info=True)
