import datetime
from typing import Any, Dict, List, Optional


def now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def redact_cookies(cookie_header: Optional[str]) -> Dict[str, Any]:
    """Describe a cookie header by its names only so values never reach logs."""
    result: Dict[str, Any] = {"has_cookie_header": bool(cookie_header)}
    if not cookie_header:
        result["cookie_count"] = 0
        result["cookie_names"] = []
        return result

    cookie_names: List[str] = []
    for segment in cookie_header.split(";"):
        name = segment.split("=", 1)[0].strip()
        if name:
            cookie_names.append(name)
    result["cookie_count"] = len(cookie_names)
    result["cookie_names"] = cookie_names[:10]
    return result


def append_error(
    errors: List[Dict[str, Any]],
    code: str,
    message: str,
    context: Optional[Dict[str, Any]] = None,
    max_errors: int = 50,
) -> None:
    entry = {
        "ts": now_iso(),
        "code": code,
        "message": message,
    }
    if context:
        entry["context"] = context
    errors.append(entry)
    if len(errors) > max_errors:
        del errors[: len(errors) - max_errors]
