"""Text normalization utilities for scraped listing markup."""

_NBSP_ENTITY = "&nbsp;"


def strip_spaces(value):
    """Remove every space, including literal and decoded ``&nbsp;`` entities."""
    if not isinstance(value, str):
        return ""
    text = value.replace(_NBSP_ENTITY, "").replace("\xa0", "")
    return text.replace(" ", "").strip()
