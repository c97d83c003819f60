# --- Log sanitizer: keeps Woo/Britpart error pages out of the logs ---------------
import logging, re

_HTML_SIG_RE = re.compile(r'(?is)<!DOCTYPE html|<html[^>]*>')
_TITLE_RE    = re.compile(r'(?is)<title[^>]*>(.*?)</title>')
_TAG_RE      = re.compile(r'(?is)<[^>]+>')
_SCRIPT_RE   = re.compile(r'(?is)<(script|style)[^>]*>.*?</\1>')

MAX_LOG_CHARS = 2000


def _strip_tags(s: str) -> str:
    s = _SCRIPT_RE.sub('', s)
    s = _TAG_RE.sub(' ', s)
    return re.sub(r'\s+', ' ', s).strip()


def summarize_html(s: str, limit: int = 200) -> str:
    title = None
    m = _TITLE_RE.search(s)
    if m:
        title = _strip_tags(m.group(1))
    preview = title or _strip_tags(s)[:limit]
    return f"{preview} [HTML {len(s)} chars trimmed]"


def truncate_body(text: str | None, limit: int = 300) -> str:
    """Short, log/sample-friendly version of an upstream response body."""
    s = text or ""
    if _HTML_SIG_RE.search(s):
        return summarize_html(s, limit)
    return s if len(s) <= limit else s[:limit] + "…"


class HtmlTrimFilter(logging.Filter):
    """Replace HTML blobs with a summary and cap over-long messages."""
    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = record.getMessage()
        except Exception:
            return True
        if isinstance(msg, str) and len(msg) > 200 and _HTML_SIG_RE.search(msg):
            record.msg = summarize_html(msg)
            record.args = ()
        elif isinstance(msg, str) and len(msg) > MAX_LOG_CHARS:
            record.msg = msg[:MAX_LOG_CHARS] + f" [{len(msg) - MAX_LOG_CHARS} chars trimmed]"
            record.args = ()
        return True


def install_log_filters() -> None:
    # root + uvicorn family; adding the same filter instance twice is a no-op
    for _name in ("", "uvicorn", "uvicorn.error"):
        logging.getLogger(_name).addFilter(_FILTER)


_FILTER = HtmlTrimFilter()
# --------------------------------------------------------------------------------
