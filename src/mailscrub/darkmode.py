"""Dark-mode wrapping for sanitized email HTML.

The wrapper only ever sees sanitizer output, where every ``<`` starts a real
tag, so locating ``<html>``/``<head>`` with a regular expression is exact
here. It must never be applied to raw input.

The injected stylesheet is trusted, static text: it is not passed through
the CSS sanitizer, and its marker attribute is reserved (the sanitizer
strips it from input), which makes repeated wrapping a no-op.
"""

from __future__ import annotations

import re

DARK_MODE_MARKER = "data-mailscrub-dark-mode"

_STYLE_OPEN = f'<style {DARK_MODE_MARKER}="">'

DARK_MODE_CSS = """
* { box-sizing: border-box; }
html, body {
    margin: 0;
    padding: 0;
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif;
    font-size: 14px;
    line-height: 1.5;
    overflow-x: hidden;
}
body {
    padding: 16px;
    background: transparent;
}
@media (prefers-color-scheme: dark) {
    html { color-scheme: dark; }
    body { color: #e4e4e7; }
    img { opacity: 0.95; }
    table, div, td, th { background-color: inherit !important; }
    body, p, div, span, td, th, li, a { color: #d4d4d8 !important; }
    a { color: #60a5fa !important; }
    [bgcolor] { background-color: #18181b !important; }
    [style*="background:#fff"],
    [style*="background: #fff"],
    [style*="background:#FFF"],
    [style*="background: #FFF"],
    [style*="background:white"],
    [style*="background: white"],
    [style*="background-color:#fff"],
    [style*="background-color: #fff"],
    [style*="background-color:#FFF"],
    [style*="background-color: #FFF"],
    [style*="background-color:white"],
    [style*="background-color: white"],
    [style*="background:#ffffff"],
    [style*="background: #ffffff"],
    [style*="background-color:#ffffff"],
    [style*="background-color: #ffffff"] {
        background-color: #18181b !important;
    }
}
table { border-collapse: collapse; max-width: 100%; }
img { max-width: 100%; height: auto; }
a { color: #3b82f6; word-break: break-word; }
pre, code {
    font-family: 'SF Mono', Consolas, 'Liberation Mono', Menlo, monospace;
    font-size: 13px;
}
blockquote {
    margin: 0.5em 0;
    padding-left: 1em;
    border-left: 3px solid #3b82f6;
}
"""

DARK_MODE_STYLE = f"{_STYLE_OPEN}{DARK_MODE_CSS}</style>"

_DOCUMENT_HEAD = (
    '<meta charset="utf-8">'
    '<meta name="viewport" content="width=device-width, initial-scale=1">'
    f"{DARK_MODE_STYLE}"
)

_HEAD_OPEN_RE = re.compile(r"<head(?=[\s/>])[^>]*>", re.IGNORECASE)
_HTML_OPEN_RE = re.compile(r"<html(?=[\s/>])[^>]*>", re.IGNORECASE)
_DOCTYPE_RE = re.compile(r"\s*<!doctype", re.IGNORECASE)
# In sanitizer output every `<!--` opens a comment and the first `-->` closes it.
_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)


def _blank_comments(html: str) -> str:
    """Return `html` with comments replaced by spaces, keeping offsets."""
    return _COMMENT_RE.sub(lambda m: " " * len(m.group()), html)


def has_dark_mode_style(html: str) -> bool:
    return _STYLE_OPEN in _blank_comments(html)


def wrap_for_dark_mode(sanitized_html: str) -> str:
    """Inject the dark-mode stylesheet into already-sanitized HTML.

    Full documents get the stylesheet at the start of ``<head>`` (a head is
    synthesized after ``<html>`` when missing); fragments are wrapped in a
    minimal document. The result always starts with a doctype.
    """
    html = sanitized_html or ""
    markup = _blank_comments(html)
    if _STYLE_OPEN not in markup:
        head = _HEAD_OPEN_RE.search(markup)
        if head is not None:
            html = f"{html[: head.end()]}{DARK_MODE_STYLE}{html[head.end() :]}"
        else:
            root = _HTML_OPEN_RE.search(markup)
            if root is not None:
                html = f"{html[: root.end()]}<head>{DARK_MODE_STYLE}</head>{html[root.end() :]}"
            else:
                html = f"<!DOCTYPE html><html><head>{_DOCUMENT_HEAD}</head><body>{html}</body></html>"

    if not _DOCTYPE_RE.match(html):
        html = f"<!DOCTYPE html>{html}"
    return html
