"""URI scheme classification.

A URI is classified purely by its scheme. Relative references (paths,
queries, fragments, protocol-relative ``//host`` URLs) carry no scheme and
are safe; absolute URIs are safe only when their scheme is allow-listed.
``data:`` is only ever safe for ``image/*`` payloads.
"""

from __future__ import annotations

import re
from collections.abc import Collection
from enum import Enum

ALLOWED_SCHEMES: frozenset[str] = frozenset({"http", "https", "mailto", "tel", "callto", "cid", "xmpp", "data"})

# Always unsafe, whatever a caller passes as allowed_schemes.
DENIED_SCHEMES: frozenset[str] = frozenset({"javascript", "vbscript", "livescript"})

_SCHEME_RE = re.compile(r"[a-zA-Z][a-zA-Z0-9+.\-]*")
_SCHEME_START_RE = re.compile(r"[a-zA-Z]")
_IMAGE_MEDIA_TYPE_RE = re.compile(r"image/[a-z0-9!#$&^_.+\-]+")

# Browsers drop ASCII tab and newlines anywhere in a URL and strip C0 controls
# and spaces from both ends before looking for a scheme.
_URL_STRIP_CHARS = "".join(chr(i) for i in range(0x21))
_URL_REMOVE_TABLE = str.maketrans("", "", "\t\n\r")


class UriClass(str, Enum):
    SAFE = "safe"
    UNSAFE = "unsafe"


def normalize_uri(uri: str) -> str:
    return uri.translate(_URL_REMOVE_TABLE).strip(_URL_STRIP_CHARS)


def scheme_of(uri: str) -> str | None:
    """Return the lowercase scheme of ``uri``, or None for relative references.

    Like a browser, a prefix that does not start with an ASCII letter is
    read as a relative path (``2024:report.png``). Raises ValueError when
    the prefix starts like a scheme but is not one (e.g.
    ``java\\x00script:``).
    """
    value = normalize_uri(uri)
    colon = value.find(":")
    if colon == -1:
        return None
    prefix = value[:colon]
    if not _SCHEME_START_RE.match(prefix):
        return None
    if "/" in prefix or "?" in prefix or "#" in prefix:
        return None
    if not _SCHEME_RE.fullmatch(prefix):
        raise ValueError(f"Malformed URI scheme: {prefix!r}")
    return prefix.lower()


def is_image_data_uri(uri: str) -> bool:
    value = normalize_uri(uri)
    if value[:5].lower() != "data:":
        return False
    payload = value[5:]
    end = len(payload)
    for sep in (";", ","):
        idx = payload.find(sep)
        if idx != -1 and idx < end:
            end = idx
    media_type = payload[:end].strip().lower()
    return _IMAGE_MEDIA_TYPE_RE.fullmatch(media_type) is not None


def classify(uri: str, *, allowed_schemes: Collection[str] = ALLOWED_SCHEMES) -> UriClass:
    """Classify ``uri`` as SAFE or UNSAFE by scheme."""
    try:
        scheme = scheme_of(uri)
    except ValueError:
        return UriClass.UNSAFE

    if scheme is None:
        return UriClass.SAFE
    if scheme in DENIED_SCHEMES:
        return UriClass.UNSAFE
    if scheme == "data":
        if "data" in allowed_schemes and is_image_data_uri(uri):
            return UriClass.SAFE
        return UriClass.UNSAFE
    if scheme in allowed_schemes:
        return UriClass.SAFE
    return UriClass.UNSAFE


def is_safe_uri(uri: str, *, allowed_schemes: Collection[str] = ALLOWED_SCHEMES) -> bool:
    return classify(uri, allowed_schemes=allowed_schemes) is UriClass.SAFE
