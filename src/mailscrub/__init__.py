import logging

from .css import sanitize_css
from .darkmode import DARK_MODE_MARKER, DARK_MODE_STYLE, wrap_for_dark_mode
from .parser import parse_html, parser_available
from .policy import DEFAULT_POLICY, Decision, PolicyError, SanitizationPolicy, UrlRule
from .sanitize import sanitize, sanitize_tree
from .serialize import to_html
from .uri import UriClass, classify, is_safe_uri

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "DARK_MODE_MARKER",
    "DARK_MODE_STYLE",
    "DEFAULT_POLICY",
    "Decision",
    "PolicyError",
    "SanitizationPolicy",
    "UriClass",
    "UrlRule",
    "classify",
    "is_safe_uri",
    "parse_html",
    "parser_available",
    "sanitize",
    "sanitize_css",
    "sanitize_tree",
    "to_html",
    "wrap_for_dark_mode",
]
