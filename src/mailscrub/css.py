"""CSS sanitization for ``<style>`` text and ``style`` attributes.

The CSS is tokenized with tinycss2 (CSS Syntax Level 3), so escapes such as
``\\65xpression(`` or ``@\\69mport`` are decoded before any check runs.
Matches are replaced with a placeholder comment and the surrounding tokens
are serialized back unchanged.

Three passes, in this order:

1. URL validation: ``url(...)``/``src("...")`` references must be
   schemeless or use an image-safe scheme.
2. Construct removal: ``@import`` rules, ``expression()`` and the
   binding/behavior/link properties.
3. Markup hardening: no ``<`` survives, so the text can never close the
   ``<style>`` element it is serialized into. Strings and URLs cut off at
   the end of input are closed or removed, so the output tokenizes the same
   way again.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import tinycss2
import tinycss2.ast
from tinycss2.serializer import serialize_url

from .uri import UriClass, classify

logger = logging.getLogger(__name__)

ReportCallback = Callable[..., None]

PLACEHOLDER_TEXT = " removed "

CSS_URL_SCHEMES: frozenset[str] = frozenset({"http", "https", "cid", "data"})

URL_FUNCTIONS: frozenset[str] = frozenset({"url", "src"})

DANGEROUS_FUNCTIONS: frozenset[str] = frozenset({"expression"})

DANGEROUS_AT_RULES: frozenset[str] = frozenset({"import"})

DANGEROUS_PROPERTIES: frozenset[str] = frozenset(
    {
        "-moz-binding",
        "behavior",
        "-ms-behavior",
        "-o-link",
        "-o-link-source",
    }
)

_BLOCK_TYPES = frozenset({"() block", "[] block", "{} block"})
_INSIGNIFICANT_TYPES = frozenset({"whitespace", "comment"})


def _placeholder(token: tinycss2.ast.Node) -> tinycss2.ast.Comment:
    return tinycss2.ast.Comment(token.source_line, token.source_column, PLACEHOLDER_TEXT)


def _is_literal(token: tinycss2.ast.Node, value: str) -> bool:
    return token.type == "literal" and token.value == value


def is_safe_css_url(url: str) -> bool:
    return classify(url, allowed_schemes=CSS_URL_SCHEMES) is UriClass.SAFE


def _function_url(token: tinycss2.ast.FunctionBlock) -> str | None:
    args = [arg for arg in token.arguments if arg.type not in _INSIGNIFICANT_TYPES]
    if len(args) == 1 and args[0].type == "string":
        return args[0].value
    return None


def _check_urls(nodes: list, report: ReportCallback | None) -> list:
    out = []
    for token in nodes:
        kind = token.type
        if kind == "url":
            if not is_safe_css_url(token.value):
                if report is not None:
                    report("Unsafe CSS: url() with a disallowed scheme")
                token = _placeholder(token)
        elif kind == "function":
            if token.lower_name in URL_FUNCTIONS:
                url = _function_url(token)
                if url is None or not is_safe_css_url(url):
                    if report is not None:
                        report(f"Unsafe CSS: {token.lower_name}() with a disallowed or unreadable URL")
                    token = _placeholder(token)
            else:
                token.arguments = _check_urls(token.arguments, report)
        elif kind in _BLOCK_TYPES:
            token.content = _check_urls(token.content, report)
        elif kind == "error":
            if report is not None:
                report(f"Unsafe CSS: parse error ({token.kind})")
            token = _placeholder(token)
        out.append(token)
    return out


def _next_significant(nodes: list, start: int) -> int | None:
    for idx in range(start, len(nodes)):
        if nodes[idx].type not in _INSIGNIFICANT_TYPES:
            return idx
    return None


def _skip_rule(nodes: list, start: int) -> int:
    """Index just past the end of an at-rule statement starting at ``start``."""
    idx = start
    while idx < len(nodes):
        token = nodes[idx]
        if _is_literal(token, ";") or token.type == "{} block":
            return idx + 1
        idx += 1
    return idx


def _skip_declaration(nodes: list, start: int) -> int:
    """Index just past a declaration value; a following ``{}`` block is kept."""
    idx = start
    while idx < len(nodes):
        token = nodes[idx]
        if _is_literal(token, ";"):
            return idx + 1
        if token.type == "{} block":
            return idx
        idx += 1
    return idx


def _strip_constructs(nodes: list, report: ReportCallback | None) -> list:
    out = []
    idx = 0
    while idx < len(nodes):
        token = nodes[idx]
        kind = token.type
        if kind == "at-keyword" and token.lower_value in DANGEROUS_AT_RULES:
            if report is not None:
                report(f"Unsafe CSS: @{token.lower_value} rule")
            out.append(_placeholder(token))
            idx = _skip_rule(nodes, idx + 1)
            continue
        if kind == "ident" and token.lower_value in DANGEROUS_PROPERTIES:
            following = _next_significant(nodes, idx + 1)
            if following is not None and _is_literal(nodes[following], ":"):
                if report is not None:
                    report(f"Unsafe CSS: {token.lower_value} property")
                out.append(_placeholder(token))
                idx = _skip_declaration(nodes, idx + 1)
                continue
        elif kind == "ident" and token.lower_value in DANGEROUS_FUNCTIONS:
            # Legacy IE also reads `expression (...)` and `expression/**/(...)`.
            following = _next_significant(nodes, idx + 1)
            if following is not None and nodes[following].type == "() block":
                if report is not None:
                    report(f"Unsafe CSS: {token.lower_value}()")
                out.append(_placeholder(token))
                idx = following + 1
                continue
        elif kind == "function":
            if token.lower_name in DANGEROUS_FUNCTIONS:
                if report is not None:
                    report(f"Unsafe CSS: {token.lower_name}()")
                out.append(_placeholder(token))
                idx += 1
                continue
            token.arguments = _strip_constructs(token.arguments, report)
        elif kind in _BLOCK_TYPES:
            token.content = _strip_constructs(token.content, report)
        out.append(token)
        idx += 1
    return out


def _quote_css_string(value: str) -> str:
    parts = ['"']
    for ch in value:
        if ch == '"':
            parts.append('\\"')
        elif ch == "\\":
            parts.append("\\\\")
        elif ch == "<":
            parts.append("\\3c ")
        elif ch == "\n":
            parts.append("\\a ")
        elif ch == "\r":
            parts.append("\\d ")
        elif ch == "\f":
            parts.append("\\c ")
        else:
            parts.append(ch)
    parts.append('"')
    return "".join(parts)


def _harden_markup(nodes: list) -> list:
    out = []
    for token in nodes:
        kind = token.type
        if kind == "function":
            if "<" in token.name:
                token = _placeholder(token)
            else:
                token.arguments = _harden_markup(token.arguments)
        elif kind in _BLOCK_TYPES:
            token.content = _harden_markup(token.content)
        elif kind == "string":
            # Always re-quoted: strings cut off at EOF get their closing quote.
            token = tinycss2.ast.StringToken(
                token.source_line,
                token.source_column,
                token.value,
                _quote_css_string(token.value),
            )
        elif kind == "url" and token.representation != f"url({serialize_url(token.value)})":
            # Cut off at EOF.
            token = _placeholder(token)
        elif "<" in tinycss2.serialize([token]):
            token = _placeholder(token)
        out.append(token)
    return out


def sanitize_css(css: str, *, report: ReportCallback | None = None) -> str:
    """Return ``css`` with unsafe URLs and constructs replaced by a comment."""
    if not css:
        return ""
    try:
        nodes = tinycss2.parse_component_value_list(css, skip_comments=False)
        nodes = _check_urls(nodes, report)
        nodes = _strip_constructs(nodes, report)
        nodes = _harden_markup(nodes)
        return tinycss2.serialize(nodes)
    except RecursionError:
        logger.debug("CSS nesting too deep, dropping %d characters of CSS", len(css))
        if report is not None:
            report("Unsafe CSS: nesting too deep")
        return ""
