"""HTML serialization for sanitized trees.

Output is compact (no pretty-printing) so text and whitespace survive
exactly. Attribute values always use double quotes and escape ``&``, ``<``,
``>`` and ``"``, so the only ``<`` characters in the output start real tags
(``<style>`` text is made ``<``-free by the CSS sanitizer).
"""

from __future__ import annotations

from typing import Any

from .constants import LITERAL_TEXT_ELEMENTS, NEWLINE_STRIPPING_ELEMENTS, VOID_ELEMENTS


def _escape_text(text: str | None) -> str:
    if not text:
        return ""
    return str(text).replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _escape_attr_value(value: str | None) -> str:
    if value is None:
        return ""
    return (
        str(value)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def serialize_start_tag(name: str, attrs: dict[str, str | None] | None) -> str:
    parts: list[str] = ["<", name]
    if attrs:
        for key, value in attrs.items():
            parts.extend([" ", key, '="', _escape_attr_value(value), '"'])
    parts.append(">")
    return "".join(parts)


def serialize_end_tag(name: str) -> str:
    return f"</{name}>"


def serialize_doctype(doctype: Any) -> str:
    name = (doctype.name if doctype is not None else None) or "html"
    public_id = doctype.public_id if doctype is not None else None
    system_id = doctype.system_id if doctype is not None else None

    parts = [f"<!DOCTYPE {name}"]
    if public_id:
        parts.append(f" PUBLIC {_quote_doctype_id(public_id)}")
        if system_id:
            parts.append(f" {_quote_doctype_id(system_id)}")
    elif system_id:
        parts.append(f" SYSTEM {_quote_doctype_id(system_id)}")
    parts.append(">")
    return "".join(parts)


def _quote_doctype_id(value: str) -> str:
    # Identifiers come from the tokenizer, which never lets both quote kinds in.
    if '"' in value:
        return f"'{value}'"
    return f'"{value}"'


def to_html(node: Any) -> str:
    """Convert a node (usually a #document or #document-fragment) to HTML."""
    parts: list[str] = []
    _node_to_html(node, parts, in_literal=False)
    return "".join(parts)


def _node_to_html(node: Any, parts: list[str], *, in_literal: bool) -> None:
    name: str = node.name

    if name == "#text":
        parts.append((node.data or "") if in_literal else _escape_text(node.data))
        return

    if name == "#comment":
        parts.append(f"<!--{node.data or ''}-->")
        return

    if name == "!doctype":
        parts.append(serialize_doctype(node.data))
        return

    if name in {"#document", "#document-fragment"}:
        for child in node.children:
            _node_to_html(child, parts, in_literal=in_literal)
        return

    parts.append(serialize_start_tag(name, node.attrs))
    if name in VOID_ELEMENTS and node.namespace is None:
        return

    if node.namespace is None and name in NEWLINE_STRIPPING_ELEMENTS and node.children:
        first = node.children[0]
        if first.name == "#text" and first.data and first.data.startswith("\n"):
            parts.append("\n")

    literal = node.namespace is None and name in LITERAL_TEXT_ELEMENTS
    for child in node.children:
        _node_to_html(child, parts, in_literal=literal)
    parts.append(serialize_end_tag(name))
