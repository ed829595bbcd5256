"""Trusted HTML parsing.

Structure is never guessed with regular expressions: the input is run
through html5lib, which implements the WHATWG tree-construction algorithm,
so malformed markup becomes exactly the tree a browser would build. The
resulting DOM is copied into :mod:`mailscrub.node` nodes.

A new parser instance is created for every call, so parsing shares no
mutable state between threads.
"""

from __future__ import annotations

import logging
import re
from xml.dom import Node as DomNode

from .constants import DOCUMENT_SHELL_TAGS, NAMESPACE_NAMES
from .node import CommentNode, Doctype, DoctypeNode, ElementNode, SimpleDomNode, TextNode

try:
    import html5lib
except ImportError:  # pragma: no cover - exercised only in broken installs
    html5lib = None

logger = logging.getLogger(__name__)

_DOCUMENT_MARKUP_RE = re.compile(
    r"<(?:" + "|".join(re.escape(tag) for tag in DOCUMENT_SHELL_TAGS) + r")(?=[\s/>])",
    re.IGNORECASE,
)


class ParserUnavailableError(RuntimeError):
    """Raised when no trusted HTML parser is installed."""


def parser_available() -> bool:
    return html5lib is not None


def looks_like_document(html: str) -> bool:
    """True when ``html`` carries document-level markup (doctype/html/head/body)."""
    return _DOCUMENT_MARKUP_RE.search(html) is not None


def parse_html(html: str, *, document: bool | None = None) -> SimpleDomNode:
    """Parse ``html`` into a ``#document`` or ``#document-fragment`` tree.

    When ``document`` is None the mode is picked with :func:`looks_like_document`.
    Fragments are parsed in the context of a ``<div>``.
    """
    if html5lib is None:
        raise ParserUnavailableError("html5lib is not installed")

    if document is None:
        document = looks_like_document(html)

    parser = html5lib.HTMLParser(tree=html5lib.getTreeBuilder("dom"), namespaceHTMLElements=False)
    if document:
        dom = parser.parse(html)
        root = SimpleDomNode("#document")
    else:
        dom = parser.parseFragment(html, container="div")
        root = SimpleDomNode("#document-fragment")

    _copy_children(dom, root)
    logger.debug("Parsed %s with %d top-level nodes", root.name, len(root.children))
    return root


def _convert(dom_node: DomNode) -> SimpleDomNode | None:
    node_type = dom_node.nodeType
    if node_type == DomNode.ELEMENT_NODE:
        namespace = NAMESPACE_NAMES.get(dom_node.namespaceURI, dom_node.namespaceURI)
        attrs = dict(dom_node.attributes.items()) if dom_node.attributes else None
        return ElementNode(dom_node.tagName, attrs, namespace=namespace)
    if node_type in (DomNode.TEXT_NODE, DomNode.CDATA_SECTION_NODE):
        return TextNode(dom_node.data)
    if node_type == DomNode.COMMENT_NODE:
        return CommentNode(dom_node.data)
    if node_type == DomNode.DOCUMENT_TYPE_NODE:
        return DoctypeNode(Doctype(dom_node.name, dom_node.publicId, dom_node.systemId))
    return None


def _copy_children(dom_parent: DomNode, parent: SimpleDomNode) -> None:
    # Iterative so deeply nested documents cannot exhaust the call stack.
    stack = [(dom_parent, parent)]
    while stack:
        source, target = stack.pop()
        for dom_child in source.childNodes:
            child = _convert(dom_child)
            if child is None:
                continue
            target.append_child(child)
            if dom_child.childNodes:
                stack.append((dom_child, child))
