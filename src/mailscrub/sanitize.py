"""Email HTML sanitization.

`sanitize()` is the public entry point: parse with a conformant HTML5
parser, run two passes over the tree, serialize.

1. Structural pass (pre-order): every node is kept, dropped with its
   subtree, or unwrapped (children spliced into its place and visited next).
2. Attribute pass (post-order): attributes are allow-listed, URL values are
   checked against their `UrlRule`, `style` values and `<style>` text go
   through the policy's CSS sanitizer, and links are hardened.

The whole step is repeated on its own output until it stops changing, so the
result is a fixed point: sanitizing it again returns it unchanged. Output
that has not settled after `MAX_SETTLE_PASSES` is discarded.

All behaviour comes from the `SanitizationPolicy` passed in; nothing is
registered globally, so concurrent calls never interfere.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from functools import partial
from typing import Any

from .darkmode import wrap_for_dark_mode as _wrap_for_dark_mode
from .node import SimpleDomNode, TextNode
from .parser import parse_html, parser_available
from .policy import DEFAULT_POLICY, URL_ATTRIBUTES, Decision, SanitizationPolicy, UrlRule
from .serialize import to_html

logger = logging.getLogger(__name__)

MAX_SETTLE_PASSES = 3

ReportCallback = Callable[..., None]


def sanitize(
    html: str | None,
    *,
    wrap_for_dark_mode: bool = False,
    policy: SanitizationPolicy = DEFAULT_POLICY,
    report: ReportCallback | None = None,
) -> str:
    """Return a safe rendering of untrusted email HTML.

    `report(msg, *, node=None)` is called for every removal or rewrite made
    for safety reasons. With `wrap_for_dark_mode`, the result is a full
    document carrying the dark-mode stylesheet.

    Never raises for bad input: if no trusted parser is installed, the
    output does not settle, or sanitization fails unexpectedly, the result
    is an empty string.
    """
    if not parser_available():
        logger.warning("No trusted HTML parser installed; returning empty output")
        return ""

    try:
        result = _settle(html or "", policy, report)
    except Exception:
        logger.exception("Sanitization failed; returning empty output")
        return ""

    if wrap_for_dark_mode:
        result = _wrap_for_dark_mode(result)
    return result


def _settle(html: str, policy: SanitizationPolicy, report: ReportCallback | None) -> str:
    current = html
    for passes in range(1, MAX_SETTLE_PASSES + 1):
        result = _sanitize_once(current, policy, report)
        if result == current:
            logger.debug("Sanitized %d characters in %d passes", len(html), passes)
            return result
        current = result
    logger.warning("Output still changing after %d passes; returning empty output", MAX_SETTLE_PASSES)
    return ""


def _sanitize_once(html: str, policy: SanitizationPolicy, report: ReportCallback | None) -> str:
    root = parse_html(html)
    sanitize_tree(root, policy=policy, report=report)
    return to_html(root)


def sanitize_tree(
    root: SimpleDomNode,
    *,
    policy: SanitizationPolicy = DEFAULT_POLICY,
    report: ReportCallback | None = None,
) -> None:
    """Sanitize a parsed tree in place."""
    _structural_pass(root, policy, report)
    _attribute_pass(root, policy, report)


# -----------------
# Structural pass
# -----------------


def _report(report: ReportCallback | None, msg: str, node: Any) -> None:
    if report is not None:
        report(msg, node=node)


def _decide(node: SimpleDomNode, policy: SanitizationPolicy, report: ReportCallback | None) -> Decision:
    name = node.name
    if name == "#text":
        return Decision.ALLOW
    if name == "#comment":
        if policy.drop_comments:
            _report(report, "Dropped comment", node)
            return Decision.DROP
        return Decision.ALLOW
    if name == "!doctype":
        return Decision.DROP if policy.drop_doctype else Decision.ALLOW
    if name in {"#document", "#document-fragment"}:
        return Decision.UNWRAP

    if node.namespace is not None and policy.drop_foreign_namespaces:
        _report(report, f"Dropped foreign element '{name}'", node)
        return Decision.DROP

    decision = policy.decide_element(name, node.attrs)
    if decision is Decision.DROP:
        _report(report, f"Unsafe tag '{name}' (dropped content)", node)
    elif decision is Decision.UNWRAP:
        _report(report, f"Unsafe tag '{name}' (not allowed)", node)
    return decision


def _structural_pass(root: SimpleDomNode, policy: SanitizationPolicy, report: ReportCallback | None) -> None:
    pending = [root]
    while pending:
        parent = pending.pop()
        queue = deque(parent.children)
        kept: list[SimpleDomNode] = []
        while queue:
            child = queue.popleft()
            decision = _decide(child, policy, report)
            if decision is Decision.DROP:
                continue
            if decision is Decision.UNWRAP:
                # Spliced children are visited next, in their original order.
                queue.extendleft(reversed(child.children))
                continue
            kept.append(child)
            if child.children:
                pending.append(child)
        parent.replace_children(kept)


# -----------------
# Attribute pass
# -----------------


def _srcset_permitted(rule: UrlRule, value: str) -> bool:
    candidates = [c.strip() for c in value.split(",")]
    urls = [c.split()[0] for c in candidates if c]
    return bool(urls) and all(rule.permits(url) for url in urls)


def _url_permitted(rule: UrlRule, attr: str, value: str) -> bool:
    if attr == "srcset":
        return _srcset_permitted(rule, value)
    return rule.permits(value)


def _sanitize_attributes(node: SimpleDomNode, policy: SanitizationPolicy, report: ReportCallback | None) -> None:
    tag = node.name
    out: dict[str, str | None] = {}
    for key, value in node.attrs.items():
        if not policy.is_attribute_allowed(tag, key):
            _report(report, f"Unsafe attribute '{key}'", node)
            continue

        if key in URL_ATTRIBUTES:
            rule = policy.url_rule_for(tag, key)
            if rule is None:
                _report(report, f"Unsafe URL in attribute '{key}' (no rule)", node)
                continue
            if value is None or not _url_permitted(rule, key, value):
                _report(report, f"Unsafe URL in attribute '{key}'", node)
                continue
        elif key == "style":
            cleaned = policy.css_sanitizer(value or "", report=_node_report(report, node))
            if not cleaned.strip():
                if value and value.strip():
                    _report(report, "Unsafe inline style in attribute 'style'", node)
                continue
            value = cleaned

        out[key] = value

    if tag in policy.hardened_link_tags:
        # Overwrite, never merge: the sender's target/rel are discarded.
        out.update(policy.link_attributes)

    node.attrs = out


def _node_report(report: ReportCallback | None, node: SimpleDomNode) -> ReportCallback | None:
    if report is None:
        return None
    return partial(report, node=node)


def _sanitize_style_element(node: SimpleDomNode, policy: SanitizationPolicy, report: ReportCallback | None) -> None:
    cleaned = policy.css_sanitizer(node.to_text(), report=_node_report(report, node))
    node.replace_children([TextNode(cleaned)] if cleaned else [])


def _attribute_pass(root: SimpleDomNode, policy: SanitizationPolicy, report: ReportCallback | None) -> None:
    for node in root.iter_elements_postorder():
        _sanitize_attributes(node, policy, report)
        if node.name == "style" and node.namespace is None:
            _sanitize_style_element(node, policy, report)
