"""Document tree used by the sanitizer.

The tree is deliberately small: the parser adapter builds it, the sanitizer
mutates it in place, and the serializer turns it back into a string. Nodes
are identified by ``name``:

- ``#document`` / ``#document-fragment`` for containers
- ``#text`` and ``#comment`` for character data (payload in ``data``)
- ``!doctype`` for the document type (payload is a :class:`Doctype`)
- the ASCII-lowercase tag name for elements
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

CONTAINER_NAMES = frozenset({"#document", "#document-fragment"})


class Doctype:
    __slots__ = ("name", "public_id", "system_id")

    def __init__(self, name: str | None = None, public_id: str | None = None, system_id: str | None = None) -> None:
        self.name = name
        self.public_id = public_id
        self.system_id = system_id

    def __repr__(self) -> str:
        return f"Doctype({self.name!r}, public_id={self.public_id!r}, system_id={self.system_id!r})"


class SimpleDomNode:
    """A DOM-like node.

    - name: tag name, or one of the ``#``-prefixed node kinds
    - attrs: ordered mapping of attribute name to value (elements only)
    - data: text for text/comment nodes, a Doctype for doctype nodes
    - namespace: None for HTML, "svg" or "math" for foreign elements
    - children / parent: ownership links
    """

    __slots__ = ("attrs", "children", "data", "name", "namespace", "parent")

    def __init__(
        self,
        name: str,
        attrs: dict[str, str | None] | None = None,
        data: Any = None,
        namespace: str | None = None,
    ) -> None:
        if not name:
            msg = "Empty node name passed to SimpleDomNode"
            raise ValueError(msg)

        self.name = name
        self.namespace = namespace
        self.data = data
        self.parent: SimpleDomNode | None = None
        self.children: list[SimpleDomNode] = []
        if attrs:
            # Lowercase names; a later duplicate replaces an earlier one.
            self.attrs: dict[str, str | None] = {str(k).lower(): v for k, v in attrs.items()}
        else:
            self.attrs = {}

    @property
    def is_element(self) -> bool:
        return not self.name.startswith("#") and self.name != "!doctype"

    @property
    def is_foreign(self) -> bool:
        return self.namespace in ("svg", "math")

    def append_child(self, child: SimpleDomNode) -> None:
        if child.parent is not None:
            child.parent.remove_child(child)
        child.parent = self
        self.children.append(child)

    def remove_child(self, child: SimpleDomNode) -> None:
        if child.parent is not self:
            return
        self.children.remove(child)
        child.parent = None

    def insert_before(self, new_node: SimpleDomNode, reference_node: SimpleDomNode | None) -> None:
        if reference_node is None:
            self.append_child(new_node)
            return
        if reference_node.parent is not self:
            msg = "Reference node is not a child of this node"
            raise ValueError(msg)
        if new_node.parent is not None:
            new_node.parent.remove_child(new_node)
        idx = self.children.index(reference_node)
        new_node.parent = self
        self.children.insert(idx, new_node)

    def replace_children(self, children: Iterable[SimpleDomNode]) -> None:
        """Replace the child list wholesale, re-parenting every node."""
        new_children = list(children)
        for child in self.children:
            child.parent = None
        for child in new_children:
            child.parent = self
        self.children = new_children

    def set_attribute(self, name: str, value: str | None) -> None:
        self.attrs[name.lower()] = value

    def get_attribute(self, name: str) -> str | None:
        return self.attrs.get(name.lower())

    def iter_descendants(self) -> Iterator[SimpleDomNode]:
        """Yield descendants in document (pre-) order without recursion."""
        stack = list(reversed(self.children))
        while stack:
            node = stack.pop()
            yield node
            if node.children:
                stack.extend(reversed(node.children))

    def iter_elements_postorder(self) -> Iterator[SimpleDomNode]:
        """Yield descendant elements children-first, without recursion."""
        stack: list[tuple[SimpleDomNode, bool]] = [(child, False) for child in reversed(self.children)]
        while stack:
            node, expanded = stack.pop()
            if expanded:
                yield node
                continue
            if not node.is_element:
                continue
            stack.append((node, True))
            stack.extend((child, False) for child in reversed(node.children))

    def to_text(self) -> str:
        if self.name == "#text":
            return self.data or ""
        return "".join(node.data or "" for node in self.iter_descendants() if node.name == "#text")

    def __repr__(self) -> str:
        if self.name == "#text":
            return f"TextNode({(self.data or '')[:30]!r})"
        if self.name == "#comment":
            return f"CommentNode({(self.data or '')[:30]!r})"
        return f"<{self.name}> children={len(self.children)}"


class ElementNode(SimpleDomNode):
    __slots__ = ()

    def __init__(self, name: str, attrs: dict[str, str | None] | None = None, namespace: str | None = None) -> None:
        super().__init__(name.lower() if namespace is None else name, attrs=attrs, namespace=namespace)


class TextNode(SimpleDomNode):
    __slots__ = ()

    def __init__(self, data: str) -> None:
        super().__init__("#text", data=data)


class CommentNode(SimpleDomNode):
    __slots__ = ()

    def __init__(self, data: str) -> None:
        super().__init__("#comment", data=data)


class DoctypeNode(SimpleDomNode):
    __slots__ = ()

    def __init__(self, doctype: Doctype) -> None:
        super().__init__("!doctype", data=doctype)
