"""HTML5 constants used by the parser adapter and the serializer.

References:
    - https://html.spec.whatwg.org/multipage/syntax.html#void-elements
    - https://html.spec.whatwg.org/multipage/parsing.html#serialising-html-fragments
"""

# Elements that never have an end tag or children.
VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "basefont",
        "bgsound",
        "br",
        "col",
        "embed",
        "frame",
        "hr",
        "img",
        "input",
        "keygen",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)

# Elements whose text children are serialized verbatim (no entity escaping).
LITERAL_TEXT_ELEMENTS = frozenset(
    {
        "iframe",
        "noembed",
        "noframes",
        "plaintext",
        "script",
        "style",
        "xmp",
    }
)

# Namespace URIs reported by the parser, mapped to the short names used on nodes.
NAMESPACE_NAMES = {
    "http://www.w3.org/1999/xhtml": None,
    "http://www.w3.org/2000/svg": "svg",
    "http://www.w3.org/1998/Math/MathML": "math",
}

# Markers that make an input a full document rather than a body fragment.
DOCUMENT_SHELL_TAGS = ("!doctype", "html", "head", "body")

# The parser drops one newline directly after these start tags, so the
# serializer writes an extra one when the content starts with a newline.
NEWLINE_STRIPPING_ELEMENTS = frozenset({"listing", "pre", "textarea"})
