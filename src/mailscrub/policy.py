"""Tag and attribute policy.

The policy is data: module-level tables describe which tags are kept, which
are dropped with their content, which attributes each tag may carry, and how
URL-valued attributes are checked. ``SanitizationPolicy`` freezes those
tables, validates them once at construction, and answers per-node questions
for the sanitizer.

Decisions:

- ALLOW: keep the element (its attributes are filtered later).
- DROP: remove the element and everything inside it.
- UNWRAP: remove the element but keep its children in its place.
  Every tag that is not explicitly listed is unwrapped.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Collection, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum

from .css import sanitize_css
from .uri import ALLOWED_SCHEMES, UriClass, classify, normalize_uri, scheme_of

POLICY_VERSION = "2024.2"

CssSanitizer = Callable[..., str]


class PolicyError(ValueError):
    """Raised when policy tables are inconsistent."""


class Decision(str, Enum):
    ALLOW = "allow"
    DROP = "drop"
    UNWRAP = "unwrap"


# -----------------
# Policy tables
# -----------------

DOCUMENT_TAGS = frozenset({"html", "head", "body", "title", "style", "link", "meta"})

ALLOWED_TAGS = DOCUMENT_TAGS | frozenset(
    {
        # Structure
        "div",
        "span",
        "p",
        "br",
        "hr",
        "center",
        "font",
        "address",
        "article",
        "aside",
        "footer",
        "header",
        "main",
        "nav",
        "section",
        "hgroup",
        "figure",
        "figcaption",
        "details",
        "summary",
        "marquee",
        # Headings
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        # Text formatting
        "b",
        "i",
        "u",
        "em",
        "strong",
        "small",
        "big",
        "sub",
        "sup",
        "s",
        "strike",
        "del",
        "ins",
        "mark",
        "tt",
        "nobr",
        "wbr",
        "bdi",
        "bdo",
        "time",
        # Quotes, code and definitions
        "blockquote",
        "q",
        "cite",
        "abbr",
        "acronym",
        "dfn",
        "code",
        "kbd",
        "samp",
        "var",
        "pre",
        # Lists
        "ul",
        "ol",
        "li",
        "dl",
        "dt",
        "dd",
        # Tables
        "table",
        "caption",
        "colgroup",
        "col",
        "thead",
        "tbody",
        "tfoot",
        "tr",
        "th",
        "td",
        # Links and media
        "a",
        "img",
        "picture",
        "source",
        "video",
        "audio",
        "track",
        "map",
        "area",
    }
)

DROP_CONTENT_TAGS = frozenset(
    {
        "script",
        "noscript",
        "iframe",
        "frame",
        "frameset",
        "noframes",
        "object",
        "embed",
        "applet",
        "param",
        "form",
        "input",
        "textarea",
        "select",
        "option",
        "optgroup",
        "datalist",
        "button",
        "keygen",
        "base",
        "template",
        "xmp",
        "plaintext",
        "noembed",
        "portal",
        "bgsound",
    }
)

GLOBAL_ATTRIBUTES = frozenset(
    {
        "id",
        "class",
        "style",
        "title",
        "dir",
        "lang",
        "align",
        "valign",
        "bgcolor",
        "width",
        "height",
        "border",
        "role",
        "hidden",
        "translate",
    }
)

ALLOWED_ATTRIBUTES: dict[str, frozenset[str]] = {
    "a": frozenset({"href", "name", "target", "rel", "hreflang", "type"}),
    "area": frozenset({"href", "alt", "shape", "coords", "target", "rel"}),
    "img": frozenset({"src", "srcset", "sizes", "alt", "hspace", "vspace", "usemap", "loading", "decoding"}),
    "picture": frozenset(),
    "source": frozenset({"src", "srcset", "sizes", "type", "media"}),
    "video": frozenset({"src", "poster", "controls", "loop", "muted", "preload", "playsinline"}),
    "audio": frozenset({"src", "controls", "loop", "muted", "preload"}),
    "track": frozenset({"src", "kind", "srclang", "label", "default"}),
    "map": frozenset({"name"}),
    "table": frozenset({"cellpadding", "cellspacing", "background", "frame", "rules", "summary", "bordercolor"}),
    "thead": frozenset({"char", "charoff"}),
    "tbody": frozenset({"char", "charoff"}),
    "tfoot": frozenset({"char", "charoff"}),
    "tr": frozenset({"background", "char", "charoff"}),
    "td": frozenset({"colspan", "rowspan", "nowrap", "background", "abbr", "scope", "headers", "axis", "char", "charoff"}),
    "th": frozenset({"colspan", "rowspan", "nowrap", "background", "abbr", "scope", "headers", "axis", "char", "charoff"}),
    "col": frozenset({"span", "char", "charoff"}),
    "colgroup": frozenset({"span", "char", "charoff"}),
    "font": frozenset({"face", "size", "color"}),
    "body": frozenset({"background", "text", "link", "vlink", "alink", "leftmargin", "topmargin", "marginwidth", "marginheight"}),
    "ol": frozenset({"start", "type", "reversed"}),
    "ul": frozenset({"type"}),
    "li": frozenset({"value", "type"}),
    "blockquote": frozenset({"cite"}),
    "q": frozenset({"cite"}),
    "del": frozenset({"cite", "datetime"}),
    "ins": frozenset({"cite", "datetime"}),
    "time": frozenset({"datetime"}),
    "hr": frozenset({"noshade", "size", "color"}),
    "pre": frozenset(),
    "details": frozenset({"open"}),
    "marquee": frozenset({"behavior", "direction", "scrollamount", "scrolldelay", "loop"}),
    "link": frozenset({"rel", "href", "type", "media"}),
    "meta": frozenset({"charset", "http-equiv", "name", "content"}),
    "style": frozenset({"type", "media"}),
}

# Attributes whose value is a URL (or a list of URLs, for srcset).
URL_ATTRIBUTES = frozenset(
    {
        "action",
        "background",
        "cite",
        "codebase",
        "data",
        "dynsrc",
        "formaction",
        "href",
        "icon",
        "longdesc",
        "lowsrc",
        "manifest",
        "ping",
        "poster",
        "profile",
        "src",
        "srcset",
        "usemap",
        "xlink:href",
    }
)

LINK_SCHEMES = frozenset({"http", "https", "mailto", "tel", "callto", "cid", "xmpp"})
IMAGE_SCHEMES = frozenset({"http", "https", "cid", "data"})
WEB_SCHEMES = frozenset({"http", "https"})

# Reserved for the dark-mode wrapper; never accepted from input.
RESERVED_ATTRIBUTES = frozenset({"data-mailscrub-dark-mode"})

LINK_HARDENING = {"target": "_blank", "rel": "noopener noreferrer"}

_DATA_OR_ARIA_RE = re.compile(r"(?:data|aria)-[a-z0-9_.\-]+")
_ARIA_RE = re.compile(r"aria-[a-z0-9_.\-]+")

META_HTTP_EQUIV = frozenset({"content-type", "x-ua-compatible"})
META_NAMES = frozenset({"viewport"})


@dataclass(frozen=True, slots=True)
class UrlRule:
    """Rule for a single URL-valued attribute (e.g. a[href], img[src])."""

    # Absolute URLs must use one of these schemes (lowercase). ``data`` is
    # only honoured for image payloads.
    allowed_schemes: Collection[str] = field(default_factory=lambda: ALLOWED_SCHEMES)

    # Relative URLs (/path, ./path, ?query).
    allow_relative: bool = True

    # Same-document fragments (#foo).
    allow_fragment: bool = True

    # Protocol-relative URLs (//example.com).
    allow_protocol_relative: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.allowed_schemes, frozenset):
            object.__setattr__(self, "allowed_schemes", frozenset(s.lower() for s in self.allowed_schemes))

    def permits(self, value: str) -> bool:
        url = normalize_uri(value)
        if not url:
            return self.allow_relative
        try:
            scheme = scheme_of(url)
        except ValueError:
            return False
        if scheme is None:
            if url.startswith("#"):
                return self.allow_fragment
            if url.startswith(("//", "\\\\", "/\\", "\\/")):
                return self.allow_protocol_relative
            return self.allow_relative
        return classify(url, allowed_schemes=self.allowed_schemes) is UriClass.SAFE


_IMAGE_RULE = UrlRule(allowed_schemes=IMAGE_SCHEMES)
_WEB_RULE = UrlRule(allowed_schemes=WEB_SCHEMES)

URL_RULES: dict[tuple[str, str], UrlRule] = {
    ("a", "href"): UrlRule(allowed_schemes=LINK_SCHEMES),
    ("area", "href"): UrlRule(allowed_schemes=LINK_SCHEMES),
    ("img", "src"): _IMAGE_RULE,
    ("img", "srcset"): _IMAGE_RULE,
    ("img", "usemap"): UrlRule(allowed_schemes=(), allow_relative=False, allow_protocol_relative=False),
    ("source", "src"): _IMAGE_RULE,
    ("source", "srcset"): _IMAGE_RULE,
    ("video", "src"): _WEB_RULE,
    ("video", "poster"): _IMAGE_RULE,
    ("audio", "src"): _WEB_RULE,
    ("track", "src"): _WEB_RULE,
    ("table", "background"): _IMAGE_RULE,
    ("tr", "background"): _IMAGE_RULE,
    ("td", "background"): _IMAGE_RULE,
    ("th", "background"): _IMAGE_RULE,
    ("body", "background"): _IMAGE_RULE,
    ("link", "href"): _WEB_RULE,
    ("blockquote", "cite"): _WEB_RULE,
    ("q", "cite"): _WEB_RULE,
    ("del", "cite"): _WEB_RULE,
    ("ins", "cite"): _WEB_RULE,
}


@dataclass(frozen=True, slots=True)
class SanitizationPolicy:
    """An allow-list driven policy for sanitizing a parsed email document.

    - Tags in `allowed_tags` are kept, tags in `drop_content_tags` are removed
      with their content, every other tag is unwrapped.
    - Attributes not in `allowed_attributes[tag]` (or
      `allowed_attributes["*"]`) are dropped.
    - URL checks apply to attributes listed in `url_rules`; a URL attribute
      without a rule for its tag is dropped.

    All tag and attribute names are expected to be ASCII-lowercase.
    """

    allowed_tags: Collection[str] = ALLOWED_TAGS
    drop_content_tags: Collection[str] = DROP_CONTENT_TAGS
    allowed_attributes: Mapping[str, Collection[str]] = field(
        default_factory=lambda: {"*": GLOBAL_ATTRIBUTES, **ALLOWED_ATTRIBUTES}
    )
    url_rules: Mapping[tuple[str, str], UrlRule] = field(default_factory=lambda: dict(URL_RULES))

    drop_comments: bool = True
    drop_doctype: bool = False
    drop_foreign_namespaces: bool = True

    allow_aria_attributes: bool = True
    allow_data_attributes: bool = True

    # Behaviour threaded through every sanitize call instead of global hooks.
    css_sanitizer: CssSanitizer = sanitize_css
    link_attributes: Mapping[str, str] = field(default_factory=lambda: dict(LINK_HARDENING))
    hardened_link_tags: Collection[str] = frozenset({"a", "area"})

    version: str = POLICY_VERSION

    def __post_init__(self) -> None:
        # Normalize to frozensets so lookups are fast and the policy is immutable.
        for name in ("allowed_tags", "drop_content_tags", "hardened_link_tags"):
            value = getattr(self, name)
            if not isinstance(value, frozenset):
                object.__setattr__(self, name, frozenset(value))

        normalized_attrs = {str(tag): frozenset(attrs) for tag, attrs in self.allowed_attributes.items()}
        object.__setattr__(self, "allowed_attributes", normalized_attrs)
        object.__setattr__(self, "url_rules", dict(self.url_rules))
        object.__setattr__(self, "link_attributes", dict(self.link_attributes))
        self._validate()

    def _validate(self) -> None:
        overlap = self.allowed_tags & self.drop_content_tags
        if overlap:
            raise PolicyError(f"Tags both allowed and dropped: {sorted(overlap)}")

        for tag, attrs in self.allowed_attributes.items():
            handlers = sorted(a for a in attrs if a.startswith("on"))
            if handlers:
                raise PolicyError(f"Event handler attributes allowed on '{tag}': {handlers}")
            reserved = sorted(attrs & RESERVED_ATTRIBUTES)
            if reserved:
                raise PolicyError(f"Reserved attributes allowed on '{tag}': {reserved}")

        for tag, attr in self.url_rules:
            if attr not in URL_ATTRIBUTES:
                raise PolicyError(f"URL rule for non-URL attribute '{tag}[{attr}]'")

        for attr in self.link_attributes:
            if attr.startswith("on") or attr in URL_ATTRIBUTES:
                raise PolicyError(f"Link hardening may not set '{attr}'")

    def with_changes(self, **changes: object) -> SanitizationPolicy:
        """Return a validated copy of this policy with some fields replaced."""
        return replace(self, **changes)

    def decide(self, tag: str) -> Decision:
        if tag in self.drop_content_tags:
            return Decision.DROP
        if tag in self.allowed_tags:
            return Decision.ALLOW
        return Decision.UNWRAP

    def decide_element(self, tag: str, attrs: Mapping[str, str | None]) -> Decision:
        decision = self.decide(tag)
        if decision is not Decision.ALLOW:
            return decision
        if tag == "link":
            return Decision.ALLOW if _is_stylesheet_link(attrs) else Decision.DROP
        if tag == "meta":
            return Decision.ALLOW if _is_harmless_meta(attrs) else Decision.DROP
        return decision

    def is_attribute_allowed(self, tag: str, attr: str) -> bool:
        if attr.startswith("on") or attr in RESERVED_ATTRIBUTES:
            return False
        if attr in self.allowed_attributes.get("*", ()) or attr in self.allowed_attributes.get(tag, ()):
            return True
        if self.allow_aria_attributes and _ARIA_RE.fullmatch(attr):
            return True
        return self.allow_data_attributes and attr.startswith("data-") and _DATA_OR_ARIA_RE.fullmatch(attr) is not None

    def url_rule_for(self, tag: str, attr: str) -> UrlRule | None:
        return self.url_rules.get((tag, attr))


def _attr_token(attrs: Mapping[str, str | None], name: str) -> str | None:
    value = attrs.get(name)
    if value is None:
        return None
    return value.strip().lower()


def _is_stylesheet_link(attrs: Mapping[str, str | None]) -> bool:
    return _attr_token(attrs, "rel") == "stylesheet"


def _is_harmless_meta(attrs: Mapping[str, str | None]) -> bool:
    http_equiv = _attr_token(attrs, "http-equiv")
    if http_equiv is not None:
        return http_equiv in META_HTTP_EQUIV
    if "charset" in attrs:
        return True
    return _attr_token(attrs, "name") in META_NAMES


DEFAULT_POLICY: SanitizationPolicy = SanitizationPolicy()
