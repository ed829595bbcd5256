#!/usr/bin/env python3
"""
Throughput benchmark for mailscrub.
Sanitizes generated newsletter-style emails (or .html files from a directory)
and compares the full pipeline against parsing alone.
"""

# ruff: noqa: BLE001
from __future__ import annotations

import argparse
import pathlib
import random
import sys
import time

from mailscrub import sanitize
from mailscrub.parser import parse_html

NEWSLETTER_ROW = (
    '<tr><td align="left" valign="top" style="padding:12px 24px;font-family:Arial,sans-serif;color:#333333">'
    '<h2 style="margin:0 0 8px;font-size:18px">{title}</h2>'
    '<p style="margin:0;line-height:1.5">{body} <a href="https://example.com/{slug}?utm_source=mail" '
    'onclick="track({n})" target="_self">Read more</a></p>'
    '<img src="https://cdn.example.com/{slug}.png" width="552" alt="" style="display:block;border:0" '
    'onerror="fallback(this)"></td></tr>'
)

NEWSLETTER_HEAD = (
    "<!DOCTYPE html><html><head>"
    '<meta http-equiv="Content-Type" content="text/html; charset=utf-8">'
    '<meta name="viewport" content="width=device-width, initial-scale=1">'
    "<title>{title}</title>"
    "<style>@import url(https://fonts.example.com/css?family=Inter);"
    "body{{margin:0;background:#f4f4f4 url(https://cdn.example.com/bg.png)}}"
    "@media (max-width:600px){{.container{{width:100% !important}}td{{display:block}}}}"
    ".tracker{{background:url(javascript:void(0))}}</style>"
    "<script>window.track=function(){{}}</script>"
    "</head><body>"
    '<center><table class="container" width="600" cellpadding="0" cellspacing="0" bgcolor="#ffffff">'
)

NEWSLETTER_TAIL = (
    "</table></center>"
    '<img src="https://t.example.com/open.gif?id={n}" width="1" height="1">'
    "<!-- tracking pixel -->"
    "</body></html>"
)


def random_words(rng: random.Random, count: int) -> str:
    words = ["offer", "update", "news", "release", "event", "sale", "weekly", "digest", "team", "product"]
    return " ".join(rng.choice(words) for _ in range(count))


def generate_email(rng: random.Random, n: int) -> str:
    rows = "".join(
        NEWSLETTER_ROW.format(title=random_words(rng, 4), body=random_words(rng, 40), slug=f"item-{n}-{i}", n=i)
        for i in range(rng.randint(3, 15))
    )
    return NEWSLETTER_HEAD.format(title=random_words(rng, 3)) + rows + NEWSLETTER_TAIL.format(n=n)


def generate_emails(count: int, seed: int) -> list[tuple[str, str]]:
    rng = random.Random(seed)
    return [(f"generated-{i}.html", generate_email(rng, i)) for i in range(count)]


def load_emails(directory: pathlib.Path, limit: int | None) -> list[tuple[str, str]]:
    files = sorted(directory.glob("*.htm*"))
    if limit:
        files = files[:limit]
    return [(path.name, path.read_text(encoding="utf-8", errors="replace")) for path in files]


def _run(fn, html_files: list, iterations: int) -> dict:
    all_times = []
    errors = 0
    error_files = []
    if html_files:
        # Warm up imports and caches
        fn(html_files[0][1])
    for _ in range(iterations):
        for filename, html in html_files:
            try:
                start = time.perf_counter()
                fn(html)
                all_times.append(time.perf_counter() - start)
            except Exception as e:
                errors += 1
                error_files.append((filename, str(e)))
    return {
        "total_time": sum(all_times),
        "mean_time": sum(all_times) / len(all_times) if all_times else 0,
        "min_time": min(all_times) if all_times else 0,
        "max_time": max(all_times) if all_times else 0,
        "errors": errors,
        "success_count": len(all_times),
        "error_files": error_files,
    }


def benchmark_parse(html_files: list, iterations: int = 1) -> dict:
    """Parsing only (html5lib tree construction plus node conversion)."""
    return _run(parse_html, html_files, iterations)


def benchmark_sanitize(html_files: list, iterations: int = 1) -> dict:
    """Full sanitize pipeline, including the fixed-point check."""
    return _run(sanitize, html_files, iterations)


def benchmark_sanitize_dark_mode(html_files: list, iterations: int = 1) -> dict:
    """Full sanitize pipeline plus dark-mode wrapping."""
    return _run(lambda html: sanitize(html, wrap_for_dark_mode=True), html_files, iterations)


BENCHMARKS = {
    "parse": benchmark_parse,
    "sanitize": benchmark_sanitize,
    "sanitize+dark": benchmark_sanitize_dark_mode,
}


def print_results(results: dict, file_count: int, total_bytes: int, iterations: int = 1):
    """Pretty print benchmark results."""
    print("\n" + "=" * 80)
    if iterations > 1:
        print(f"BENCHMARK RESULTS ({file_count} emails x {iterations} iterations)")
    else:
        print(f"BENCHMARK RESULTS ({file_count} emails)")
    print("=" * 80)

    print(f"\n{'Stage':<15} {'Total (s)':<10} {'Mean (ms)':<10} {'Max (ms)':<10} {'MB/s':<8} {'Errors':<8}")
    print("-" * 80)

    parse_time = results.get("parse", {}).get("total_time", 0)
    for name, result in results.items():
        total = result["total_time"]
        throughput = (total_bytes * iterations / 1024 / 1024) / total if total > 0 else 0
        overhead = ""
        if name != "parse" and parse_time > 0:
            overhead = f" ({total / parse_time:.2f}x parse)"
        print(
            f"{name:<15} {total:<10.3f} {result['mean_time'] * 1000:<10.3f} "
            f"{result['max_time'] * 1000:<10.3f} {throughput:<8.2f} {result['errors']:<8}{overhead}",
        )

    print("\n" + "=" * 80)
    for name, result in results.items():
        error_files = result.get("error_files", [])
        if error_files:
            print(f"\n{name} errors ({len(error_files)}):")
            for filename, error in error_files[:5]:
                print(f"  {filename}: {error}")


def main():
    parser = argparse.ArgumentParser(description="Benchmark mailscrub on email bodies")
    parser.add_argument("--dir", type=pathlib.Path, help="Directory of .html email bodies (default: generated emails)")
    parser.add_argument(
        "--limit", type=int, default=200, help="Number of emails to test (default: 200, use 0 for all in --dir)",
    )
    parser.add_argument(
        "--iterations", type=int, default=3, help="Number of iterations to run for averaging (default: 3)",
    )
    parser.add_argument("--seed", type=int, default=0, help="Seed for generated emails (default: 0)")
    parser.add_argument(
        "--stages",
        nargs="+",
        choices=list(BENCHMARKS),
        default=list(BENCHMARKS),
        help="Stages to benchmark (default: all)",
    )
    args = parser.parse_args()

    if args.dir:
        print(f"Loading emails from {args.dir}...")
        html_files = load_emails(args.dir, args.limit or None)
    else:
        print(f"Generating {args.limit} emails (seed {args.seed})...")
        html_files = generate_emails(args.limit or 200, args.seed)
    if not html_files:
        print("ERROR: No emails loaded")
        sys.exit(1)

    total_bytes = sum(len(html) for _, html in html_files)
    print(f"Loaded {len(html_files)} emails, {total_bytes / 1024 / 1024:.2f} MB")

    results = {}
    for name in args.stages:
        print(f"\nBenchmarking {name}...", end="", flush=True)
        results[name] = BENCHMARKS[name](html_files, args.iterations)
        print(f" DONE ({results[name]['total_time']:.3f}s)")

    print_results(results, len(html_files), total_bytes, args.iterations)


if __name__ == "__main__":
    main()
