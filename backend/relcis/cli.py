"""CLI tool for RELCIS — run searches and captures without the HTTP server.

Usage:
    python -m relcis.cli search "hello world"
    python -m relcis.cli images "red panda" --engine duckduckgo --limit 5
    python -m relcis.cli screenshot https://example.com
    python -m relcis.cli read https://example.com -o text
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict


def _setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _emit(payload, output: str):
    if output == "json":
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    items = payload if isinstance(payload, list) else [payload]
    for item in items:
        print(f"\n{'=' * 60}")
        for key, value in item.items():
            if value in (None, "", [], {}):
                continue
            if isinstance(value, str):
                print(f"{key}: {value[:2000]}")
            else:
                print(f"{key}: {json.dumps(value, ensure_ascii=False)}")


async def _cmd_search(args):
    """Web search through the provider chain."""
    from relcis.services.orchestrator import search_orchestrator

    results = await search_orchestrator.search_web(args.query)
    _emit([asdict(r) for r in results], args.output)
    print(f"\n{len(results)} results", file=sys.stderr)


async def _cmd_images(args):
    """Image search on one engine, mirroring results into storage."""
    from relcis.services.orchestrator import search_orchestrator

    engine = search_orchestrator.resolve_image_engine(args.engine)
    results = await search_orchestrator.search_images(args.query, engine, args.limit)
    _emit([asdict(r) for r in results], args.output)
    print(f"\n{len(results)} images from {engine}", file=sys.stderr)


async def _cmd_screenshot(args):
    from relcis.services.capture import capture_service

    result = await capture_service.screenshot(args.url)
    _emit(
        {"screenshot_url": result.screenshot_url, "summary": asdict(result.summary)},
        args.output,
    )


async def _cmd_read(args):
    from relcis.services.capture import capture_service

    result = await capture_service.read(args.url)
    _emit({"html_url": result.html_url, "html": result.html}, args.output)


async def _run(handler, args):
    from relcis.services.browser import session_manager

    try:
        await handler(args)
    finally:
        await session_manager.shutdown()


def main():
    from relcis.core.exceptions import AutomationError

    parser = argparse.ArgumentParser(
        prog="relcis",
        description="RELCIS CLI — browser-driven search and page capture",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "-o", "--output", default="json",
        choices=["json", "text"],
        help="Output format (default: json)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    search_parser = subparsers.add_parser("search", help="Web search with provider fallback")
    search_parser.add_argument("query", help="Search terms")

    images_parser = subparsers.add_parser("images", help="Image search")
    images_parser.add_argument("query", help="Search terms")
    images_parser.add_argument(
        "--engine", default=None, help="yahoo or duckduckgo (default: yahoo)"
    )
    images_parser.add_argument("--limit", type=int, default=None, help="Max images to return")

    shot_parser = subparsers.add_parser("screenshot", help="Screenshot a page")
    shot_parser.add_argument("url", help="Page URL")

    read_parser = subparsers.add_parser("read", help="Read a page's rendered HTML")
    read_parser.add_argument("url", help="Page URL")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    _setup_logging(args.verbose)

    handlers = {
        "search": _cmd_search,
        "images": _cmd_images,
        "screenshot": _cmd_screenshot,
        "read": _cmd_read,
    }
    try:
        asyncio.run(_run(handlers[args.command], args))
    except AutomationError as e:
        print(f"[ERROR] {e.kind.value}: {e.message}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
