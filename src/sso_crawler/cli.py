"""Command line interface for the SSO crawler."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from .core.config import CrawlerConfig, load_configuration
from .core.report import CrawlReport
from .delivery.pipeline import DeliveryPipeline
from .delivery.storage import ArtifactStore
from .recon.crawler import Crawler
from .render.playwright_renderer import (
    PlaywrightRelay,
    PlaywrightRenderer,
    apply_session_cookie,
    launch_browser,
)

ROBOTS_WARNING = "[!] This tool does not enforce robots.txt. Ensure you have permission to crawl this site."

COMMANDS_HELP = """Commands:
  start           start crawling from the page shown in the browser
  pause           pause or resume the crawl
  resume          resume a paused crawl
  stop            stop and discard queued pages
  add <rule>      allow a hostname or /regex/
  remove <rule>   remove an allowlist rule
  allowlist       show the allowlist
  status          show crawl progress
  quit            stop and exit"""


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="SSO friendly site crawler")
    parser.add_argument("-u", "--url", required=True, help="Starting page (log in there before starting)")
    parser.add_argument("--max-depth", type=int, help="Link depth to follow (0 = starting page only)")
    parser.add_argument("--max-pages", type=int, help="Maximum pages to visit, including the starting page")
    parser.add_argument("--delay-ms", type=int, help="Delay between page visits")
    parser.add_argument("--allow", action="append", help="Hostname or /regex/ to allow (repeatable)")
    parser.add_argument("--endpoint", help="Endpoint receiving captures as JSON POST requests")
    parser.add_argument("--output-dir", help="Directory for page-NNNN.html/png fallbacks")
    parser.add_argument("--report", default="crawl_report.json", help="Crawl report output file")
    parser.add_argument("--headless", action="store_true", default=None, help="Run the browser headless")
    parser.add_argument("--auto-start", action="store_true", help="Start immediately instead of waiting for login")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


async def handle_command(crawler: Crawler, line: str) -> bool:
    """Apply one control command; returns ``False`` when the user quits."""

    command, _, argument = line.strip().partition(" ")
    command = command.lower()
    argument = argument.strip()

    if not command:
        return True
    if command == "start":
        if await crawler.start():
            print("[+] Crawl started.")
        else:
            print("[!] Crawl not started (already running or no starting page).")
    elif command == "pause":
        print(f"[*] State: {crawler.pause().value}")
    elif command == "resume":
        print(f"[*] State: {crawler.resume().value}")
    elif command == "stop":
        crawler.stop()
        print("[*] Crawl stopped.")
    elif command == "add" and argument:
        crawler.add_allowlist_entry(argument)
        print(f"[+] Allowed {argument}")
    elif command == "remove" and argument:
        if crawler.remove_allowlist_entry(argument):
            print(f"[+] Removed {argument}")
        else:
            print(f"[!] {argument} is not in the allowlist")
    elif command == "allowlist":
        for entry in crawler.allowlist:
            print(f" - {entry}")
    elif command == "status":
        print(crawler.status().describe())
    elif command in {"quit", "exit"}:
        crawler.stop()
        await crawler.wait()
        return False
    else:
        print(COMMANDS_HELP)
    return True


async def command_loop(crawler: Crawler) -> None:
    print(COMMANDS_HELP)
    while True:
        try:
            # input() blocks, so it runs in a worker thread and the command
            # is applied back on the crawl's event loop.
            line = await asyncio.to_thread(input, "crawler> ")
        except EOFError:
            line = "quit"
        if not await handle_command(crawler, line):
            return


async def run_session(config: CrawlerConfig, *, auto_start: bool = False) -> CrawlReport:
    async with async_playwright() as playwright:
        browser, context, page = await launch_browser(playwright, config)
        try:
            renderer = PlaywrightRenderer(
                context, page, viewport=config.viewport, timeout=config.render_timeout
            )
            await renderer.install()
            if await apply_session_cookie(context, config.start_url, config.session_cookie):
                print("[+] Session cookie applied.")

            try:
                await page.goto(config.start_url, timeout=config.render_timeout * 1000)
            except PlaywrightError as exc:
                print(f"[!] Could not open {config.start_url}: {exc}")

            pipeline = DeliveryPipeline(
                ArtifactStore(config.output_dir),
                config.post_endpoint,
                relay=PlaywrightRelay(context),
                timeout=config.post_timeout,
            )
            crawler = Crawler(config, renderer, pipeline)

            if auto_start:
                if await crawler.start():
                    await crawler.wait()
            else:
                print("[*] Log in manually in the browser window, then type 'start'.")
                await command_loop(crawler)
        finally:
            await browser.close()

    return crawler.report


def run_cli(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[crawler] %(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = load_configuration(
        args.url,
        args.report,
        max_depth=args.max_depth,
        max_pages=args.max_pages,
        delay_ms=args.delay_ms,
        allowlist=tuple(args.allow) if args.allow else None,
        post_endpoint=args.endpoint,
        output_dir=args.output_dir,
        headless=args.headless,
    )

    print(ROBOTS_WARNING)
    print(f"[*] Depth limit {config.max_depth}, page limit {config.max_pages}, delay {config.delay:.1f}s")
    if config.post_endpoint:
        print(f"[*] Captures will be posted to {config.post_endpoint}")
    print(f"[*] Fallback captures go to {config.output_dir}")

    report = asyncio.run(run_session(config, auto_start=args.auto_start))
    report_path = Path(config.report_path)
    report.save(report_path)
    print(f"[+] {len(report.visited_urls)} page(s) captured; report saved to {report_path}")
    if report.failed:
        print(f"[!] {len(report.failed)} page(s) could not be delivered or saved.")


def main() -> None:
    run_cli()


if __name__ == "__main__":
    main()
