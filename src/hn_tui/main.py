#!/usr/bin/env python3
# -*- coding: utf-8 -*-
from __future__ import annotations

import argparse
import logging
import sys

from .app import HackerNewsApp
from .config import DEFAULT_THEME, load_config, setup_logging
from .datamodels import Feed

logger = logging.getLogger("hn")


# --- Entrypoint ---
def main() -> None:
    parser = argparse.ArgumentParser(description="Hacker News TUI Client")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--theme", type=str, help="Textual theme for this run")
    parser.add_argument(
        "--feed",
        choices=[f.value for f in Feed],
        help="Feed to open on start (default: top)",
    )
    args = parser.parse_args()

    debug_path = setup_logging(args.debug)
    if debug_path:
        print(f"Debug logging enabled: {debug_path}", file=sys.stderr)

    config = load_config()
    theme_name = args.theme or config.get("theme") or DEFAULT_THEME
    feed_name = args.feed or config.get("feed") or Feed.TOP.value
    try:
        feed = Feed(feed_name)
    except ValueError:
        print(f"Feed '{feed_name}' not found, falling back to top.", file=sys.stderr)
        feed = Feed.TOP

    logger.info("Using theme: %s, feed: %s", theme_name, feed.label)

    try:
        app = HackerNewsApp(theme=theme_name, config=config, feed=feed)
        app.run()
    except Exception as e:
        logger.exception("Application crashed: %s", e)
        print(f"Application crashed: {e}", file=sys.stderr)


if __name__ == "__main__":
    main()
