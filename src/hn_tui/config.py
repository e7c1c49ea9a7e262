from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, Optional

# --- Configuration ---
HN_API_BASE = "https://hacker-news.firebaseio.com/v0"
ITEM_URL_BASE = f"{HN_API_BASE}/item"
HN_DISCUSSION_URL_BASE = "https://news.ycombinator.com/item?id="
HTTP_TIMEOUT = 10
MAX_CONCURRENCY = 20
USER_AGENT = "hn-tui/0.1"

POSTS_PAGE_SIZE = 30
LOAD_MORE_TRIGGER_NUMERATOR = 3
LOAD_MORE_TRIGGER_DENOMINATOR = 4
COMMENTS_LIMIT = 75
COMMENTS_FRESH_SECONDS = 90

# Transport-level retries for 429/5xx; item-level failures are never retried.
RETRY_TOTAL = 2
RETRY_BACKOFF_FACTOR = 0.3
RETRY_STATUS_FORCELIST = [429, 500, 502, 503, 504]

# How often a waiting worker checks its cancellation token.
CANCEL_POLL_INTERVAL = 0.1

CONFIG_PATH = os.path.expanduser("~/.config/hn-tui/config.json")

REQUEST_HEADERS = {"User-Agent": USER_AGENT}

DEFAULT_THEME = "textual-dark"

# Default UI settings
UI_DEFAULTS = {
    "statusbar_keybindings": (
        "[b {color}]r[/] refresh  [b {color}]enter[/] comments  "
        "[b {color}]b[/] bookmark  [b {color}]q[/] quit"
    ),
}

# --- Logging ---
logger = logging.getLogger("hn")


def setup_logging(debug: bool = False) -> Optional[str]:
    """Configure logging."""
    if not debug:
        logging.basicConfig(level=logging.CRITICAL, handlers=[logging.NullHandler()])
        return None

    ts = datetime.now().strftime("%Y%m%dT%H%M%S")
    pid = os.getpid()
    debug_path = f"/tmp/hn_debug_{ts}_{pid}.log"

    logging.basicConfig(
        level=logging.DEBUG,
        filename=debug_path,
        filemode="a",
        format="%(asctime)s - %(levelname)s - %(name)s - %(threadName)s - %(message)s",
    )

    logger.debug("Debug logging enabled to %s", debug_path)
    return debug_path


def load_config(path: str = CONFIG_PATH) -> Dict[str, Any]:
    """Load the optional configuration file; missing or broken files yield {}."""
    if not os.path.exists(path):
        logger.debug("No config file at %s, using defaults", path)
        return {}
    try:
        with open(path, "r") as f:
            config = json.load(f)
    except (IOError, json.JSONDecodeError) as e:
        logger.error("Failed to load config from %s: %s", path, e)
        return {}
    if not isinstance(config, dict):
        logger.error("Ignoring config at %s: top level must be an object", path)
        return {}
    logger.info("Loaded config from %s", path)
    return config


def comments_limit_from_config(config: Dict[str, Any]) -> int:
    """Return the configured per-post comment limit, falling back to the default."""
    value = config.get("comments_limit", COMMENTS_LIMIT)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        logger.warning("Invalid comments_limit %r, using %d", value, COMMENTS_LIMIT)
        return COMMENTS_LIMIT
    return value
