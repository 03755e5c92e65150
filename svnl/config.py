from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


SVNL_BASE_URL = "https://www.suomenvoimanostoliitto.fi"
SVNL_ARCHIVE_URL = f"{SVNL_BASE_URL}/kilpailut/tulosarkisto/"

USER_AGENT = "svnl-local/0.1 (contact: local)"
REQUEST_TIMEOUT_S = 60

# The archive site asks for a pause between requests.
DEFAULT_POLITE_DELAY_S = 2.0

# "Lataa lisää" clicks on the archive page. Only the first page is read without a browser.
DEFAULT_LOAD_MORE_CLICKS = 0


@dataclass(frozen=True)
class ScrapeSettings:
    cache_dir: Path
    delay_s: float = DEFAULT_POLITE_DELAY_S
    force: bool = False
    use_cache: bool = True
    load_more_clicks: int = DEFAULT_LOAD_MORE_CLICKS


def default_data_dir() -> Path:
    override = os.environ.get("SVNL_DATA_DIR")
    if override:
        return Path(override)
    return Path.home() / ".svnl-scraper"


def default_html_cache_dir() -> Path:
    return default_data_dir() / "html"


def default_competitions_file() -> Path:
    return default_data_dir() / "competitions.json"


def default_log_dir() -> Path:
    return default_data_dir() / "logs"


def default_output_dir() -> Path:
    return Path("output")
