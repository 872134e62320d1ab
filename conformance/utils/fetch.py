"""
Download fixtures from the upstream specifications repository.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Union

import requests
from requests.adapters import HTTPAdapter, Retry

logger = logging.getLogger(__name__)

DEFAULT_REF = os.getenv("SPEC_REF", "master")
RAW_BASE_URL = os.getenv(
    "SPEC_RAW_BASE_URL", "https://raw.githubusercontent.com/mongodb/specifications"
)
TAGS_URL = os.getenv(
    "SPEC_TAGS_URL", "https://api.github.com/repos/mongodb/specifications/tags"
)

_session = None


def client() -> requests.Session:
    """Get a requests session with retries."""
    global _session
    if _session is not None:
        return _session

    _session = requests.session()
    retries = Retry(
        total=5,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
    )
    _session.mount("https://", HTTPAdapter(max_retries=retries))
    return _session


def get_last_spec_tag() -> str:
    """Get the last tag of the specifications repository."""
    response = client().get(TAGS_URL, timeout=60)
    response.raise_for_status()
    return response.json()[0]["name"]


def fetch_spec_file(relative_path: str, ref: str = DEFAULT_REF, base_url: str = RAW_BASE_URL) -> str:
    """
    Fetch a fixture file's text.

    Args:
        relative_path: Path inside the repository, e.g. source/retryable-reads/tests/...
        ref: Branch, tag or commit
        base_url: Raw content base URL

    Returns:
        The file contents
    """
    url = f"{base_url.rstrip('/')}/{ref}/{relative_path.lstrip('/')}"
    logger.info(f"Fetching {url}")
    response = client().get(url, timeout=60)
    response.raise_for_status()
    return response.text


def download_spec_files(
    paths: Iterable[str], dest_dir: Union[str, Path], ref: str = DEFAULT_REF
) -> List[Path]:
    """Download fixtures into dest_dir, keeping their file names."""
    dest = Path(dest_dir)
    dest.mkdir(parents=True, exist_ok=True)
    written = []
    for relative_path in paths:
        target = dest / Path(relative_path).name
        target.write_text(fetch_spec_file(relative_path, ref=ref))
        logger.debug(f"Wrote {target}")
        written.append(target)
    return written
