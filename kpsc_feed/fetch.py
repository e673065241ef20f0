"""
Fetch module for the KPSC notification feed.

This module handles fetching the notifications index and gazette pages.
Transport problems are reported through FetchResult rather than raised,
so callers decide which failures are fatal.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from kpsc_feed.utils import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_WORKERS,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
    get_logger,
)


# Module logger
logger = get_logger("fetch")


@dataclass
class FetchResult:
    """
    Represents the result of fetching a single URL.

    Attributes:
        source_url: The original URL that was fetched.
        html_content: Raw HTML content if successful, None otherwise.
        success: Whether the fetch was successful.
        error_message: Error description if fetch failed, None otherwise.
        status_code: HTTP status code if request was made, None otherwise.
    """
    source_url: str
    html_content: Optional[str]
    success: bool
    error_message: Optional[str] = None
    status_code: Optional[int] = None


class FetchError(Exception):
    """Raised when a page the pipeline cannot do without fails to load."""

    def __init__(self, url: str, message: str):
        self.url = url
        self.message = message
        super().__init__(f"Failed to fetch {url}: {message}")


def create_session(
    max_retries: int = DEFAULT_MAX_RETRIES,
    user_agent: str = DEFAULT_USER_AGENT,
    pool_size: int = DEFAULT_MAX_WORKERS
) -> requests.Session:
    """
    Create a requests session with the feed's identifying headers.

    Retries are off by default; a positive max_retries enables retries
    with exponential backoff for 429/5xx responses.

    Args:
        max_retries: Maximum number of retry attempts.
        user_agent: Client identifier sent with every request.
        pool_size: Connection pool size, matched to the worker count.

    Returns:
        Configured requests.Session instance.
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET", "HEAD"],
        raise_on_status=False
    )

    # Mount adapter for both HTTP and HTTPS
    adapter = HTTPAdapter(
        max_retries=retry_strategy,
        pool_connections=pool_size,
        pool_maxsize=pool_size
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update({
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
    })

    return session


def validate_url(url: str) -> bool:
    """
    Validate that a URL is well-formed and uses HTTP/HTTPS.

    Args:
        url: URL string to validate.

    Returns:
        True if URL is valid, False otherwise.
    """
    try:
        parsed = urlparse(url)
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)
    except ValueError:
        return False


def fetch_single_url(
    url: str,
    session: requests.Session,
    timeout: int = DEFAULT_TIMEOUT
) -> FetchResult:
    """
    Fetch a single URL and return the result.

    Any 2xx status counts as success.

    Args:
        url: URL to fetch.
        session: Configured requests session.
        timeout: Request timeout in seconds.

    Returns:
        FetchResult containing the fetch outcome.
    """
    logger.debug(f"Fetching URL: {url}")

    if not validate_url(url):
        logger.warning(f"Invalid URL format: {url}")
        return FetchResult(
            source_url=url,
            html_content=None,
            success=False,
            error_message="Invalid URL format"
        )

    try:
        response = session.get(url, timeout=timeout)

        if 200 <= response.status_code < 300:
            logger.info(f"Successfully fetched {url} ({len(response.text)} bytes)")
            return FetchResult(
                source_url=url,
                html_content=response.text,
                success=True,
                status_code=response.status_code
            )
        else:
            logger.warning(f"HTTP {response.status_code} for {url}")
            return FetchResult(
                source_url=url,
                html_content=None,
                success=False,
                error_message=f"HTTP {response.status_code}",
                status_code=response.status_code
            )

    except requests.exceptions.Timeout:
        logger.warning(f"Timeout fetching {url}")
        return FetchResult(
            source_url=url,
            html_content=None,
            success=False,
            error_message="Request timeout"
        )

    except requests.exceptions.ConnectionError as e:
        logger.warning(f"Connection error for {url}: {e}")
        return FetchResult(
            source_url=url,
            html_content=None,
            success=False,
            error_message=f"Connection error: {str(e)}"
        )

    except requests.exceptions.RequestException as e:
        logger.error(f"Request exception for {url}: {e}")
        return FetchResult(
            source_url=url,
            html_content=None,
            success=False,
            error_message=f"Request failed: {str(e)}"
        )


def fetch_required_page(
    url: str,
    session: requests.Session,
    timeout: int = DEFAULT_TIMEOUT
) -> str:
    """
    Fetch a page whose failure must abort the run.

    Args:
        url: URL to fetch.
        session: Configured requests session.
        timeout: Request timeout in seconds.

    Returns:
        The page HTML.

    Raises:
        FetchError: If the fetch did not succeed.
    """
    result = fetch_single_url(url, session, timeout)
    if not result.success:
        raise FetchError(url, result.error_message or "unknown error")
    return result.html_content or ""


def fetch_gazette_pages(
    urls: List[str],
    session: requests.Session,
    timeout: int = DEFAULT_TIMEOUT,
    max_workers: int = DEFAULT_MAX_WORKERS
) -> List[FetchResult]:
    """
    Fetch gazette pages with a bounded worker pool.

    Pages are fetched concurrently but results come back in the same
    order as urls, regardless of which request finished first.

    Args:
        urls: Gazette page URLs in discovery order.
        session: Shared requests session.
        timeout: Request timeout in seconds per request.
        max_workers: Upper bound on concurrent requests.

    Returns:
        List of FetchResult objects, one per URL, in input order.
    """
    if not urls:
        logger.info("No gazette pages to fetch")
        return []

    workers = max(1, min(max_workers, len(urls)))
    logger.info(f"Fetching {len(urls)} gazette page(s) with {workers} worker(s)")

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(
            lambda url: fetch_single_url(url, session, timeout),
            urls
        ))

    successful = sum(1 for r in results if r.success)
    logger.info(f"Gazette fetch complete: {successful}/{len(results)} successful")

    return results


def get_successful_fetches(results: List[FetchResult]) -> List[FetchResult]:
    """
    Filter fetch results to only include successful fetches.

    Args:
        results: List of FetchResult objects.

    Returns:
        List of FetchResult objects where success is True.
    """
    return [r for r in results if r.success]


def get_failed_fetches(results: List[FetchResult]) -> List[FetchResult]:
    """Filter fetch results to only the failures."""
    return [r for r in results if not r.success]
