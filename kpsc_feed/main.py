#!/usr/bin/env python3
"""
Main orchestration module for the KPSC notification feed.

This module coordinates the complete pipeline:
fetch index → find gazettes → fetch gazettes → extract → merge → rank

It also builds the JSON envelopes served to clients and provides a
command-line entry point that writes one feed snapshot.
"""

import json
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from kpsc_feed.fetch import (
    create_session,
    fetch_gazette_pages,
    fetch_required_page,
    get_failed_fetches,
    get_successful_fetches,
)
from kpsc_feed.normalize import merge_items
from kpsc_feed.parse import (
    NotificationItem,
    extract_gazette_items,
    extract_gazette_refs,
)
from kpsc_feed.rank import clamp_limit, rank_items
from kpsc_feed.utils import (
    FeedConfig,
    get_env_var,
    get_logger,
    load_feed_config,
    safe_write_json,
    setup_logging,
    validate_feed_config,
)


# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1


@dataclass
class FeedResult:
    """
    Outcome of one pipeline run.

    Attributes:
        items: Ranked notifications, already truncated to the limit.
        warnings: One entry per gazette page that could not be fetched.
    """
    items: List[NotificationItem]
    warnings: List[Dict[str, str]] = field(default_factory=list)


def run_pipeline(
    limit: int,
    config: Optional[FeedConfig] = None,
    session: Optional[requests.Session] = None
) -> FeedResult:
    """
    Execute the complete notification pipeline.

    Pipeline stages:
    1. Fetch the notifications index (failure is fatal)
    2. Find the most recent target-year gazette pages
    3. Fetch gazette pages concurrently (failed pages are skipped)
    4. Extract notifications from each page
    5. Merge and rank

    Args:
        limit: Maximum number of items to return.
        config: Feed configuration. Loaded from the environment if None.
        session: HTTP session to use. A new one is created (and closed)
                 if None.

    Returns:
        FeedResult with the ranked items and per-page warnings.

    Raises:
        FetchError: If the index page could not be fetched.
    """
    logger = get_logger("main")

    if config is None:
        config = load_feed_config()

    owns_session = session is None
    if session is None:
        session = create_session(
            max_retries=config.max_retries,
            user_agent=config.user_agent,
            pool_size=config.max_workers
        )

    try:
        # Stage 1: Fetch the index
        logger.info(f"[Stage 1/5] Fetching index {config.index_url}")
        index_html = fetch_required_page(config.index_url, session, config.timeout)

        # Stage 2: Find gazette pages
        logger.info("[Stage 2/5] Finding gazette pages...")
        refs = extract_gazette_refs(
            index_html,
            config.index_url,
            config.target_year,
            max_refs=config.max_gazettes
        )

        # Stage 3: Fetch gazette pages
        logger.info("[Stage 3/5] Fetching gazette pages...")
        fetch_results = fetch_gazette_pages(
            [ref.url for ref in refs],
            session,
            timeout=config.timeout,
            max_workers=config.max_workers
        )

    finally:
        if owns_session:
            session.close()

    # Stage 4: Extract notifications, isolating failed pages
    logger.info("[Stage 4/5] Extracting notifications...")
    pages: List[List[NotificationItem]] = []
    warnings: List[Dict[str, str]] = []

    refs_by_url = {ref.url: ref for ref in refs}

    for result in get_failed_fetches(fetch_results):
        logger.warning(f"Skipping gazette {result.source_url}: {result.error_message}")
        warnings.append({
            "source": result.source_url,
            "error": result.error_message or "unknown error"
        })

    for result in get_successful_fetches(fetch_results):
        ref = refs_by_url[result.source_url]
        pages.append(extract_gazette_items(result.html_content or "", ref, config.target_year))

    # Stage 5: Merge and rank
    logger.info("[Stage 5/5] Ranking notifications...")
    items = rank_items(merge_items(pages), limit)

    logger.info(
        f"Pipeline complete: {len(items)} item(s) from "
        f"{len(pages)}/{len(refs)} gazette page(s)"
    )

    return FeedResult(items=items, warnings=warnings)


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def build_envelope(result: FeedResult, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Wrap a pipeline result in the feed's JSON envelope.

    The warnings key is only present when some gazette page failed.

    Args:
        result: Pipeline outcome.
        now: Timestamp override (current time if None).

    Returns:
        JSON-serializable dictionary.
    """
    envelope: Dict[str, Any] = {
        "updatedAt": utc_timestamp(now),
        "count": len(result.items),
        "items": [item.to_dict() for item in result.items],
    }
    if result.warnings:
        envelope["warnings"] = list(result.warnings)
    return envelope


def build_error_envelope(error: BaseException) -> Dict[str, str]:
    """Error body returned when the pipeline fails as a whole."""
    return {"error": str(error)}


def main() -> int:
    """
    Command-line entry point: run the pipeline once and write the feed.

    Environment:
        LOG_LEVEL: Logging level (default INFO).
        FEED_LIMIT: Item limit, clamped to [5, 100] (default 40).
        FEED_OUTPUT: File to write the envelope to; stdout if unset.

    Returns:
        Exit code for the process.
    """
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    output_path = get_env_var("FEED_OUTPUT", required=False)

    # stdout carries the feed itself when no output file is given
    setup_logging(log_level, stream=sys.stdout if output_path else sys.stderr)
    logger = get_logger("main")

    limit = clamp_limit(get_env_var("FEED_LIMIT", required=False))

    config = load_feed_config()
    for warning in validate_feed_config(config):
        logger.warning(f"Config: {warning}")

    try:
        envelope = build_envelope(run_pipeline(limit, config=config))
    except KeyboardInterrupt:
        logger.warning("Pipeline interrupted by user")
        return EXIT_FAILURE
    except Exception as e:
        logger.exception(f"Unexpected error in pipeline: {e}")
        envelope = build_error_envelope(e)
        if output_path:
            safe_write_json(output_path, envelope)
        return EXIT_FAILURE

    if output_path:
        if not safe_write_json(output_path, envelope):
            return EXIT_FAILURE
        logger.info(f"Wrote {envelope['count']} notification(s) to {output_path}")
    else:
        json.dump(envelope, sys.stdout, indent=2, ensure_ascii=False)
        sys.stdout.write("\n")

    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
