"""
Normalize module for the KPSC notification feed.

This module folds the per-gazette item lists into one collection,
dropping repeated documents.
"""

from typing import Iterable, List, Set

from kpsc_feed.parse import NotificationItem
from kpsc_feed.utils import get_logger


# Module logger
logger = get_logger("normalize")


def get_item_identifier(item: NotificationItem) -> str:
    """
    Generate a unique identifier for a notification.

    Uses the document URL since each notice is published as one PDF.

    Args:
        item: Extracted notification.

    Returns:
        Unique identifier string (the PDF URL).
    """
    return item.pdf_url


def merge_items(pages: Iterable[List[NotificationItem]]) -> List[NotificationItem]:
    """
    Flatten per-page item lists, keeping the first occurrence of each document.

    Args:
        pages: Item lists in gazette discovery order.

    Returns:
        Flat, deduplicated list of notifications.
    """
    seen_urls: Set[str] = set()
    merged: List[NotificationItem] = []
    duplicates = 0

    for items in pages:
        for item in items:
            key = get_item_identifier(item)
            if key in seen_urls:
                duplicates += 1
                continue
            seen_urls.add(key)
            merged.append(item)

    if duplicates:
        logger.debug(f"Dropped {duplicates} duplicate notification(s)")

    logger.info(f"Total unique notifications: {len(merged)}")

    return merged
