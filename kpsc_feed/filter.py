"""
Filter module for the KPSC notification feed.

This module decides which gazette dates and notification titles belong to
the target year, and pulls category numbers out of titles.
"""

import re
from typing import Optional


# dd/mm/yyyy as printed on the index and gazette pages
DATE_DMY_PATTERN = r"\d{2}/\d{2}/\d{4}"

# dd-mm-yyyy as used for application deadlines
DATE_DASHED_PATTERN = r"\d{2}-\d{2}-\d{4}"


def is_target_year_date(date_text: Optional[str], target_year: int) -> bool:
    """
    Check whether a dd/mm/yyyy date falls in the target year.

    Args:
        date_text: Date string in dd/mm/yyyy form.
        target_year: Year to match.

    Returns:
        True if the date is well-formed and its year matches.
    """
    if not date_text or not re.fullmatch(DATE_DMY_PATTERN, date_text):
        return False
    return date_text.endswith(f"/{target_year}")


def category_reference_pattern(target_year: int) -> "re.Pattern[str]":
    """Pattern for a parenthesised "(NNN/<year>)" reference."""
    return re.compile(rf"\(\s*(?:Cat\.?\s*No\.?\s*[:.]?\s*)?(\d+/{target_year})\s*\)", re.IGNORECASE)


def cat_no_pattern(target_year: int) -> "re.Pattern[str]":
    """Pattern for an explicit "Cat.No. NNN/<year>" label."""
    return re.compile(rf"Cat\.?\s*No\.?\s*[:.]?\s*(\d+/{target_year})\b", re.IGNORECASE)


def mentions_target_year(title: Optional[str], target_year: int) -> bool:
    """
    Check whether a notification title refers to the target year.

    A title qualifies through a "(NNN/<year>)" category reference or a
    bare occurrence of the year anywhere in the text.

    Args:
        title: Cleaned anchor text.
        target_year: Year to match.

    Returns:
        True if the title should be kept.
    """
    if not title:
        return False

    if category_reference_pattern(target_year).search(title):
        return True

    return str(target_year) in title


def extract_cat_no(title: Optional[str], target_year: int) -> Optional[str]:
    """
    Extract the category number from a notification title.

    Looks for an explicit "Cat.No." label first, then for a bare
    parenthesised "(NNN/<year>)" reference.

    Args:
        title: Cleaned anchor text.
        target_year: Year the category number must belong to.

    Returns:
        Category number as "NNN/<year>", or None if absent.
    """
    if not title:
        return None

    match = cat_no_pattern(target_year).search(title)
    if match is None:
        match = category_reference_pattern(target_year).search(title)

    return match.group(1) if match else None


def cat_number(cat_no: Optional[str]) -> int:
    """
    Numeric prefix of a category number, used for ordering.

    Args:
        cat_no: Category number such as "382/2025", or None.

    Returns:
        The number before the slash, or -1 when absent or unparsable.
    """
    if not cat_no:
        return -1

    prefix = cat_no.split("/", 1)[0].strip()
    if not prefix.isdecimal():
        return -1

    return int(prefix)
