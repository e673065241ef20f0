"""
Parse module for the KPSC notification feed.

This module handles the two extraction steps of the pipeline:
- Finding recent "EXTRA ORDINARY GAZETTE DATE dd/mm/yyyy" pages on the
  notifications index
- Pulling notification documents (title, PDF link, category number,
  last date) out of each gazette page
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from kpsc_feed.filter import (
    DATE_DASHED_PATTERN,
    DATE_DMY_PATTERN,
    extract_cat_no,
    is_target_year_date,
    mentions_target_year,
)
from kpsc_feed.utils import DEFAULT_MAX_GAZETTES, get_logger, normalize_url, sanitize_text


# Module logger
logger = get_logger("parse")


# Path fragment shared by every gazette sub-page link on the index
GAZETTE_LINK_MARKER = "extra-ordinary-gazette-date"

# Link text of an index entry, e.g. "EXTRA ORDINARY GAZETTE DATE 15/10/2025"
GAZETTE_LINK_TEXT_RE = re.compile(
    rf"EXTRA\s+ORDINARY\s+GAZETTE\s+DATE\s+({DATE_DMY_PATTERN})",
    re.IGNORECASE
)

# Date heading on the gazette page itself
PAGE_DATE_RE = re.compile(rf"GAZETTE\s+DATE\s*({DATE_DMY_PATTERN})", re.IGNORECASE)

# Application deadline, e.g. "Last date for receipt of applications: 19-11-2025"
LAST_DATE_RE = re.compile(
    rf"Last\s*date[^:]{{0,80}}?[:\s]\s*({DATE_DASHED_PATTERN})",
    re.IGNORECASE
)

DOCUMENT_EXTENSIONS = (".pdf",)


@dataclass
class GazetteRef:
    """
    A gazette sub-page discovered on the notifications index.

    Attributes:
        url: Absolute URL of the gazette page.
        date: Gazette date as dd/mm/yyyy.
    """
    url: str
    date: str


@dataclass
class NotificationItem:
    """
    One notification document extracted from a gazette page.

    Attributes:
        title: Cleaned anchor text.
        pdf_url: Absolute URL of the document.
        cat_no: Category number "NNN/<year>", if the title carries one.
        gazette_date: Date of the publishing gazette (dd/mm/yyyy).
        last_date: Page-level application deadline (dd-mm-yyyy), if found.
        source: URL of the gazette page the item came from.
    """
    title: str
    pdf_url: str
    cat_no: Optional[str]
    gazette_date: str
    last_date: Optional[str]
    source: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the feed's JSON representation."""
        return {
            "title": self.title,
            "pdfUrl": self.pdf_url,
            "catNo": self.cat_no,
            "gazetteDate": self.gazette_date,
            "lastDate": self.last_date,
            "source": self.source,
        }


def anchor_text(anchor: Tag) -> str:
    """
    Visible text of an anchor with whitespace collapsed.

    Text from nested elements and line breaks is joined with spaces so
    that words from separate inline tags don't run together.
    """
    return sanitize_text(anchor.get_text(" "))


def page_text(soup: BeautifulSoup) -> str:
    """Whole-page visible text, whitespace collapsed."""
    for hidden in soup(["script", "style"]):
        hidden.decompose()
    return sanitize_text(soup.get_text(" "))


def is_document_link(href: Optional[str]) -> bool:
    """
    Check whether a link target points at a notification document.

    The query string and fragment are ignored, and the extension check
    is case-insensitive.
    """
    if not href:
        return False
    path = urlparse(href.strip()).path
    return path.lower().endswith(DOCUMENT_EXTENSIONS)


def extract_gazette_refs(
    html: str,
    base_url: str,
    target_year: int,
    max_refs: int = DEFAULT_MAX_GAZETTES
) -> List[GazetteRef]:
    """
    Find the most recent gazette pages for the target year on the index.

    The index lists editions newest first, so the scan stops as soon as
    max_refs matching links have been collected.

    Args:
        html: Raw HTML of the notifications index.
        base_url: URL the index was fetched from, for resolving links.
        target_year: Only gazettes dated in this year are kept.
        max_refs: Maximum number of gazette pages to return.

    Returns:
        GazetteRef list in document order.
    """
    if not html:
        logger.warning(f"Empty index HTML for {base_url}")
        return []

    soup = BeautifulSoup(html, "html.parser")
    refs: List[GazetteRef] = []
    seen_urls = set()

    for anchor in soup.find_all("a", href=True):
        if len(refs) >= max_refs:
            break

        href = str(anchor["href"]).strip()
        if GAZETTE_LINK_MARKER not in href.lower():
            continue

        match = GAZETTE_LINK_TEXT_RE.fullmatch(anchor_text(anchor))
        if match is None:
            continue

        date = match.group(1)
        if not is_target_year_date(date, target_year):
            logger.debug(f"Skipping gazette dated {date} (not {target_year})")
            continue

        url = normalize_url(href, base_url)
        if url in seen_urls:
            continue

        seen_urls.add(url)
        refs.append(GazetteRef(url=url, date=date))

    logger.info(f"Found {len(refs)} gazette page(s) for {target_year} on the index")

    return refs


def extract_page_date(text: str) -> Optional[str]:
    """Gazette date printed on the page, or None if the heading is missing."""
    match = PAGE_DATE_RE.search(text)
    return match.group(1) if match else None


def extract_last_date(text: str) -> Optional[str]:
    """First "Last date ... dd-mm-yyyy" deadline on the page, or None."""
    match = LAST_DATE_RE.search(text)
    return match.group(1) if match else None


def extract_gazette_items(
    html: str,
    ref: GazetteRef,
    target_year: int
) -> List[NotificationItem]:
    """
    Extract the target-year notification documents from a gazette page.

    The gazette date comes from the page heading when it is present and
    dated in the target year, otherwise from the index entry. The "last
    date" found on the page is shared by every item extracted from it.

    Args:
        html: Raw HTML of the gazette page.
        ref: Index entry the page was fetched for.
        target_year: Only titles referring to this year are kept.

    Returns:
        NotificationItem list in document order.
    """
    if not html:
        logger.warning(f"Empty gazette HTML for {ref.url}")
        return []

    soup = BeautifulSoup(html, "html.parser")
    anchors = soup.find_all("a", href=True)

    text = page_text(soup)
    gazette_date = extract_page_date(text)
    if not is_target_year_date(gazette_date, target_year):
        logger.debug(f"No usable gazette date heading on {ref.url}, using {ref.date}")
        gazette_date = ref.date

    last_date = extract_last_date(text)

    items: List[NotificationItem] = []
    for anchor in anchors:
        href = str(anchor["href"]).strip()
        if not is_document_link(href):
            continue

        title = anchor_text(anchor)
        if not mentions_target_year(title, target_year):
            continue

        items.append(NotificationItem(
            title=title,
            pdf_url=normalize_url(href, ref.url),
            cat_no=extract_cat_no(title, target_year),
            gazette_date=gazette_date,
            last_date=last_date,
            source=ref.url,
        ))

    logger.info(f"Extracted {len(items)} notification(s) from {ref.url}")

    return items
