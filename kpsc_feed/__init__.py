"""
KPSC Feed - Kerala PSC notification discovery pipeline.

This package provides functionality to:
- Fetch the notifications index and recent gazette pages
- Extract job/exam notification documents for the target year
- Merge and rank notifications by gazette date and category number
- Serve the result as a cacheable JSON feed
"""

__version__ = "1.0.0"
__author__ = "KPSC Feed Team"
