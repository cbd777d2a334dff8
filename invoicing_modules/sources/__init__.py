"""
Source stores read by an invoice basis refresh.

Time entries, materials, expenses, mileage, change orders (ATA) and site
diary entries, plus the project, customer and rate lookups around them.
"""

from invoicing_modules.sources.selectors import SourceSelector, first_or_none

__all__ = [
    "SourceSelector",
    "first_or_none",
]
