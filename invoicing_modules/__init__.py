"""
Invoicing Modules.

Source-store models and selectors, plus the invoice basis module that
aggregates approved work into per-period snapshots.
"""
