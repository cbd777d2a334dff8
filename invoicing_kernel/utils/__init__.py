"""Utility modules for the invoicing kernel."""

from invoicing_kernel.utils.hashing import canonicalize_json, hash_payload

__all__ = [
    "hash_payload",
    "canonicalize_json",
]
