"""
Invoicing Kernel

Shared foundation for the invoice basis aggregation engine:
- Structured JSON logging with request-scoped context
- Typed exception hierarchy with machine-readable codes
- SQLAlchemy declarative base, engine and session management
- Decimal money rounding (2 dp, ROUND_HALF_UP)
- Injectable clock and deterministic hashing
"""

__version__ = "0.1.0"
