"""
Module ORM Registry (``invoicing_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created.  ``invoicing_kernel.db.engine.create_tables()`` calls this.

Architecture position
---------------------
**Modules layer** -- utility.  MUST NOT be imported at module level by
``invoicing_kernel``.
"""


def import_all_orm_models() -> None:
    """Import every ``invoicing_modules.*.orm`` module to register ORM models.

    Idempotent -- repeated calls are harmless.
    """
    import invoicing_modules.sources.orm  # noqa: F401
    import invoicing_modules.invoice_basis.orm  # noqa: F401
