"""
Module ORM Registry (``forecourt_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created.  ``forecourt_kernel.db.engine.create_tables()`` calls
``import_all_orm_models()`` first.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``forecourt_modules``
packages only.
"""


def import_all_orm_models() -> None:
    """Import every ``forecourt_modules.*.orm`` module (idempotent)."""
    # fmt: off
    import forecourt_modules.ar.orm  # noqa: F401
    import forecourt_modules.cash.orm  # noqa: F401
    import forecourt_modules.loans.orm  # noqa: F401
    import forecourt_modules.payroll.orm  # noqa: F401
    import forecourt_modules.sales.orm  # noqa: F401
    # fmt: on
