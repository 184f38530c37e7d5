"""
Module ORM Registry (``workshop_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model, kernel and module alike, is imported so
that ``Base.metadata`` holds all table definitions before tables are
created.

Architecture position
---------------------
**Modules layer** -- utility.  Imports sibling ``workshop_modules``
packages and ``workshop_kernel.db.engine`` (allowed: modules -> kernel).
The kernel reaches it only through the deferred import in
``create_tables()``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``workshop_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    import workshop_kernel.models  # noqa: F401
    import workshop_modules.budget.orm  # noqa: F401
    import workshop_modules.orders.orm  # noqa: F401


def create_all_tables() -> None:
    """Create kernel + module tables on the initialized engine.

    Preconditions:
        Engine must be initialized via ``init_engine_from_url()``.
    """
    from workshop_kernel.db.engine import create_tables

    create_tables()
