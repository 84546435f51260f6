"""
Module ORM Registry (``erp_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created, and provide ``create_all_tables()`` -- the entry point that
registers every model, creates the schema and installs the immutability
listeners.

Architecture position
---------------------
**Modules layer** -- utility.  Imports sibling ``erp_modules`` packages and
``erp_kernel.db`` (allowed: modules -> kernel).  MUST NOT be imported by
``erp_kernel``.

Usage
-----
Scripts and ``tests/conftest.py`` call ``create_all_tables()``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``erp_modules.*.orm`` module.  Idempotent."""
    # fmt: off
    import erp_kernel.services.sequence_service  # noqa: F401
    import erp_modules.ap.orm  # noqa: F401
    import erp_modules.ar.orm  # noqa: F401
    import erp_modules.inventory.orm  # noqa: F401
    # fmt: on


def create_all_tables(install_listeners: bool = True) -> None:
    """
    Create kernel + module tables, then optionally install the ORM
    immutability listeners.

    Preconditions:
        Engine must be initialized via ``init_engine_from_url()``.
    """
    from erp_kernel.db.engine import create_tables
    from erp_kernel.db.immutability import register_immutability_listeners

    import_all_orm_models()
    create_tables()
    if install_listeners:
        register_immutability_listeners()
