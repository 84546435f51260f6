#!/usr/bin/env python3
"""
Create the ERP schema on the configured database.

Resolves configuration the usual way (defaults.yaml, ERP_CONFIG_FILE,
DATABASE_URL), initializes the engine, creates every kernel and module
table and installs the immutability listeners.  With ``--reset`` all
tables are dropped first.

Usage:
  python3 scripts/init_db.py [--config FILE] [--db-url URL] [--reset]
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create (or recreate) the ERP database schema")
    p.add_argument("--config", default=None, help="Overlay YAML file (default: ERP_CONFIG_FILE)")
    p.add_argument("--db-url", default=None, help="Database URL (overrides configuration)")
    p.add_argument("--reset", action="store_true", help="Drop all tables before creating them")
    return p.parse_args()


def main() -> int:
    args = _parse_args()

    from erp_config import get_active_config
    from erp_kernel.db.engine import drop_tables, init_engine_from_url
    from erp_kernel.logging_config import configure_logging, get_logger
    from erp_modules._orm_registry import create_all_tables, import_all_orm_models

    config = get_active_config(args.config)
    configure_logging(level=config.logging.level)
    logger = get_logger("scripts.init_db")

    db_url = args.db_url or config.database.url
    init_engine_from_url(
        db_url,
        echo=config.database.echo,
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
    )

    if args.reset:
        import_all_orm_models()
        drop_tables()
        logger.info("tables_dropped")

    create_all_tables()
    print(f"Schema ready on {db_url}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
