# src/tradedesk/cli/migrate.py
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from tradedesk.data.storage.postgres.pool import create_pool
from tradedesk.data.storage.postgres.storage import PostgreSQLStorage

DDL_PATH = Path(__file__).resolve().parents[1] / "data" / "storage" / "postgres" / "ddl.sql"


def main() -> None:
    load_dotenv()
    dsn = os.getenv("PG_DSN")
    if not dsn:
        raise SystemExit("PG_DSN env var is required")

    pool = create_pool(dsn, max_size=2)
    store = PostgreSQLStorage(pool)
    try:
        store.exec_ddl(DDL_PATH.read_text(encoding="utf-8"))
        print(f"[MIGRATE] applied {DDL_PATH.name}")
    finally:
        pool.close()


if __name__ == "__main__":
    main()
