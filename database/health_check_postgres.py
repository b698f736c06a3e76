from __future__ import annotations

import os
import sys

import psycopg2


EXPECTED_TABLES = (
    "users",
    "projects",
    "suppliers",
    "supplier_items",
    "requisitions",
    "requisition_items",
    "purchase_orders",
    "status_events",
    "delivery_log",
)


def main() -> int:
    db_url = os.environ.get("DATABASE_URL")
    if not db_url:
        raise RuntimeError("Set DATABASE_URL to the Postgres instance.")

    conn = psycopg2.connect(db_url)
    conn.autocommit = True
    try:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = 'public'
                ORDER BY table_name
                """
            )
            tables = {row[0] for row in cur.fetchall()}
    finally:
        conn.close()

    missing = [table for table in EXPECTED_TABLES if table not in tables]
    if missing:
        print("Postgres reachable, missing tables:", ", ".join(missing))
        return 1
    print("Postgres OK. Tables:", ", ".join(sorted(tables)))
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as exc:
        print(f"Health check failed: {exc}")
        sys.exit(1)
