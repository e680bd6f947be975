from __future__ import annotations

import os
import sys

import psycopg
from psycopg import sql

TABLE = "connections"
COLUMN = "pair_key"
INDEX = "uq_connections_pair_key_idx"
CONSTRAINT = "uq_connections_pair_key"


def _get_database_url() -> str:
    database_url = os.environ.get("DATABASE_URL", "").strip()
    if not database_url:
        raise SystemExit("DATABASE_URL is not set")
    # psycopg expects "postgresql://..." rather than the SQLAlchemy dialect URL.
    if database_url.startswith("postgresql+"):
        database_url = "postgresql://" + database_url.split("://", 1)[1]
    return database_url


def _duplicate_pairs(conn: psycopg.Connection) -> list[tuple[str, int]]:
    with conn.cursor() as cur:
        cur.execute(
            sql.SQL("SELECT {col}, count(*) FROM {table} GROUP BY {col} HAVING count(*) > 1").format(
                col=sql.Identifier(COLUMN),
                table=sql.Identifier(TABLE),
            )
        )
        return [(row[0], int(row[1])) for row in cur.fetchall()]


def _constraint_exists(conn: psycopg.Connection) -> bool:
    with conn.cursor() as cur:
        cur.execute("SELECT 1 FROM pg_constraint WHERE conname = %s", (CONSTRAINT,))
        return cur.fetchone() is not None


def main() -> None:
    database_url = _get_database_url()

    # CREATE INDEX CONCURRENTLY cannot run inside a transaction block.
    with psycopg.connect(database_url, autocommit=True) as conn:
        with conn.cursor() as cur:
            cur.execute(
                sql.SQL("ALTER TABLE {} ADD COLUMN IF NOT EXISTS {} TEXT").format(
                    sql.Identifier(TABLE), sql.Identifier(COLUMN)
                )
            )
            # Same ordering as models.pair_key: lower id first.
            cur.execute(
                sql.SQL(
                    'UPDATE {table} SET {col} = LEAST(requester_id COLLATE "C", target_id COLLATE "C") || '
                    "'|' || GREATEST(requester_id COLLATE \"C\", target_id COLLATE \"C\") "
                    "WHERE {col} IS NULL"
                ).format(table=sql.Identifier(TABLE), col=sql.Identifier(COLUMN))
            )
            print(f"Backfilled {cur.rowcount} rows")

        duplicates = _duplicate_pairs(conn)
        if duplicates:
            for key, count in duplicates:
                print(f"DUPLICATE: {key!r} x{count}", file=sys.stderr)
            raise SystemExit(f"{len(duplicates)} user pairs have several connection requests; resolve them and rerun")

        if _constraint_exists(conn):
            print(f"OK: constraint {CONSTRAINT!r} already present")
            return

        with conn.cursor() as cur:
            cur.execute(
                sql.SQL("CREATE UNIQUE INDEX CONCURRENTLY IF NOT EXISTS {} ON {} ({})").format(
                    sql.Identifier(INDEX), sql.Identifier(TABLE), sql.Identifier(COLUMN)
                )
            )
            cur.execute(
                sql.SQL("ALTER TABLE {} ALTER COLUMN {} SET NOT NULL").format(
                    sql.Identifier(TABLE), sql.Identifier(COLUMN)
                )
            )
            cur.execute(
                sql.SQL("ALTER TABLE {} ADD CONSTRAINT {} UNIQUE USING INDEX {}").format(
                    sql.Identifier(TABLE), sql.Identifier(CONSTRAINT), sql.Identifier(INDEX)
                )
            )

    print(f"OK: {TABLE}.{COLUMN} is unique ({CONSTRAINT})")


if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        print(f"FAILED: {e}", file=sys.stderr)
        raise
