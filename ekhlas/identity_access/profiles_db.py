"""
Database-backed ProfileDirectory (direct Postgres via psycopg3).

Why: Deployments that run the app next to the database can skip the PostgREST
hop for the per-request role lookup. Enabled with `PROFILES_BACKEND=db`.

Security:
- Use a login role that can read `public.profiles` only; the lookup is a single
  parameterized select by primary key.
- A short `connect_timeout` bounds hangs; the gatekeeper adds its own timeout.
"""
from __future__ import annotations

from typing import Optional
import os
import re

import psycopg
from psycopg import sql

from .domain import Profile
from .profiles import profile_from_row

_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")


class DBProfileDirectory:
    """Postgres-backed profile lookup.

    Parameters
    ----------
    dsn:
        Psycopg3 connection string. Defaults to DATABASE_URL.
    table:
        Table name, optionally schema-qualified. Defaults to `public.profiles`.
    connect_timeout:
        Seconds passed to psycopg.connect.
    """

    def __init__(self, dsn: str | None = None, table: str = "public.profiles", connect_timeout: int = 3) -> None:
        self._dsn = dsn or os.getenv("DATABASE_URL", "")
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBProfileDirectory")
        if not _TABLE_RE.match(table or ""):
            raise ValueError("Invalid table name")
        self._table = table
        self._connect_timeout = connect_timeout

    def _schema_and_name(self) -> tuple[str, str]:
        if "." in self._table:
            schema, name = self._table.split(".", 1)
        else:
            schema, name = "public", self._table
        return schema, name

    def get_profile(self, user_id: str) -> Optional[Profile]:
        if not user_id:
            return None
        schema, name = self._schema_and_name()
        stmt = sql.SQL(
            "select id::text, role, school_id::text, full_name, is_active from {}.{} where id = %s limit 1"
        ).format(sql.Identifier(schema), sql.Identifier(name))
        with psycopg.connect(self._dsn, connect_timeout=self._connect_timeout) as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, (user_id,))
                row = cur.fetchone()
        if not row:
            return None
        return profile_from_row(
            {"id": row[0], "role": row[1], "school_id": row[2], "full_name": row[3], "is_active": row[4]}
        )


__all__ = ["DBProfileDirectory"]
