from __future__ import annotations

import json
from typing import List, Optional

import aiosqlite

from .types import TokenRecord


class Database:
    def __init__(self, path: str):
        self.path = path
        self.conn: Optional[aiosqlite.Connection] = None

    @classmethod
    async def connect(cls, path: str) -> "Database":
        db = cls(path)
        db.conn = await aiosqlite.connect(path)
        db.conn.row_factory = aiosqlite.Row
        await db.conn.execute("PRAGMA journal_mode=WAL")
        await db.conn.execute("PRAGMA synchronous=NORMAL")
        await db.conn.execute("PRAGMA busy_timeout=5000")
        return db

    async def init(self) -> None:
        assert self.conn is not None
        await self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS tokens (
                address TEXT PRIMARY KEY,
                record_json TEXT NOT NULL,
                passed INTEGER NOT NULL,
                reasons_json TEXT,
                market_cap REAL,
                first_seen_at INTEGER NOT NULL,
                last_updated_at INTEGER NOT NULL,
                last_alerted_at INTEGER
            )
            """
        )
        await self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS state (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )
        await self.conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_tokens_market_cap ON tokens(market_cap)"
        )
        await self.conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_tokens_last_updated ON tokens(last_updated_at)"
        )
        await self.conn.commit()

    async def close(self) -> None:
        if self.conn is not None:
            await self.conn.close()
            self.conn = None

    async def get_token(self, address: str) -> Optional[aiosqlite.Row]:
        assert self.conn is not None
        cur = await self.conn.execute(
            "SELECT * FROM tokens WHERE address = ?", (address,)
        )
        row = await cur.fetchone()
        await cur.close()
        return row

    async def upsert_token(
        self, record: TokenRecord, passed: bool, reasons: List[str], ts: int
    ) -> None:
        assert self.conn is not None
        await self.conn.execute(
            """
            INSERT INTO tokens (
                address, record_json, passed, reasons_json, market_cap,
                first_seen_at, last_updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(address) DO UPDATE SET
                record_json = excluded.record_json,
                passed = excluded.passed,
                reasons_json = excluded.reasons_json,
                market_cap = excluded.market_cap,
                last_updated_at = excluded.last_updated_at
            """,
            (
                record.address,
                json.dumps(record.to_dict(), ensure_ascii=True),
                1 if passed else 0,
                json.dumps(reasons, ensure_ascii=True),
                record.market_cap,
                ts,
                ts,
            ),
        )
        await self.conn.commit()

    async def update_last_alerted(self, address: str, ts: int) -> None:
        assert self.conn is not None
        await self.conn.execute(
            "UPDATE tokens SET last_alerted_at = ? WHERE address = ?",
            (ts, address),
        )
        await self.conn.commit()

    async def get_top_tokens(self, limit: int, min_updated_at: int = 0) -> List[aiosqlite.Row]:
        assert self.conn is not None
        cur = await self.conn.execute(
            """
            SELECT * FROM tokens
            WHERE last_updated_at >= ?
            ORDER BY market_cap DESC, last_updated_at DESC
            LIMIT ?
            """,
            (min_updated_at, limit),
        )
        rows = await cur.fetchall()
        await cur.close()
        return list(rows)

    async def count_tokens(self) -> int:
        assert self.conn is not None
        cur = await self.conn.execute("SELECT COUNT(*) FROM tokens")
        row = await cur.fetchone()
        await cur.close()
        return int(row[0]) if row else 0

    async def set_state(self, key: str, value: str) -> None:
        assert self.conn is not None
        await self.conn.execute(
            """
            INSERT INTO state (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (key, value),
        )
        await self.conn.commit()

    async def get_state(self, key: str) -> Optional[str]:
        assert self.conn is not None
        cur = await self.conn.execute(
            "SELECT value FROM state WHERE key = ?", (key,)
        )
        row = await cur.fetchone()
        await cur.close()
        return row["value"] if row else None

    async def get_state_int(self, key: str, default: int = 0) -> int:
        value = await self.get_state(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            return default

    async def increment_state_int(self, key: str, amount: int) -> int:
        assert self.conn is not None
        await self.conn.execute(
            """
            INSERT INTO state (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = CAST(value AS INTEGER) + ?
            """,
            (key, str(amount), amount),
        )
        await self.conn.commit()
        return await self.get_state_int(key, 0)


def record_from_row(row) -> TokenRecord:
    return TokenRecord.from_dict(json.loads(row["record_json"]))
