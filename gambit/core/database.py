"""
Database module for persistent storage.
Uses SQLite for wallets, the prize pool, session records, bonus credits
and the notification log.
"""

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from gambit.core.logger import get_logger

logger = get_logger("database")

# Account that holds the pooled funds every payout is drawn from
POOL_ACCOUNT = "__pool__"

SESSION_COLUMNS = (
    "player",
    "last_action_block",
    "last_action_boosted",
    "pending",
    "daily_streak_day",
    "daily_streak_length",
    "weekly_streak_week",
    "weekly_streak_length",
)


class Database:
    """
    SQLite wrapper shared by every request.

    One connection guarded by a re-entrant lock: calls are serialized, and
    `transaction()` blocks nest so a whole machine call commits or rolls
    back as one unit.
    """

    def __init__(self, path: Union[Path, str]):
        self.path = path
        if isinstance(path, Path):
            path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initializing database at {path}")

        self._lock = threading.RLock()
        self._depth = 0
        # Autocommit mode; transaction() issues BEGIN/COMMIT itself
        self._conn = sqlite3.connect(str(path), check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self):
        with self.transaction() as cursor:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS accounts (
                    address TEXT PRIMARY KEY,
                    balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0),
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    last_active TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """
            )

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS players (
                    player TEXT PRIMARY KEY,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """
            )

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    player TEXT PRIMARY KEY,
                    last_action_block INTEGER NOT NULL DEFAULT 0,
                    last_action_boosted INTEGER NOT NULL DEFAULT 0,
                    pending INTEGER NOT NULL DEFAULT 0,
                    daily_streak_day INTEGER NOT NULL DEFAULT 0,
                    daily_streak_length INTEGER NOT NULL DEFAULT 0,
                    weekly_streak_week INTEGER NOT NULL DEFAULT 0,
                    weekly_streak_length INTEGER NOT NULL DEFAULT 0,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """
            )

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS bonus_credits (
                    player TEXT PRIMARY KEY,
                    balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0)
                )
            """
            )

            # Append-only notification log
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    block INTEGER NOT NULL,
                    kind TEXT NOT NULL,
                    player TEXT NOT NULL,
                    boosted INTEGER,
                    amount INTEGER,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """
            )

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS chain_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """
            )

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_events_player ON events(player)")
            cursor.execute(
                "INSERT OR IGNORE INTO accounts (address, balance) VALUES (?, 0)",
                (POOL_ACCOUNT,),
            )

    @contextmanager
    def transaction(self):
        """
        Run a block of statements atomically.

        Nested blocks join the outermost transaction; an exception anywhere
        rolls the whole thing back.
        """
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                self._conn.execute("BEGIN IMMEDIATE")
            self._depth += 1
            try:
                yield self._conn.cursor()
            except BaseException:
                self._depth -= 1
                if outermost:
                    self._conn.execute("ROLLBACK")
                raise
            else:
                self._depth -= 1
                if outermost:
                    self._conn.execute("COMMIT")

    def _fetchone(self, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    def close(self):
        with self._lock:
            self._conn.close()

    # ==================== Balance Operations ====================

    def get_balance(self, address: str) -> int:
        row = self._fetchone("SELECT balance FROM accounts WHERE address = ?", (address,))
        return row["balance"] if row else 0

    def update_balance(self, address: str, delta: int) -> int:
        """
        Add `delta` to an account, creating it if needed. Returns the new balance.

        Raises:
            ValueError: if the balance would go negative.
        """
        with self.transaction() as cursor:
            current = self.get_balance(address)
            new_balance = current + delta
            if new_balance < 0:
                raise ValueError(
                    f"balance of {address} would drop below zero ({current} + {delta})"
                )
            cursor.execute(
                """
                INSERT INTO accounts (address, balance, last_active) VALUES (?, ?, ?)
                ON CONFLICT(address) DO UPDATE SET
                    balance = excluded.balance, last_active = excluded.last_active
            """,
                (address, new_balance, datetime.now().isoformat()),
            )
        return new_balance

    def get_pool_balance(self) -> int:
        return self.get_balance(POOL_ACCOUNT)

    # ==================== Players ====================

    def register_player(self, player: str) -> bool:
        """
        Claim a player identity. Returns False if it is already taken, either
        by an earlier registration or by a wallet, session or credit balance
        created for it out of band.
        """
        with self.transaction() as cursor:
            for table, column in (
                ("accounts", "address"),
                ("sessions", "player"),
                ("bonus_credits", "player"),
            ):
                cursor.execute(f"SELECT 1 FROM {table} WHERE {column} = ?", (player,))
                if cursor.fetchone():
                    return False
            cursor.execute(
                "INSERT OR IGNORE INTO players (player, created_at) VALUES (?, ?)",
                (player, datetime.now().isoformat()),
            )
            return cursor.rowcount == 1

    # ==================== Session Records ====================

    def get_session(self, player: str) -> Optional[Dict]:
        row = self._fetchone(
            f"SELECT {', '.join(SESSION_COLUMNS)} FROM sessions WHERE player = ?",
            (player,),
        )
        if not row:
            return None
        record = dict(row)
        record["last_action_boosted"] = bool(record["last_action_boosted"])
        record["pending"] = bool(record["pending"])
        return record

    def save_session(self, record: Dict):
        values = [record[column] for column in SESSION_COLUMNS]
        values[SESSION_COLUMNS.index("last_action_boosted")] = int(record["last_action_boosted"])
        values[SESSION_COLUMNS.index("pending")] = int(record["pending"])

        placeholders = ", ".join("?" for _ in SESSION_COLUMNS)
        updates = ", ".join(f"{c} = excluded.{c}" for c in SESSION_COLUMNS[1:])
        with self.transaction() as cursor:
            cursor.execute(
                f"""
                INSERT INTO sessions ({', '.join(SESSION_COLUMNS)}, updated_at)
                VALUES ({placeholders}, ?)
                ON CONFLICT(player) DO UPDATE SET {updates}, updated_at = excluded.updated_at
            """,
                (*values, datetime.now().isoformat()),
            )

    # ==================== Bonus Credits ====================

    def get_credits(self, player: str) -> int:
        row = self._fetchone("SELECT balance FROM bonus_credits WHERE player = ?", (player,))
        return row["balance"] if row else 0

    def update_credits(self, player: str, delta: int) -> int:
        with self.transaction() as cursor:
            new_balance = self.get_credits(player) + delta
            if new_balance < 0:
                raise ValueError(f"bonus credits of {player} would drop below zero")
            cursor.execute(
                """
                INSERT INTO bonus_credits (player, balance) VALUES (?, ?)
                ON CONFLICT(player) DO UPDATE SET balance = excluded.balance
            """,
                (player, new_balance),
            )
        return new_balance

    def get_total_credits(self) -> int:
        row = self._fetchone("SELECT COALESCE(SUM(balance), 0) AS total FROM bonus_credits")
        return row["total"]

    # ==================== Notification Log ====================

    def log_event(
        self,
        kind: str,
        player: str,
        block: int,
        boosted: Optional[bool] = None,
        amount: Optional[int] = None,
    ) -> int:
        """
        Append a notification row. Returns its id.

        `amount` depends on the kind: the payout for "award", the new streak
        length for "daily_streak" / "weekly_streak", NULL for "spin".
        """
        with self.transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO events (block, kind, player, boosted, amount, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """,
                (
                    block,
                    kind,
                    player,
                    None if boosted is None else int(boosted),
                    amount,
                    datetime.now().isoformat(),
                ),
            )
            return cursor.lastrowid

    def get_events(self, player: str = None, kind: str = None, limit: int = 50) -> List[Dict]:
        """Newest events first."""
        clauses, params = [], []
        if player:
            clauses.append("player = ?")
            params.append(player)
        if kind:
            clauses.append("kind = ?")
            params.append(kind)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        rows = self._fetchall(
            f"""
            SELECT id, block, kind, player, boosted, amount, created_at
            FROM events {where}
            ORDER BY id DESC LIMIT ?
        """,
            (*params, limit),
        )
        events = []
        for row in rows:
            event = dict(row)
            if event["boosted"] is not None:
                event["boosted"] = bool(event["boosted"])
            events.append(event)
        return events

    # ==================== Chain ====================

    def get_block_height(self, default: int = 1) -> int:
        row = self._fetchone("SELECT value FROM chain_meta WHERE key = 'block_height'")
        return int(row["value"]) if row else default

    def set_block_height(self, height: int):
        with self.transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO chain_meta (key, value) VALUES ('block_height', ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
                (str(height),),
            )

    # ==================== Stats ====================

    def get_stats(self) -> Dict:
        """Aggregate machine statistics for the operator."""
        row = self._fetchone(
            """
            SELECT
                SUM(CASE WHEN kind = 'spin' THEN 1 ELSE 0 END) AS spins,
                SUM(CASE WHEN kind = 'spin' AND boosted = 1 THEN 1 ELSE 0 END) AS boosted_spins,
                SUM(CASE WHEN kind = 'award' THEN 1 ELSE 0 END) AS awards,
                COALESCE(SUM(CASE WHEN kind = 'award' THEN amount ELSE 0 END), 0) AS total_awarded,
                COUNT(DISTINCT player) AS players
            FROM events
        """
        )
        row = dict(row)
        return {
            "spins": row["spins"] or 0,
            "boosted_spins": row["boosted_spins"] or 0,
            "awards": row["awards"] or 0,
            "total_awarded": row["total_awarded"],
            "players": row["players"],
            "pool_balance": self.get_pool_balance(),
            "bonus_credits_outstanding": self.get_total_credits(),
        }
