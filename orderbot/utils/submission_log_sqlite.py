import sqlite3
from pathlib import Path
import time
from typing import Dict, List

from .submission_log import COLUMNS


class SQLiteSubmissionLogger:
    def __init__(self, db_path: str = "logs/submissions.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self):
        return sqlite3.connect(self.db_path.as_posix(), timeout=5)

    def _init_db(self):
        with self._connect() as conn:
            c = conn.cursor()
            # amounts are uint256 on-chain, beyond sqlite INTEGER range, so they are stored as TEXT
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS submissions (
                  ts REAL,
                  strategy TEXT,
                  owner TEXT,
                  asset TEXT,
                  side TEXT,
                  quantity TEXT,
                  fee TEXT,
                  total_spend TEXT,
                  quote_id TEXT,
                  handle TEXT,
                  tx_hash TEXT,
                  order_id TEXT,
                  order_account TEXT,
                  status TEXT,
                  error TEXT
                )
                """
            )
            c.execute("CREATE INDEX IF NOT EXISTS ix_submissions_ts ON submissions(ts)")
            conn.commit()

    def log_submission(self, record: Dict):
        ts = float(record.get("ts") or time.time())
        row = [ts] + [str(record[col]) if record.get(col) is not None else None for col in COLUMNS[1:]]
        placeholders = ",".join("?" for _ in COLUMNS)
        with self._connect() as conn:
            conn.execute(f"INSERT INTO submissions ({', '.join(COLUMNS)}) VALUES ({placeholders})", row)
            conn.commit()

    def read_submissions(self) -> List[Dict]:
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute("SELECT * FROM submissions ORDER BY ts ASC").fetchall()
        return [dict(r) for r in rows]
