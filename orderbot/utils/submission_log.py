from pathlib import Path
import csv
import time
from typing import Dict

COLUMNS = [
    "ts", "strategy", "owner", "asset", "side", "quantity", "fee", "total_spend",
    "quote_id", "handle", "tx_hash", "order_id", "order_account", "status", "error",
]


class SubmissionLogger:
    def __init__(self, path: str = "logs/submissions.csv"):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_header()

    def _ensure_header(self):
        if not self.path.exists() or self.path.stat().st_size == 0:
            with self.path.open("w", newline="", encoding="utf-8") as f:
                csv.writer(f).writerow(COLUMNS)

    def log_submission(self, record: Dict):
        ts = record.get("ts") or time.time()
        with self.path.open("a", newline="", encoding="utf-8") as f:
            w = csv.writer(f)
            w.writerow([ts] + ["" if record.get(col) is None else record[col] for col in COLUMNS[1:]])

    def read_submissions(self):
        with self.path.open("r", newline="", encoding="utf-8") as f:
            return list(csv.DictReader(f))
