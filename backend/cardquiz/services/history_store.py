"""Local quiz-history store (offline progress fallback).

Each owner (a user id, or ``guest``) gets one JSON file holding a list of
history items, oldest first. An unreadable or malformed file is treated as
"no history", never as an error.
"""

import json
import logging
import re
import threading
from dataclasses import asdict, dataclass
from pathlib import Path

from cardquiz.config import settings

logger = logging.getLogger(__name__)

GUEST_OWNER = "guest"
_SAFE_OWNER = re.compile(r"[^A-Za-z0-9_-]")


@dataclass
class QuizHistoryItem:
    quiz_id: str
    category: str
    type: str
    score: int
    total: int
    accuracy: int
    time_spent: str
    last_attempt: str  # ISO-8601 timestamp

    @classmethod
    def from_dict(cls, raw: dict) -> "QuizHistoryItem":
        return cls(
            quiz_id=str(raw["quiz_id"]),
            category=str(raw.get("category") or "General"),
            type=str(raw.get("type") or "text"),
            score=int(raw.get("score", 0)),
            total=int(raw.get("total", 0)),
            accuracy=int(raw.get("accuracy", 0)),
            time_spent=str(raw.get("time_spent") or "0:00"),
            last_attempt=str(raw["last_attempt"]),
        )


def format_time_spent(seconds: float) -> str:
    """Render a duration as ``m:ss``."""
    total = max(0, int(round(seconds)))
    return f"{total // 60}:{total % 60:02d}"


class HistoryStore:
    def __init__(self, base_dir: str | Path, max_items: int = 200) -> None:
        self.base_dir = Path(base_dir)
        self.max_items = max_items
        self._lock = threading.Lock()

    def _path(self, owner: str | None) -> Path:
        name = _SAFE_OWNER.sub("_", owner or GUEST_OWNER)
        return self.base_dir / f"{name}.json"

    def load(self, owner: str | None) -> list[QuizHistoryItem]:
        path = self._path(owner)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Quiz history at %s unreadable, treating as empty: %s", path, e)
            return []

        if not isinstance(raw, list):
            logger.warning("Quiz history at %s is not a list, treating as empty", path)
            return []

        items: list[QuizHistoryItem] = []
        for entry in raw:
            try:
                items.append(QuizHistoryItem.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.debug("Dropping malformed history entry: %s", e)
        return items

    def save(self, owner: str | None, items: list[QuizHistoryItem]) -> None:
        path = self._path(owner)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = [asdict(item) for item in items[-self.max_items:]]
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(path)

    def append(self, owner: str | None, item: QuizHistoryItem) -> None:
        with self._lock:
            items = self.load(owner)
            items.append(item)
            self.save(owner, items)


_store: HistoryStore | None = None


def get_history_store() -> HistoryStore:
    """Process-wide store rooted at ``HISTORY_DIR`` (FastAPI dependency)."""
    global _store
    if _store is None:
        _store = HistoryStore(settings.HISTORY_DIR, settings.HISTORY_MAX_ITEMS)
    return _store
