"""Media manifest: logical asset names → servable resource URLs.

Questions reference media by logical name (``apple.png``). The mapping to an
actual resource lives in a JSON manifest loaded once at start-up, so adding an
asset is a data change rather than a code change.
"""

import json
import logging
from pathlib import Path

from cardquiz.config import settings

logger = logging.getLogger(__name__)


class MediaManifest:
    def __init__(self, entries: dict[str, str], base_url: str = "") -> None:
        self._entries = dict(entries)
        self._base_url = base_url.rstrip("/")

    @classmethod
    def load(cls, path: str | Path, base_url: str = "") -> "MediaManifest":
        """Load a manifest file. A missing or malformed file yields an empty manifest."""
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.warning("Media manifest not found at %s", path)
            return cls({}, base_url)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Media manifest at %s unreadable: %s", path, e)
            return cls({}, base_url)

        if not isinstance(raw, dict):
            logger.warning("Media manifest at %s is not an object", path)
            return cls({}, base_url)
        entries = {str(k): str(v) for k, v in raw.items() if isinstance(v, str)}
        logger.info("Loaded %d media entries from %s", len(entries), path)
        return cls(entries, base_url)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def resolve(self, name: str | None) -> str | None:
        """Return the URL for *name*; absolute URLs pass through untouched."""
        if not name:
            return None
        if name.startswith(("http://", "https://")):
            return name
        target = self._entries.get(name)
        if target is None:
            logger.debug("No media entry for %r", name)
            return None
        if target.startswith(("http://", "https://")) or not self._base_url:
            return target
        return f"{self._base_url}/{target.lstrip('/')}"


_manifest: MediaManifest | None = None


def get_media_manifest() -> MediaManifest:
    """Process-wide manifest (lazy singleton, like the DB engine)."""
    global _manifest
    if _manifest is None:
        _manifest = MediaManifest.load(settings.MEDIA_MANIFEST_PATH, settings.MEDIA_BASE_URL)
    return _manifest
