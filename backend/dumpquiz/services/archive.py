"""Archive of uploaded source documents.

Archiving is a side channel: failures are logged and never reach the
upload flow.
"""
import logging
from pathlib import Path
from typing import Optional

from ..config import ARCHIVE_DIR

logger = logging.getLogger(__name__)


class BlobStore:
    """Directory-backed blob storage keyed by relative paths."""

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root is not None else ARCHIVE_DIR
        self.root.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Invalid blob key: {key}")
        return path

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Store ``data`` under ``key`` and return the key."""
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info(f"Stored blob {key} ({len(data)} bytes, {content_type})")
        return key

    def exists(self, key: str) -> bool:
        return self._path_for(key).is_file()


def archive_key(email: str, filename: str) -> str:
    """``<email local part>/<file name>``"""
    prefix = (email or "unknown").split("@")[0] or "unknown"
    return f"{prefix}/{Path(filename).name}"


def archive_source_pdf(blob_store: BlobStore, email: str, filename: str, data: bytes) -> Optional[str]:
    """Upload the original PDF; returns the key, or None if archiving failed."""
    try:
        return blob_store.put(archive_key(email, filename), data, "application/pdf")
    except Exception as e:
        logger.warning(f"Archiving {filename} failed (ignored): {e}")
        return None
