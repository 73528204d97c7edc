import logging
import re
from pathlib import Path
from typing import List


def sanitize_blob_path(path: str) -> str:
    """Normalize a caller-supplied object path to a safe relative path."""
    parts = []
    for part in path.replace("\\", "/").split("/"):
        part = re.sub(r"[^\w.-]", "_", part.strip())
        if part in ("", ".", ".."):
            continue
        parts.append(part)
    if not parts:
        raise ValueError(f"Invalid blob path: {path!r}")
    return "/".join(parts)


def page_image_path(book_id: str, filename: str) -> str:
    return f"book-pages/{book_id}/{filename}"


class LocalBlobStore:
    """Blob store on local disk; files are served from ``public_base_url``."""

    def __init__(self, root: str | Path, public_base_url: str):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        return self.root / sanitize_blob_path(path)

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{sanitize_blob_path(path)}"

    async def put(self, path: str, data: bytes, content_type: str) -> str:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as f:
            f.write(data)
        logging.info(f"Stored {len(data)} bytes ({content_type}) at {target}")
        return self.public_url(path)

    async def remove(self, paths: List[str]) -> None:
        for path in paths:
            target = self._resolve(path)
            if target.exists():
                target.unlink()
