# services/photos.py
import base64
import binascii
import io
import logging
import os
import re
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from donosti.background import run_sync

logger = logging.getLogger(__name__)


def clean_filename(name: str) -> str:
    name = os.path.basename(name)
    name = re.sub(r"[^\w\-_.]", "_", name)
    return name


class PhotoError(Exception):
    pass


class PhotoStore:
    """
    Stores post photos as JPEG files under ``root`` and serves them at
    ``<base_url>/<name>.jpg`` (the directory is mounted as static files).
    """
    def __init__(self, root: Path, base_url: str, max_side: int = 1600):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.max_side = max_side

    @staticmethod
    def decode(data: str) -> bytes:
        # accepts "data:image/png;base64,...." or bare base64
        payload = data.split(",", 1)[1] if data.startswith("data:") and "," in data else data
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise PhotoError(f"invalid base64 image data: {exc}") from exc

    def _write_jpeg(self, raw: bytes, dst: Path) -> None:
        try:
            with Image.open(io.BytesIO(raw)) as im:
                im = im.convert("RGB")
                im.thumbnail((self.max_side, self.max_side))
                dst.parent.mkdir(parents=True, exist_ok=True)
                im.save(dst, "JPEG", quality=85, optimize=True)
        except (UnidentifiedImageError, OSError) as exc:
            raise PhotoError(f"unreadable image: {exc}") from exc

    def _path_for(self, name: str) -> Path:
        return self.root / f"{clean_filename(name)}.jpg"

    def url_for(self, name: str) -> str:
        return f"{self.base_url}/{self._path_for(name).name}"

    async def save(self, name: str, data: str) -> str:
        """Decode, re-encode as JPEG and return the public URL."""
        raw = self.decode(data)
        await run_sync(self._write_jpeg, raw, self._path_for(name))
        return self.url_for(name)

    def _path_from_url(self, url: str) -> Optional[Path]:
        filename = (url or "").split("?", 1)[0].rsplit("/", 1)[-1]
        if not filename:
            return None
        return self.root / clean_filename(filename)

    async def remove(self, url: str) -> bool:
        path = self._path_from_url(url)
        if path is None or not path.exists():
            return False
        await run_sync(path.unlink)
        logger.info("Removed photo %s", path.name)
        return True
