"""
Object storage for attachment files.

Objects are addressed by a path ``{user_id}/{entity_type}/{entity_id}/{filename}``
and exposed through a public URL that ends with that path, which is how a
path is recovered from a stored URL when the object must be removed.
"""
import logging
import os
from pathlib import Path
from typing import Iterable, List, Protocol

from config import settings

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "/files/attachments"
PATH_SEGMENTS = 4


class ObjectStorage(Protocol):
    def upload(self, path: str, content: bytes, content_type: str) -> str: ...

    def remove(self, paths: Iterable[str]) -> None: ...

    def resolve(self, path: str) -> Path: ...


def path_from_url(url: str) -> str:
    """Recover the storage path from a public URL (its last four segments)."""
    segments = [s for s in url.split("?", 1)[0].split("/") if s]
    if len(segments) < PATH_SEGMENTS:
        raise ValueError(f"Not an attachment URL: {url}")
    return "/".join(segments[-PATH_SEGMENTS:])


class LocalObjectStorage:
    """Stores objects on local disk under `base_dir` and serves them via the API."""

    def __init__(self, base_dir: str, public_base_url: str):
        self.base_dir = Path(base_dir).resolve()
        self.public_base_url = public_base_url.rstrip("/")

    def resolve(self, path: str) -> Path:
        target = (self.base_dir / path).resolve()
        if self.base_dir not in target.parents:
            raise ValueError(f"Invalid storage path: {path}")
        return target

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}{PUBLIC_PREFIX}/{path}"

    def upload(self, path: str, content: bytes, content_type: str) -> str:
        target = self.resolve(path)
        if target.exists():
            raise FileExistsError(f"Object already exists: {path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as buffer:
            buffer.write(content)
        logger.info("Stored %s (%s, %d bytes)", path, content_type, len(content))
        return self.public_url(path)

    def remove(self, paths: Iterable[str]) -> None:
        for path in paths:
            target = self.resolve(path)
            if target.exists():
                os.remove(target)


storage = LocalObjectStorage(settings.upload_dir, settings.public_base_url)


def get_storage() -> ObjectStorage:
    return storage


def remove_objects_quietly(storage: ObjectStorage, urls: List[str]) -> None:
    """Best-effort removal of stored files whose rows are already gone."""
    for url in urls:
        try:
            storage.remove([path_from_url(url)])
        except (OSError, ValueError) as e:
            logger.warning("Could not remove stored file %s: %s", url, e)
