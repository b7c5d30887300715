from __future__ import annotations

import logging
import os
import random
import time
from typing import BinaryIO, Iterable, Optional

from catalog.config import settings
from catalog.constants import UPLOADS_URL_PREFIX
from catalog.db.sqlite import ClassStore
from catalog.errors import ValidationError

logger = logging.getLogger(__name__)

_CHUNK = 1024 * 1024


def _local_path(video: str, uploads_dir: Optional[str] = None) -> str:
    # только имя файла: путь из базы не должен выводить за пределы uploads
    return os.path.join(uploads_dir or settings.uploads_dir, os.path.basename(video))


def save_video(
    stream: BinaryIO,
    filename: str,
    uploads_dir: Optional[str] = None,
    max_bytes: Optional[int] = None,
) -> str:
    """Copies an uploaded video into UPLOADS_DIR and returns its public path."""
    uploads_dir = uploads_dir or settings.uploads_dir
    max_bytes = max_bytes or settings.max_video_mb * 1024 * 1024
    os.makedirs(uploads_dir, exist_ok=True)

    ext = os.path.splitext(filename or "")[1].lower()
    name = f"{int(time.time() * 1000)}-{random.randint(0, 999999)}{ext}"
    path = os.path.join(uploads_dir, name)

    written = 0
    with open(path, "wb") as out:
        while True:
            chunk = stream.read(_CHUNK)
            if not chunk:
                break
            written += len(chunk)
            if written > max_bytes:
                break
            out.write(chunk)

    if written > max_bytes:
        os.remove(path)
        raise ValidationError(f"Video file is too large (max {settings.max_video_mb} MB).")
    return UPLOADS_URL_PREFIX + name


def remove_uploaded(video: Optional[str], uploads_dir: Optional[str] = None) -> None:
    if not video or not video.startswith(UPLOADS_URL_PREFIX):
        return
    try:
        os.remove(_local_path(video, uploads_dir))
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove uploaded video %s: %s", video, e)


def release_videos(store: ClassStore, videos: Iterable[Optional[str]], uploads_dir: Optional[str] = None) -> None:
    """Deletes uploaded files that no record points at anymore."""
    for video in set(v for v in videos if v):
        if store.count_video_refs(video) == 0:
            remove_uploaded(video, uploads_dir)
