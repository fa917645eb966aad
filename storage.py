import logging
import os
import random
import shutil
import string
from typing import BinaryIO, Optional

from repositories import next_millis

logger = logging.getLogger(__name__)

MAX_IMAGES = 5
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def _random_suffix(length: int = 11) -> str:
    return "".join(random.choices(_SUFFIX_ALPHABET, k=length))


class ImageStorage:
    """Stores uploaded product images on disk, served under /images."""

    def __init__(self, upload_dir: str):
        self.upload_dir = upload_dir
        os.makedirs(upload_dir, exist_ok=True)

    def filename_for(self, original_name: Optional[str]) -> str:
        ext = os.path.splitext(original_name or "")[1].lower()
        return f"{next_millis()}_{_random_suffix()}{ext}"

    def save(self, fileobj: BinaryIO, original_name: Optional[str]) -> str:
        filename = self.filename_for(original_name)
        with open(os.path.join(self.upload_dir, filename), "wb") as out:
            shutil.copyfileobj(fileobj, out)
        logger.debug("Stored image %s as %s", original_name, filename)
        return filename
