from __future__ import annotations

import base64
import logging
import uuid
from dataclasses import dataclass
from typing import Iterable, List, Protocol

logger = logging.getLogger(__name__)


class CandidateFile(Protocol):
    """Anything shaped like a Starlette ``UploadFile``."""

    filename: str | None
    content_type: str | None

    async def read(self) -> bytes:  # pragma: no cover - protocol
        ...


@dataclass(frozen=True)
class EncodedImage:
    id: str
    filename: str
    mime_type: str
    content: str  # base64


def is_image_type(content_type: str | None) -> bool:
    return bool(content_type) and content_type.startswith("image/")


async def encode_file(file: CandidateFile) -> EncodedImage:
    payload = await file.read()
    return EncodedImage(
        id=str(uuid.uuid4()),
        filename=file.filename or "",
        mime_type=file.content_type or "",
        content=base64.b64encode(payload).decode("utf-8"),
    )


async def ingest_files(files: Iterable[CandidateFile]) -> List[EncodedImage]:
    """Encode every image among ``files``.

    Non-image files and files that fail to read are logged and skipped; they
    never stop the rest of the batch.
    """
    images: List[EncodedImage] = []
    for file in files:
        if not is_image_type(file.content_type):
            logger.warning("Skipping non-image file: %s (%s)", file.filename, file.content_type)
            continue
        try:
            images.append(await encode_file(file))
        except Exception:
            logger.exception("Error processing file %s", file.filename)
    return images
