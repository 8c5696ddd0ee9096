from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from image_ingestion import EncodedImage

logger = logging.getLogger(__name__)

Describer = Callable[[str, str], Awaitable[str]]


class RecordState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class PromptRecord:
    id: str
    filename: str
    mime_type: str
    content: str
    prompt: str = ""
    is_loading: bool = False
    error: Optional[str] = None

    @classmethod
    def from_image(cls, image: EncodedImage) -> "PromptRecord":
        return cls(
            id=image.id,
            filename=image.filename,
            mime_type=image.mime_type,
            content=image.content,
        )

    @property
    def state(self) -> RecordState:
        if self.is_loading:
            return RecordState.LOADING
        if self.error:
            return RecordState.FAILED
        if self.prompt:
            return RecordState.SUCCEEDED
        return RecordState.IDLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "filename": self.filename,
            "mime_type": self.mime_type,
            "content": self.content,
            "prompt": self.prompt,
            "is_loading": self.is_loading,
            "error": self.error,
            "state": self.state.value,
        }


class ReversePromptWorkflow:
    """Per-image reverse prompt state for one browser session.

    Records are kept in insertion order and are only ever replaced, never
    mutated in place. Results that arrive for a record removed in the
    meantime are dropped.
    """

    def __init__(self, describe: Describer):
        self._describe = describe
        self._records: Dict[str, PromptRecord] = {}
        self._generating_all = False

    @property
    def records(self) -> List[PromptRecord]:
        return list(self._records.values())

    @property
    def is_generating_all(self) -> bool:
        return self._generating_all

    def get(self, record_id: str) -> Optional[PromptRecord]:
        return self._records.get(record_id)

    def add_images(self, images: Iterable[EncodedImage]) -> List[PromptRecord]:
        added = []
        for image in images:
            if image.id in self._records:
                continue
            record = PromptRecord.from_image(image)
            self._records[record.id] = record
            added.append(record)
        return added

    def remove(self, record_id: str) -> bool:
        return self._records.pop(record_id, None) is not None

    def clear_all(self) -> None:
        self._records = {}

    def _merge(self, record_id: str, **changes: Any) -> Optional[PromptRecord]:
        current = self._records.get(record_id)
        if current is None:
            logger.info("Discarding result for removed record %s", record_id)
            return None
        updated = replace(current, **changes)
        self._records[record_id] = updated
        return updated

    async def generate(self, record_id: str) -> Optional[PromptRecord]:
        """Run one reverse prompt request for ``record_id``.

        Returns the record after the attempt, or ``None`` when the record is
        unknown, already loading, or was removed before the result arrived.
        """
        record = self._records.get(record_id)
        if record is None or record.is_loading:
            return None

        record = self._merge(record_id, prompt="", error=None, is_loading=True)
        try:
            prompt = await self._describe(record.content, record.mime_type)
        except Exception as exc:
            logger.warning("Reverse prompt failed for %s: %s", record.filename, exc)
            return self._merge(record_id, error=str(exc) or exc.__class__.__name__, is_loading=False)
        return self._merge(record_id, prompt=prompt, is_loading=False)

    async def generate_all(self) -> int:
        """Generate prompts for every idle record, one request at a time.

        Returns the number of requests issued. A call made while another
        batch is running does nothing.
        """
        if self._generating_all:
            return 0

        self._generating_all = True
        pending = deque(r.id for r in self._records.values() if r.state is RecordState.IDLE)
        logger.info("Batch reverse prompt started for %d images", len(pending))
        issued = 0
        try:
            while pending:
                record_id = pending.popleft()
                record = self._records.get(record_id)
                if record is None or record.state is not RecordState.IDLE:
                    continue
                issued += 1
                await self.generate(record_id)
        finally:
            self._generating_all = False
        logger.info("Batch reverse prompt finished, %d requests issued", issued)
        return issued
