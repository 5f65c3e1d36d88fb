import time
from dataclasses import dataclass
from typing import Callable, List

from voicecanvas.config import TRANSCRIPT_MAX_AGE_SECONDS, TRANSCRIPT_MAX_CHUNKS


@dataclass
class TranscriptChunk:
    text: str
    received_at: float


class TranscriptAccumulator:
    """Rolling window of recent transcript chunks, bounded by count and age."""

    def __init__(
        self,
        max_chunks: int = TRANSCRIPT_MAX_CHUNKS,
        max_age: float = TRANSCRIPT_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_chunks = max_chunks
        self.max_age = max_age
        self.clock = clock
        self._chunks: List[TranscriptChunk] = []

    def add_chunk(self, text: str) -> None:
        text = (text or "").strip()
        if not text:
            return
        self._chunks.append(TranscriptChunk(text=text, received_at=self.clock()))
        self._prune()

    def _prune(self) -> None:
        cutoff = self.clock() - self.max_age
        self._chunks = [c for c in self._chunks if c.received_at >= cutoff][-self.max_chunks:]

    @property
    def chunks(self) -> List[str]:
        self._prune()
        return [c.text for c in self._chunks]

    def full_text(self) -> str:
        return " ".join(self.chunks)

    def latest(self) -> str:
        chunks = self.chunks
        return chunks[-1] if chunks else ""

    def recent_context(self, count: int = 3) -> str:
        """The chunks before the latest one, oldest first."""
        return " ".join(self.chunks[:-1][-count:])

    def clear(self) -> None:
        self._chunks = []
