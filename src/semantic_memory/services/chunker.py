"""Document chunking.

Splits text into bounded fragments for independent embedding. The strategy
is fixed by configuration; callers only ever call ``chunk``.
"""

import re
from collections.abc import Callable, Iterable

from semantic_memory.core.config import ChunkingConfig, settings
from semantic_memory.core.logging import get_logger

logger = get_logger(__name__)

SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")
PARAGRAPH_BOUNDARY = re.compile(r"\n\s*\n")

MIN_CHUNK_LENGTH = 10
MIN_ALPHANUMERIC_RATIO = 0.1

# optimal_chunk_size heuristics
SHORT_CONTENT_LENGTH = 500
CODE_SPECIAL_CHAR_RATIO = 0.3
CODE_CHUNK_SIZE = 800


class Chunker:
    """Sentence, paragraph or fixed-window chunker.

    Every emitted chunk is at most ``chunk_size`` characters, except a single
    sentence that is longer than ``chunk_size`` on its own, which is emitted
    whole.
    """

    def __init__(self, config: ChunkingConfig | None = None):
        self.config = config or settings.chunking
        self._strategies: dict[str, Callable[[str], list[str]]] = {
            "sentence": self._chunk_by_sentence,
            "paragraph": self._chunk_by_paragraph,
            "fixed": self._chunk_by_fixed_size,
        }

    @property
    def strategy(self) -> str:
        return self.config.strategy

    @property
    def chunk_size(self) -> int:
        return self.config.chunk_size

    @property
    def overlap(self) -> int:
        return self.config.overlap

    def chunk(self, content: str) -> list[str]:
        """Split content into ordered chunks using the configured strategy."""
        content = content.strip()
        if not content:
            return []

        raw_chunks = self._strategies[self.strategy](content)
        chunks = self.validate_chunks(raw_chunks)

        logger.debug(
            "Chunked content",
            strategy=self.strategy,
            content_length=len(content),
            raw_chunks=len(raw_chunks),
            chunks=len(chunks),
        )
        return chunks

    def _chunk_by_sentence(self, content: str) -> list[str]:
        sentences = [s.strip() for s in SENTENCE_BOUNDARY.split(content) if s.strip()]

        chunks: list[str] = []
        current = ""
        for sentence in sentences:
            if current and len(current) + 1 + len(sentence) > self.chunk_size:
                chunks.append(current)
                seed = self._overlap_seed(current)
                if seed and len(seed) + 1 + len(sentence) <= self.chunk_size:
                    current = f"{seed} {sentence}"
                else:
                    current = sentence
            else:
                current = f"{current} {sentence}" if current else sentence

        if current:
            chunks.append(current)
        return chunks

    def _chunk_by_paragraph(self, content: str) -> list[str]:
        paragraphs = [p.strip() for p in PARAGRAPH_BOUNDARY.split(content) if p.strip()]

        chunks: list[str] = []
        current = ""
        for paragraph in paragraphs:
            if len(paragraph) > self.chunk_size:
                if current:
                    chunks.append(current)
                    current = ""
                chunks.extend(self._chunk_by_sentence(paragraph))
                continue

            if current and len(current) + 2 + len(paragraph) > self.chunk_size:
                chunks.append(current)
                current = paragraph
            else:
                current = f"{current}\n\n{paragraph}" if current else paragraph

        if current:
            chunks.append(current)
        return chunks

    def _chunk_by_fixed_size(self, content: str) -> list[str]:
        chunks: list[str] = []
        length = len(content)
        start = 0

        while start < length:
            end = min(start + self.chunk_size, length)
            if end < length:
                end = self._snap_to_word_boundary(content, start, end)

            piece = content[start:end].strip()
            if piece:
                chunks.append(piece)

            if end >= length:
                break
            # Always advance by at least one character
            start = max(start + 1, end - self.overlap)

        return chunks

    def _snap_to_word_boundary(self, content: str, start: int, end: int) -> int:
        """Move a window end onto the closer neighbouring space.

        A following space is only eligible while the chunk stays within
        ``chunk_size``; with no eligible space the window is cut hard.
        """
        previous_space = content.rfind(" ", start + 1, end + 1)
        next_space = content.find(" ", end)
        if next_space != -1 and next_space - start > self.chunk_size:
            next_space = -1

        if previous_space != -1 and next_space != -1:
            return next_space if next_space - end < end - previous_space else previous_space
        if previous_space != -1:
            return previous_space
        if next_space != -1:
            return next_space
        return end

    def _overlap_seed(self, chunk: str) -> str:
        """Trailing ``overlap`` characters of a flushed chunk, starting on a word."""
        if self.overlap <= 0 or len(chunk) <= self.overlap:
            return ""

        tail = chunk[-self.overlap:]
        first_space = tail.find(" ")
        if 0 <= first_space < self.overlap / 2:
            tail = tail[first_space + 1:]
        return tail.strip()

    def validate_chunks(self, chunks: Iterable[str]) -> list[str]:
        """Drop near-empty and noise fragments."""
        valid: list[str] = []
        for chunk in chunks:
            chunk = chunk.strip()
            if len(chunk) < MIN_CHUNK_LENGTH:
                continue

            alphanumeric = sum(1 for char in chunk if char.isalnum())
            if alphanumeric / len(chunk) < MIN_ALPHANUMERIC_RATIO:
                continue

            valid.append(chunk)
        return valid

    def optimal_chunk_size(self, content: str) -> int:
        """Suggest a chunk size for the given content.

        Short content is kept whole; code-like content (many special
        characters) gets smaller chunks.
        """
        length = len(content)
        if length <= SHORT_CONTENT_LENGTH:
            return length

        special = sum(1 for char in content if not (char.isalnum() or char.isspace()))
        if special / length > CODE_SPECIAL_CHAR_RATIO:
            return min(CODE_CHUNK_SIZE, self.chunk_size)

        return self.chunk_size
