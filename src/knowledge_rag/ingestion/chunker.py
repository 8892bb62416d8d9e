"""Paragraph-greedy text chunking."""

from __future__ import annotations

import re
from collections.abc import Iterator

_BLANK_LINE = re.compile(r"\n[^\S\n]*(?:\n[^\S\n]*)*\n")

PARAGRAPH_SEPARATOR = "\n\n"


def split_paragraphs(text: str) -> list[str]:
    """Split *text* into paragraphs (maximal runs of non-blank lines).

    Whitespace-only lines count as blank.  Leading and trailing blank lines
    are dropped, so every returned paragraph has visible content.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    paragraphs: list[str] = []
    for block in _BLANK_LINE.split(text):
        lines = block.split("\n")
        while lines and not lines[0].strip():
            lines.pop(0)
        while lines and not lines[-1].strip():
            lines.pop()
        if lines:
            paragraphs.append("\n".join(lines))
    return paragraphs


def iter_chunks(text: str, target_size: int = 1000) -> Iterator[str]:
    """Yield chunks of *text*, each built from whole paragraphs.

    Paragraphs are appended to a running buffer until the next one would
    push it past *target_size* characters; the buffer is then emitted and
    restarted with that paragraph.  A paragraph longer than *target_size*
    is emitted on its own rather than split.

    Parameters
    ----------
    text:
        Extracted document text.
    target_size:
        Soft upper bound on chunk length, in characters.  The blank-line
        separator between merged paragraphs is not counted.
    """
    if target_size < 1:
        raise ValueError(f"target_size must be >= 1, got {target_size}")

    buffer = ""
    for paragraph in split_paragraphs(text):
        if buffer and len(buffer) + len(paragraph) > target_size:
            yield buffer
            buffer = ""
        buffer = f"{buffer}{PARAGRAPH_SEPARATOR}{paragraph}" if buffer else paragraph
    if buffer:
        yield buffer


class ChunkSequence:
    """Lazy, restartable view over the chunks of one text.

    Each iteration re-runs the chunker, so the sequence can be consumed
    more than once without holding every chunk in memory.
    """

    def __init__(self, text: str, target_size: int = 1000) -> None:
        if target_size < 1:
            raise ValueError(f"target_size must be >= 1, got {target_size}")
        self.text = text
        self.target_size = target_size

    def __iter__(self) -> Iterator[str]:
        return iter_chunks(self.text, self.target_size)

    def __repr__(self) -> str:
        return f"ChunkSequence(chars={len(self.text)}, target_size={self.target_size})"


def chunk_text(text: str, target_size: int = 1000) -> ChunkSequence:
    """Return the chunks of *text* as a :class:`ChunkSequence`."""
    return ChunkSequence(text, target_size)
