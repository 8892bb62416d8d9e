"""Unit tests for the paragraph chunker."""

from __future__ import annotations

import re

import pytest

from knowledge_rag.ingestion.chunker import ChunkSequence, chunk_text, iter_chunks, split_paragraphs

SAMPLE = """# Printform Manufacturing

Printform is a custom parts manufacturer.

## CNC Machining
Precision manufacturing for metal and plastic parts.
Tolerances as tight as 0.001 inch.



## Injection Molding
High-volume production of plastic parts.
"""


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def test_example_three_paragraphs() -> None:
    """Each paragraph becomes its own chunk when two never fit together."""
    chunks = list(chunk_text("Para one.\n\nPara two.\n\nPara three.", 12))
    assert chunks == ["Para one.", "Para two.", "Para three."]


def test_small_paragraphs_are_merged() -> None:
    chunks = list(chunk_text("a\n\nb\n\nc", 100))
    assert chunks == ["a\n\nb\n\nc"]


def test_oversized_paragraph_is_not_split() -> None:
    long_para = "word " * 100
    chunks = list(chunk_text(f"short\n\n{long_para}\n\ntail", 50))
    assert chunks == ["short", long_para.strip(), "tail"]


def test_empty_and_whitespace_input_yield_nothing() -> None:
    assert list(chunk_text("", 100)) == []
    assert list(chunk_text("  \n\n \t \n", 100)) == []


def test_whitespace_only_lines_count_as_blank() -> None:
    assert split_paragraphs("one\n   \ntwo\r\n\r\nthree") == ["one", "two", "three"]


@pytest.mark.parametrize("blank", ["\u00a0", "\u3000", " \u00a0\t"])
def test_unicode_whitespace_lines_count_as_blank(blank: str) -> None:
    assert split_paragraphs(f"one\n{blank}\ntwo") == ["one", "two"]
    assert list(chunk_text(f"alpha\n{blank}\nbeta", target_size=5)) == ["alpha", "beta"]


def test_multiline_paragraph_kept_together() -> None:
    paragraphs = split_paragraphs(SAMPLE)
    assert "## CNC Machining\nPrecision manufacturing for metal and plastic parts.\nTolerances as tight as 0.001 inch." in paragraphs
    assert len(paragraphs) == 4


@pytest.mark.parametrize("target_size", [1, 20, 60, 150, 10_000])
def test_chunks_reconstruct_original_paragraphs(target_size: int) -> None:
    chunks = list(chunk_text(SAMPLE, target_size))
    assert all(chunk.strip() for chunk in chunks)
    assert _normalize("\n\n".join(chunks)) == _normalize(SAMPLE)


@pytest.mark.parametrize("target_size", [1, 20, 60, 150])
def test_paragraphs_never_span_two_chunks(target_size: int) -> None:
    paragraphs = split_paragraphs(SAMPLE)
    chunks = list(chunk_text(SAMPLE, target_size))
    for paragraph in paragraphs:
        assert any(paragraph in chunk.split("\n\n") for chunk in chunks)


def test_chunks_respect_target_unless_single_paragraph() -> None:
    for chunk in chunk_text(SAMPLE, 60):
        # the separator before the last merged paragraph is not counted
        assert len(chunk) <= 60 + 2 or "\n\n" not in chunk


def test_sequence_is_lazy_and_restartable() -> None:
    seq = chunk_text(SAMPLE, 40)
    assert isinstance(seq, ChunkSequence)
    first = list(seq)
    second = list(seq)
    assert first == second
    assert len(first) > 1


def test_iter_chunks_is_a_generator() -> None:
    gen = iter_chunks("a\n\nb", 1)
    assert next(gen) == "a"
    assert next(gen) == "b"
    with pytest.raises(StopIteration):
        next(gen)


def test_invalid_target_size_rejected() -> None:
    with pytest.raises(ValueError):
        chunk_text("text", 0)
