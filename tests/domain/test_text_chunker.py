import logging

import pytest

from kb_retrieval.domain.errors import ConfigurationError
from kb_retrieval.domain.services.chunking import ChunkingParams, TextChunker, chunk_text
from kb_retrieval.domain.services.tokens import count_tokens


def _assert_coverage(text, chunks):
    assert chunks[0].start_index == 0
    assert chunks[-1].end_index == len(text)
    for c in chunks:
        assert c.content == text[c.start_index : c.end_index]
        assert 0 <= c.start_index < c.end_index <= len(text)
    for prev, nxt in zip(chunks, chunks[1:]):
        assert nxt.start_index <= prev.end_index


def test_empty_text_gives_no_chunks():
    assert chunk_text("", "doc", 100, 10) == []


def test_short_text_is_one_chunk():
    chunks = chunk_text("Hello world.", "doc", 100, 10)

    assert len(chunks) == 1
    c = chunks[0]
    assert (c.start_index, c.end_index) == (0, 12)
    assert c.id == "doc-chunk-0"
    assert c.chunk_index == 0
    assert c.token_count == count_tokens("Hello world.")
    assert c.embedding == ()


def test_repeated_sentences_split_into_covering_chunks():
    text = "This is a sentence. " * 25  # 500 chars

    chunks = chunk_text(text, "doc", 100, 10)

    assert len(chunks) > 1
    assert all(c.end_index > c.start_index for c in chunks)
    assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
    _assert_coverage(text, chunks)


def test_cut_prefers_sentence_end():
    text = "Alpha beta. Gamma delta epsilon zeta."

    chunks = chunk_text(text, "doc", 5, 0)

    assert chunks[0].content.rstrip() == "Alpha beta."
    # No chunk ends in the middle of a word
    assert chunks[1].content.rstrip() == "Gamma delta epsilon"
    assert chunks[-1].content == "zeta."
    _assert_coverage(text, chunks)


def test_raw_cut_without_boundaries():
    text = "x" * 50

    chunks = chunk_text(text, "doc", 5, 0)

    assert [(c.start_index, c.end_index) for c in chunks] == [(0, 20), (20, 40), (40, 50)]


def test_consecutive_chunks_overlap():
    text = "word " * 100

    chunks = chunk_text(text, "doc", 25, 5)

    assert len(chunks) > 1
    for prev, nxt in zip(chunks, chunks[1:]):
        assert nxt.start_index < prev.end_index
    _assert_coverage(text, chunks)


def test_chunking_is_deterministic():
    text = "One. Two three four! Five six?\nSeven eight nine ten. " * 40

    assert chunk_text(text, "d", 20, 5) == chunk_text(text, "d", 20, 5)


def test_non_ascii_text_is_cut_on_code_points():
    text = "Привет мир. Это тест разбиения текста на части. " * 10

    chunks = chunk_text(text, "ru", 10, 2)

    _assert_coverage(text, chunks)


@pytest.mark.parametrize(
    "size,overlap",
    [(0, 0), (-5, 0), (10, -1), (10, 10), (10, 20)],
)
def test_invalid_params_fail_fast(size, overlap):
    with pytest.raises(ConfigurationError):
        chunk_text("some text", "doc", size, overlap)


def test_max_chunks_guard_stops_and_warns(caplog):
    chunker = TextChunker(ChunkingParams(chunk_size_tokens=1, overlap_tokens=0, max_chunks=3))

    with caplog.at_level(logging.WARNING):
        chunks = chunker.chunk("x" * 100, "doc")

    assert len(chunks) == 3
    assert chunks[-1].end_index == 12
    assert "maximum chunks" in caplog.text


@pytest.mark.parametrize(
    "text",
    [
        "Hello world." + "\n" * 500,
        "Hello world." + "\n" * 500 + "Second paragraph after a long gap.",
        "\n" * 500 + "Text after leading blank lines.",
        "First part.   " + " \t\n" * 300 + "Second part. " * 60 + "\n" * 450,
    ],
)
def test_long_whitespace_runs_never_produce_blank_chunks(text):
    chunks = chunk_text(text, "doc", 100, 10)

    assert chunks
    assert all(c.content.strip() for c in chunks)
    for nxt in chunks[1:]:
        assert not text[nxt.start_index].isspace()
    _assert_coverage(text, chunks)


def test_trailing_blank_lines_are_absorbed_into_last_chunk():
    text = "Hello world." + "\n" * 500

    chunks = chunk_text(text, "doc", 100, 10)

    assert [(c.start_index, c.end_index) for c in chunks] == [(0, len(text))]


def test_whitespace_only_text_gives_no_chunks():
    assert chunk_text(" \n\t\n   ", "doc", 100, 10) == []
