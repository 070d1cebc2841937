import math

import pytest

from autorag.chunking import chunk


def _expected_count(length, size, overlap):
    return max(1, math.ceil((length - overlap) / (size - overlap)))


def _reassemble(pieces, overlap):
    text = pieces[0]
    for piece in pieces[1:]:
        text += piece[overlap:]
    return text


@pytest.mark.parametrize(
    "length,size,overlap",
    [
        (1, 10, 0),
        (5, 10, 3),
        (10, 10, 3),
        (11, 10, 3),
        (1000, 1000, 200),
        (1001, 1000, 200),
        (2500, 1000, 200),
        (97, 7, 6),
        (64, 8, 0),
    ],
)
def test_chunk_count_size_and_reconstruction(length, size, overlap):
    text = "".join(chr(ord("a") + i % 26) for i in range(length))

    pieces = chunk(text, size, overlap)

    assert len(pieces) == _expected_count(length, size, overlap)
    assert all(len(p) <= size for p in pieces)
    assert _reassemble(pieces, overlap) == text


def test_chunk_windows_start_at_stride():
    text = "0123456789" * 3
    pieces = chunk(text, 10, 4)

    step = 6
    for i, piece in enumerate(pieces):
        start = i * step
        assert piece == text[start:min(start + 10, len(text))]


def test_empty_text_gives_no_chunks():
    assert chunk("", 1000, 200) == []


def test_short_text_is_single_chunk():
    assert chunk("Hello world", 1000, 200) == ["Hello world"]


@pytest.mark.parametrize("size,overlap", [(0, 0), (-1, 0), (10, 10), (10, 11), (10, -1)])
def test_invalid_configuration_fails_fast(size, overlap):
    with pytest.raises(ValueError):
        chunk("some text", size, overlap)
