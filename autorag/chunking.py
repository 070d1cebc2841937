from typing import List


def chunk(text: str, chunk_size: int = 1000, overlap: int = 200) -> List[str]:
    """
    Split text into fixed-size character windows that overlap by `overlap`.

    Window i starts at i * (chunk_size - overlap) and ends at
    min(start + chunk_size, len(text)). Windowing stops as soon as a window
    reaches the end of the text, so a non-empty text produces
    ceil((len - overlap) / (chunk_size - overlap)) chunks (at least one).
    Empty text produces no chunks.

    Raises:
        ValueError: If chunk_size <= 0 or overlap is outside [0, chunk_size).
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if not 0 <= overlap < chunk_size:
        raise ValueError(
            f"overlap must be >= 0 and < chunk_size ({chunk_size}), got {overlap}"
        )

    n = len(text)
    step = chunk_size - overlap
    chunks = []

    start = 0
    while start < n:
        end = min(start + chunk_size, n)
        chunks.append(text[start:end])
        if end >= n:
            break
        start += step

    return chunks
