"""Split document text into overlapping windows for the completion capability."""


def split_text(text: str, size: int = 8000, overlap: int = 500) -> list[str]:
    """Split text into overlapping fixed-size windows.

    Windows start at multiples of ``size - overlap``. Overlap keeps a task
    description that straddles a boundary whole in at least one window.
    Dropping the first ``overlap`` characters of every window after the
    first and concatenating gives back the original text.

    Args:
        text: Text to split
        size: Window size in characters
        overlap: Characters shared by adjacent windows

    Returns:
        List of windows; exactly one when the text fits in a single window

    Raises:
        ValueError: If size <= 0, overlap < 0 or overlap >= size
    """
    if size <= 0:
        raise ValueError(f"size must be positive, got {size}")
    if overlap < 0:
        raise ValueError(f"overlap must not be negative, got {overlap}")
    if overlap >= size:
        raise ValueError(f"overlap ({overlap}) must be smaller than size ({size})")

    if len(text) <= size:
        return [text]

    step = size - overlap
    chunks = []
    start = 0

    while start < len(text):
        end = min(start + size, len(text))
        chunks.append(text[start:end])
        if end == len(text):
            break
        start += step

    return chunks
