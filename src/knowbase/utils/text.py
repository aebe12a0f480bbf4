"""Line-respecting text chunking."""

from __future__ import annotations


def chunk_lines(text: str, *, max_chars: int = 900) -> list[str]:
    """Split text into chunks of at most ``max_chars`` without breaking lines.

    Lines are packed greedily in document order. A single line longer than
    ``max_chars`` is kept whole in its own chunk, so the bound is not a hard cap.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")

    chunks: list[str] = []
    buffer = ""
    for line in text.replace("\r", "").split("\n"):
        if len(buffer) + 1 + len(line) > max_chars:
            flushed = buffer.strip()
            if flushed:
                chunks.append(flushed)
            buffer = line
        else:
            buffer = f"{buffer}\n{line}"

    remainder = buffer.strip()
    if remainder:
        chunks.append(remainder)
    return chunks
