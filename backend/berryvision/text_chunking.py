def chunk_text(text: str, chunk_size: int = 2000, overlap: int = 200) -> list[str]:
    """Split knowledge text into overlapping chunks, preferring to cut at a newline, period or space."""
    text = (text or "").strip()
    chunks: list[str] = []
    start = 0
    text_len = len(text)

    while start < text_len:
        end = min(start + chunk_size, text_len)

        if end < text_len:
            for i in range(end, max(start, end - 100), -1):
                if text[i] in "\n. ":
                    end = i + 1
                    break

        chunks.append(text[start:end])
        if end >= text_len:
            break
        start = max(end - overlap, start + 1)

    return chunks
