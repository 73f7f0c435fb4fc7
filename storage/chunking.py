"""
Chunk Codec
===========

Splits a serialized record into byte-bounded chunks and reassembles them.

Chunks are cut on UTF-8 character boundaries, so every chunk is itself a
valid string and concatenation restores the original exactly. For pure
ASCII input the chunk count is ceil(byte_length / max_chunk_bytes). A
multi-byte character that would straddle a boundary moves to the next
chunk, so without a stored-size ceiling:

    ceil(N / C) <= chunk count <= ceil(N / (C - 3))

Chunks are stored as JSON string values, where every quote, backslash and
control character is escaped. When a stored-size ceiling is given, chunks
are also cut so that each one's escaped form fits under it; quote-heavy
records then produce more, shorter chunks.
"""

import json
import logging
from typing import Any, List, Optional, Sequence

logger = logging.getLogger(__name__)

# Longest UTF-8 encoding of a single code point
MAX_UTF8_CHAR_BYTES = 4

# Longest JSON escape of a single character (\u001f)
MAX_ESCAPED_CHAR_BYTES = 6

_ENCODING = "utf-8"
_ERRORS = "surrogatepass"

# Width of each ASCII character inside a JSON string: 2 for \" \\ \n ..., 6 for \u00XX
_ASCII_ESCAPED_WIDTH = [len(json.dumps(chr(code), ensure_ascii=False)) - 2 for code in range(128)]


def serialize(data: Any) -> str:
    """Serialize to compact JSON, matching JSON.stringify output"""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def byte_length(text: str) -> int:
    """UTF-8 byte length of a string"""
    return len(text.encode(_ENCODING, _ERRORS))


def stored_length(chunk: str) -> int:
    """Bytes a chunk occupies once stored as a JSON string value"""
    return byte_length(serialize(chunk))


def _escaped_width(char: str) -> int:
    """UTF-8 bytes of one character inside a serialized JSON string"""
    code = ord(char)
    if code < 128:
        return _ASCII_ESCAPED_WIDTH[code]
    return len(char.encode(_ENCODING, _ERRORS))


def _split_raw(raw: bytes, max_chunk_bytes: int) -> List[str]:
    total = len(raw)
    chunks: List[str] = []
    offset = 0

    while offset < total:
        end = min(offset + max_chunk_bytes, total)
        # Back off continuation bytes (10xxxxxx) so no character is split
        while end < total and (raw[end] & 0xC0) == 0x80:
            end -= 1
        chunks.append(raw[offset:end].decode(_ENCODING, _ERRORS))
        offset = end
    return chunks


def _split_escaped(serialized: str, max_chunk_bytes: int, max_stored_bytes: int) -> List[str]:
    # Two quotes surround every stored chunk
    budget = max_stored_bytes - 2
    chunks: List[str] = []
    start = 0
    raw_size = stored_size = 0

    for index, char in enumerate(serialized):
        width = 1 if ord(char) < 128 else len(char.encode(_ENCODING, _ERRORS))
        escaped = _escaped_width(char)
        if raw_size + width > max_chunk_bytes or stored_size + escaped > budget:
            chunks.append(serialized[start:index])
            start = index
            raw_size = stored_size = 0
        raw_size += width
        stored_size += escaped

    chunks.append(serialized[start:])
    return chunks


def encode(serialized: str, max_chunk_bytes: int, max_stored_bytes: Optional[int] = None) -> List[str]:
    """
    Split a serialized string into ordered chunks of at most max_chunk_bytes.

    Args:
        serialized: Serialized record
        max_chunk_bytes: Byte ceiling per chunk
        max_stored_bytes: Optional ceiling on each chunk's stored size, i.e.
            the chunk re-serialized as a JSON string (quotes and escapes
            included). Quote-heavy input then yields shorter chunks.

    Returns:
        Chunks in index order (empty list for empty input)
    """
    if max_chunk_bytes < MAX_UTF8_CHAR_BYTES:
        raise ValueError(f"max_chunk_bytes must be at least {MAX_UTF8_CHAR_BYTES}, got {max_chunk_bytes}")
    if max_stored_bytes is not None and max_stored_bytes < MAX_ESCAPED_CHAR_BYTES + 2:
        raise ValueError(
            f"max_stored_bytes must be at least {MAX_ESCAPED_CHAR_BYTES + 2}, got {max_stored_bytes}"
        )

    if not serialized:
        return []

    if max_stored_bytes is None:
        chunks = _split_raw(serialized.encode(_ENCODING, _ERRORS), max_chunk_bytes)
    else:
        chunks = _split_escaped(serialized, max_chunk_bytes, max_stored_bytes)

    logger.debug(f"Chunked data: {byte_length(serialized)} bytes into {len(chunks)} chunks")
    return chunks


def decode(chunks: Sequence[str]) -> str:
    """
    Reassemble chunks by concatenation in index order.

    The caller must have verified that no index is missing.
    """
    if not chunks:
        return ""
    return "".join(chunks)


def chunk_key(record: str, index: int) -> str:
    """Key of chunk <index> of <record>"""
    return f"{record}_chunk_{index}"


def metadata_key(record: str) -> str:
    """Key of the metadata entry of <record>"""
    return f"{record}_metadata"
