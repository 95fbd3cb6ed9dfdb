"""Text cleaning applied to extracted document text before chunking and embedding.

Extracted text from Drive files is noisy: PDF text layers carry ligatures,
control bytes and mojibake, and "plain text" uploads are frequently binary
formats decoded as UTF-8.  The embedding API rejects or mis-tokenises most of
that, so everything is reduced to a conservative printable-ASCII alphabet.

Three entry points, applied at different pipeline stages:

1. :func:`normalize` -- runs on every extracted document before chunking.
2. :func:`ascii_only` -- the final filter run on a chunk just before it is
   sent to the embedding service.
3. :func:`clean_for_embedding` -- the per-chunk re-clean: ``normalize`` twice
   followed by ``ascii_only``.

None of these functions raise.  An empty string is a valid result; the
ingestion pipeline skips chunks that clean down to nothing.
"""

from __future__ import annotations

import re

_CONTROL_AND_HIGH_BYTES = re.compile(r"[\x00-\x1f\x7f-\xff]")
_NON_ASCII = re.compile(r"[\u0080-\U0010ffff]")
_NON_PRINTABLE = re.compile(r"[^\x20-\x7e]")
_MARKUP_TAG = re.compile(r"<[^>]*>")
# Everything outside alphanumerics, whitespace and basic punctuation.
_DISALLOWED = re.compile(r"[^a-zA-Z0-9\s.,!?;:()\-]")
_WHITESPACE_RUN = re.compile(r"\s+")
_NON_ASCII_OR_WS = re.compile(r"[^\x20-\x7e\s]")


def _decode(raw: bytes | str) -> str:
    """Decode *raw* strictly, raising ``UnicodeError`` on failure.

    ``str`` input is treated as possibly UTF-8 bytes mis-decoded as Latin-1
    (common for PDF text layers), and is repaired by round-tripping through
    Latin-1.  Plain ASCII passes through unchanged.
    """
    if isinstance(raw, bytes):
        return raw.decode("utf-8")
    return raw.encode("latin-1").decode("utf-8")


def _fallback(raw: bytes | str) -> str:
    """Simpler ASCII-stripping pass used when decoding fails."""
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    text = _NON_PRINTABLE.sub(" ", text)
    return _WHITESPACE_RUN.sub(" ", text).strip()


def normalize(raw: bytes | str) -> str:
    """Reduce *raw* to single-spaced printable ASCII with markup removed.

    Args:
        raw: Document text or raw bytes.

    Returns:
        The cleaned text, possibly empty.
    """
    try:
        text = _decode(raw)
    except UnicodeError:
        return _fallback(raw)

    text = _CONTROL_AND_HIGH_BYTES.sub("", text)
    text = _NON_ASCII.sub("", text)
    text = _NON_PRINTABLE.sub("", text)
    text = _MARKUP_TAG.sub("", text)
    text = _DISALLOWED.sub(" ", text)
    text = _WHITESPACE_RUN.sub(" ", text)
    return text.strip()


def ascii_only(text: str) -> str:
    """Drop every character that is not printable ASCII or whitespace."""
    return _NON_ASCII_OR_WS.sub("", text)


def clean_for_embedding(text: str) -> str:
    """Re-clean a chunk right before embedding.

    Chunk boundaries can split text in ways the first pass never saw, so
    the chunk is normalized twice and then passed through :func:`ascii_only`
    to guarantee no multi-byte sequence reaches the embedding call.
    """
    return ascii_only(normalize(normalize(text))).strip()
