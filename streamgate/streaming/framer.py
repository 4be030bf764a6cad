"""
streamgate - Stream Line Framer

Turns a chunked response body into complete text lines.

Network chunks do not respect line boundaries; the framer keeps the trailing
partial segment as a residual and only hands out lines terminated by `\\n`.
Bytes are decoded incrementally, so a multibyte UTF-8 character split across
two chunks is reassembled instead of being mangled.
"""

import codecs
from typing import AsyncIterator, List, Union


class LineFramer:
    """
    Residual-buffer line splitter.

    Usage:
        framer = LineFramer()
        for chunk in chunks:
            for line in framer.feed(chunk):
                handle(line)
        for line in framer.flush():
            handle(line)
    """

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._residual = ""

    @property
    def residual(self) -> str:
        return self._residual

    def feed(self, chunk: Union[bytes, str]) -> List[str]:
        """Append a chunk and return every line it completed."""
        if isinstance(chunk, (bytes, bytearray)):
            text = self._decoder.decode(bytes(chunk))
        else:
            text = chunk

        if not text:
            return []

        parts = (self._residual + text).split("\n")
        self._residual = parts.pop()
        return [_strip_cr(part) for part in parts]

    def flush(self) -> List[str]:
        """Return the residual as a final line, if any remains."""
        tail = self._residual + self._decoder.decode(b"", final=True)
        self._residual = ""
        if not tail:
            return []
        return [_strip_cr(tail)]


def _strip_cr(line: str) -> str:
    return line[:-1] if line.endswith("\r") else line


async def iter_lines(chunks: AsyncIterator[Union[bytes, str]]) -> AsyncIterator[str]:
    """Yield complete lines from an async chunk iterator, flushing at the end."""
    framer = LineFramer()
    try:
        async for chunk in chunks:
            for line in framer.feed(chunk):
                yield line
        for line in framer.flush():
            yield line
    finally:
        close = getattr(chunks, "aclose", None)
        if close is not None:
            await close()
