"""Lazy block streams: split on and join with the ``---`` document boundary."""

from __future__ import annotations

import codecs
import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import IO, Any, TypeAlias, cast

from intermodal.codec import BOUNDARY, Block, decode, encode
from intermodal.config import IntermodalConfig, StreamSettings
from intermodal.envelope import Envelope
from intermodal.errors import EnvelopeError

_LOGGER = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024

# Anything that can produce the next chunk of a stream or signal its end.
TextSource: TypeAlias = IO[str] | IO[bytes] | Iterable[str] | Iterable[bytes] | str | bytes
TextSink: TypeAlias = IO[str] | Callable[[str], object]


def _iter_chunks(source: TextSource) -> Iterator[str | bytes]:
    if isinstance(source, (str, bytes)):
        yield source
        return
    read = getattr(source, "read", None)
    if read is not None:
        while chunk := read(_CHUNK_SIZE):
            yield chunk
        return
    yield from cast(Iterable[str | bytes], source)


def _iter_lines(source: TextSource, encoding: str) -> Iterator[str]:
    """Yield source lines with their terminators, decoding bytes incrementally.

    Undecodable bytes are kept as lone surrogates so the codec can fail the
    block holding them without ending the stream.
    """
    decoder = codecs.getincrementaldecoder(encoding)(errors="surrogateescape")
    pending = ""
    for chunk in _iter_chunks(source):
        pending += decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        *complete, pending = pending.split("\n")
        for line in complete:
            yield f"{line}\n"
    pending += decoder.decode(b"", final=True)
    if pending:
        yield pending


def _is_boundary(line: str) -> bool:
    return line.rstrip() == BOUNDARY


def split_blocks(lines: Iterable[str]) -> Iterator[Block]:
    """Group lines into blocks separated by boundary lines.

    A boundary is a line holding exactly ``---`` at column 0; indented markers
    belong to block scalars and stay in the block. Blank blocks (such as the
    one before a leading marker or after a trailing one) are dropped.

    Args:
        lines: Source lines including terminators.

    Yields:
        Blocks in source order, numbered from 0.
    """
    buffer: list[str] = []
    start = 1
    index = 0
    for number, line in enumerate(lines, start=1):
        if not _is_boundary(line):
            buffer.append(line)
            continue
        if any(part.strip() for part in buffer):
            _LOGGER.debug("Read block %d starting at line %d", index, start)
            yield Block(text="".join(buffer), index=index, line=start)
            index += 1
        buffer = []
        start = number + 1
    if any(part.strip() for part in buffer):
        _LOGGER.debug("Read final block %d starting at line %d", index, start)
        yield Block(text="".join(buffer), index=index, line=start)


class BlockReader:
    """Single-pass, lazy reader of blocks from a text or byte source.

    Only the block being assembled is buffered. The reader is not restartable
    and must be owned by one consumer at a time. When it owns its source
    (see ``open``) the source is released on exhaustion, on error, on
    ``close()`` or when an abandoned reader is garbage-collected.
    """

    def __init__(
        self,
        source: TextSource,
        *,
        encoding: str = "utf-8",
        owns_source: bool = False,
    ) -> None:
        """Wrap a chunk source.

        Args:
            source: File object, iterable of str/bytes chunks, or whole text.
            encoding: Encoding used for byte chunks.
            owns_source: Close the source when the reader is done.
        """
        self._source = source
        self._encoding = encoding
        self._owns_source = owns_source
        self._released = False
        self._blocks = self._generate()

    @classmethod
    def open(
        cls, path: Path | str, settings: StreamSettings | None = None
    ) -> BlockReader:
        """Open a stream file for reading; the reader owns the handle.

        Args:
            path: Stream file path.
            settings: Optional stream settings (encoding).

        Returns:
            Reader that closes the file when done.
        """
        settings = settings or StreamSettings()
        handle = Path(path).open("rb")
        return cls(handle, encoding=settings.encoding, owns_source=True)

    def _generate(self) -> Iterator[Block]:
        try:
            yield from split_blocks(_iter_lines(self._source, self._encoding))
        finally:
            self._release()

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        if self._owns_source:
            close = getattr(self._source, "close", None)
            if close is not None:
                close()

    def __iter__(self) -> Iterator[Block]:
        return self

    def __next__(self) -> Block:
        return next(self._blocks)

    def close(self) -> None:
        """Stop reading and release the source."""
        self._blocks.close()
        self._release()

    def __enter__(self) -> BlockReader:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of decoding one block: an envelope or the error it raised."""

    block: Block
    envelope: Envelope | None = None
    error: EnvelopeError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Envelope:
        """Return the envelope or raise the decode error."""
        if self.error is not None:
            raise self.error
        return cast(Envelope, self.envelope)


def _as_reader(source: BlockReader | TextSource, encoding: str) -> BlockReader:
    if isinstance(source, BlockReader):
        return source
    return BlockReader(source, encoding=encoding)


def decode_stream(
    source: BlockReader | TextSource, *, encoding: str = "utf-8"
) -> Iterator[DecodeResult]:
    """Decode every block of a stream, continuing past failing blocks.

    Args:
        source: Reader or chunk source.
        encoding: Encoding used for byte chunks.

    Yields:
        One result per block, in stream order.
    """
    with _as_reader(source, encoding) as reader:
        for block in reader:
            try:
                envelope = decode(block)
            except EnvelopeError as exc:
                _LOGGER.debug(
                    "Block %d (line %d) failed to decode: %s",
                    block.index,
                    block.line,
                    exc,
                )
                yield DecodeResult(block=block, error=exc)
                continue
            yield DecodeResult(block=block, envelope=envelope)


def load_envelopes(
    source: BlockReader | TextSource, *, encoding: str = "utf-8"
) -> Iterator[Envelope]:
    """Decode a stream strictly; the first failing block raises.

    Args:
        source: Reader or chunk source.
        encoding: Encoding used for byte chunks.

    Yields:
        Validated envelopes in stream order.
    """
    for result in decode_stream(source, encoding=encoding):
        yield result.unwrap()


class BlockWriter:
    """Writes envelopes as blocks separated by boundary lines.

    A boundary precedes every block after the first; ``explicit_start`` adds
    one before the first block and ``trailing_boundary`` one after the last.
    Readers accept every combination.
    """

    def __init__(
        self,
        sink: TextSink,
        config: IntermodalConfig | None = None,
        *,
        owns_sink: bool = False,
    ) -> None:
        """Wrap a text sink.

        Args:
            sink: Text file object or callable accepting each chunk.
            config: Optional render and stream settings.
            owns_sink: Close the sink when the writer is closed.
        """
        config = config or IntermodalConfig()
        self._render = config.render
        self._stream = config.stream
        self._sink = sink
        self._emit: Callable[[str], Any] = getattr(sink, "write", sink)
        self._owns_sink = owns_sink
        self._count = 0
        self._closed = False

    @classmethod
    def open(
        cls, path: Path | str, config: IntermodalConfig | None = None
    ) -> BlockWriter:
        """Create (or truncate) a stream file; the writer owns the handle.

        Args:
            path: Stream file path.
            config: Optional render and stream settings.

        Returns:
            Writer that closes the file when closed.
        """
        config = config or IntermodalConfig()
        handle = Path(path).open("w", encoding=config.stream.encoding, newline="\n")
        return cls(handle, config, owns_sink=True)

    @property
    def count(self) -> int:
        """Number of envelopes written so far."""
        return self._count

    def write(self, envelope: Envelope) -> None:
        """Encode and emit one envelope.

        Raises:
            ValueError: If the writer is closed.
        """
        if self._closed:
            raise ValueError("write to closed BlockWriter")
        block = encode(envelope, self._render)
        if self._count or self._stream.explicit_start:
            self._emit(f"{BOUNDARY}\n")
        self._emit(block)
        self._count += 1

    def write_all(self, envelopes: Iterable[Envelope]) -> int:
        """Emit every envelope in order and return how many were written."""
        written = 0
        for envelope in envelopes:
            self.write(envelope)
            written += 1
        return written

    def close(self) -> None:
        """Emit the trailing boundary if configured and release the sink."""
        if self._closed:
            return
        self._closed = True
        try:
            if self._stream.trailing_boundary and self._count:
                self._emit(f"{BOUNDARY}\n")
        finally:
            if self._owns_sink:
                cast(IO[str], self._sink).close()

    def __enter__(self) -> BlockWriter:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def dump_stream(
    envelopes: Iterable[Envelope], config: IntermodalConfig | None = None
) -> str:
    """Render envelopes as one stream text.

    Args:
        envelopes: Envelopes to render.
        config: Optional render and stream settings.

    Returns:
        Stream text.
    """
    chunks: list[str] = []
    with BlockWriter(chunks.append, config) as writer:
        writer.write_all(envelopes)
    return "".join(chunks)
