"""Incremental parser for streamed JSON-array responses.

``streamGenerateContent`` answers with one top-level JSON array whose elements are
delivered progressively by the network. Chunk boundaries are arbitrary: a chunk may end
in the middle of a string, a number, a multi-byte UTF-8 sequence or between a value and
its separating comma. :class:`ArrayStreamParser` yields each element as soon as its last
byte has arrived, without waiting for the closing bracket.

The parser does no I/O. :class:`ResponseStream` and :class:`AsyncResponseStream` drive it
from a blocking or an asyncio byte-chunk source and expose the decoded elements as an
iterator.
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, NoReturn, TypeVar

from gemini_api.errors import DecodeError, GeminiError, IncompleteStreamError, TransportError

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, Awaitable, Callable, Iterable
    from types import TracebackType

__all__ = [
    "COMPACT_THRESHOLD",
    "END_OF_ARRAY",
    "NEED_DATA",
    "ArrayStreamParser",
    "AsyncResponseStream",
    "ChunkBuffer",
    "ParseState",
    "ResponseStream",
]

T = TypeVar("T")

COMPACT_THRESHOLD = 2048

_WHITESPACE = b" \t\r\n"
_OPEN = ord("[")
_COMMA = ord(",")
_CLOSE = ord("]")
_OPEN_OBJECT = ord("{")
_QUOTE = ord('"')
_BACKSLASH = ord("\\")
_UNICODE_ESCAPE = ord("u")
_DIGITS = frozenset("0123456789")
# Characters that can make up a bare JSON number or literal.
_TOKEN_CHARS = "0123456789+-.eEtrufalsn"
_LITERALS = ("true", "false", "null")
# Last significant character before a string that may start a value or an object key.
_STRING_PRECEDERS = "[{,:"

# Bytes that change the scan state inside and outside a string. Multi-byte UTF-8
# sequences never contain ASCII bytes, so the scan runs on raw bytes.
_STRING_STOPS = re.compile(rb'["\\\x00-\x1f]')
_STRUCTURE_STOPS = re.compile(rb'["{}\[\]]')
_NUMBER_PREFIX = re.compile(r"-?(?:(?:0|[1-9]\d*)(?:\.(?:\d+(?:[eE][+-]?\d*)?)?|[eE][+-]?\d*)?)?")
_STRING_PREFIX = re.compile(r'"(?:[^"\\\x00-\x1f]|\\["\\/bfnrt]|\\u[0-9a-fA-F]{4})*(?:\\(?:u[0-9a-fA-F]{0,3})?)?')

logger = logging.getLogger("gemini_client_impl.stream")


class _Signal:
    """Sentinel returned by :meth:`ArrayStreamParser.next_event` instead of a value."""

    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name


NEED_DATA = _Signal("NEED_DATA")
END_OF_ARRAY = _Signal("END_OF_ARRAY")


class ParseState(Enum):
    """Position of the parser within the top-level array."""

    NOT_STARTED = "not_started"
    EXPECTING_ELEMENT_OR_END = "expecting_element_or_end"
    EXPECTING_VALUE = "expecting_value"
    DONE = "done"


# ---------------------------------------------------------------------------
# Chunk accumulator
# ---------------------------------------------------------------------------


class ChunkBuffer:
    """Growable byte buffer with a read cursor.

    Bytes before ``pos`` are consumed. :meth:`compact` drops them once the cursor has moved
    past ``compact_threshold`` bytes; ``None`` keeps every byte for the lifetime of the
    buffer. Offsets taken by :meth:`search` and :meth:`peek` are relative to the cursor.
    """

    def __init__(self, compact_threshold: int | None = COMPACT_THRESHOLD) -> None:
        self._data = bytearray()
        self._threshold = compact_threshold
        self.pos = 0

    def __len__(self) -> int:
        return len(self._data)

    @property
    def remaining(self) -> int:
        """Number of bytes at or after the cursor."""
        return len(self._data) - self.pos

    def append(self, chunk: bytes) -> None:
        """Add received bytes at the end of the buffer."""
        self._data += chunk

    def compact(self) -> int:
        """Drop the consumed prefix if the cursor is past the threshold.

        Returns:
            Number of bytes dropped.

        """
        if self._threshold is None or self.pos <= self._threshold:
            return 0
        dropped = self.pos
        del self._data[:dropped]
        self.pos = 0
        return dropped

    def skip_whitespace(self) -> int | None:
        """Move the cursor past ASCII whitespace.

        Returns:
            The next non-whitespace byte, or ``None`` if the buffer ran out first.

        """
        data = self._data
        pos = self.pos
        while pos < len(data) and data[pos] in _WHITESPACE:
            pos += 1
        self.pos = pos
        return data[pos] if pos < len(data) else None

    def advance(self, count: int) -> None:
        """Consume ``count`` bytes."""
        self.pos += count

    def peek(self, offset: int) -> int:
        """Return the byte ``offset`` bytes past the cursor."""
        return self._data[self.pos + offset]

    def search(self, pattern: re.Pattern[bytes], offset: int) -> int | None:
        """Return the offset of the first match of ``pattern`` at or after ``offset``."""
        match = pattern.search(self._data, self.pos + offset)
        return None if match is None else match.start() - self.pos

    def unconsumed(self, size: int | None = None) -> bytes:
        """Return a copy of the unconsumed bytes, or of the first ``size`` of them."""
        end = len(self._data) if size is None else self.pos + size
        return bytes(self._data[self.pos : end])

    def clear(self) -> None:
        """Discard every byte and reset the cursor."""
        self._data.clear()
        self.pos = 0


# ---------------------------------------------------------------------------
# Value scanner
# ---------------------------------------------------------------------------


class _ValueScanner:
    """Incremental structural scan of the value starting at the buffer cursor.

    Tracks string, escape and nesting state across chunks so each byte of a value is
    scanned once, however many chunks it arrives in. Offsets are relative to the cursor,
    which stays on the first byte of the value until it is consumed.
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        """Forget the current value."""
        self.scanned = 0
        self.depth = 0
        self.scalar = False
        self.in_string = False
        # Bytes left in the current escape: -1 before its designator, 1-4 for \uXXXX digits.
        self.escape = 0
        self.string_start = 0
        self.end: int | None = None

    def scan(self, buffer: ChunkBuffer) -> bool:
        """Scan the bytes that arrived since the previous call.

        Returns:
            ``False`` if every new byte was plain string content, which cannot change the
            outcome of a decode attempt; ``True`` otherwise.

        """
        limit = buffer.remaining
        offset = self.scanned
        changed = False
        if offset == 0:
            first = buffer.peek(0)
            if first == _QUOTE:
                self.in_string = True
            elif first in (_OPEN, _OPEN_OBJECT):
                self.depth = 1
            else:
                self.scalar = True
            offset = 1
            changed = True
        while offset < limit and self.end is None:
            if self.scalar:
                offset = limit
                changed = True
                break
            if self.in_string and self.escape:
                if self.escape < 0:
                    self.escape = 4 if buffer.peek(offset) == _UNICODE_ESCAPE else 0
                else:
                    self.escape -= 1
                offset += 1
                changed = True
                continue
            hit = buffer.search(_STRING_STOPS if self.in_string else _STRUCTURE_STOPS, offset)
            changed = changed or not self.in_string
            if hit is None:
                offset = limit
                break
            offset = hit + 1
            changed = True
            byte = buffer.peek(hit)
            if self.in_string:
                if byte == _QUOTE:
                    self.in_string = False
                    if self.depth == 0:
                        self.end = offset
                elif byte == _BACKSLASH:
                    self.escape = -1
            elif byte == _QUOTE:
                self.in_string = True
                self.string_start = hit
            elif byte in (_OPEN, _OPEN_OBJECT):
                self.depth += 1
            else:
                self.depth -= 1
                if self.depth == 0:
                    self.end = offset
        self.scanned = offset
        return changed


# ---------------------------------------------------------------------------
# Array element parser
# ---------------------------------------------------------------------------


class ArrayStreamParser:
    """State machine yielding the elements of a top-level JSON array from pushed bytes.

    Feed bytes with :meth:`feed` and pull with :meth:`next_event`, which returns a decoded
    element, :data:`NEED_DATA` or :data:`END_OF_ARRAY`. Malformed input raises
    :class:`~gemini_api.errors.DecodeError` as soon as the buffered bytes can no longer
    be the prefix of a JSON array; call :meth:`finish` once the byte source is exhausted
    to detect a truncated array.
    """

    def __init__(self, *, compact_threshold: int | None = COMPACT_THRESHOLD) -> None:
        self._buffer = ChunkBuffer(compact_threshold)
        self._scanner = _ValueScanner()
        self._state = ParseState.NOT_STARTED
        self._bridge: int | None = None
        self._decoder = json.JSONDecoder()
        self.count = 0

    @property
    def state(self) -> ParseState:
        """Current parser state."""
        return self._state

    @property
    def leftover(self) -> int:
        """Number of buffered bytes not yet consumed."""
        return self._buffer.remaining

    def feed(self, chunk: bytes) -> None:
        """Append newly received bytes."""
        if not chunk or self._state is ParseState.DONE:
            return
        if self._state is ParseState.NOT_STARTED:
            self._state = ParseState.EXPECTING_ELEMENT_OR_END
        self._buffer.append(chunk)

    def next_event(self) -> Any:  # noqa: ANN401
        """Advance as far as the buffered bytes allow.

        Returns:
            The next decoded element, :data:`NEED_DATA` when more bytes are required, or
            :data:`END_OF_ARRAY` once the closing bracket has been consumed.

        Raises:
            DecodeError: The buffered bytes cannot be the continuation of a JSON array.

        """
        self._buffer.compact()
        while True:
            if self._state is ParseState.NOT_STARTED:
                return NEED_DATA
            if self._state is ParseState.DONE:
                return END_OF_ARRAY
            byte = self._buffer.skip_whitespace()
            if byte is None:
                return NEED_DATA
            if self._state is ParseState.EXPECTING_ELEMENT_OR_END:
                self._read_structural(byte)
                continue
            return self._read_value(byte)

    def finish(self) -> None:
        """Mark the byte source as exhausted.

        Raises:
            IncompleteStreamError: Unconsumed bytes remain and the array was never closed.

        """
        state, leftover = self._state, self._buffer.remaining
        self.abort()
        if state is not ParseState.DONE and leftover:
            raise IncompleteStreamError(state.name, leftover)

    def abort(self) -> None:
        """Stop parsing and discard buffered bytes."""
        self._state = ParseState.DONE
        self._buffer.clear()
        self._scanner.reset()

    def _read_structural(self, byte: int) -> None:
        if self._bridge is None and byte == _OPEN:
            self._bridge = byte
            self._state = ParseState.EXPECTING_VALUE
        elif self._bridge is not None and byte == _COMMA:
            self._bridge = byte
            self._state = ParseState.EXPECTING_VALUE
        elif self._bridge is not None and byte == _CLOSE:
            self._state = ParseState.DONE
        else:
            expected = "'['" if self._bridge is None else "',' or ']'"
            self._fail(f"expected {expected} but found {chr(byte)!r}")
        self._buffer.advance(1)

    def _read_value(self, byte: int) -> Any:  # noqa: ANN401
        if byte == _CLOSE:
            if self._bridge != _OPEN:
                self._fail("unexpected ']' after ','")
            self._buffer.advance(1)
            self._state = ParseState.DONE
            return END_OF_ARRAY

        changed = self._scanner.scan(self._buffer)
        if self._scanner.end is not None:
            return self._decode_complete(self._scanner.end)
        if not changed:
            return NEED_DATA

        text = self._buffered_text()
        try:
            value, end = self._decoder.raw_decode(text)
        except json.JSONDecodeError as exc:
            if self._can_continue(text, exc):
                return NEED_DATA
            self._fail(f"malformed JSON in stream: {exc.msg}", position=exc.pos, cause=exc)
        if end == len(text) and text[end - 1] in _DIGITS:
            # A bare number at the end of the buffer may continue in the next chunk.
            return NEED_DATA
        return self._accept(value, len(text[:end].encode("utf-8")))

    def _decode_complete(self, size: int) -> Any:  # noqa: ANN401
        """Decode a value whose closing byte has arrived; any failure is final."""
        data = self._buffer.unconsumed(size)
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            self._fail(f"invalid UTF-8 in stream: {exc.reason}", position=exc.start, cause=exc)
        try:
            value, end = self._decoder.raw_decode(text)
        except json.JSONDecodeError as exc:
            self._fail(f"malformed JSON in stream: {exc.msg}", position=exc.pos, cause=exc)
        if end != len(text):
            self._fail("unexpected data after value", position=end)
        return self._accept(value, size)

    def _accept(self, value: Any, size: int) -> Any:  # noqa: ANN401
        self._buffer.advance(size)
        self._scanner.reset()
        self._state = ParseState.EXPECTING_ELEMENT_OR_END
        self.count += 1
        return value

    def _can_continue(self, text: str, exc: json.JSONDecodeError) -> bool:
        """Tell whether a decode failure may be fixed by more input.

        Only the unfinished end of ``text`` may fail: an open string, or a run of number or
        literal characters that is still a valid prefix. Either must also sit where a
        value (or, for a string, an object key) is allowed.
        """
        pos = exc.pos
        if self._scanner.in_string:
            start = len(self._buffer.unconsumed(self._scanner.string_start).decode("utf-8"))
            if pos == start:
                return _follows(text, start, _STRING_PRECEDERS)
            return pos > start and _STRING_PREFIX.fullmatch(text, start) is not None
        start = len(text.rstrip(_TOKEN_CHARS))
        if start == len(text):
            return pos == len(text)
        token = text[start:]
        if not (_NUMBER_PREFIX.fullmatch(token) or any(literal.startswith(token) for literal in _LITERALS)):
            return False
        if pos == start:
            return exc.msg == "Expecting value"
        return pos > start

    def _buffered_text(self) -> str:
        """Decode the unconsumed bytes, leaving out a trailing partial UTF-8 sequence."""
        data = self._buffer.unconsumed()
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            if exc.end == len(data) and exc.reason == "unexpected end of data":
                return data[: exc.start].decode("utf-8")
            self._fail(f"invalid UTF-8 in stream: {exc.reason}", position=exc.start, cause=exc)

    def _fail(self, message: str, *, position: int | None = None, cause: Exception | None = None) -> NoReturn:
        self.abort()
        raise DecodeError(message, position=position) from cause


def _follows(text: str, index: int, preceders: str) -> bool:
    """Whether the last non-whitespace character before ``index`` is one of ``preceders``."""
    before = text[:index].rstrip()
    return not before or before[-1] in preceders


# ---------------------------------------------------------------------------
# Pull-driven streams
# ---------------------------------------------------------------------------


class _StreamBase(Generic[T]):
    """State and error handling shared by the blocking and asyncio drivers."""

    def __init__(
        self,
        decode: Callable[[Any], T],
        *,
        transport_errors: tuple[type[BaseException], ...],
        compact_threshold: int | None,
    ) -> None:
        self._parser = ArrayStreamParser(compact_threshold=compact_threshold)
        self._decode = decode
        self._transport_errors = transport_errors
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether the stream has been closed or exhausted."""
        return self._closed

    @property
    def parser(self) -> ArrayStreamParser:
        """The parser fed by this stream."""
        return self._parser

    def _convert(self, value: Any) -> T:  # noqa: ANN401
        try:
            return self._decode(value)
        except GeminiError:
            self._parser.abort()
            raise

    def _end_of_transport(self) -> None:
        try:
            self._parser.finish()
        except IncompleteStreamError as exc:
            logger.warning("Stream truncated: %s", exc)
            raise
        logger.debug("Stream finished after %d element(s)", self._parser.count)

    def _transport_failed(self, exc: BaseException) -> TransportError:
        self._parser.abort()
        logger.warning("Stream transport failed after %d element(s): %s", self._parser.count, exc)
        return TransportError(str(exc) or type(exc).__name__)


class ResponseStream(_StreamBase[T]):
    """Blocking iterator over the elements of a streamed JSON array.

    Errors are raised from ``next()`` and leave the stream exhausted. Closing the stream,
    explicitly or by leaving a ``with`` block, releases the transport.
    """

    def __init__(
        self,
        chunks: Iterable[bytes],
        decode: Callable[[Any], T],
        *,
        on_close: Callable[[], None] | None = None,
        transport_errors: tuple[type[BaseException], ...] = (),
        compact_threshold: int | None = COMPACT_THRESHOLD,
    ) -> None:
        super().__init__(decode, transport_errors=transport_errors, compact_threshold=compact_threshold)
        self._chunks = iter(chunks)
        self._on_close = on_close

    def __iter__(self) -> ResponseStream[T]:
        return self

    def __next__(self) -> T:
        while not self._closed:
            try:
                event = self._parser.next_event()
                if event is END_OF_ARRAY:
                    break
                if event is not NEED_DATA:
                    return self._convert(event)
                try:
                    chunk = next(self._chunks)
                except StopIteration:
                    self._end_of_transport()
                    break
                except self._transport_errors as exc:
                    raise self._transport_failed(exc) from exc
            except GeminiError:
                self.close()
                raise
            self._parser.feed(chunk)
        self.close()
        raise StopIteration

    def close(self) -> None:
        """Release the transport. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._parser.abort()
        logger.debug("Stream closed after %d element(s)", self._parser.count)
        if self._on_close is not None:
            self._on_close()

    def __enter__(self) -> ResponseStream[T]:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class AsyncResponseStream(_StreamBase[T]):
    """Asyncio counterpart of :class:`ResponseStream`."""

    def __init__(
        self,
        chunks: AsyncIterable[bytes],
        decode: Callable[[Any], T],
        *,
        on_close: Callable[[], Awaitable[None]] | None = None,
        transport_errors: tuple[type[BaseException], ...] = (),
        compact_threshold: int | None = COMPACT_THRESHOLD,
    ) -> None:
        super().__init__(decode, transport_errors=transport_errors, compact_threshold=compact_threshold)
        self._chunks = aiter(chunks)
        self._on_close = on_close

    def __aiter__(self) -> AsyncResponseStream[T]:
        return self

    async def __anext__(self) -> T:
        while not self._closed:
            try:
                event = self._parser.next_event()
                if event is END_OF_ARRAY:
                    break
                if event is not NEED_DATA:
                    return self._convert(event)
                try:
                    chunk = await anext(self._chunks)
                except StopAsyncIteration:
                    self._end_of_transport()
                    break
                except self._transport_errors as exc:
                    raise self._transport_failed(exc) from exc
            except GeminiError:
                await self.aclose()
                raise
            self._parser.feed(chunk)
        await self.aclose()
        raise StopAsyncIteration

    async def aclose(self) -> None:
        """Release the transport. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._parser.abort()
        logger.debug("Stream closed after %d element(s)", self._parser.count)
        if self._on_close is not None:
            await self._on_close()

    async def __aenter__(self) -> AsyncResponseStream[T]:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
