"""Reassembly of streamed chat completions.

Turns the chunked body of a chat response into a growing text value.
Chunk boundaries may fall anywhere, including inside a multi-byte
character or inside a ``data:`` line, so decoder state and the pending
partial line persist between chunks.

Usage:
    assembler = StreamingResponseAssembler(on_delta=render)
    result = await assembler.consume(response.aiter_bytes())
    print(result.text)
"""

import asyncio
import codecs
import logging
from collections.abc import AsyncIterable, AsyncIterator, Callable

from ..config import DEFAULT_IDLE_TIMEOUT
from ..errors import StreamCancelledError, StreamInterruptedError, StreamStalledError
from .frames import FrameKind, parse_frame
from .models import AssembledResponse, StreamState

logger = logging.getLogger(__name__)

DeltaSink = Callable[[str], None]


async def _next_chunk(iterator: AsyncIterator[bytes]) -> bytes | None:
    try:
        return await anext(iterator)
    except StopAsyncIteration:
        return None


class StreamingResponseAssembler:
    """Incremental decoder for newline-delimited ``data:`` event streams.

    Hidden design decisions:
    - UTF-8 decoding with replacement characters for invalid bytes
    - Line splitting and ``\\r\\n`` handling
    - Dropping malformed frames instead of re-buffering them
    - Idle timeout and cooperative cancellation at each chunk read

    The sink receives the cumulative text after every non-empty delta,
    in arrival order. Once the ``[DONE]`` sentinel is seen (or the source
    ends) the assembler is in the ``DONE`` state and ignores further input.
    Instances are single-use.
    """

    def __init__(
        self,
        on_delta: DeltaSink | None = None,
        *,
        idle_timeout: float | None = DEFAULT_IDLE_TIMEOUT,
        cancel_event: asyncio.Event | None = None,
    ):
        """Initialize the assembler.

        Args:
            on_delta: Called with the cumulative text after each delta
            idle_timeout: Seconds to wait for the next chunk (None waits forever)
            cancel_event: When set, the next chunk read raises StreamCancelledError
        """
        self._on_delta = on_delta
        self._idle_timeout = idle_timeout
        self._cancel_event = cancel_event
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self._assembled = ""
        self._state = StreamState.STREAMING
        self._finished_by_sentinel = False
        self._deltas = 0
        self._malformed = 0
        self._consumed = False

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def text(self) -> str:
        """Text assembled so far."""
        return self._assembled

    def feed(self, chunk: bytes) -> None:
        """Decode a chunk and process every complete line it finishes."""
        if self._state is StreamState.DONE:
            return
        self._pending += self._decoder.decode(chunk)
        while self._state is StreamState.STREAMING:
            newline = self._pending.find("\n")
            if newline < 0:
                break
            line = self._pending[:newline]
            self._pending = self._pending[newline + 1:]
            self._handle_line(line)

    def finish(self) -> None:
        """Flush the decoder and treat a trailing unterminated line as a frame."""
        if self._state is StreamState.DONE:
            return
        self._pending += self._decoder.decode(b"", final=True)
        if self._pending:
            line, self._pending = self._pending, ""
            self._handle_line(line)
        self._state = StreamState.DONE

    def result(self) -> AssembledResponse:
        return AssembledResponse(
            text=self._assembled,
            state=self._state,
            finished_by_sentinel=self._finished_by_sentinel,
            deltas=self._deltas,
            malformed_frames=self._malformed,
        )

    async def consume(self, chunks: AsyncIterable[bytes]) -> AssembledResponse:
        """Read the whole stream and return the assembled response.

        Args:
            chunks: Body chunks of a successful response

        Returns:
            AssembledResponse with the final text and counters

        Raises:
            StreamInterruptedError: The source failed before completion
            StreamStalledError: No chunk arrived within the idle timeout
            StreamCancelledError: The cancel event was set
        """
        if self._consumed:
            raise RuntimeError("StreamingResponseAssembler instances are single-use")
        self._consumed = True

        iterator = aiter(chunks)
        while self._state is StreamState.STREAMING:
            try:
                chunk = await self._read(iterator)
            except (StreamStalledError, StreamCancelledError):
                raise
            except Exception as e:
                raise StreamInterruptedError(f"Stream interrupted: {e}") from e

            if chunk is None:
                self.finish()
                break
            self.feed(chunk)

        result = self.result()
        logger.debug(
            "Stream assembled: %d chars, %d deltas, %d malformed, sentinel=%s",
            len(result.text), result.deltas, result.malformed_frames, result.finished_by_sentinel,
        )
        return result

    async def _read(self, iterator: AsyncIterator[bytes]) -> bytes | None:
        """Wait for the next chunk, the cancel event or the idle timeout."""
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise StreamCancelledError("Stream cancelled")

        read = asyncio.ensure_future(_next_chunk(iterator))
        waiters: set[asyncio.Future] = {read}
        cancelled = None
        if self._cancel_event is not None:
            cancelled = asyncio.ensure_future(self._cancel_event.wait())
            waiters.add(cancelled)

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=self._idle_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            pending = [w for w in waiters if not w.done()]
            for waiter in pending:
                waiter.cancel()
            if pending:
                await asyncio.wait(pending)

        if read in done:
            return read.result()
        if cancelled is not None and cancelled in done:
            raise StreamCancelledError("Stream cancelled")
        raise StreamStalledError(self._idle_timeout)

    def _handle_line(self, line: str) -> None:
        frame = parse_frame(line)

        if frame.kind is FrameKind.DONE:
            self._state = StreamState.DONE
            self._finished_by_sentinel = True
            self._pending = ""
        elif frame.kind is FrameKind.MALFORMED:
            self._malformed += 1
        elif frame.kind is FrameKind.DELTA and frame.text:
            self._assembled += frame.text
            self._deltas += 1
            if self._on_delta is not None:
                self._on_delta(self._assembled)


async def assemble_stream(
    chunks: AsyncIterable[bytes],
    on_delta: DeltaSink | None = None,
    **kwargs,
) -> AssembledResponse:
    """Consume ``chunks`` with a fresh assembler."""
    return await StreamingResponseAssembler(on_delta, **kwargs).consume(chunks)
