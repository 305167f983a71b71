from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class StreamState(str, Enum):
    """Lifecycle of a single assembly."""

    STREAMING = "streaming"
    DONE = "done"


class ChunkDelta(BaseModel):
    """Incremental part of a streamed completion choice."""

    model_config = ConfigDict(extra="ignore")

    content: str | None = None


class ChunkChoice(BaseModel):
    """One choice inside a streamed completion chunk."""

    model_config = ConfigDict(extra="ignore")

    delta: ChunkDelta = Field(default_factory=ChunkDelta)


class CompletionChunk(BaseModel):
    """Schema of one ``data:`` event payload.

    Only ``choices[0].delta.content`` is read; every other field the
    vendor sends is ignored.
    """

    model_config = ConfigDict(extra="ignore")

    choices: list[ChunkChoice] = Field(default_factory=list)

    @property
    def text(self) -> str | None:
        """Text delta carried by the first choice, if any."""
        if not self.choices:
            return None
        return self.choices[0].delta.content


class AssembledResponse(BaseModel):
    """Outcome of consuming one response stream."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Cumulative assembled text")
    state: StreamState = Field(description="Final assembler state")
    finished_by_sentinel: bool = Field(description="Whether the [DONE] sentinel was received")
    deltas: int = Field(default=0, description="Number of deltas delivered to the sink")
    malformed_frames: int = Field(default=0, description="Frames dropped as unparseable")
