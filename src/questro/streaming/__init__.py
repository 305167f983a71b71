"""Streaming response reassembly for chat completions."""

from .assembler import StreamingResponseAssembler, assemble_stream
from .frames import Frame, FrameKind, parse_frame
from .models import AssembledResponse, CompletionChunk, StreamState

__all__ = [
    "AssembledResponse",
    "CompletionChunk",
    "Frame",
    "FrameKind",
    "StreamState",
    "StreamingResponseAssembler",
    "assemble_stream",
    "parse_frame",
]
