"""Transcription collaborator contract.

Final recognizer text drives lookups; interim text is display-only.
"""

from route_recall.transcription.events import (
    LookupMode,
    RouterState,
    TranscriptEvent,
    TranscriptRouter,
    read_event_lines,
)

__all__ = [
    "LookupMode",
    "RouterState",
    "TranscriptEvent",
    "TranscriptRouter",
    "read_event_lines",
]
