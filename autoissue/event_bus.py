from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from loguru import logger
from pydantic import BaseModel, Field


class PipelineEvent(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    event_type: str
    stage: str
    payload: dict[str, Any] = Field(default_factory=dict)


class EventBus:
    """A lightweight, synchronous event bus owned by one pipeline session."""

    def __init__(self):
        self._subscribers: list[Callable[[PipelineEvent], None]] = []
        self.history: list[PipelineEvent] = []

    def subscribe(self, callback: Callable[[PipelineEvent], None]) -> None:
        """Register a callback to be executed when an event is emitted."""
        self._subscribers.append(callback)

    def emit(self, event_type: str, stage: str, payload: dict[str, Any] | None = None) -> PipelineEvent:
        """Record a PipelineEvent and broadcast it to all subscribers."""
        event = PipelineEvent(event_type=event_type, stage=stage, payload=payload or {})
        self.history.append(event)

        for subscriber in self._subscribers:
            try:
                subscriber(event)
            except Exception as e:
                # Observers must not break the pipeline.
                logger.warning(f"[EVENTS] Subscriber failed on {event_type}: {e}")
        return event

    def types(self) -> list[str]:
        return [e.event_type for e in self.history]
