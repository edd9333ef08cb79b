"""
Diagnostics - observability and event tracking for registration and activation.
"""

import time
from typing import Any, Dict, List, Optional, Protocol
from enum import Enum
import dataclasses
import logging

logger = logging.getLogger("stagedi.diagnostics")


class DIEventType(Enum):
    """Types of DI events."""
    REGISTRATION = "registration"
    RESOLUTION = "resolution"
    ACTIVATION_START = "activation_start"
    STAGE_START = "stage_start"
    STAGE_COMPLETE = "stage_complete"
    MODULE_ACTIVATED = "module_activated"
    MODULE_FAILED = "module_failed"
    ACTIVATION_COMPLETE = "activation_complete"
    ACTIVATION_FAILED = "activation_failed"


@dataclasses.dataclass
class DIEvent:
    """A diagnostic event."""
    type: DIEventType
    timestamp: float = dataclasses.field(default_factory=time.time)
    module: Optional[str] = None
    modules: List[str] = dataclasses.field(default_factory=list)
    stage: Optional[int] = None
    duration: Optional[float] = None
    error: Optional[BaseException] = None
    metadata: Dict[str, Any] = dataclasses.field(default_factory=dict)


class DiagnosticListener(Protocol):
    """Interface for diagnostic listeners."""
    def on_event(self, event: DIEvent) -> None:
        """Called when an event occurs."""
        ...


class LoggingDiagnosticListener:
    """Listener that renders events through logging."""
    def __init__(self, log_level: int = logging.DEBUG):
        self.log_level = log_level

    def on_event(self, event: DIEvent) -> None:
        if event.type == DIEventType.REGISTRATION:
            logger.log(self.log_level, f"Registered module '{event.module}' (deps={event.metadata.get('deps', [])})")
        elif event.type == DIEventType.RESOLUTION:
            logger.log(self.log_level, f"Resolved {len(event.modules)} modules into {event.metadata.get('stages', 0)} stages")
        elif event.type == DIEventType.ACTIVATION_START:
            logger.log(logging.INFO, f"Activation started (strict={event.metadata.get('strict', False)})")
        elif event.type == DIEventType.STAGE_START:
            logger.log(self.log_level, f"Initialising {', '.join(event.modules)}")
        elif event.type == DIEventType.STAGE_COMPLETE:
            logger.log(self.log_level, f"✓ Stage {event.stage} complete in {event.duration:.4f}s")
        elif event.type == DIEventType.MODULE_ACTIVATED:
            logger.log(self.log_level, f"✓ Activated '{event.module}' in {event.duration:.4f}s")
        elif event.type == DIEventType.MODULE_FAILED:
            logger.log(logging.ERROR, f"✗ Failed to activate '{event.module}': {event.error}")
        elif event.type == DIEventType.ACTIVATION_COMPLETE:
            logger.log(logging.INFO, f"Activation complete in {event.duration:.4f}s")
        elif event.type == DIEventType.ACTIVATION_FAILED:
            logger.log(logging.ERROR, f"Activation failed after {event.duration:.4f}s: {event.error}")


class RecordingDiagnosticListener:
    """Listener that keeps every event in memory."""
    def __init__(self):
        self.events: List[DIEvent] = []

    def on_event(self, event: DIEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: DIEventType) -> List[DIEvent]:
        return [e for e in self.events if e.type == event_type]


class DIDiagnostics:
    """Coordinator for diagnostic listeners."""
    def __init__(self):
        self._listeners: List[DiagnosticListener] = []

    def add_listener(self, listener: DiagnosticListener) -> None:
        """Add a diagnostic listener."""
        self._listeners.append(listener)

    def remove_listener(self, listener: DiagnosticListener) -> None:
        self._listeners.remove(listener)

    @property
    def listeners(self) -> List[DiagnosticListener]:
        return list(self._listeners)

    def emit(self, event_type: DIEventType, **kwargs) -> None:
        """Emit a diagnostic event to all listeners."""
        if not self._listeners:
            return
        event = DIEvent(type=event_type, **kwargs)
        for listener in self._listeners:
            try:
                listener.on_event(event)
            except Exception as e:
                # Diagnostics should never break activation
                logger.error(f"Diagnostic listener error: {e}")
