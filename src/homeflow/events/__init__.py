"""HomeFlow event system."""

from homeflow.events.bus import EventBus
from homeflow.events.types import EventType

__all__ = ["EventBus", "EventType"]
