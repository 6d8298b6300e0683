"""Local event emission for EventSub messages."""

from eventsub.events.emitter import EventHandler, EventSubject

__all__ = ["EventHandler", "EventSubject"]
