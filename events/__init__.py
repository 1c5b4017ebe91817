from .bus import EventBus, EventRecord
from .schemas import EVENT_SCHEMAS, WILDCARD, EventName

__all__ = ["EventBus", "EventRecord", "EventName", "EVENT_SCHEMAS", "WILDCARD"]
