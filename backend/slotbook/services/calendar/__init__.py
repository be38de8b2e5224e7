from .source import CalendarEventSource, EventFetchResult, RestEventFallback

__all__ = ["CalendarEventSource", "EventFetchResult", "RestEventFallback"]
