"""Feed errors.

Every error renders as ``code|category|message``; the host API server splits
that string to build its error response, so the format must not change.
"""

from typing import Optional


class FeedError(Exception):
    """Base class for errors returned to the host."""

    code = 5002
    category = "Server Error"
    default_message = "An unexpected error occurred while building the feed."

    def __init__(self, message: Optional[str] = None, code: Optional[int] = None, category: Optional[str] = None):
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        if category is not None:
            self.category = category
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"{self.code}|{self.category}|{self.message}"


class NetworkError(FeedError):
    code = 5003
    category = "Could Not Load Real-Time Data"
    default_message = "The API Server could not connect to the real-time data source."


class FeedTimeoutError(FeedError, TimeoutError):
    code = 5003
    category = "Could Not Load Real-Time Data"
    default_message = "The real-time data source did not respond in time. Please try again later."


class UpstreamUnavailable(FeedError):
    code = 5003
    category = "Could Not Parse Station Data"
    default_message = (
        "The API Server did not get a response from the real-time data source. "
        "Please try again later."
    )


class DecodeError(FeedError):
    code = 5003
    category = "Could Not Decode GTFS-RT Feed"
    default_message = "The GTFS-RT feed could not be decoded."


class ParseError(FeedError):
    code = 5003
    category = "Could Not Parse Station Data"
    default_message = "The station page could not be parsed."


class UnsupportedStationError(FeedError):
    code = 4007
    category = "Unsupported Station"
    default_message = "The Stop does not support real-time status information."


class ScheduleLookupError(FeedError):
    code = 5002
    category = "Server Error"
    default_message = "The schedule database query failed."
