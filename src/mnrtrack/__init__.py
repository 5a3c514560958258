"""mnrtrack - Real-time station and vehicle feeds for Metro-North."""

__version__ = "0.1.0"

from .models import (
    Departure,
    RealtimeFeed,
    RealtimeRecord,
    SourceKind,
    StationFeed,
    Status,
    Stop,
    StopTime,
    Trip,
    VehicleFeed,
    VehicleFeedPosition,
    VehicleStatus,
    VehicleStopTime,
)
from .config import AgencyConfig
from .errors import (
    DecodeError,
    FeedError,
    FeedTimeoutError,
    NetworkError,
    ParseError,
    ScheduleLookupError,
    UnsupportedStationError,
    UpstreamUnavailable,
)
from .cache import FeedCache
from .feed_client import FeedClient
from .schedule import GTFSScheduleStore, ScheduleStore
from .sources import RealtimeSource
from .tracker import MNRFeedTracker, load_station_feed, load_vehicle_feeds

__all__ = [
    "MNRFeedTracker",
    "load_station_feed",
    "load_vehicle_feeds",
    "AgencyConfig",
    "FeedCache",
    "FeedClient",
    "RealtimeSource",
    "GTFSScheduleStore",
    "ScheduleStore",
    "Stop",
    "StopTime",
    "Trip",
    "RealtimeRecord",
    "RealtimeFeed",
    "SourceKind",
    "Status",
    "Departure",
    "StationFeed",
    "VehicleStatus",
    "VehicleFeedPosition",
    "VehicleStopTime",
    "VehicleFeed",
    "FeedError",
    "NetworkError",
    "FeedTimeoutError",
    "DecodeError",
    "ParseError",
    "UpstreamUnavailable",
    "UnsupportedStationError",
    "ScheduleLookupError",
]
