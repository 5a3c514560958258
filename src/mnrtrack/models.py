"""Data models for the Metro-North real-time feeds."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Dict, Optional, Tuple


class SourceKind(str, Enum):
    """Generation of a real-time source."""
    HTML = "html"
    PROTOBUF_DELAY_ONLY = "protobuf-delay-only"
    PROTOBUF_FULL = "protobuf-full"


class VehicleStatus(IntEnum):
    """GTFS-RT VehicleStopStatus values, in wire order."""
    INCOMING_AT = 0
    STOPPED_AT = 1
    IN_TRANSIT_TO = 2


# Status id used by the schedule database for stops without real-time data
NO_REALTIME_STATUS_ID = "-1"


@dataclass(frozen=True)
class Stop:
    """Represents a stop from the schedule store."""
    id: str
    name: str
    latitude: float = 0.0
    longitude: float = 0.0
    status_id: str = NO_REALTIME_STATUS_ID

    @classmethod
    def unknown(cls, name: str) -> "Stop":
        """Placeholder for a destination the schedule store does not know."""
        return cls(id="", name=name)

    @property
    def is_synthetic(self) -> bool:
        return self.id == ""

    @property
    def supports_realtime(self) -> bool:
        return self.status_id != NO_REALTIME_STATUS_ID


@dataclass(frozen=True)
class StopTime:
    """A timetabled stop. Times are GTFS seconds past service-day midnight."""
    stop_id: str
    arrival: Optional[int]
    departure: Optional[int]
    sequence: int


@dataclass(frozen=True)
class Trip:
    """Represents a scheduled trip."""
    id: str
    short_name: str
    route_id: str = ""
    service_id: str = ""
    direction_id: Optional[int] = None
    headsign: str = ""
    stop_times: Tuple[StopTime, ...] = ()
    service_date: Optional[str] = None  # YYYYMMDD, set when resolved for a date

    def stop_time_for(self, stop_id: str) -> Optional[StopTime]:
        for stop_time in self.stop_times:
            if stop_time.stop_id == stop_id:
                return stop_time
        return None


@dataclass(frozen=True)
class RealtimeRecord:
    """One (trip, stop) pair reported by a live feed."""
    stop_id: str
    trip_id: Optional[str] = None
    service_date: Optional[str] = None
    arrival: Optional[datetime] = None
    departure: Optional[datetime] = None
    delay_minutes: Optional[int] = None
    track: Optional[str] = None
    status: Optional[str] = None
    sequence: Optional[int] = None
    # TrainTime page fields
    scheduled_departure: Optional[datetime] = None
    destination_name: Optional[str] = None
    remarks: Optional[str] = None

    @property
    def is_delay_only(self) -> bool:
        return (
            self.delay_minutes is not None
            and self.arrival is None
            and self.departure is None
            and self.scheduled_departure is None
        )

    @property
    def live_departure(self) -> Optional[datetime]:
        return self.departure or self.arrival


@dataclass(frozen=True)
class RealtimeVehicle:
    """Vehicle position attached to a real-time trip."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: Optional[int] = None
    stop_id: Optional[str] = None
    timestamp: Optional[datetime] = None

    @property
    def has_position(self) -> bool:
        if self.latitude is None or self.longitude is None:
            return False
        return -90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0


@dataclass(frozen=True)
class RealtimeTrip:
    """All stops reported for one trip, plus its vehicle if any."""
    id: str
    service_date: Optional[str] = None
    route_id: Optional[str] = None
    stops: Tuple[RealtimeRecord, ...] = ()
    vehicle: Optional[RealtimeVehicle] = None

    @property
    def destination_id(self) -> Optional[str]:
        return self.stops[-1].stop_id if self.stops else None


@dataclass(frozen=True)
class RealtimeFeed:
    """Normalized snapshot of a decoded real-time source."""
    kind: SourceKind
    updated: datetime
    trips: Dict[str, RealtimeTrip] = field(default_factory=dict)
    stops: Dict[str, Tuple[RealtimeRecord, ...]] = field(default_factory=dict)

    def for_stop(self, stop_id: str) -> Tuple[RealtimeRecord, ...]:
        return self.stops.get(stop_id, ())


@dataclass(frozen=True)
class Status:
    """Normalized real-time status of a departure."""
    label: str
    delay: int  # minutes
    estimated_departure: datetime
    track: Optional[str] = None
    remarks: Optional[str] = None


@dataclass(frozen=True)
class Departure:
    """A departure from the requested origin."""
    departure: datetime  # scheduled
    destination: Stop
    trip: Optional[Trip]
    status: Status

    @property
    def sort_key(self) -> tuple:
        trip_key = ""
        if self.trip is not None:
            trip_key = self.trip.short_name or self.trip.id
        return (self.departure, self.destination.name, trip_key, self.status.track or "")


@dataclass(frozen=True)
class StationFeed:
    """Ordered departures for one station."""
    origin: Stop
    updated: datetime
    departures: Tuple[Departure, ...] = ()


@dataclass(frozen=True)
class VehicleFeedPosition:
    """Live position of a vehicle."""
    latitude: float
    longitude: float
    updated: datetime
    status: Optional[VehicleStatus] = None
    stop: Optional[Stop] = None


@dataclass(frozen=True)
class VehicleStopTime:
    """A remaining stop of a vehicle's trip, merged with live times."""
    stop: Optional[Stop]
    stop_id: str
    sequence: int
    arrival: Optional[datetime] = None
    departure: Optional[datetime] = None
    scheduled_arrival: Optional[datetime] = None
    scheduled_departure: Optional[datetime] = None
    track: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class VehicleFeed:
    """Live position and remaining stops of one trip."""
    trip_id: str
    position: VehicleFeedPosition
    trip: Optional[Trip] = None
    stops: Tuple[VehicleStopTime, ...] = ()
