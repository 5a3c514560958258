"""Builds vehicle feeds: live positions with each trip's remaining stops."""

import logging
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from . import timeutils
from .concurrency import gather_successes
from .config import AgencyConfig
from .models import (
    RealtimeFeed,
    RealtimeTrip,
    Trip,
    VehicleFeed,
    VehicleFeedPosition,
    VehicleStatus,
    VehicleStopTime,
)
from .schedule import ScheduleStore
from .station_feed import lookup

logger = logging.getLogger(__name__)


def vehicle_status(value: Optional[int]) -> Optional[VehicleStatus]:
    """Map the GTFS-RT current_status number to VehicleStatus."""
    if value is None:
        return None
    try:
        return VehicleStatus(value)
    except ValueError:
        logger.warning(f"Unknown vehicle status {value}")
        return None


class VehicleFeedBuilder:
    """Turns the decoded GTFS-RT feed into one VehicleFeed per located train."""

    def __init__(self, db: ScheduleStore, config: AgencyConfig, now: Optional[datetime] = None):
        self.db = db
        self.config = config
        self.tz = ZoneInfo(config.timezone)
        self.now = now or timeutils.now(self.tz)

    def build(self, feed: RealtimeFeed) -> List[VehicleFeed]:
        """
        Build vehicle feeds for every trip with a valid vehicle position.

        A trip that cannot be built is logged and left out.

        Returns:
            Vehicle feeds ordered by trip id.
        """
        located = [
            trip for trip in feed.trips.values()
            if trip.vehicle is not None and trip.vehicle.has_position
        ]
        feeds = gather_successes(
            located,
            lambda trip: self._build_trip(trip, feed.updated),
            max_workers=self.config.max_workers,
            describe=lambda trip: f"vehicle feed for trip {trip.id}",
        )
        feeds.sort(key=lambda vf: vf.trip_id)
        logger.debug(f"Built {len(feeds)} vehicle feeds from {len(feed.trips)} trips")
        return feeds

    def _build_trip(self, realtime_trip: RealtimeTrip, updated: datetime) -> VehicleFeed:
        vehicle = realtime_trip.vehicle
        service_date = realtime_trip.service_date or timeutils.date_int(self.now.date())

        current_stop = None
        if vehicle.stop_id:
            current_stop = lookup(self.db.get_stop, vehicle.stop_id, what=f"stop {vehicle.stop_id}")
        trip = lookup(
            self.db.get_trip_by_short_name, realtime_trip.id, service_date,
            what=f"trip {realtime_trip.id} on {service_date}",
        )

        position = VehicleFeedPosition(
            latitude=vehicle.latitude,
            longitude=vehicle.longitude,
            updated=vehicle.timestamp or updated,
            status=vehicle_status(vehicle.status),
            stop=current_stop,
        )
        return VehicleFeed(
            trip_id=realtime_trip.id,
            position=position,
            trip=trip,
            stops=tuple(self._remaining_stops(realtime_trip, trip)),
        )

    def _remaining_stops(self, realtime_trip: RealtimeTrip, trip: Optional[Trip]) -> List[VehicleStopTime]:
        """Stops from the vehicle's current stop (inclusive) to the end of the trip."""
        current = realtime_trip.vehicle.stop_id
        start = None
        for index, record in enumerate(realtime_trip.stops):
            if record.stop_id == current:
                start = index
                break
        if start is None:
            return []

        remaining = []
        for index, record in enumerate(realtime_trip.stops[start:], start=start):
            stop = lookup(self.db.get_stop, record.stop_id, what=f"stop {record.stop_id}")
            scheduled_arrival = scheduled_departure = None
            stop_time = trip.stop_time_for(record.stop_id) if trip is not None else None
            if stop_time is not None and trip.service_date:
                if stop_time.arrival is not None:
                    scheduled_arrival = timeutils.gtfs_to_datetime(trip.service_date, stop_time.arrival, self.tz)
                if stop_time.departure is not None:
                    scheduled_departure = timeutils.gtfs_to_datetime(trip.service_date, stop_time.departure, self.tz)
            remaining.append(VehicleStopTime(
                stop=stop,
                stop_id=record.stop_id,
                sequence=index + 1,
                arrival=record.arrival,
                departure=record.departure,
                scheduled_arrival=scheduled_arrival,
                scheduled_departure=scheduled_departure,
                track=record.track,
                status=record.status,
            ))
        return remaining
