"""Builds a station's departure board from live data and the schedule."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional
from zoneinfo import ZoneInfo

from . import timeutils
from .concurrency import gather_successes
from .config import AgencyConfig
from .errors import ScheduleLookupError, UnsupportedStationError
from .gtfs_rt import delays_by_trip
from .models import Departure, RealtimeFeed, RealtimeRecord, SourceKind, StationFeed, Status, Stop, Trip
from .schedule import ScheduleStore
from .status import DEPARTED, SCHEDULED, classify, parse_status_text, reconcile_delays

logger = logging.getLogger(__name__)


def check_supported(origin: Stop) -> None:
    """Raise UnsupportedStationError for stops without real-time status."""
    if not origin.supports_realtime:
        raise UnsupportedStationError()


def lookup(query: Callable, *args, what: str):
    """Run a schedule query, wrapping its failures in ScheduleLookupError."""
    try:
        return query(*args)
    except Exception as e:
        raise ScheduleLookupError(f"Could not look up {what} ({e}).") from e


class StationFeedBuilder:
    """
    Joins a station's live records with the schedule.

    Each record needs a destination lookup and a trip lookup; records are
    resolved concurrently and a record whose lookups fail is dropped rather
    than failing the station.
    """

    def __init__(self, db: ScheduleStore, config: AgencyConfig, now: Optional[datetime] = None):
        self.db = db
        self.config = config
        self.tz = ZoneInfo(config.timezone)
        self.now = now or timeutils.now(self.tz)

    def build(self, origin: Stop, feed: RealtimeFeed, delays: Optional[RealtimeFeed] = None) -> StationFeed:
        """
        Build the station feed for origin.

        Args:
            origin: Requested station.
            feed: Primary live data, either the station's TrainTime page or
                the full GTFS-RT feed.
            delays: Optional delay-only feed used to corroborate statuses.

        Returns:
            StationFeed with departures in scheduled order.
        """
        check_supported(origin)
        if feed.kind is SourceKind.PROTOBUF_DELAY_ONLY:
            raise ValueError("A delay-only feed cannot be the primary source of departures")

        remark_station = self.config.is_remark_station(origin.status_id)
        delay_index = delays_by_trip(delays.for_stop(origin.id)) if delays is not None else {}
        records = [record for record in feed.for_stop(origin.id) if not record.is_delay_only]

        if feed.kind is SourceKind.HTML:
            def task(record):
                return self._from_traintime(origin, record, delay_index, remark_station)
        else:
            def task(record):
                return self._from_gtfsrt(origin, feed, record, delay_index)

        departures = gather_successes(
            records,
            task,
            max_workers=self.config.max_workers,
            describe=lambda r: f"departure {r.trip_id or r.destination_name} from {origin.name}",
        )

        if feed.kind is SourceKind.PROTOBUF_FULL:
            departures = [d for d in departures if self.keep(origin, d)]

        departures.sort(key=lambda d: d.sort_key)
        logger.debug(f"Built {len(departures)} departures for {origin.name}")
        return StationFeed(origin=origin, updated=feed.updated, departures=tuple(departures))

    def _from_traintime(
        self,
        origin: Stop,
        record: RealtimeRecord,
        delay_index: Dict[str, int],
        remark_station: bool,
    ) -> Departure:
        name = record.destination_name or ""
        destination = lookup(self.db.get_stop_by_name, name, what=f"stop {name!r}")
        if destination is None:
            destination = Stop.unknown(name)

        scheduled = record.scheduled_departure
        trip = lookup(
            self.db.get_trip_by_departure, origin.id, destination.id, scheduled,
            what=f"trip from {origin.id} at {scheduled:%H:%M}",
        )
        if trip is None:
            logger.debug(f"No scheduled trip from {origin.name} to {name} at {scheduled:%H:%M}")

        parsed = parse_status_text(None if remark_station else record.status)
        has_realtime = parsed.token not in (None, SCHEDULED)
        return self._departure(
            record, scheduled, destination, trip,
            local_delay=parsed.delay,
            estimated=None,
            has_realtime=has_realtime,
            remark_station=remark_station,
            delay_index=delay_index,
        )

    def _from_gtfsrt(
        self,
        origin: Stop,
        feed: RealtimeFeed,
        record: RealtimeRecord,
        delay_index: Dict[str, int],
    ) -> Optional[Departure]:
        realtime_trip = feed.trips.get(record.trip_id)
        destination_id = realtime_trip.destination_id if realtime_trip else None
        destination = None
        if destination_id:
            destination = lookup(self.db.get_stop, destination_id, what=f"stop {destination_id}")
        if destination is None:
            destination = Stop.unknown(destination_id or "")

        live = record.live_departure
        service_date = record.service_date or timeutils.date_int((live or self.now).date())
        trip = lookup(
            self.db.get_trip_by_short_name, record.trip_id, service_date,
            what=f"trip {record.trip_id} on {service_date}",
        )

        scheduled = self._scheduled_at(trip, origin.id)
        if scheduled is None:
            scheduled = live
        if scheduled is None:
            logger.debug(f"Trip {record.trip_id} has no time at {origin.name}")
            return None

        estimated = live or scheduled
        return self._departure(
            record, scheduled, destination, trip,
            local_delay=timeutils.minutes_between(scheduled, estimated),
            estimated=estimated,
            has_realtime=live is not None or record.status is not None,
            remark_station=False,
            delay_index=delay_index,
        )

    def _scheduled_at(self, trip: Optional[Trip], stop_id: str) -> Optional[datetime]:
        if trip is None or trip.service_date is None:
            return None
        stop_time = trip.stop_time_for(stop_id)
        if stop_time is None:
            return None
        seconds = stop_time.departure if stop_time.departure is not None else stop_time.arrival
        if seconds is None:
            return None
        return timeutils.gtfs_to_datetime(trip.service_date, seconds, self.tz)

    def _departure(
        self,
        record: RealtimeRecord,
        scheduled: datetime,
        destination: Stop,
        trip: Optional[Trip],
        local_delay: int,
        estimated: Optional[datetime],
        has_realtime: bool,
        remark_station: bool,
        delay_index: Dict[str, int],
    ) -> Departure:
        delay, delay_range = local_delay, None
        remote = self._remote_delay(record, trip, delay_index)
        if remote is not None:
            delay, delay_range = reconcile_delays(local_delay, remote)
            has_realtime = True

        label = classify(record.status, delay, has_realtime, remark_station, delay_range)
        # an early live estimate survives a reconciled delay of zero
        if estimated is None or label.delay not in (local_delay, max(local_delay, 0)):
            estimated = scheduled + timedelta(minutes=label.delay)

        status = Status(
            label=label.label,
            delay=label.delay,
            estimated_departure=estimated,
            track=record.track,
            remarks=record.remarks,
        )
        return Departure(departure=scheduled, destination=destination, trip=trip, status=status)

    @staticmethod
    def _remote_delay(record: RealtimeRecord, trip: Optional[Trip], delay_index: Dict[str, int]) -> Optional[int]:
        if not delay_index:
            return None
        if trip is not None and trip.short_name in delay_index:
            return delay_index[trip.short_name]
        if record.trip_id:
            return delay_index.get(record.trip_id)
        return None

    def keep(self, origin: Stop, departure: Departure) -> bool:
        """
        Whether a GTFS-RT departure belongs on the board.

        Drops trains that departed more than the grace period ago, trains
        beyond the horizon, and trains terminating at the hub when the board
        is the hub's.
        """
        hub = self.config.hub_stop_id
        if origin.id == hub and departure.destination.id == hub:
            return False

        status = departure.status
        if status.label == DEPARTED:
            latest = max(departure.departure, status.estimated_departure)
            if latest < self.now - timedelta(minutes=self.config.departed_grace_minutes):
                return False

        if departure.departure > self.now + timedelta(minutes=self.config.future_horizon_minutes):
            return False
        return True
