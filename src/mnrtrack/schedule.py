"""Schedule store interface and an in-memory GTFS implementation."""

import csv
import io
import logging
import re
import zipfile
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Set, Tuple, Union
from zoneinfo import ZoneInfo

from . import timeutils
from .models import NO_REALTIME_STATUS_ID, Stop, StopTime, Trip

logger = logging.getLogger(__name__)

# Largest gap between a displayed departure time and the timetable
DEPARTURE_TOLERANCE_SECONDS = 60

_NAME_RE = re.compile(r"[^0-9a-z]+")


class ScheduleStore(Protocol):
    """Queries the real-time layer needs from the schedule database."""

    def get_stop(self, stop_id: str) -> Optional[Stop]:
        ...

    def get_stop_by_name(self, name: str) -> Optional[Stop]:
        ...

    def get_trip_by_departure(self, origin_id: str, destination_id: str, departure: datetime) -> Optional[Trip]:
        ...

    def get_trip_by_short_name(self, short_name: str, service_date: str) -> Optional[Trip]:
        ...


def _normalize_name(name: str) -> str:
    return _NAME_RE.sub("", name.casefold())


def parse_gtfs_time(value: str) -> Optional[int]:
    """'25:10:00' -> seconds past service-day midnight."""
    value = value.strip()
    if not value:
        return None
    hours, minutes, seconds = (int(part) for part in value.split(":"))
    return hours * 3600 + minutes * 60 + seconds


class GTFSScheduleStore:
    """Loads and indexes GTFS static data for schedule queries."""

    def __init__(self, timezone: str = "America/New_York"):
        """Initialize an empty store."""
        self.tz = ZoneInfo(timezone)
        self.stops: Dict[str, Stop] = {}
        self.stops_by_name: Dict[str, List[str]] = {}  # casefolded name -> [stop_ids]
        self.trips: Dict[str, Trip] = {}
        self.trips_by_short_name: Dict[str, List[str]] = {}
        self.departures_by_stop: Dict[str, List[Tuple[int, str]]] = {}  # stop_id -> [(departure, trip_id)]
        self.services: Dict[str, Tuple[Set[int], str, str]] = {}  # service_id -> (weekdays, start, end)
        self.service_exceptions: Dict[Tuple[str, str], int] = {}  # (service_id, date) -> exception_type
        self._trip_rows: Dict[str, dict] = {}

    def load_from_zip(self, source: Union[str, Path, bytes]) -> None:
        """Load a GTFS zip archive from a path or raw bytes."""
        if isinstance(source, bytes):
            source = io.BytesIO(source)
        with zipfile.ZipFile(source) as zip_file:
            names = set(zip_file.namelist())

            def read(name: str) -> Optional[str]:
                if name not in names:
                    return None
                return zip_file.read(name).decode("utf-8-sig")

            self.load_from_strings(
                stops=read("stops.txt"),
                trips=read("trips.txt"),
                stop_times=read("stop_times.txt"),
                calendar=read("calendar.txt"),
                calendar_dates=read("calendar_dates.txt"),
            )

    def load_from_directory(self, directory: Union[str, Path]) -> None:
        """Load GTFS files from a directory."""
        directory = Path(directory)

        def read(name: str) -> Optional[str]:
            path = directory / name
            if not path.exists():
                return None
            return path.read_text(encoding="utf-8-sig")

        self.load_from_strings(
            stops=read("stops.txt"),
            trips=read("trips.txt"),
            stop_times=read("stop_times.txt"),
            calendar=read("calendar.txt"),
            calendar_dates=read("calendar_dates.txt"),
        )

    def load_from_strings(
        self,
        stops: Optional[str],
        trips: Optional[str] = None,
        stop_times: Optional[str] = None,
        calendar: Optional[str] = None,
        calendar_dates: Optional[str] = None,
    ) -> None:
        """Load GTFS tables from CSV text. Only stops are required."""
        if stops is None:
            raise ValueError("stops.txt is required")
        self._load_stops(stops)
        if trips:
            self._load_trips(trips)
        if stop_times:
            self._load_stop_times(stop_times)
        if calendar:
            self._load_calendar(calendar)
        if calendar_dates:
            self._load_calendar_dates(calendar_dates)
        logger.info(f"Loaded {len(self.stops)} stops and {len(self.trips)} trips")

    def _load_stops(self, csv_content: str) -> None:
        """Parse stops.txt. An optional status_id column marks real-time support."""
        reader = csv.DictReader(io.StringIO(csv_content))
        for row in reader:
            stop = Stop(
                id=row["stop_id"],
                name=row["stop_name"],
                latitude=float(row.get("stop_lat") or 0),
                longitude=float(row.get("stop_lon") or 0),
                status_id=row.get("status_id") or NO_REALTIME_STATUS_ID,
            )
            self.stops[stop.id] = stop
            self.add_stop_name(stop.id, stop.name)

    def _load_trips(self, csv_content: str) -> None:
        reader = csv.DictReader(io.StringIO(csv_content))
        for row in reader:
            self._trip_rows[row["trip_id"]] = row
        self._build_trips({})

    def _load_stop_times(self, csv_content: str) -> None:
        reader = csv.DictReader(io.StringIO(csv_content))
        stop_times: Dict[str, List[StopTime]] = {}
        for row in reader:
            trip_id = row["trip_id"]
            if not trip_id:
                continue
            stop_times.setdefault(trip_id, []).append(StopTime(
                stop_id=row["stop_id"],
                arrival=parse_gtfs_time(row.get("arrival_time", "")),
                departure=parse_gtfs_time(row.get("departure_time", "")),
                sequence=int(row["stop_sequence"]),
            ))
        self._build_trips(stop_times)

    def _build_trips(self, stop_times: Dict[str, List[StopTime]]) -> None:
        """Create Trip objects and the departure index from the loaded rows."""
        for trip_id, row in self._trip_rows.items():
            times = stop_times.get(trip_id)
            if times is None:
                existing = self.trips.get(trip_id)
                times = list(existing.stop_times) if existing else []
            times.sort(key=lambda st: st.sequence)
            direction = row.get("direction_id")
            self.trips[trip_id] = Trip(
                id=trip_id,
                short_name=row.get("trip_short_name") or trip_id,
                route_id=row.get("route_id", ""),
                service_id=row.get("service_id", ""),
                direction_id=int(direction) if direction not in (None, "") else None,
                headsign=row.get("trip_headsign", ""),
                stop_times=tuple(times),
            )

        self.trips_by_short_name = {}
        self.departures_by_stop = {}
        for trip in self.trips.values():
            self.trips_by_short_name.setdefault(trip.short_name, []).append(trip.id)
            for stop_time in trip.stop_times:
                if stop_time.departure is not None:
                    self.departures_by_stop.setdefault(stop_time.stop_id, []).append(
                        (stop_time.departure, trip.id)
                    )

    def _load_calendar(self, csv_content: str) -> None:
        days = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
        reader = csv.DictReader(io.StringIO(csv_content))
        for row in reader:
            weekdays = {i for i, day in enumerate(days) if row.get(day) == "1"}
            self.services[row["service_id"]] = (weekdays, row["start_date"], row["end_date"])

    def _load_calendar_dates(self, csv_content: str) -> None:
        reader = csv.DictReader(io.StringIO(csv_content))
        for row in reader:
            self.service_exceptions[(row["service_id"], row["date"])] = int(row["exception_type"])

    def add_stop_name(self, stop_id: str, name: str) -> None:
        """Register a name (or an alternate name) under which a stop can be found."""
        ids = self.stops_by_name.setdefault(name.casefold(), [])
        if stop_id not in ids:
            ids.append(stop_id)

    def is_service_active(self, service_id: str, service_date: str) -> bool:
        """Whether a service runs on a date. Without calendar data every service runs."""
        if not self.services and not self.service_exceptions:
            return True
        exception = self.service_exceptions.get((service_id, service_date))
        if exception is not None:
            return exception == 1
        service = self.services.get(service_id)
        if service is None:
            return False
        weekdays, start, end = service
        if not start <= service_date <= end:
            return False
        return timeutils.parse_date_int(service_date).weekday() in weekdays

    def get_stop(self, stop_id: str) -> Optional[Stop]:
        """Get stop by stop_id."""
        return self.stops.get(stop_id)

    def get_stop_by_name(self, name: str) -> Optional[Stop]:
        """
        Find a stop by its display name.

        Tries an exact (case-insensitive) match, then a match ignoring
        punctuation and spacing, then a unique partial match.
        """
        ids = self.stops_by_name.get(name.strip().casefold())
        if ids:
            return self.stops.get(ids[0])

        target = _normalize_name(name)
        if not target:
            return None
        partial: Set[str] = set()
        for known, stop_ids in self.stops_by_name.items():
            normalized = _normalize_name(known)
            if normalized == target:
                return self.stops.get(stop_ids[0])
            if target in normalized or normalized in target:
                partial.update(stop_ids)

        if len(partial) == 1:
            return self.stops.get(partial.pop())
        return None

    def get_trip_by_departure(self, origin_id: str, destination_id: str, departure: datetime) -> Optional[Trip]:
        """
        Find the trip leaving origin at (about) the given time.

        When destination_id is set the trip must stop there after the origin.
        Service dates are checked for the departure's day and the day before,
        for trips running past midnight.
        """
        candidates = self.departures_by_stop.get(origin_id, [])
        best: Optional[Tuple[int, Trip]] = None

        for service_date in timeutils.candidate_service_dates(departure):
            target = timeutils.datetime_to_gtfs(departure, service_date, self.tz)
            for scheduled, trip_id in candidates:
                gap = abs(scheduled - target)
                if gap > DEPARTURE_TOLERANCE_SECONDS:
                    continue
                trip = self.trips[trip_id]
                if not self.is_service_active(trip.service_id, service_date):
                    continue
                if destination_id and not self._stops_after(trip, origin_id, destination_id):
                    continue
                if best is None or gap < best[0]:
                    best = (gap, replace(trip, service_date=service_date))

        return best[1] if best else None

    def get_trip_by_short_name(self, short_name: str, service_date: str) -> Optional[Trip]:
        """Find the trip with the given short name running on a service date."""
        for trip_id in self.trips_by_short_name.get(short_name, []):
            trip = self.trips[trip_id]
            if self.is_service_active(trip.service_id, service_date):
                return replace(trip, service_date=service_date)
        return None

    @staticmethod
    def _stops_after(trip: Trip, origin_id: str, destination_id: str) -> bool:
        origin = trip.stop_time_for(origin_id)
        destination = trip.stop_time_for(destination_id)
        return origin is not None and destination is not None and destination.sequence > origin.sequence

    def clear(self) -> None:
        """Clear all loaded data to free memory."""
        self.stops.clear()
        self.stops_by_name.clear()
        self.trips.clear()
        self.trips_by_short_name.clear()
        self.departures_by_stop.clear()
        self.services.clear()
        self.service_exceptions.clear()
        self._trip_rows.clear()
        logger.info("Cleared GTFS data from memory")
