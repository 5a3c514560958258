"""Shared test data: a small Metro-North schedule and feed builders."""

import sys
from datetime import datetime, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

# Add src to path so we can import mnrtrack
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mnrtrack.mnr_proto import feed_message_class
from mnrtrack.models import RealtimeFeed, RealtimeRecord, RealtimeTrip, RealtimeVehicle, SourceKind
from mnrtrack.schedule import GTFSScheduleStore

TZ = ZoneInfo("America/New_York")

# Monday morning
NOW = datetime(2026, 10, 19, 8, 0, tzinfo=TZ)
SERVICE_DATE = "20261019"

STOPS_CSV = """stop_id,stop_name,stop_lat,stop_lon,status_id
1,Grand Central,40.752998,-73.977056,1
4,Harlem-125 St,40.805157,-73.939149,4
56,Stamford,41.046937,-73.542131,56
110,New Haven,41.296501,-72.926410,110
200,Breakneck Ridge,41.450000,-73.980000,-1
"""

TRIPS_CSV = """route_id,service_id,trip_id,trip_short_name,trip_headsign,direction_id
NH,WKD,T1501,1501,New Haven,0
NH,WKD,T1503,1503,Stamford,0
NH,WKD,T1505,1505,Stamford,0
NH,WKD,T1500,1500,Grand Central,1
NH,WKE,T2501,2501,New Haven,0
"""

STOP_TIMES_CSV = """trip_id,arrival_time,departure_time,stop_id,stop_sequence
T1501,08:01:00,08:01:00,1,1
T1501,08:12:00,08:12:00,4,2
T1501,08:55:00,08:55:00,56,3
T1501,09:50:00,09:50:00,110,4
T1503,08:01:00,08:01:00,1,1
T1503,08:50:00,08:50:00,56,2
T1505,08:05:00,08:05:00,1,1
T1505,08:16:00,08:16:00,4,2
T1505,09:00:00,09:00:00,56,3
T1500,06:30:00,06:30:00,110,1
T1500,07:40:00,07:40:00,56,2
T1500,08:20:00,08:20:00,4,3
T1500,08:31:00,08:31:00,1,4
T2501,08:01:00,08:01:00,1,1
T2501,09:50:00,09:50:00,110,2
"""

CALENDAR_CSV = """service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date
WKD,1,1,1,1,1,0,0,20260101,20261231
WKE,0,0,0,0,0,1,1,20260101,20261231
"""


def build_store() -> GTFSScheduleStore:
    store = GTFSScheduleStore()
    store.load_from_strings(
        stops=STOPS_CSV,
        trips=TRIPS_CSV,
        stop_times=STOP_TIMES_CSV,
        calendar=CALENDAR_CSV,
    )
    return store


def at(hour: int, minute: int) -> datetime:
    """A time on the test service date."""
    return NOW.replace(hour=hour, minute=minute)


def epoch(moment: datetime) -> int:
    return int(moment.timestamp())


def record(stop_id, trip_id, departure=None, status=None, track=None, sequence=0):
    return RealtimeRecord(
        stop_id=stop_id,
        trip_id=trip_id,
        service_date=SERVICE_DATE,
        arrival=departure,
        departure=departure,
        status=status,
        track=track,
        sequence=sequence,
    )


def full_feed(*trips: RealtimeTrip, updated: datetime = NOW) -> RealtimeFeed:
    """RealtimeFeed of kind PROTOBUF_FULL indexed the way the decoder indexes it."""
    stops = {}
    for trip in trips:
        for rec in trip.stops:
            stops.setdefault(rec.stop_id, []).append(rec)
    return RealtimeFeed(
        kind=SourceKind.PROTOBUF_FULL,
        updated=updated,
        trips={trip.id: trip for trip in trips},
        stops={stop_id: tuple(recs) for stop_id, recs in stops.items()},
    )


def realtime_trip(trip_id, *stops, vehicle: RealtimeVehicle = None) -> RealtimeTrip:
    return RealtimeTrip(id=trip_id, service_date=SERVICE_DATE, route_id="NH", stops=tuple(stops), vehicle=vehicle)


def delay_feed(*records: RealtimeRecord) -> RealtimeFeed:
    stops = {}
    for rec in records:
        stops.setdefault(rec.stop_id, []).append(rec)
    return RealtimeFeed(
        kind=SourceKind.PROTOBUF_DELAY_ONLY,
        updated=NOW,
        stops={stop_id: tuple(recs) for stop_id, recs in stops.items()},
    )


def delay_record(stop_id: str, trip: str, minutes: int) -> RealtimeRecord:
    return RealtimeRecord(stop_id=stop_id, trip_id=trip, delay_minutes=minutes)


def build_mnr_feed_bytes(timestamp: datetime = NOW) -> bytes:
    """
    A railroad GTFS-RT message with two trips:

    1501 at Grand Central (track 42, On-Time) then Stamford, with a vehicle
    stopped at Grand Central; 1505 two minutes late at Grand Central with no
    vehicle.
    """
    feed = feed_message_class()()
    feed.header.gtfs_realtime_version = "1.0"
    feed.header.timestamp = epoch(timestamp)

    entity = feed.entity.add()
    entity.id = "1501"
    entity.trip_update.trip.trip_id = "1501"
    entity.trip_update.trip.start_date = SERVICE_DATE
    entity.trip_update.trip.route_id = "NH"
    for stop_id, when in (("1", at(8, 1)), ("56", at(8, 55))):
        update = entity.trip_update.stop_time_update.add()
        update.stop_id = stop_id
        update.arrival.time = epoch(when)
        update.departure.time = epoch(when)
    first = entity.trip_update.stop_time_update[0]
    status = first.status.add()
    status.track = "42"
    status.trainStatus = "Scheduled"
    status = first.status.add()
    status.trainStatus = "On-Time"
    entity.vehicle.position.latitude = 40.753
    entity.vehicle.position.longitude = -73.977
    entity.vehicle.current_status = 1
    entity.vehicle.stop_id = "1"
    entity.vehicle.timestamp = epoch(timestamp - timedelta(seconds=30))

    entity = feed.entity.add()
    entity.id = "1505"
    entity.trip_update.trip.trip_id = "1505"
    entity.trip_update.trip.start_date = SERVICE_DATE
    update = entity.trip_update.stop_time_update.add()
    update.stop_id = "1"
    update.arrival.time = epoch(at(8, 7))
    update.departure.time = epoch(at(8, 7))
    status = update.status.add()
    status.track = "30"
    status.trainStatus = "Late"

    return feed.SerializeToString()


def build_delay_feed_bytes(delays, timestamp: datetime = NOW) -> bytes:
    """Standard GTFS-RT message from [(trip short name, stop id, delay seconds)]."""
    from google.transit import gtfs_realtime_pb2

    feed = gtfs_realtime_pb2.FeedMessage()
    feed.header.gtfs_realtime_version = "2.0"
    feed.header.timestamp = epoch(timestamp)
    for index, (trip, stop_id, seconds) in enumerate(delays):
        entity = feed.entity.add()
        entity.id = trip
        entity.trip_update.trip.trip_id = f"trip-{index}"
        update = entity.trip_update.stop_time_update.add()
        update.stop_id = stop_id
        update.departure.delay = seconds
    return feed.SerializeToString()


TRAINTIME_PAGE = """
<html><body>
<table class="nav"><tr><td>Menu</td></tr></table>
<table>
  <tr><th>Time</th><th>Destination</th><th>Track</th><th>Status</th></tr>
  <tr><td> 8:05 AM </td><td>Stamford</td><td>30</td><td>On Time</td></tr>
  <tr><td>8:01 AM</td><td>New Haven</td><td>42</td><td>Late 5"</td></tr>
  <tr><td>8:01 AM</td><td>Stamford</td><td></td><td>Late</td></tr>
  <tr><td>8:20 AM</td><td>Secaucus Junction Spur</td><td>11</td><td></td></tr>
</table>
</body></html>
"""
