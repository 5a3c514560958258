"""GTFS-RT decoders for the full railroad feed and the delay-only feed."""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from google.protobuf.message import DecodeError as ProtobufDecodeError
from google.transit import gtfs_realtime_pb2

from . import timeutils
from .errors import DecodeError, UpstreamUnavailable
from .mnr_proto import feed_message_class
from .models import RealtimeFeed, RealtimeRecord, RealtimeTrip, RealtimeVehicle, SourceKind
from .status import canonical_token

logger = logging.getLogger(__name__)


def _parse_message(message, data: bytes, name: str):
    if not data:
        raise UpstreamUnavailable(f"The {name} feed returned an empty response. Please try again later.")
    try:
        message.ParseFromString(data)
    except (ProtobufDecodeError, ValueError) as e:
        logger.error(f"Failed to decode {name} feed: {e}")
        raise DecodeError(f"Could not decode the {name} feed ({e}).") from e
    return message


def _header_updated(message, tz: ZoneInfo, now: datetime) -> datetime:
    if message.HasField("header") and message.header.timestamp:
        return timeutils.from_epoch(message.header.timestamp, tz)
    return now


def _event_time(update, name: str, tz: ZoneInfo) -> Optional[datetime]:
    if not update.HasField(name):
        return None
    return timeutils.from_epoch(getattr(update, name).time, tz)


def fold_statuses(statuses) -> Tuple[Optional[str], Optional[str]]:
    """
    Collapse railroad status entries into one (track, status) pair.

    The last non-empty track and the last non-empty train status win,
    each independently.
    """
    track = None
    train_status = None
    for status in statuses:
        if status.track:
            track = status.track
        if status.trainStatus:
            train_status = status.trainStatus
    return track, canonical_token(train_status)


def _vehicle(entity, tz: ZoneInfo) -> Optional[RealtimeVehicle]:
    if not entity.HasField("vehicle"):
        return None
    vehicle = entity.vehicle
    latitude = longitude = None
    if vehicle.HasField("position"):
        position = vehicle.position
        if position.HasField("latitude") and position.HasField("longitude"):
            latitude, longitude = position.latitude, position.longitude
    return RealtimeVehicle(
        latitude=latitude,
        longitude=longitude,
        status=vehicle.current_status if vehicle.HasField("current_status") else None,
        stop_id=vehicle.stop_id or None,
        timestamp=timeutils.from_epoch(vehicle.timestamp, tz),
    )


def decode_full_feed(data: bytes, tz: ZoneInfo, now: Optional[datetime] = None) -> RealtimeFeed:
    """
    Decode the railroad's GTFS-RT feed into trips and per-stop records.

    Args:
        data: Raw protobuf bytes.
        tz: Agency time zone.
        now: Fallback for the feed timestamp when the header has none.

    Returns:
        RealtimeFeed of kind PROTOBUF_FULL.

    Raises:
        UpstreamUnavailable: If data is empty.
        DecodeError: If data is not a valid FeedMessage.
    """
    now = now or timeutils.now(tz)
    message = _parse_message(feed_message_class()(), data, "GTFS-RT")

    trips: Dict[str, RealtimeTrip] = {}
    stops: Dict[str, List[RealtimeRecord]] = {}

    for entity in message.entity:
        if not entity.HasField("trip_update"):
            continue

        trip_update = entity.trip_update
        trip_id = entity.id or trip_update.trip.trip_id
        service_date = trip_update.trip.start_date or None
        records: List[RealtimeRecord] = []

        for sequence, update in enumerate(trip_update.stop_time_update):
            track, train_status = fold_statuses(update.status)
            record = RealtimeRecord(
                stop_id=update.stop_id,
                trip_id=trip_id,
                service_date=service_date,
                arrival=_event_time(update, "arrival", tz),
                departure=_event_time(update, "departure", tz),
                track=track,
                status=train_status,
                sequence=sequence,
            )
            records.append(record)
            stops.setdefault(record.stop_id, []).append(record)

        trips[trip_id] = RealtimeTrip(
            id=trip_id,
            service_date=service_date,
            route_id=trip_update.trip.route_id or None,
            stops=tuple(records),
            vehicle=_vehicle(entity, tz),
        )

    logger.debug(f"Decoded {len(trips)} trips at {len(stops)} stops from GTFS-RT feed")
    return RealtimeFeed(
        kind=SourceKind.PROTOBUF_FULL,
        updated=_header_updated(message, tz, now),
        trips=trips,
        stops={stop_id: tuple(records) for stop_id, records in stops.items()},
    )


def decode_delay_feed(data: bytes, tz: ZoneInfo, now: Optional[datetime] = None) -> RealtimeFeed:
    """
    Decode a standard GTFS-RT feed that only reports departure delays.

    Each stop-time update with a departure delay becomes a delay-only record
    keyed by the trip short name (the entity id).

    Returns:
        RealtimeFeed of kind PROTOBUF_DELAY_ONLY. Its records have no times.
    """
    now = now or timeutils.now(tz)
    message = _parse_message(gtfs_realtime_pb2.FeedMessage(), data, "GTFS-RT delay")

    stops: Dict[str, List[RealtimeRecord]] = {}
    for entity in message.entity:
        if not entity.HasField("trip_update"):
            continue
        trip_update = entity.trip_update
        short_name = entity.id or trip_update.trip.trip_id

        for update in trip_update.stop_time_update:
            if not update.stop_id:
                continue
            if not update.HasField("departure") or not update.departure.HasField("delay"):
                continue
            record = RealtimeRecord(
                stop_id=update.stop_id,
                trip_id=short_name,
                service_date=trip_update.trip.start_date or None,
                delay_minutes=int(round(update.departure.delay / 60.0)),
            )
            stops.setdefault(record.stop_id, []).append(record)

    logger.debug(f"Decoded delays for {len(stops)} stops from GTFS-RT delay feed")
    return RealtimeFeed(
        kind=SourceKind.PROTOBUF_DELAY_ONLY,
        updated=_header_updated(message, tz, now),
        stops={stop_id: tuple(records) for stop_id, records in stops.items()},
    )


def delays_by_trip(records) -> Dict[str, int]:
    """Map trip short name to delay minutes for a stop's delay-only records."""
    return {
        record.trip_id: record.delay_minutes
        for record in records
        if record.trip_id and record.delay_minutes is not None
    }
