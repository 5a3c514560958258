"""Tests for VehicleFeedBuilder."""

import unittest
from datetime import timedelta

from fixtures import NOW, at, build_store, full_feed, realtime_trip, record

from mnrtrack.config import AgencyConfig
from mnrtrack.models import RealtimeVehicle, VehicleStatus
from mnrtrack.vehicle_feed import VehicleFeedBuilder, vehicle_status


def trip_1501(vehicle):
    return realtime_trip(
        "1501",
        record("1", "1501", at(8, 1), track="42"),
        record("4", "1501", at(8, 14), track="5", status="Late 2"),
        record("56", "1501", at(8, 57)),
        record("110", "1501", at(9, 52)),
        vehicle=vehicle,
    )


class TestVehicleStatus(unittest.TestCase):

    def test_known_values(self):
        self.assertEqual(vehicle_status(0), VehicleStatus.INCOMING_AT)
        self.assertEqual(vehicle_status(1), VehicleStatus.STOPPED_AT)
        self.assertEqual(vehicle_status(2), VehicleStatus.IN_TRANSIT_TO)

    def test_unknown_values(self):
        self.assertIsNone(vehicle_status(7))
        self.assertIsNone(vehicle_status(None))


class TestVehicleFeedBuilder(unittest.TestCase):
    """Test building vehicle feeds from the GTFS-RT feed."""

    def setUp(self):
        self.store = build_store()
        self.builder = VehicleFeedBuilder(self.store, AgencyConfig(), now=NOW)

    def test_remaining_stops_start_at_current_stop(self):
        vehicle = RealtimeVehicle(40.80, -73.94, status=2, stop_id="4", timestamp=NOW - timedelta(seconds=10))
        feeds = self.builder.build(full_feed(trip_1501(vehicle)))

        self.assertEqual(len(feeds), 1)
        vehicle_feed = feeds[0]
        self.assertEqual(vehicle_feed.trip_id, "1501")
        self.assertEqual(vehicle_feed.trip.id, "T1501")

        position = vehicle_feed.position
        self.assertEqual(position.status, VehicleStatus.IN_TRANSIT_TO)
        self.assertEqual(position.stop.name, "Harlem-125 St")
        self.assertEqual(position.updated, NOW - timedelta(seconds=10))

        self.assertEqual([s.stop_id for s in vehicle_feed.stops], ["4", "56", "110"])
        self.assertEqual([s.sequence for s in vehicle_feed.stops], [2, 3, 4])

        current = vehicle_feed.stops[0]
        self.assertEqual(current.stop.name, "Harlem-125 St")
        self.assertEqual(current.scheduled_arrival, at(8, 12))
        self.assertEqual(current.departure, at(8, 14))
        self.assertEqual(current.track, "5")
        self.assertEqual(current.status, "Late 2")

    def test_invalid_positions_skipped(self):
        feed = full_feed(
            realtime_trip("1503", record("1", "1503", at(8, 1)), vehicle=RealtimeVehicle(123.0, -73.9, stop_id="1")),
            realtime_trip("1505", record("1", "1505", at(8, 5)), vehicle=RealtimeVehicle(None, None, stop_id="1")),
            realtime_trip("1500", record("1", "1500", at(8, 31))),
        )
        self.assertEqual(self.builder.build(feed), [])

    def test_current_stop_not_in_trip(self):
        vehicle = RealtimeVehicle(41.0, -73.6, status=1, stop_id="999")
        vehicle_feed = self.builder.build(full_feed(trip_1501(vehicle)))[0]
        self.assertEqual(vehicle_feed.stops, ())
        self.assertIsNone(vehicle_feed.position.stop)

    def test_feed_timestamp_when_vehicle_has_none(self):
        vehicle = RealtimeVehicle(40.80, -73.94, stop_id="4")
        feed = full_feed(trip_1501(vehicle), updated=NOW - timedelta(minutes=1))
        vehicle_feed = self.builder.build(feed)[0]
        self.assertEqual(vehicle_feed.position.updated, NOW - timedelta(minutes=1))
        self.assertIsNone(vehicle_feed.position.status)

    def test_unscheduled_trip(self):
        vehicle = RealtimeVehicle(40.80, -73.94, status=0, stop_id="4")
        feed = full_feed(realtime_trip("8888", record("4", "8888", at(8, 30)), record("56", "8888", at(9, 10)), vehicle=vehicle))
        vehicle_feed = self.builder.build(feed)[0]
        self.assertIsNone(vehicle_feed.trip)
        self.assertEqual(len(vehicle_feed.stops), 2)
        self.assertIsNone(vehicle_feed.stops[0].scheduled_departure)

    def test_sorted_by_trip_id(self):
        vehicle = RealtimeVehicle(40.80, -73.94, stop_id="1")
        feed = full_feed(
            realtime_trip("1505", record("1", "1505", at(8, 5)), vehicle=vehicle),
            trip_1501(vehicle),
        )
        self.assertEqual([vf.trip_id for vf in self.builder.build(feed)], ["1501", "1505"])


if __name__ == "__main__":
    unittest.main()
