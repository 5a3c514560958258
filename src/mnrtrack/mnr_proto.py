"""
Metro-North GTFS-RT schema.

The railroad's feed is GTFS-RT with an extension on each stop-time update
(field 1005) carrying track assignments and train status. The stock
gtfs-realtime bindings drop that extension, so the schema is declared here
and loaded into a private descriptor pool. Fields are all optional on the
decode side; the wire format matches the published definition.
"""

import functools

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

PACKAGE = "transit_realtime"

Field = descriptor_pb2.FieldDescriptorProto

MNR_STATUS_FIELD_NUMBER = 1005


def _add_field(message, name, number, field_type, type_name=None, repeated=False, default=None):
    field = message.field.add(
        name=name,
        number=number,
        type=field_type,
        label=Field.LABEL_REPEATED if repeated else Field.LABEL_OPTIONAL,
    )
    if type_name:
        field.type_name = f".{PACKAGE}.{type_name}"
    if default is not None:
        field.default_value = default
    return field


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto(
        name="gtfs-realtime-mnr.proto",
        package=PACKAGE,
        syntax="proto2",
    )

    message = proto.message_type.add(name="FeedMessage")
    _add_field(message, "header", 1, Field.TYPE_MESSAGE, "FeedHeader")
    _add_field(message, "entity", 2, Field.TYPE_MESSAGE, "FeedEntity", repeated=True)

    header = proto.message_type.add(name="FeedHeader")
    _add_field(header, "gtfs_realtime_version", 1, Field.TYPE_STRING)
    _add_field(header, "timestamp", 3, Field.TYPE_UINT64)

    entity = proto.message_type.add(name="FeedEntity")
    _add_field(entity, "id", 1, Field.TYPE_STRING)
    _add_field(entity, "is_deleted", 2, Field.TYPE_BOOL)
    _add_field(entity, "trip_update", 3, Field.TYPE_MESSAGE, "TripUpdate")
    _add_field(entity, "vehicle", 4, Field.TYPE_MESSAGE, "VehiclePosition")

    trip = proto.message_type.add(name="TripDescriptor")
    _add_field(trip, "trip_id", 1, Field.TYPE_STRING)
    _add_field(trip, "start_time", 2, Field.TYPE_STRING)
    _add_field(trip, "start_date", 3, Field.TYPE_STRING)
    _add_field(trip, "route_id", 5, Field.TYPE_STRING)
    _add_field(trip, "direction_id", 6, Field.TYPE_UINT32)

    vehicle_descriptor = proto.message_type.add(name="VehicleDescriptor")
    _add_field(vehicle_descriptor, "id", 1, Field.TYPE_STRING)
    _add_field(vehicle_descriptor, "label", 2, Field.TYPE_STRING)

    trip_update = proto.message_type.add(name="TripUpdate")
    _add_field(trip_update, "trip", 1, Field.TYPE_MESSAGE, "TripDescriptor")
    _add_field(trip_update, "stop_time_update", 2, Field.TYPE_MESSAGE, "TripUpdate.StopTimeUpdate", repeated=True)
    _add_field(trip_update, "vehicle", 3, Field.TYPE_MESSAGE, "VehicleDescriptor")
    _add_field(trip_update, "timestamp", 4, Field.TYPE_UINT64)

    event = trip_update.nested_type.add(name="StopTimeEvent")
    _add_field(event, "delay", 1, Field.TYPE_INT32)
    _add_field(event, "time", 2, Field.TYPE_INT64)
    _add_field(event, "uncertainty", 3, Field.TYPE_INT32)

    update = trip_update.nested_type.add(name="StopTimeUpdate")
    _add_field(update, "stop_sequence", 1, Field.TYPE_UINT32)
    _add_field(update, "arrival", 2, Field.TYPE_MESSAGE, "TripUpdate.StopTimeEvent")
    _add_field(update, "departure", 3, Field.TYPE_MESSAGE, "TripUpdate.StopTimeEvent")
    _add_field(update, "stop_id", 4, Field.TYPE_STRING)
    _add_field(update, "status", MNR_STATUS_FIELD_NUMBER, Field.TYPE_MESSAGE, "MnrStopTimeStatus", repeated=True)

    status = proto.message_type.add(name="MnrStopTimeStatus")
    _add_field(status, "track", 1, Field.TYPE_STRING)
    _add_field(status, "trainStatus", 2, Field.TYPE_STRING)

    position = proto.message_type.add(name="Position")
    _add_field(position, "latitude", 1, Field.TYPE_FLOAT)
    _add_field(position, "longitude", 2, Field.TYPE_FLOAT)
    _add_field(position, "bearing", 3, Field.TYPE_FLOAT)
    _add_field(position, "odometer", 4, Field.TYPE_DOUBLE)
    _add_field(position, "speed", 5, Field.TYPE_FLOAT)

    vehicle = proto.message_type.add(name="VehiclePosition")
    _add_field(vehicle, "trip", 1, Field.TYPE_MESSAGE, "TripDescriptor")
    _add_field(vehicle, "position", 2, Field.TYPE_MESSAGE, "Position")
    _add_field(vehicle, "current_stop_sequence", 3, Field.TYPE_UINT32)
    _add_field(
        vehicle, "current_status", 4, Field.TYPE_ENUM,
        "VehiclePosition.VehicleStopStatus", default="IN_TRANSIT_TO",
    )
    _add_field(vehicle, "timestamp", 5, Field.TYPE_UINT64)
    _add_field(vehicle, "stop_id", 7, Field.TYPE_STRING)
    _add_field(vehicle, "vehicle", 8, Field.TYPE_MESSAGE, "VehicleDescriptor")

    # Order matters: the wire values are the enum numbers
    stop_status = vehicle.enum_type.add(name="VehicleStopStatus")
    stop_status.value.add(name="INCOMING_AT", number=0)
    stop_status.value.add(name="STOPPED_AT", number=1)
    stop_status.value.add(name="IN_TRANSIT_TO", number=2)

    return proto


@functools.lru_cache(maxsize=None)
def feed_message_class():
    """Message class for the railroad's FeedMessage, built once per process."""
    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(_build_file().SerializeToString())
    descriptor = pool.FindMessageTypeByName(f"{PACKAGE}.FeedMessage")
    return message_factory.GetMessageClass(descriptor)
