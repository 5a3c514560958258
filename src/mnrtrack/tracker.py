"""Main Metro-North feed tracker: the entry points used by the host."""

import logging
from datetime import datetime
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from . import timeutils
from .cache import DELAYS_KEY, GTFSRT_KEY, FeedCache, station_key
from .config import AgencyConfig
from .errors import FeedError
from .feed_client import FeedClient
from .models import RealtimeFeed, SourceKind, StationFeed, Stop, VehicleFeed
from .schedule import ScheduleStore
from .sources import RealtimeSource
from .station_feed import StationFeedBuilder, check_supported
from .vehicle_feed import VehicleFeedBuilder

logger = logging.getLogger(__name__)

# Shared by the module-level entry points; the only state kept between calls
_shared_cache = FeedCache()


class MNRFeedTracker:
    """
    Builds station and vehicle feeds for Metro-North.

    This class provides methods to:
    - Get the ordered departure board for a station
    - Get live positions and remaining stops for every located train

    Decoded feeds are cached per source so repeated requests do not hit the
    upstream servers more than once per cache period.
    """

    def __init__(
        self,
        config: Optional[AgencyConfig] = None,
        client: Optional[FeedClient] = None,
        cache: Optional[FeedCache] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the tracker.

        Args:
            config: Agency settings. Defaults to AgencyConfig().
            client: Feed downloader. Defaults to a FeedClient using the
                configured timeout.
            cache: Cache for decoded feeds.
            now: Clock returning the current agency-local time.
        """
        self.config = config or AgencyConfig()
        self.tz = ZoneInfo(self.config.timezone)
        self.client = client or FeedClient(timeout=self.config.download_timeout)
        self.cache = cache if cache is not None else FeedCache()
        self._now = now or (lambda: timeutils.now(self.tz))

    @property
    def station_source(self) -> RealtimeSource:
        if self.config.station_source is SourceKind.HTML:
            return RealtimeSource(SourceKind.HTML, self.config.station_url)
        return self.gtfsrt_source

    @property
    def gtfsrt_source(self) -> RealtimeSource:
        return RealtimeSource(SourceKind.PROTOBUF_FULL, self.config.gtfsrt_url, self.config.gtfsrt_api_key)

    @property
    def delay_source(self) -> Optional[RealtimeSource]:
        if not self.config.delay_feed_url:
            return None
        return RealtimeSource(
            SourceKind.PROTOBUF_DELAY_ONLY,
            self.config.delay_feed_url,
            self.config.delay_feed_api_key or self.config.gtfsrt_api_key,
        )

    def load_station_feed(self, db: ScheduleStore, origin: Stop) -> StationFeed:
        """
        Get the departure board for a station.

        Args:
            db: Schedule store to resolve stops and trips.
            origin: Requested station.

        Returns:
            StationFeed with departures in scheduled order.

        Raises:
            UnsupportedStationError: If the stop has no real-time data (no
                request is made).
            FeedError: If the station's live data cannot be loaded.
        """
        check_supported(origin)
        now = self._now()

        source = self.station_source
        if source.kind is SourceKind.HTML:
            remark_station = self.config.is_remark_station(origin.status_id)
            feed = self.cache.get_or_load(
                station_key(origin.id),
                lambda: source.load(self.client, self.tz, now, origin=origin, remark_station=remark_station),
                self.config.station_cache_ttl,
            )
        else:
            feed = self._gtfsrt_feed(now)

        delays = self._delay_feed(now)
        return StationFeedBuilder(db, self.config, now).build(origin, feed, delays)

    def load_vehicle_feeds(self, db: ScheduleStore) -> List[VehicleFeed]:
        """
        Get live positions and remaining stops for every located train.

        Raises:
            FeedError: If the GTFS-RT feed cannot be loaded or processed.
        """
        now = self._now()
        feed = self._gtfsrt_feed(now)
        try:
            return VehicleFeedBuilder(db, self.config, now).build(feed)
        except FeedError:
            raise
        except Exception as e:
            logger.error(f"Failed to build vehicle feeds: {e}", exc_info=True)
            raise FeedError(f"Could not parse the GTFS-RT feed for the agency ({e}).") from e

    def _gtfsrt_feed(self, now: datetime) -> RealtimeFeed:
        source = self.gtfsrt_source
        return self.cache.get_or_load(
            GTFSRT_KEY,
            lambda: source.load(self.client, self.tz, now),
            self.config.feed_cache_ttl,
        )

    def _delay_feed(self, now: datetime) -> Optional[RealtimeFeed]:
        """The delay-only feed, or None when it is not configured or unavailable."""
        source = self.delay_source
        if source is None:
            return None
        try:
            return self.cache.get_or_load(
                DELAYS_KEY,
                lambda: source.load(self.client, self.tz, now),
                self.config.delay_feed_cache_ttl,
            )
        except FeedError as e:
            logger.warning(f"Continuing without GTFS-RT delays: {e}")
            return None

    def cleanup(self) -> None:
        """Release resources and clear caches."""
        self.cache.invalidate()
        self.client.close()
        logger.info("Cleaned up tracker resources")


def load_station_feed(db: ScheduleStore, origin: Stop, config: Optional[AgencyConfig] = None) -> StationFeed:
    """Get a station's departure board using the process-wide feed cache."""
    tracker = MNRFeedTracker(config, cache=_shared_cache)
    try:
        return tracker.load_station_feed(db, origin)
    finally:
        tracker.client.close()


def load_vehicle_feeds(db: ScheduleStore, config: Optional[AgencyConfig] = None) -> List[VehicleFeed]:
    """Get every located train using the process-wide feed cache."""
    tracker = MNRFeedTracker(config, cache=_shared_cache)
    try:
        return tracker.load_vehicle_feeds(db)
    finally:
        tracker.client.close()
