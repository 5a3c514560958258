"""Real-time sources: where to fetch each feed generation and how to normalize it."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union
from zoneinfo import ZoneInfo

from . import gtfs_rt, traintime
from .feed_client import FeedClient
from .models import RealtimeFeed, SourceKind, Stop

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RealtimeSource:
    """A feed of one generation. ``url`` may hold a {status_id} placeholder for HTML pages."""
    kind: SourceKind
    url: str
    api_key: Optional[str] = None

    def fetch(self, client: FeedClient, origin: Optional[Stop] = None) -> Union[str, bytes]:
        if self.kind is SourceKind.HTML:
            if origin is None:
                raise ValueError("HTML sources are per station and need an origin")
            return client.fetch_text(self.url.format(status_id=origin.status_id))
        return client.fetch_bytes(self.url, self.api_key)

    def decode(
        self,
        raw: Union[str, bytes],
        tz: ZoneInfo,
        now: datetime,
        origin: Optional[Stop] = None,
        remark_station: bool = False,
    ) -> RealtimeFeed:
        """Normalize raw feed data into a RealtimeFeed."""
        if self.kind is SourceKind.HTML:
            if origin is None:
                raise ValueError("HTML sources are per station and need an origin")
            return traintime.parse_station_page(raw, origin, now, remark_station=remark_station)
        if self.kind is SourceKind.PROTOBUF_DELAY_ONLY:
            return gtfs_rt.decode_delay_feed(raw, tz, now)
        return gtfs_rt.decode_full_feed(raw, tz, now)

    def load(
        self,
        client: FeedClient,
        tz: ZoneInfo,
        now: datetime,
        origin: Optional[Stop] = None,
        remark_station: bool = False,
    ) -> RealtimeFeed:
        """Fetch and decode in one step."""
        logger.debug(f"Loading {self.kind.value} source")
        raw = self.fetch(client, origin)
        return self.decode(raw, tz, now, origin=origin, remark_station=remark_station)
