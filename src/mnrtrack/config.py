"""Agency configuration passed explicitly into every feed call."""

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional, Tuple

from .models import SourceKind

logger = logging.getLogger(__name__)

# TrainTime station page, formatted with the stop's status id
TRAINTIME_URL = "http://as0.mta.info/mnr/mstations/station_status_display.cfm?P_AVIS_ID={status_id}"

# Metro-North GTFS-RT feed (track and train status extensions)
GTFSRT_URL = "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/mnr%2Fgtfs-mnr"

API_KEY_ENV = "MNRTRACK_API_KEY"


@dataclass(frozen=True)
class AgencyConfig:
    """Real-time settings for the agency."""
    station_source: SourceKind = SourceKind.HTML
    station_url: str = TRAINTIME_URL
    gtfsrt_url: str = GTFSRT_URL
    gtfsrt_api_key: Optional[str] = None
    delay_feed_url: Optional[str] = None
    delay_feed_api_key: Optional[str] = None
    timezone: str = "America/New_York"
    remark_status_ids: Tuple[str, ...] = ("1",)
    hub_stop_id: str = "1"  # Grand Central
    download_timeout: float = 7.0
    station_cache_ttl: float = 60.0
    feed_cache_ttl: float = 45.0
    delay_feed_cache_ttl: float = 60.0
    departed_grace_minutes: int = 5
    future_horizon_minutes: int = 180
    max_workers: int = 8

    def station_page_url(self, status_id: str) -> str:
        return self.station_url.format(status_id=status_id)

    def is_remark_station(self, status_id: str) -> bool:
        return status_id in self.remark_status_ids

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgencyConfig":
        """
        Build a config from the host's parsed agency properties.

        Accepts flat keys matching the field names, or the agency file layout
        with a ``stationFeed`` section holding ``stationURL`` and a ``gtfsrt``
        sub-section (``url``, ``apiKey``).
        """
        names = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {k: v for k, v in data.items() if k in names}

        station_feed = data.get("stationFeed") or {}
        if "stationURL" in station_feed:
            values["station_url"] = station_feed["stationURL"].replace("{{STATUS_ID}}", "{status_id}")
        gtfsrt = station_feed.get("gtfsrt") or {}
        if "url" in gtfsrt:
            values["gtfsrt_url"] = gtfsrt["url"]
        if "apiKey" in gtfsrt:
            values["gtfsrt_api_key"] = gtfsrt["apiKey"]
        delays = station_feed.get("delays") or {}
        if "url" in delays:
            values["delay_feed_url"] = delays["url"]
        if "apiKey" in delays:
            values["delay_feed_api_key"] = delays["apiKey"]

        if "station_source" in values:
            values["station_source"] = SourceKind(values["station_source"])
        if "remark_status_ids" in values:
            values["remark_status_ids"] = tuple(str(s) for s in values["remark_status_ids"])

        config = cls(**values)
        return config.with_env_defaults()

    def with_env_defaults(self) -> "AgencyConfig":
        """Fill a missing API key from the environment."""
        if self.gtfsrt_api_key:
            return self
        api_key = os.environ.get(API_KEY_ENV)
        if not api_key:
            return self
        logger.debug(f"Using GTFS-RT API key from {API_KEY_ENV}")
        return replace(self, gtfsrt_api_key=api_key)
