"""Parser for the TrainTime station status page."""

import logging
from datetime import datetime
from typing import List, Optional

from bs4 import BeautifulSoup

from . import timeutils
from .errors import ParseError, UpstreamUnavailable
from .models import RealtimeFeed, RealtimeRecord, SourceKind, Stop
from .status import SCHEDULED, canonical_token, clean_remarks

logger = logging.getLogger(__name__)


def _cell_text(cell) -> str:
    return cell.get_text(" ", strip=True)


def parse_station_page(
    html: Optional[str],
    origin: Stop,
    now: datetime,
    remark_station: bool = False,
) -> RealtimeFeed:
    """
    Parse a TrainTime page into one record per departure row.

    The departures are in the last table on the page. Each row after the
    header has four cells: time, destination, track, and either the status
    or, at remark stations, free-text remarks.

    Args:
        html: Page body.
        origin: Station the page belongs to.
        now: Time the page was fetched, used to date the departure times.
        remark_station: Whether the fourth column holds remarks.

    Returns:
        RealtimeFeed of kind HTML with all records under the origin's id.

    Raises:
        UpstreamUnavailable: If the page is empty.
        ParseError: If the page has no table.
    """
    if not html or not html.strip():
        raise UpstreamUnavailable(
            "The API Server did not get a response from the MTA TrainTime page. Please try again later."
        )

    soup = BeautifulSoup(html, "html.parser")
    tables = soup.find_all("table")
    if not tables:
        logger.error(f"TrainTime page for {origin.name} has no table")
        raise ParseError(
            f"TrainTime page (StatusID: {origin.status_id}) does not have a table to parse."
        )

    # The departures table has moved around the page; it has always been last
    rows = tables[-1].find_all("tr")

    records: List[RealtimeRecord] = []
    for index, row in enumerate(rows[1:], start=1):
        cells = row.find_all("td")
        if len(cells) < 4:
            logger.warning(f"Skipping TrainTime row {index} at {origin.name}: {len(cells)} cells")
            continue

        time_text, destination_name, track, last = (_cell_text(cell) for cell in cells[:4])
        try:
            scheduled = timeutils.resolve_clock(time_text, now)
        except ValueError:
            logger.warning(f"Skipping TrainTime row {index} at {origin.name}: bad time {time_text!r}")
            continue

        if remark_station:
            status_text = SCHEDULED
            remarks = clean_remarks(last)
        else:
            status_text = canonical_token(last)
            remarks = None

        records.append(RealtimeRecord(
            stop_id=origin.id,
            service_date=timeutils.date_int(scheduled.date()),
            scheduled_departure=scheduled,
            destination_name=destination_name,
            track=track or None,
            status=status_text,
            sequence=index,
            remarks=remarks,
        ))

    logger.debug(f"Parsed {len(records)} departures from TrainTime page for {origin.name}")
    return RealtimeFeed(
        kind=SourceKind.HTML,
        updated=now,
        stops={origin.id: tuple(records)},
    )
