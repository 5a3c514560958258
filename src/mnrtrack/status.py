"""Status classification and delay reconciliation.

All delays are whole minutes. The functions here are pure: the same inputs
always give the same label.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

SCHEDULED = "Scheduled"
ON_TIME = "On Time"
LATE = "Late"
DEPARTED = "Departed"
CANCELLED = "Cancelled"

# Shown as-is regardless of delay
PASSTHROUGH = (DEPARTED, CANCELLED)

# Known artifacts in TrainTime remarks, applied in order
REMARK_SUBSTITUTIONS = (
    ("&amp;", "&"),
    ("&nbsp;", " "),
    ("&#39;", "'"),
    ("&quot;", '"'),
    ("\u00a0", " "),
    ("Grand Cenral", "Grand Central"),
    ("Stoping", "Stopping"),
    ("Connnecting", "Connecting"),
)

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class StatusLabel:
    """Classifier output: the display label and the delay it implies."""
    label: str
    delay: int


@dataclass(frozen=True)
class ParsedStatus:
    """A status token read from a live source."""
    token: Optional[str]
    delay: int = 0
    late_unknown: bool = False  # says "late" but the minutes could not be read


def canonical_token(token: Optional[str]) -> Optional[str]:
    """Normalize spelling variants used by the feeds."""
    if token is None:
        return None
    token = token.strip()
    if not token:
        return None
    if token.lower() in ("on-time", "on time", "ontime"):
        return ON_TIME
    if token.lower() == "departed":
        return DEPARTED
    if token.lower() in ("cancelled", "canceled"):
        return CANCELLED
    return token


def parse_status_text(text: Optional[str]) -> ParsedStatus:
    """
    Read the delay out of a status string such as 'Late 5', 'Late 5 min' or '5" Late'.

    Text without the word "late" carries no delay.
    """
    token = canonical_token(text)
    if token is None:
        return ParsedStatus(None)
    lowered = token.lower()
    if LATE.lower() not in lowered:
        return ParsedStatus(token)

    remainder = lowered.replace("late", "").replace("min", "")
    remainder = remainder.replace('"', "").replace("'", "").strip()
    try:
        delay = int(remainder)
    except ValueError:
        return ParsedStatus(token, 0, late_unknown=True)
    return ParsedStatus(token, delay)


def reconcile_delays(primary: int, secondary: int) -> Tuple[int, Optional[Tuple[int, int]]]:
    """
    Combine the delay shown by the primary source with an independent one.

    Returns the delay to apply and, when the sources disagree on two nonzero
    values, the (low, high) range to display. The smaller delay is applied
    in that case. Early trains count as zero.
    """
    primary, secondary = max(primary, 0), max(secondary, 0)
    if primary == 0 and secondary == 0:
        return 0, None
    if primary == 0 or secondary == 0:
        return max(primary, secondary), None
    if primary == secondary:
        return primary, None
    low, high = sorted((primary, secondary))
    return low, (low, high)


def classify(
    token: Optional[str],
    delay: int,
    has_realtime: bool,
    remark_station: bool = False,
    delay_range: Optional[Tuple[int, int]] = None,
) -> StatusLabel:
    """
    Turn a raw status and a reconciled delay into the displayed status.

    Args:
        token: Raw status from the live source (e.g. "Departed", "Late 5").
        delay: Reconciled delay in minutes.
        has_realtime: Whether any live source reported on this departure.
        remark_station: Station whose page shows remarks instead of a status;
            its token carries no delay information.
        delay_range: (low, high) when two sources disagree.

    Returns:
        StatusLabel with the label and the delay to apply.
    """
    parsed = parse_status_text(None if remark_station else token)

    if parsed.token in PASSTHROUGH:
        return StatusLabel(parsed.token, delay)
    if parsed.late_unknown and delay == 0:
        return StatusLabel(LATE, 0)
    if not has_realtime:
        return StatusLabel(SCHEDULED, 0)
    if delay_range is not None:
        low, high = delay_range
        return StatusLabel(f"{LATE} {low}-{high}", delay)
    # early trains hold at the platform, so they show as on time
    if delay <= 0:
        return StatusLabel(ON_TIME, delay)
    return StatusLabel(f"{LATE} {delay}", delay)


def clean_remarks(text: Optional[str]) -> Optional[str]:
    """Fix known upstream artifacts in free-text remarks."""
    if text is None:
        return None
    for old, new in REMARK_SUBSTITUTIONS:
        text = text.replace(old, new)
    text = _WHITESPACE_RE.sub(" ", text).strip()
    return text or None
