import datetime
import logging

_log = logging.getLogger(__name__)

ENEX_DATE_FORMAT = "%Y%m%dT%H%M%SZ"
FRONT_MATTER_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"


class TIMEZONE:
    UTC = "utc"
    LOCAL = "local"


def as_timezone(d: datetime.datetime, timezone: str) -> datetime.datetime:
    if timezone == TIMEZONE.LOCAL:
        return d.astimezone(tz=None)
    elif timezone == TIMEZONE.UTC:
        return d.astimezone(tz=datetime.timezone.utc)
    else:
        raise ValueError(timezone)


def parse_enex_date(s: str) -> datetime.datetime:
    """
    Parse datetime format used in ENEX (e.g. `20180109T173725Z`).
    Falls back to the current time if the value can not be parsed.
    """
    try:
        d = datetime.datetime.strptime(s, ENEX_DATE_FORMAT)
    except (TypeError, ValueError) as e:
        _log.debug(f"Could not convert time {s!r}: {e}, using now instead")
        return datetime.datetime.now(tz=datetime.timezone.utc)
    return d.replace(tzinfo=datetime.timezone.utc)
