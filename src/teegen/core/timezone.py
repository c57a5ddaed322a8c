"""UTC timezone enforcement.

This module sets the TZ environment variable to UTC so that naive datetimes
stored in the database are always interpreted as UTC.
"""

import os
from datetime import datetime, timezone

# Set UTC timezone for the entire application
os.environ["TZ"] = "UTC"


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime (database column convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
