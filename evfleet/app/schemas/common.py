"""
Shared schema types.
"""

from datetime import datetime
from typing import Annotated
from pydantic import AfterValidator

from evfleet.app.core.timeutils import ensure_utc

# Aware UTC on the way in and out; naive values are taken as UTC
UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]
