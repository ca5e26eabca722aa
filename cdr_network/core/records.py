#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Canonical call record types shared by the normalizer, report generator
and network builder. Data only, plus the night-time rule.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import List, Optional

UNKNOWN_ACCOUNT = "Unknown"


class Direction(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"
    UNKNOWN = "unknown"


class ServiceType(str, Enum):
    VOICE = "voice"
    SMS = "sms"
    OTHER = "other"


@dataclass(frozen=True)
class CallRecord:
    """One normalized call/SMS event."""
    account_number:      str
    counterparty_number: str
    date:                Optional[date]
    time:                Optional[time]
    duration_seconds:    int
    direction:           Direction
    service_type:        ServiceType
    first_cell_id:       str = ""
    first_cell_address:  str = ""
    last_cell_id:        str = ""
    last_cell_address:   str = ""
    device_imei:         str = ""
    subscriber_imsi:     str = ""
    roaming_indicator:   str = ""     # empty means home network
    call_type:           str = ""     # raw type text as exported
    operator:            str = ""
    source_file:         str = ""

    @property
    def start_dt(self) -> Optional[datetime]:
        if self.date is None:
            return None
        return datetime.combine(self.date, self.time or time(0, 0))

    @property
    def timestamp_str(self) -> str:
        d = self.date.strftime("%Y-%m-%d") if self.date else ""
        t = self.time.strftime("%H:%M:%S") if self.time else ""
        return f"{d} {t}".strip()


@dataclass
class NormalizedCDR:
    """All records normalized from one input file."""
    file_name:      str
    account_number: str
    provider:       str
    records:        List[CallRecord] = field(default_factory=list)
    skipped_rows:   int = 0
    device_export:  bool = False


def is_night_time(value: Optional[time], night_start: int = 18, night_end: int = 6) -> bool:
    """True when the hour falls in [night_start, 24) or [0, night_end)."""
    if value is None:
        return False
    return value.hour >= night_start or value.hour < night_end
