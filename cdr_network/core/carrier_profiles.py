#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Carrier export layouts and format detection

Each carrier ships its CDR export with a block of metadata lines above the
column header row. A profile records where the tabular data starts, which
column holds which field, and how to pull the account identifier out of
the metadata block.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Pattern, Sequence, Tuple, Union

RawRow = Union[Mapping, Sequence]

DEFAULT_SCAN_ROWS = 20


@dataclass(frozen=True)
class CarrierProfile:
    name: str
    provider: str
    columns: Tuple[str, ...]
    fields: Mapping[str, int]
    data_start: int
    signatures: Tuple[str, ...] = ()
    device_data_start: Optional[int] = None
    device_markers: Tuple[Pattern, ...] = ()
    imei_patterns: Tuple[Pattern, ...] = ()
    msisdn_patterns: Tuple[Pattern, ...] = ()
    header_tokens: frozenset = field(default=frozenset(), compare=False)

    def __post_init__(self):
        tokens = {c.upper() for c in self.columns if c}
        object.__setattr__(self, 'header_tokens', frozenset(tokens))

    def is_device_export(self, header_text, file_name=""):
        """True for the 'by device identifier' variant of this carrier's export"""
        if self.device_data_start is None:
            return False
        if 'IMEI' in (file_name or '').upper():
            return True
        return any(p.search(header_text) for p in self.device_markers)

    def data_offset(self, device_export=False):
        if device_export and self.device_data_start is not None:
            return self.device_data_start
        return self.data_start


def _fields(columns, **names):
    return {semantic: columns.index(title) for semantic, title in names.items()}


def _compile(*patterns):
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


# Column order of the generic "Target /A PARTY NUMBER" export
GENERIC_COLUMNS = (
    "Target /A PARTY NUMBER", "CALL_TYPE", "Type of Connection", "B PARTY NUMBER",
    "LRN- B Party Number", "Translation of LRN", "Call date", "Call Initiation Time",
    "Call Duration", "First BTS Location", "First Cell Global Id", "Last BTS Location",
    "Last Cell Global Id", "SMS Centre Number", "Service Type", "IMEI", "IMSI",
    "Roaming Network/Circle", "MSC ID",
)

AIRTEL_COLUMNS = (
    "Target No", "Call Type", "TOC", "B Party No", "LRN No", "LRN TSP-LSA", "Date", "Time",
    "Dur(s)", "First BTS Location", "First CGI", "Last BTS Location", "Last CGI", "SMSC No",
    "Service Type", "IMEI", "IMSI", "Call Fow No", "Roam Nw", "SW & MSC ID",
)

JIO_COLUMNS = (
    "Calling Party Telephone Number", "Called Party Telephone Number", "Call Forwarding",
    "LRN Called No", "Call Date", "Call Time", "Call Termination Time", "Call Duration",
    "First Cell ID", "Last Cell ID", "Call Type", "SMS Center Number", "IMEI", "IMSI",
    "Roaming Circle Name", "First Cell Site Address", "Last Cell Site Address",
)

VODAFONE_IDEA_COLUMNS = (
    "MSISDN", "Other Party Number", "Call Date", "Call Time", "Duration", "Call Direction",
    "Service", "First Cell ID", "First Cell Address", "Last Cell ID", "Last Cell Address",
    "IMEI", "IMSI", "Roaming Circle",
)

BSNL_COLUMNS = (
    "Sl No", "A Party", "B Party", "Date", "Time", "Duration", "Call Type", "Cell ID",
    "Cell Location", "IMEI", "IMSI", "Roaming",
)

IMEI_GENERIC = r"IMEI\s*(?:NO\.?|NUMBER)?\s*[:\-]?\s*'?(\d{14,16})"

GENERIC = CarrierProfile(
    name="GENERIC",
    provider="Unknown",
    columns=GENERIC_COLUMNS,
    fields=_fields(
        GENERIC_COLUMNS,
        account="Target /A PARTY NUMBER", call_type="CALL_TYPE",
        connection_type="Type of Connection", b_party="B PARTY NUMBER",
        date="Call date", time="Call Initiation Time", duration="Call Duration",
        first_cell_address="First BTS Location", first_cell_id="First Cell Global Id",
        last_cell_address="Last BTS Location", last_cell_id="Last Cell Global Id",
        service_type="Service Type", imei="IMEI", imsi="IMSI", roaming="Roaming Network/Circle",
    ),
    data_start=1,
    imei_patterns=_compile(IMEI_GENERIC),
    msisdn_patterns=_compile(
        r"(?:MSISDN|TARGET\s*(?:/\s*A\s*PARTY)?\s*(?:NO|NUMBER))\.?\s*[:\-]?\s*'?\+?(\d{10,13})",
    ),
)

AIRTEL = CarrierProfile(
    name="AIRTEL",
    provider="Airtel",
    columns=AIRTEL_COLUMNS,
    fields=_fields(
        AIRTEL_COLUMNS,
        account="Target No", call_type="Call Type", connection_type="TOC", b_party="B Party No",
        date="Date", time="Time", duration="Dur(s)",
        first_cell_address="First BTS Location", first_cell_id="First CGI",
        last_cell_address="Last BTS Location", last_cell_id="Last CGI",
        service_type="Service Type", imei="IMEI", imsi="IMSI", roaming="Roam Nw",
    ),
    signatures=("BHARTI AIRTEL", "AIRTEL"),
    data_start=3,
    device_data_start=4,
    device_markers=_compile(r"DETAILS\s+OF\s+IMEI"),
    imei_patterns=_compile(r"IMEI\s*NO\.?\s*'?(\d{14,16})"),
    msisdn_patterns=_compile(r"MOBILE\s*NO\.?\s*'?\+?(\d{10,13})"),
)

JIO = CarrierProfile(
    name="JIO",
    provider="Jio",
    columns=JIO_COLUMNS,
    fields=_fields(
        JIO_COLUMNS,
        a_party="Calling Party Telephone Number", b_party="Called Party Telephone Number",
        date="Call Date", time="Call Time", duration="Call Duration",
        first_cell_id="First Cell ID", last_cell_id="Last Cell ID", call_type="Call Type",
        imei="IMEI", imsi="IMSI", roaming="Roaming Circle Name",
        first_cell_address="First Cell Site Address", last_cell_address="Last Cell Site Address",
    ),
    signatures=("RELIANCE JIO", "JIO INFOCOMM", "CALLING PARTY TELEPHONE NUMBER"),
    data_start=5,
    device_data_start=6,
    device_markers=_compile(r"INPUT\s*VALUE\s*[:\-]?\s*IMEI"),
    imei_patterns=_compile(r"INPUT\s*VALUE\s*[:\-]?\s*IMEI\s*'?(\d{14,16})"),
    msisdn_patterns=_compile(r"INPUT\s*VALUE\s*[:\-]?\s*MSISDN\s*'?\+?(\d{10,13})"),
)

VODAFONE_IDEA = CarrierProfile(
    name="VODAFONE_IDEA",
    provider="Vodafone Idea",
    columns=VODAFONE_IDEA_COLUMNS,
    fields=_fields(
        VODAFONE_IDEA_COLUMNS,
        account="MSISDN", b_party="Other Party Number", date="Call Date", time="Call Time",
        duration="Duration", call_type="Call Direction", service_type="Service",
        first_cell_id="First Cell ID", first_cell_address="First Cell Address",
        last_cell_id="Last Cell ID", last_cell_address="Last Cell Address",
        imei="IMEI", imsi="IMSI", roaming="Roaming Circle",
    ),
    signatures=("VODAFONE IDEA", "VODAFONE", "IDEA CELLULAR"),
    data_start=4,
    imei_patterns=_compile(r"\bIMEI\s*[:\-]\s*'?(\d{14,16})"),
    msisdn_patterns=_compile(r"\bMSISDN\s*[:\-]\s*'?\+?(\d{10,13})"),
)

BSNL = CarrierProfile(
    name="BSNL",
    provider="BSNL",
    columns=BSNL_COLUMNS,
    fields=_fields(
        BSNL_COLUMNS,
        a_party="A Party", b_party="B Party", date="Date", time="Time", duration="Duration",
        call_type="Call Type", first_cell_id="Cell ID", first_cell_address="Cell Location",
        imei="IMEI", imsi="IMSI", roaming="Roaming",
    ),
    signatures=("BHARAT SANCHAR", "BSNL"),
    data_start=3,
    imei_patterns=_compile(IMEI_GENERIC),
    msisdn_patterns=_compile(r"SUBSCRIBER\s*(?:NUMBER|NO\.?)\s*[:\-]?\s*'?\+?(\d{10,13})"),
)

# Detection priority: first signature hit wins
PROFILES: Tuple[CarrierProfile, ...] = (JIO, AIRTEL, VODAFONE_IDEA, BSNL)
DEFAULT_PROFILE = GENERIC


def get_profile(name):
    for profile in PROFILES + (DEFAULT_PROFILE,):
        if profile.name == str(name).upper():
            return profile
    raise KeyError(f"Unknown carrier profile: {name}")


def row_values(row) -> List[str]:
    """Positional view of a raw row (mapping keyed by label or index, or a sequence)"""
    if row is None:
        return []
    if isinstance(row, Mapping):
        keys = list(row.keys())
        if keys and all(isinstance(k, int) for k in keys):
            width = max(keys) + 1
            return ["" if row.get(i) is None else str(row.get(i)) for i in range(width)]
        return ["" if v is None else str(v) for v in row.values()]
    if isinstance(row, (str, bytes)):
        return [row if isinstance(row, str) else row.decode('utf-8', errors='ignore')]
    try:
        return ["" if v is None else str(v) for v in row]
    except TypeError:
        return []


def search_blob(rows: Iterable[RawRow], limit=DEFAULT_SCAN_ROWS) -> str:
    """Uppercased concatenation of every value in the first `limit` rows"""
    parts = []
    for i, row in enumerate(rows):
        if i >= limit:
            break
        values = [v.strip() for v in row_values(row) if v and v.strip()]
        if values:
            parts.append(' '.join(values))
    return '\n'.join(parts).upper()


def detect_profile(rows: Sequence[RawRow], file_name="", profiles=PROFILES,
                   default=DEFAULT_PROFILE, scan_rows=DEFAULT_SCAN_ROWS) -> CarrierProfile:
    """Return the first profile whose signature occurs in the sampled rows"""
    blob = search_blob(rows or [], limit=scan_rows)
    for profile in profiles:
        if any(sig in blob for sig in profile.signatures):
            return profile
    return default
