#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""CDR Normalization: carrier rows to canonical call records"""

import re
import warnings

import pandas as pd

from cdr_network.core.carrier_profiles import (
    DEFAULT_PROFILE, PROFILES, detect_profile, row_values,
)
from cdr_network.core.records import (
    UNKNOWN_ACCOUNT, CallRecord, Direction, NormalizedCDR, ServiceType,
)
from cdr_network.utils.config import Calibration
from cdr_network.utils.logger import make_emitter

NULL_MARKERS = {"-", "--", "NA", "N/A", "NULL", "NONE", "NAN", "NIL"}

BROAD_NUMBER_PATTERN = re.compile(r"(\d{10,})")

DATE_FORMATS = ("%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%d.%m.%Y", "%d-%b-%Y", "%d-%b-%y", "%Y/%m/%d", "%d%m%Y")
TIME_FORMATS = ("%H:%M:%S", "%H:%M", "%I:%M:%S %p", "%I:%M %p")

OUTGOING_TOKENS = {"MO", "MOC", "OUT", "OUTGOING", "ORIGINATING", "SMSMO", "SMS_MO", "SMO"}
INCOMING_TOKENS = {"MT", "MTC", "IN", "INCOMING", "TERMINATING", "INBOUND", "SMSMT", "SMS_MT", "SMT",
                   "CALL_IN", "SMS_IN", "SMSIN"}
OTHER_SERVICE_MARKERS = ("GPRS", "DATA", "USSD", "MMS", "VOLTE_DATA", "INTERNET")


class CDRNormalizer:
    def __init__(self, calibration=None, event_hook=None):
        self.calibration = calibration or Calibration()
        self.emit = make_emitter(event_hook)

    # -------------------------
    # Value helpers
    # -------------------------
    def clean_text(self, s):
        if s is None or (isinstance(s, float) and pd.isna(s)):
            return ""
        s = re.sub(r"\s+", " ", str(s)).strip().strip("'").strip()
        if s.upper() in NULL_MARKERS:
            return ""
        return s

    def to_seconds(self, x):
        s = self.clean_text(x)
        if s == "":
            return 0
        if s.isdigit():
            return int(s)
        parts = s.split(":")
        if len(parts) in (2, 3) and all(p.isdigit() for p in parts):
            nums = [int(p) for p in parts]
            if len(nums) == 3:
                return nums[0] * 3600 + nums[1] * 60 + nums[2]
            return nums[0] * 60 + nums[1]
        try:
            return max(0, int(float(s)))
        except (ValueError, OverflowError):
            return 0

    def parse_time_field(self, x):
        s = self.clean_text(x)
        if not s:
            return None
        for fmt in TIME_FORMATS:
            try:
                return pd.to_datetime(s, format=fmt).time()
            except (ValueError, TypeError):
                continue
        if re.fullmatch(r"\d{6}", s):
            fmt = "%H%M%S"
        elif re.fullmatch(r"\d{4}", s):
            fmt = "%H%M"
        else:
            return None
        try:
            return pd.to_datetime(s, format=fmt).time()
        except (ValueError, TypeError):
            return None

    def parse_date_field(self, x):
        s = self.clean_text(x)
        if not s:
            return None
        # some exports carry date and time in one cell
        s = s.split(" ")[0]
        for fmt in DATE_FORMATS:
            try:
                return pd.to_datetime(s, format=fmt).date()
            except (ValueError, TypeError):
                continue
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", UserWarning)
            ts = pd.to_datetime(s.replace(".", "/"), dayfirst=True, errors="coerce")
        if pd.isna(ts):
            return None
        return ts.date()

    def normalize_msisdn(self, num):
        s = self.clean_text(num)
        if not s or self.contains_sender_code(s):
            return s
        digits = re.sub(r"\D", "", s)
        digits = digits.lstrip("0")
        if digits.startswith("91") and len(digits) > 10:
            digits = digits[2:]
        return digits

    def contains_sender_code(self, s):
        return bool(s and re.search(r"[A-Za-z]", str(s)))

    def derive_direction(self, call_type, connection_type=""):
        text = f"{call_type} {connection_type}".upper()
        tokens = set(re.split(r"[^A-Z_]+", text)) - {""}
        if tokens & OUTGOING_TOKENS or "OUT" in text or "ORIG" in text:
            return Direction.OUTGOING
        if tokens & INCOMING_TOKENS or "INCOM" in text or "TERMINAT" in text:
            return Direction.INCOMING
        return Direction.UNKNOWN

    def derive_service(self, service_type, call_type=""):
        text = f"{service_type} {call_type}".upper()
        if "SMS" in text:
            return ServiceType.SMS
        if any(marker in text for marker in OTHER_SERVICE_MARKERS):
            return ServiceType.OTHER
        return ServiceType.VOICE

    def pick_counterparty(self, account, a_party, b_party, direction):
        if a_party == account:
            return b_party
        if b_party == account:
            return a_party
        if direction == Direction.INCOMING:
            return a_party or b_party
        return b_party or a_party

    # -------------------------
    # Row helpers
    # -------------------------
    def field(self, values, profile, name):
        idx = profile.fields.get(name)
        if idx is None or idx < 0 or idx >= len(values):
            return ""
        return self.clean_text(values[idx])

    def is_valid_row(self, values, profile):
        for v in values:
            s = self.clean_text(v)
            if s and s.upper() not in profile.header_tokens:
                return True
        return False

    def extract_account(self, header_rows, data_rows, profile):
        """Account identifier from the metadata block, falling back to the data"""
        header_text = '\n'.join(' '.join(row_values(r)) for r in header_rows)

        for pattern in profile.imei_patterns:
            m = pattern.search(header_text)
            if m:
                return m.group(1), "imei"
        for pattern in profile.msisdn_patterns:
            m = pattern.search(header_text)
            if m:
                return self.normalize_msisdn(m.group(1)), "msisdn"
        m = BROAD_NUMBER_PATTERN.search(header_text)
        if m:
            return self.normalize_msisdn(m.group(1)), "broad"

        candidates = []
        columns = ["account"] if "account" in profile.fields else ["a_party", "b_party"]
        for values in data_rows:
            for col in columns:
                num = self.normalize_msisdn(self.field(values, profile, col))
                if num.isdigit() and len(num) >= 10:
                    candidates.append(num)
        if candidates:
            return pd.Series(candidates).mode().iat[0], "column"
        return UNKNOWN_ACCOUNT, "none"

    # -------------------------
    # Main entry points
    # -------------------------
    def normalize(self, rows, profile=None, file_name=""):
        rows = list(rows or [])
        profile = profile or DEFAULT_PROFILE
        scan = rows[:self.calibration.header_scan_rows]
        header_text = '\n'.join(' '.join(row_values(r)) for r in scan).upper()
        device_export = profile.is_device_export(header_text, file_name)
        start = profile.data_offset(device_export)

        header_rows = rows[:start]
        data_values = []
        skipped = 0
        for row in rows[start:]:
            values = row_values(row)
            if self.is_valid_row(values, profile):
                data_values.append(values)
            else:
                skipped += 1

        account, source = self.extract_account(header_rows, data_values, profile)
        if account == UNKNOWN_ACCOUNT:
            self.emit('normalize.unknown_account', file=file_name, profile=profile.name)
        else:
            self.emit('normalize.account', file=file_name, account=account, source=source)

        records = [self.build_record(values, profile, account, file_name) for values in data_values]
        self.emit('normalize.complete', file=file_name, profile=profile.name,
                  records=len(records), skipped=skipped, device_export=device_export)

        return NormalizedCDR(
            file_name=file_name,
            account_number=account,
            provider=profile.provider,
            records=records,
            skipped_rows=skipped,
            device_export=device_export,
        )

    def build_record(self, values, profile, account, file_name):
        call_type = self.field(values, profile, "call_type")
        direction = self.derive_direction(call_type, self.field(values, profile, "connection_type"))
        if "a_party" in profile.fields:
            a_party = self.normalize_msisdn(self.field(values, profile, "a_party"))
        else:
            a_party = account
        b_party = self.normalize_msisdn(self.field(values, profile, "b_party"))

        return CallRecord(
            account_number=account,
            counterparty_number=self.pick_counterparty(account, a_party, b_party, direction),
            date=self.parse_date_field(self.field(values, profile, "date")),
            time=self.parse_time_field(self.field(values, profile, "time")),
            duration_seconds=self.to_seconds(self.field(values, profile, "duration")),
            direction=direction,
            service_type=self.derive_service(self.field(values, profile, "service_type"), call_type),
            first_cell_id=self.field(values, profile, "first_cell_id"),
            first_cell_address=self.field(values, profile, "first_cell_address"),
            last_cell_id=self.field(values, profile, "last_cell_id"),
            last_cell_address=self.field(values, profile, "last_cell_address"),
            device_imei=self.field(values, profile, "imei"),
            subscriber_imsi=self.field(values, profile, "imsi"),
            roaming_indicator=self.field(values, profile, "roaming"),
            call_type=call_type,
            operator=profile.provider,
            source_file=file_name,
        )

    def process_file(self, file_name, rows):
        """Detect the carrier layout of one file and normalize it"""
        rows = list(rows or [])
        profile = detect_profile(rows, file_name=file_name, profiles=PROFILES,
                                 scan_rows=self.calibration.header_scan_rows)
        if profile is DEFAULT_PROFILE:
            self.emit('format.default_profile', file=file_name)
        else:
            self.emit('format.detected', file=file_name, profile=profile.name)
        return self.normalize(rows, profile, file_name)
