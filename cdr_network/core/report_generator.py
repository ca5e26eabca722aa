#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Per-account report tables

Builds the fixed set of aggregate tables for one normalized CDR file:
mapping, summary, contact rankings, cell dwell ("max stay"), roaming,
device/SIM periods, night/day subsets, likely locations, switch-off gaps
and international calls. Every table is a list of flat dicts, ready for
a spreadsheet or JSON renderer.
"""

import re
from dataclasses import dataclass, field, fields
from typing import Dict, List

import numpy as np
import pandas as pd

from cdr_network.core.records import Direction, NormalizedCDR, ServiceType, is_night_time
from cdr_network.utils.config import Calibration
from cdr_network.utils.logger import make_emitter

UNKNOWN_KEY = "Unknown"
HOME_NETWORK = "Home"

MAP_COLUMNS = [
    'CdrNo', 'B Party', 'Date', 'Time', 'Duration', 'Call Type', 'Service', 'Direction',
    'First Cell ID', 'First Cell ID Address', 'Last Cell ID', 'Last Cell ID Address',
    'IMEI', 'IMSI', 'Roaming', 'Operator',
]
SUMMARY_COLUMNS = [
    'CdrNo', 'Provider', 'In Calls', 'Out Calls', 'Total Calls', 'In Sms', 'Out Sms',
    'Total Sms', 'Other Events', 'Total Events', 'Total Duration', 'Total Days',
    'First Call', 'Last Call', 'State', 'Address',
]
CONTACT_COLUMNS = [
    'CdrNo', 'B Party', 'Total Calls', 'Out Calls', 'In Calls', 'Out Sms', 'In Sms',
    'Total Duration', 'Days', 'First Call', 'Last Call', 'Roaming', 'Address',
]
MAXC_COLUMNS = ['CdrNo', 'B Party', 'Total Calls', 'Total Duration']
MAXD_COLUMNS = ['CdrNo', 'B Party', 'Total Duration', 'Total Calls']
STAY_COLUMNS = [
    'CdrNo', 'Cell ID', 'Total Calls', 'Days', 'Total Duration', 'Tower Address',
    'Roaming', 'First Call', 'Last Call',
]
ROAM_COLUMNS = [
    'CdrNo', 'Roaming', 'Period', 'Total Calls', 'Days', 'First Location', 'Last Location',
    'Out Calls', 'In Calls', 'Out Sms', 'In Sms', 'Total Duration',
]
IMEI_COLUMNS = [
    'CdrNo', 'IMEI', 'Period', 'Total Calls', 'Days', 'First Call', 'Last Call',
    'First Location', 'Last Location', 'Out Calls', 'In Calls', 'Out Sms', 'In Sms',
    'Total Duration',
]
IMSI_COLUMNS = ['CdrNo', 'IMSI'] + IMEI_COLUMNS[2:]
LIKELY_COLUMNS = ['Rank', 'CdrNo', 'Cell ID', 'Tower Address', 'Total Calls', 'Days', 'Total Duration']
HOME_COLUMNS = ['CdrNo', 'Cell ID', 'Tower Address', 'Total Calls', 'Days', 'First Call', 'Last Call']
SWITCH_OFF_COLUMNS = ['ID', 'CdrNo', 'Start Date', 'End Date', 'Total Days']

TABLE_COLUMNS = {
    'mapping': MAP_COLUMNS,
    'summary': SUMMARY_COLUMNS,
    'contacts': CONTACT_COLUMNS,
    'max_calls': MAXC_COLUMNS,
    'max_duration': MAXD_COLUMNS,
    'max_stay': STAY_COLUMNS,
    'roaming_summary': ROAM_COLUMNS,
    'imei_period': IMEI_COLUMNS,
    'imsi_period': IMSI_COLUMNS,
    'night_mapping': MAP_COLUMNS,
    'day_mapping': MAP_COLUMNS,
    'night_max_stay': STAY_COLUMNS,
    'day_max_stay': STAY_COLUMNS,
    'likely_locations': LIKELY_COLUMNS,
    'home_location': HOME_COLUMNS,
    'switch_off_periods': SWITCH_OFF_COLUMNS,
    'isd_calls': MAP_COLUMNS,
}


@dataclass
class ProcessedCDRData:
    """Report bundle for one input file"""
    file_name: str
    account_number: str
    provider: str
    mapping: List[dict] = field(default_factory=list)
    summary: List[dict] = field(default_factory=list)
    contacts: List[dict] = field(default_factory=list)
    max_calls: List[dict] = field(default_factory=list)
    max_duration: List[dict] = field(default_factory=list)
    max_stay: List[dict] = field(default_factory=list)
    roaming_summary: List[dict] = field(default_factory=list)
    imei_period: List[dict] = field(default_factory=list)
    imsi_period: List[dict] = field(default_factory=list)
    night_mapping: List[dict] = field(default_factory=list)
    day_mapping: List[dict] = field(default_factory=list)
    night_max_stay: List[dict] = field(default_factory=list)
    day_max_stay: List[dict] = field(default_factory=list)
    likely_locations: List[dict] = field(default_factory=list)
    home_location: List[dict] = field(default_factory=list)
    switch_off_periods: List[dict] = field(default_factory=list)
    isd_calls: List[dict] = field(default_factory=list)

    def tables(self) -> Dict[str, List[dict]]:
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name in TABLE_COLUMNS}

    def to_frames(self) -> Dict[str, pd.DataFrame]:
        """One DataFrame per table, headers kept for empty tables"""
        return {name: pd.DataFrame(rows, columns=TABLE_COLUMNS[name]) for name, rows in self.tables().items()}

    def to_dict(self):
        out = {'file_name': self.file_name, 'account_number': self.account_number, 'provider': self.provider}
        out.update(self.tables())
        return out


def fmt_dt(value):
    if value is None or pd.isna(value):
        return ""
    return pd.Timestamp(value).strftime("%Y-%m-%d %H:%M:%S")


def fmt_date(value):
    if value is None or pd.isna(value):
        return ""
    return pd.Timestamp(value).strftime("%Y-%m-%d")


def first_non_empty(s):
    s = s[s.astype(str).str.strip() != ""]
    return s.iloc[0] if len(s) else ""


def last_non_empty(s):
    s = s[s.astype(str).str.strip() != ""]
    return s.iloc[-1] if len(s) else ""


def count_days(s):
    return s[s != ""].nunique()


def is_international(number):
    """Normalized numbers keep no 91/0 prefix, so anything past 10 digits is foreign"""
    s = str(number or "").strip()
    if not s or re.search(r"[A-Za-z]", s):
        return False
    digits = re.sub(r"\D", "", s)
    return s.startswith("+") or s.startswith("00") or len(digits) > 10


class ReportGenerator:
    def __init__(self, calibration=None, event_hook=None):
        self.calibration = calibration or Calibration()
        self.emit = make_emitter(event_hook)

    # -------------------------
    # Frame construction
    # -------------------------
    def call_type_std(self, record):
        if record.service_type == ServiceType.SMS:
            prefix = "SMS"
        elif record.service_type == ServiceType.VOICE:
            prefix = "CALL"
        else:
            prefix = "OTHER"
        suffix = {Direction.INCOMING: "IN", Direction.OUTGOING: "OUT"}.get(record.direction, "UNK")
        return f"{prefix}_{suffix}"

    def records_to_frame(self, records):
        cal = self.calibration
        rows = []
        for r in records:
            rows.append({
                'CdrNo': r.account_number,
                'B Party': r.counterparty_number,
                'DateStr': r.date.strftime("%Y-%m-%d") if r.date else "",
                'TimeStr': r.time.strftime("%H:%M:%S") if r.time else "",
                'start_dt': r.start_dt,
                'Duration': int(r.duration_seconds),
                'CallTypeStd': self.call_type_std(r),
                'Service': r.service_type.value,
                'Direction': r.direction.value,
                'FirstCellID': r.first_cell_id,
                'FirstCellAddr': r.first_cell_address,
                'LastCellID': r.last_cell_id,
                'LastCellAddr': r.last_cell_address,
                'IMEI': r.device_imei,
                'IMSI': r.subscriber_imsi,
                'Circle': r.roaming_indicator,
                'Operator': r.operator,
                'IsNight': is_night_time(r.time, cal.night_start_hour, cal.night_end_hour),
            })
        df = pd.DataFrame(rows)
        if not df.empty:
            df['start_dt'] = pd.to_datetime(df['start_dt'], errors='coerce')
        return df

    def aggregate(self, df, key, label=None, empty_label=UNKNOWN_KEY):
        """Group by `key` in first-seen order and accumulate the standard metrics"""
        sub = df.copy()
        sub[key] = sub[key].astype(str).str.strip().replace("", empty_label)
        spec = dict(
            TotalCalls=('Duration', 'size'),
            OutCalls=('CallTypeStd', lambda s: int((s == 'CALL_OUT').sum())),
            InCalls=('CallTypeStd', lambda s: int((s == 'CALL_IN').sum())),
            OutSms=('CallTypeStd', lambda s: int((s == 'SMS_OUT').sum())),
            InSms=('CallTypeStd', lambda s: int((s == 'SMS_IN').sum())),
            TotalDuration=('Duration', 'sum'),
            Days=('DateStr', count_days),
            First_dt=('start_dt', 'min'),
            Last_dt=('start_dt', 'max'),
            FirstLoc=('FirstCellAddr', first_non_empty),
            LastLoc=('LastCellAddr', last_non_empty),
        )
        if key != 'Circle':
            spec['FirstRoaming'] = ('Circle', first_non_empty)
        g = sub.groupby(key, sort=False, dropna=False).agg(**spec).reset_index()
        return g.rename(columns={key: label or key})

    def ranked(self, g, by, columns, limit=None):
        out = g.sort_values(by=by, ascending=False, kind='mergesort').reset_index(drop=True)
        if limit is not None:
            out = out.head(limit)
        return out[columns].to_dict('records')

    # -------------------------
    # Table creators
    # -------------------------
    def create_mapping(self, df):
        if df.empty:
            return []
        out = pd.DataFrame({
            'CdrNo': df['CdrNo'],
            'B Party': df['B Party'],
            'Date': df['DateStr'],
            'Time': df['TimeStr'],
            'Duration': df['Duration'],
            'Call Type': df['CallTypeStd'],
            'Service': df['Service'],
            'Direction': df['Direction'],
            'First Cell ID': df['FirstCellID'],
            'First Cell ID Address': df['FirstCellAddr'],
            'Last Cell ID': df['LastCellID'],
            'Last Cell ID Address': df['LastCellAddr'],
            'IMEI': df['IMEI'],
            'IMSI': df['IMSI'],
            'Roaming': df['Circle'],
            'Operator': df['Operator'],
        })
        return out[MAP_COLUMNS].to_dict('records')

    def create_summary(self, df, account, provider):
        if df.empty:
            row = {col: 0 for col in SUMMARY_COLUMNS}
            row.update({'CdrNo': account, 'Provider': provider, 'First Call': "",
                        'Last Call': "", 'State': "", 'Address': ""})
            return [row]

        ct = df['CallTypeStd']
        in_calls = int((ct == 'CALL_IN').sum())
        out_calls = int((ct == 'CALL_OUT').sum())
        in_sms = int((ct == 'SMS_IN').sum())
        out_sms = int((ct == 'SMS_OUT').sum())
        total_calls = int(ct.str.startswith('CALL').sum())
        total_sms = int(ct.str.startswith('SMS').sum())
        return [{
            'CdrNo': account,
            'Provider': provider,
            'In Calls': in_calls,
            'Out Calls': out_calls,
            'Total Calls': total_calls,
            'In Sms': in_sms,
            'Out Sms': out_sms,
            'Total Sms': total_sms,
            'Other Events': int(len(df) - total_calls - total_sms),
            'Total Events': int(len(df)),
            'Total Duration': int(df['Duration'].sum()),
            'Total Days': int(count_days(df['DateStr'])),
            'First Call': fmt_dt(df['start_dt'].min()),
            'Last Call': fmt_dt(df['start_dt'].max()),
            'State': first_non_empty(df['Circle']),
            'Address': first_non_empty(df['FirstCellAddr']),
        }]

    def _contact_frame(self, df):
        g = self.aggregate(df, 'B Party')
        g['Total Calls'] = g['TotalCalls']
        g['Out Calls'] = g['OutCalls']
        g['In Calls'] = g['InCalls']
        g['Out Sms'] = g['OutSms']
        g['In Sms'] = g['InSms']
        g['Total Duration'] = g['TotalDuration'].astype(int)
        g['First Call'] = g['First_dt'].apply(fmt_dt)
        g['Last Call'] = g['Last_dt'].apply(fmt_dt)
        g['Address'] = g['FirstLoc']
        g['Roaming'] = g['FirstRoaming']
        g['CdrNo'] = df['CdrNo'].iat[0]
        return g

    def create_contacts(self, df):
        if df.empty:
            return []
        return self.ranked(self._contact_frame(df), 'Total Calls', CONTACT_COLUMNS)

    def create_max_calls(self, df):
        if df.empty:
            return []
        return self.ranked(self._contact_frame(df), 'Total Calls', MAXC_COLUMNS, self.calibration.top_n)

    def create_max_duration(self, df):
        if df.empty:
            return []
        return self.ranked(self._contact_frame(df), 'Total Duration', MAXD_COLUMNS, self.calibration.top_n)

    def _stay_frame(self, df):
        g = self.aggregate(df, 'FirstCellID', label='Cell ID')
        g['CdrNo'] = df['CdrNo'].iat[0]
        g['Total Calls'] = g['TotalCalls']
        g['Total Duration'] = g['TotalDuration'].astype(int)
        g['Tower Address'] = g['FirstLoc']
        g['Roaming'] = g['FirstRoaming']
        g['First Call'] = g['First_dt'].apply(fmt_dt)
        g['Last Call'] = g['Last_dt'].apply(fmt_dt)
        return g.sort_values(by='Total Calls', ascending=False, kind='mergesort').reset_index(drop=True)

    def create_max_stay(self, df):
        if df.empty:
            return []
        return self._stay_frame(df)[STAY_COLUMNS].to_dict('records')

    def create_roaming_summary(self, df):
        if df.empty:
            return []
        g = self.aggregate(df, 'Circle', label='Roaming', empty_label=HOME_NETWORK)
        g['CdrNo'] = df['CdrNo'].iat[0]
        g['Period'] = g['First_dt'].apply(fmt_date) + " - " + g['Last_dt'].apply(fmt_date)
        g = g.rename(columns={
            'TotalCalls': 'Total Calls', 'FirstLoc': 'First Location', 'LastLoc': 'Last Location',
            'OutCalls': 'Out Calls', 'InCalls': 'In Calls', 'OutSms': 'Out Sms', 'InSms': 'In Sms',
            'TotalDuration': 'Total Duration',
        })
        return self.ranked(g, 'Total Calls', ROAM_COLUMNS)

    def _period(self, df, key, columns):
        if df.empty:
            return []
        g = self.aggregate(df, key)
        g['CdrNo'] = df['CdrNo'].iat[0]
        g['Period'] = g['First_dt'].apply(fmt_date) + " - " + g['Last_dt'].apply(fmt_date)
        g['First Call'] = g['First_dt'].apply(fmt_dt)
        g['Last Call'] = g['Last_dt'].apply(fmt_dt)
        g = g.rename(columns={
            'TotalCalls': 'Total Calls', 'FirstLoc': 'First Location', 'LastLoc': 'Last Location',
            'OutCalls': 'Out Calls', 'InCalls': 'In Calls', 'OutSms': 'Out Sms', 'InSms': 'In Sms',
            'TotalDuration': 'Total Duration',
        })
        return self.ranked(g, 'Total Calls', columns)

    def create_imei_period(self, df):
        return self._period(df, 'IMEI', IMEI_COLUMNS)

    def create_imsi_period(self, df):
        return self._period(df, 'IMSI', IMSI_COLUMNS)

    def create_likely_locations(self, day_df):
        """Top day-time dwell cells; a heuristic, not a verified location"""
        if day_df.empty:
            return []
        g = self._stay_frame(day_df)
        g = g[g['Cell ID'] != UNKNOWN_KEY].head(self.calibration.likely_location_count).copy()
        g['Rank'] = np.arange(1, len(g) + 1)
        return g[LIKELY_COLUMNS].to_dict('records')

    def create_home_location(self, night_df):
        if night_df.empty:
            return []
        g = self._stay_frame(night_df)
        g = g[g['Cell ID'] != UNKNOWN_KEY].head(1)
        return g[HOME_COLUMNS].to_dict('records')

    def create_switch_off_periods(self, df):
        if df.empty:
            return []
        dates = sorted({d for d in df['DateStr'] if d})
        rows = []
        for i in range(len(dates) - 1):
            start, end = pd.Timestamp(dates[i]), pd.Timestamp(dates[i + 1])
            gap = (end - start).days
            if gap > 1:
                rows.append({
                    'ID': len(rows) + 1,
                    'CdrNo': df['CdrNo'].iat[0],
                    'Start Date': dates[i],
                    'End Date': dates[i + 1],
                    'Total Days': gap,
                })
        return rows

    def create_isd_calls(self, df):
        if df.empty:
            return []
        return self.create_mapping(df[df['B Party'].apply(is_international)])

    # -------------------------
    # Main generate function
    # -------------------------
    def generate(self, normalized: NormalizedCDR) -> ProcessedCDRData:
        df = self.records_to_frame(normalized.records)
        if df.empty:
            night_df = day_df = df
        else:
            night_df = df[df['IsNight']]
            day_df = df[~df['IsNight']]

        report = ProcessedCDRData(
            file_name=normalized.file_name,
            account_number=normalized.account_number,
            provider=normalized.provider,
            mapping=self.create_mapping(df),
            summary=self.create_summary(df, normalized.account_number, normalized.provider),
            contacts=self.create_contacts(df),
            max_calls=self.create_max_calls(df),
            max_duration=self.create_max_duration(df),
            max_stay=self.create_max_stay(df),
            roaming_summary=self.create_roaming_summary(df),
            imei_period=self.create_imei_period(df),
            imsi_period=self.create_imsi_period(df),
            night_mapping=self.create_mapping(night_df),
            day_mapping=self.create_mapping(day_df),
            night_max_stay=self.create_max_stay(night_df),
            day_max_stay=self.create_max_stay(day_df),
            likely_locations=self.create_likely_locations(day_df),
            home_location=self.create_home_location(night_df),
            switch_off_periods=self.create_switch_off_periods(df),
            isd_calls=self.create_isd_calls(df),
        )
        self.emit('report.generated', file=normalized.file_name,
                  account=normalized.account_number, events=len(df))
        return report
