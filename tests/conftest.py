"""
Pytest fixtures for CDR Network Analyzer tests.

Fixture Categories:
    1. Raw carrier exports (Airtel, Jio, generic layout) as lists of rows
    2. Canonical record builders for network tests
    3. Event capture via MemoryLogger
"""

from datetime import date, time

import pytest

from cdr_network.core.carrier_profiles import AIRTEL_COLUMNS, GENERIC_COLUMNS, JIO_COLUMNS
from cdr_network.core.records import CallRecord, Direction, NormalizedCDR, ServiceType
from cdr_network.utils.logger import MemoryLogger

AIRTEL_ACCOUNT = "9876543210"
JIO_ACCOUNT = "9123456780"


def _row(columns, **values):
    row = [""] * len(columns)
    for title, value in values.items():
        row[columns.index(title)] = value
    return row


def airtel_row(b_party, call_date, call_time, duration, call_type="OUT", service="",
               cgi="", address="", roaming="", imei="356000000000001", imsi="404450000000001"):
    return _row(AIRTEL_COLUMNS, **{
        "Target No": AIRTEL_ACCOUNT, "Call Type": call_type, "B Party No": b_party,
        "Date": call_date, "Time": call_time, "Dur(s)": duration, "First BTS Location": address,
        "First CGI": cgi, "Last BTS Location": address, "Last CGI": cgi, "Service Type": service,
        "IMEI": imei, "IMSI": imsi, "Roam Nw": roaming,
    })


def jio_row(calling, called, call_date, call_time, duration, call_type, cell="", address=""):
    return _row(JIO_COLUMNS, **{
        "Calling Party Telephone Number": calling, "Called Party Telephone Number": called,
        "Call Date": call_date, "Call Time": call_time, "Call Duration": duration,
        "First Cell ID": cell, "Last Cell ID": cell, "Call Type": call_type,
        "First Cell Site Address": address, "Last Cell Site Address": address,
    })


def generic_row(target, b_party, call_date, call_time, duration, call_type="OUT"):
    return _row(GENERIC_COLUMNS, **{
        "Target /A PARTY NUMBER": target, "CALL_TYPE": call_type, "B PARTY NUMBER": b_party,
        "Call date": call_date, "Call Initiation Time": call_time, "Call Duration": duration,
    })


def make_record(account, counterparty, hour=10, day=1, duration=60,
                direction=Direction.OUTGOING, service=ServiceType.VOICE, address="", **extra):
    return CallRecord(
        account_number=account,
        counterparty_number=counterparty,
        date=date(2024, 1, day),
        time=time(hour, 0),
        duration_seconds=duration,
        direction=direction,
        service_type=service,
        first_cell_address=address,
        call_type=direction.value,
        **extra,
    )


def make_cdr(account, records, file_name=None):
    return NormalizedCDR(
        file_name=file_name or f"{account}.csv",
        account_number=account,
        provider="Generic",
        records=list(records),
    )


# =============================================================================
# Raw export fixtures
# =============================================================================


@pytest.fixture
def airtel_rows():
    """Airtel 'by mobile number' export: three metadata rows, then data."""
    return [
        [f"Call Details of Mobile No '{AIRTEL_ACCOUNT}' from 01-01-2024 to 31-01-2024"],
        ["Bharti Airtel Ltd"],
        list(AIRTEL_COLUMNS),
        airtel_row("9000000001", "05-01-2024", "10:00:00", "60", cgi="CGI-1", address="Banjara Hills, Hyderabad"),
        airtel_row("9000000001", "05-01-2024", "22:30:00", "120", call_type="IN", cgi="CGI-2",
                   address="Gachibowli, Hyderabad"),
        airtel_row("9000000002", "06-01-2024", "11:00:00", "30", cgi="CGI-1", address="Banjara Hills, Hyderabad"),
        airtel_row("9000000001", "09-01-2024", "12:00:00", "0", service="SMS", cgi="CGI-1",
                   address="Banjara Hills, Hyderabad"),
        airtel_row("00447700900123", "09-01-2024", "23:15:00", "300", cgi="CGI-2",
                   address="Gachibowli, Hyderabad", roaming="MUMBAI"),
        list(AIRTEL_COLUMNS),
        [""] * len(AIRTEL_COLUMNS),
    ]


@pytest.fixture
def jio_rows():
    """Jio export: five metadata rows, calling/called party columns."""
    return [
        ["Reliance Jio Infocomm Ltd"],
        [f"Input Value : MSISDN '{JIO_ACCOUNT}'"],
        ["Period : 01-01-2024 to 31-01-2024"],
        [""],
        list(JIO_COLUMNS),
        jio_row(f"91{JIO_ACCOUNT}", "9000000001", "2024-01-05", "09:15:00", "45", "MO", cell="J-1",
                address="Andheri, Mumbai"),
        jio_row("9000000003", JIO_ACCOUNT, "2024-01-05", "19:45:00", "00:02:05", "MT", cell="J-1",
                address="Andheri, Mumbai"),
        jio_row(JIO_ACCOUNT, "9000000001", "2024-01-06", "08:00:00", "-", "SMS-MO", cell="J-2"),
    ]


@pytest.fixture
def generic_rows():
    """Generic layout: column header first, account only in the target column."""
    return [
        list(GENERIC_COLUMNS),
        generic_row("1000000001", "2000000002", "01-02-2024", "10:00:00", "60"),
        generic_row("1000000001", "2000000002", "01-02-2024", "11:00:00", "30", call_type="IN"),
    ]


@pytest.fixture
def memory_logger():
    return MemoryLogger()
