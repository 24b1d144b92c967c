import datetime
from io import BytesIO

import pandas as pd
from openpyxl import load_workbook

from modules.admin import export_to_excel
from modules.agency import calendar_weeks

BOOKINGS = [
    {"_id": "b1", "status": "confirmed", "start_date": "2024-03-05", "end_date": "2024-03-07"},
    {"_id": "b2", "status": "cancelled", "start_date": "2024-03-05", "end_date": "2024-03-07"},
    {"_id": "b3", "status": "picked-up", "start_date": "2024-02-28", "end_date": "2024-03-02"},
    {"_id": "b4", "status": "returned", "start_date": "2024-03-10", "end_date": "2024-03-12"},
]

def _day(weeks, day):
    for week in weeks:
        for date, bookings in week:
            if date == day:
                return [b["_id"] for b in bookings]
    raise AssertionError(f"{day} not in calendar")

# March 2024 starts on a Friday; the grid starts on the Sunday before
def test_calendar_grid():
    weeks = calendar_weeks(BOOKINGS, 2024, 3)
    assert weeks[0][0][0] == datetime.date(2024, 2, 25)
    assert weeks[-1][-1][0] == datetime.date(2024, 4, 6)
    assert all(len(week) == 7 for week in weeks)

# Only active bookings are shown, on every day of their range
def test_calendar_bookings():
    weeks = calendar_weeks(BOOKINGS, 2024, 3)
    assert _day(weeks, datetime.date(2024, 3, 4)) == []
    assert _day(weeks, datetime.date(2024, 3, 5)) == ["b1"]
    assert _day(weeks, datetime.date(2024, 3, 7)) == ["b1"]
    assert _day(weeks, datetime.date(2024, 2, 29)) == ["b3"]
    assert _day(weeks, datetime.date(2024, 3, 11)) == []

def test_excel_export():
    data = export_to_excel({
        "Summary": pd.DataFrame([{"Indicator": "Total revenue (DZD)", "Value": 15000}]),
        "Top vehicles": pd.DataFrame([{"Vehicle": "Renault Clio", "Revenue (DZD)": 10000}]),
    })
    workbook = load_workbook(BytesIO(data))
    assert workbook.sheetnames == ["Summary", "Top vehicles"]
    sheet = workbook["Summary"]
    assert [c.value for c in sheet[1]] == ["Indicator", "Value"]
    assert [c.value for c in sheet[2]] == ["Total revenue (DZD)", 15000]
    assert sheet["A1"].font.bold
