from __future__ import annotations

from datetime import date, datetime, time

import xlsxwriter
from sqlalchemy import select
from sqlalchemy.orm import Session

from tickerbank.models.account import Account
from tickerbank.models.accrual import AccrualRecord
from tickerbank.models.family import Family
from tickerbank.services.interest import MICROS_PER_UNIT


def accrual_rows(s: Session, account_id: int, start: date, end: date) -> list[AccrualRecord]:
    return (
        s.execute(
            select(AccrualRecord)
            .where(
                AccrualRecord.account_id == account_id,
                AccrualRecord.run_date >= start,
                AccrualRecord.run_date <= end,
            )
            .order_by(AccrualRecord.run_date.asc())
        )
        .scalars()
        .all()
    )


def build_accrual_statement(s: Session, account_id: int, start: date, end: date, out_file):
    account = s.execute(select(Account).where(Account.id == account_id)).scalar_one()
    family = s.execute(select(Family).where(Family.id == account.family_id)).scalar_one()
    rows = accrual_rows(s, account_id, start, end)

    wb = xlsxwriter.Workbook(out_file, {"in_memory": True})
    base_font = "Calibri"

    meta_label = wb.add_format({"bold": True, "font_name": base_font, "font_size": 11, "font_color": "#334155"})
    meta_value = wb.add_format({"font_name": base_font, "font_size": 11, "font_color": "#0f172a"})
    subtle = wb.add_format({"font_name": base_font, "font_size": 10, "font_color": "#64748b"})
    header = wb.add_format(
        {
            "bold": True,
            "font_name": base_font,
            "font_size": 11,
            "bg_color": "#F1F5F9",
            "border": 1,
            "align": "center",
            "valign": "vcenter",
        }
    )
    date_fmt = wb.add_format({"font_name": base_font, "font_size": 11, "num_format": "yyyy-mm-dd", "border": 1})
    int0 = wb.add_format({"font_name": base_font, "font_size": 11, "num_format": "#,##0", "border": 1, "align": "right"})
    money2 = wb.add_format(
        {"font_name": base_font, "font_size": 11, "num_format": "#,##0.00", "border": 1, "align": "right"}
    )
    money6 = wb.add_format(
        {"font_name": base_font, "font_size": 11, "num_format": "0.000000", "border": 1, "align": "right"}
    )
    total_label = wb.add_format(
        {"bold": True, "font_name": base_font, "font_size": 11, "bg_color": "#F8FAFC", "border": 1}
    )
    total_int0 = wb.add_format(
        {
            "bold": True,
            "font_name": base_font,
            "font_size": 11,
            "bg_color": "#F8FAFC",
            "border": 1,
            "num_format": "#,##0",
            "align": "right",
        }
    )

    # ----------------------------
    # Sheet 1: Daily Accrual
    # ----------------------------
    ws = wb.add_worksheet("Daily Accrual")
    ws.set_column(0, 0, 12)  # Date
    ws.set_column(1, 3, 20)

    ws.write(0, 0, "Family", meta_label)
    ws.write(0, 1, family.name, meta_value)
    ws.write(1, 0, "Account", meta_label)
    ws.write(1, 1, account.name, meta_value)
    ws.write(2, 0, "Range", meta_label)
    ws.write(2, 1, f"{start} to {end}", subtle)

    headers = ["Date", "Interest Posted (cents)", "Interest Posted", "Residual Carry (micros)"]
    for c, h in enumerate(headers):
        ws.write(3, c, h, header)
    ws.freeze_panes(4, 1)

    r = 4
    for row in rows:
        ws.write_datetime(r, 0, datetime.combine(row.run_date, time.min), date_fmt)
        ws.write_number(r, 1, int(row.interest_posted), int0)
        ws.write_number(r, 2, int(row.interest_posted) / 100, money2)
        ws.write_number(r, 3, int(row.residual_after), int0)
        r += 1

    last_data_row = r - 1
    total_posted = sum(int(row.interest_posted) for row in rows)
    if last_data_row >= 4:
        last_excel = last_data_row + 1
        ws.autofilter(3, 0, last_data_row, 3)
        ws.write(r, 0, "Totals", total_label)
        ws.write_formula(r, 1, f"=SUM(B5:B{last_excel})", total_int0, total_posted)
        ws.write_blank(r, 2, None, total_label)
        ws.write_formula(r, 3, f"=D{last_excel}", total_int0, int(rows[-1].residual_after))

    # ----------------------------
    # Sheet 2: Summary
    # ----------------------------
    summary = wb.add_worksheet("Summary")
    summary.set_column(0, 0, 26)
    summary.set_column(1, 1, 32)

    title = wb.add_format({"bold": True, "font_name": base_font, "font_size": 14, "font_color": "#0f172a"})
    summary.write(0, 0, "Accrual Statement", title)
    summary.write(2, 0, "Family", meta_label)
    summary.write(2, 1, family.name, meta_value)
    summary.write(3, 0, "Account", meta_label)
    summary.write(3, 1, account.name, meta_value)
    summary.write(4, 0, "Range", meta_label)
    summary.write(4, 1, f"{start} to {end}", subtle)

    summary.write(6, 0, "Days Accrued", meta_label)
    summary.write_number(6, 1, len(rows), int0)
    summary.write(7, 0, "Interest Posted (cents)", meta_label)
    summary.write_number(7, 1, total_posted, int0)
    summary.write(8, 0, "Current Balance (cents)", meta_label)
    summary.write_number(8, 1, int(account.current_balance), int0)
    summary.write(9, 0, "Residual Carry (fraction of a cent)", meta_label)
    summary.write_number(9, 1, int(account.residual_carry) / MICROS_PER_UNIT, money6)
    summary.write(10, 0, "As Of", meta_label)
    summary.write(10, 1, account.as_of.isoformat(), meta_value)

    wb.close()
