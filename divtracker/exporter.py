"""
divtracker/exporter.py  —  CSV import, CSV and Excel export
"""

import csv
import io
import logging
from datetime import date, datetime
from typing import IO, List, Optional, Tuple, Union

import openpyxl
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from divtracker.config import CURRENCY_SYMBOL
from divtracker.income import monthly_income_series, portfolio_summary
from divtracker.models import DividendPayment, Holding, normalise_frequency
from divtracker.validation import (
    parse_date, to_number, validate_dividend, validate_frequency, validate_holding,
    validate_symbol,
)

logger = logging.getLogger(__name__)

# ── Colour constants ──────────────────────────────────────────────────────────
HEADER_BG  = "14532D"
HEADER_FG  = "FFFFFF"
SUBHEAD_BG = "166534"
POS_FG     = "1B5E20"
NEG_FG     = "B71C1C"
ALT_ROW    = "ECFDF5"

CUR_FMT = f'"{CURRENCY_SYMBOL}"#,##0.00'
PNL_FMT = f'"{CURRENCY_SYMBOL}"#,##0.00;[Red]("{CURRENCY_SYMBOL}"#,##0.00)'

CSV_FIELDS = ["Symbol", "Sector", "Shares", "Avg Price", "Current Price",
              "Cost Basis", "Market Value", "Gain/Loss", "Gain/Loss %",
              "Dividend Yield", "Payout Frequency", "Annual Income"]

# Accepted import headers (lower-cased, spaces/underscores stripped) → field
_IMPORT_COLUMNS = {
    "symbol": "symbol", "ticker": "symbol",
    "shares": "shares", "quantity": "shares",
    "avgprice": "avg_price", "averageprice": "avg_price", "avgcost": "avg_price",
    "currentprice": "current_price", "price": "current_price",
    "costbasis": "cost_basis",
    "dividendyield": "dividend_yield", "yield": "dividend_yield",
    "sector": "sector",
    "payoutfrequency": "payout_frequency", "frequency": "payout_frequency",
}


def _border():
    s = Side(style="thin", color="BDBDBD")
    return Border(left=s, right=s, top=s, bottom=s)

def _header_font(bold=True, size=10):
    return Font(name="Arial", size=size, bold=bold, color=HEADER_FG)

def _header_fill(bg=HEADER_BG):
    return PatternFill("solid", fgColor=bg)

def _style(cell, value=None, font=None, fill=None, fmt=None, align="left"):
    if value is not None: cell.value = value
    if font:  cell.font = font
    if fill:  cell.fill = fill
    if fmt:   cell.number_format = fmt
    cell.border    = _border()
    cell.alignment = Alignment(horizontal=align)
    return cell

def _default_name(ext: str, prefix: str = "holdings") -> str:
    return f"{prefix}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.{ext}"


# ── CSV export ────────────────────────────────────────────────────────────────

def _csv_row(h: Holding) -> dict:
    return {"Symbol":           h.symbol,
            "Sector":           h.sector,
            "Shares":           round(h.shares, 6),
            "Avg Price":        round(h.avg_price, 4),
            "Current Price":    round(h.current_price, 4),
            "Cost Basis":       round(h.cost_basis, 2),
            "Market Value":     round(h.market_value, 2),
            "Gain/Loss":        round(h.gain_loss, 2),
            "Gain/Loss %":      round(h.gain_loss_percent, 2),
            "Dividend Yield":   round(h.dividend_yield, 4),
            "Payout Frequency": h.frequency,
            "Annual Income":    round(h.annual_dividend_income, 2)}


def write_csv(holdings: List[Holding], f: IO[str]) -> None:
    w = csv.DictWriter(f, fieldnames=CSV_FIELDS)
    w.writeheader()
    for h in holdings:
        w.writerow(_csv_row(h))


def export_to_csv(holdings: List[Holding], filename: Optional[str] = None) -> str:
    filename = filename or _default_name("csv")
    with open(filename, "w", newline="") as f:
        write_csv(holdings, f)
    logger.info("Exported %d holdings to %s", len(holdings), filename)
    return filename


# ── CSV import ────────────────────────────────────────────────────────────────

def _read_text(source: Union[str, IO]) -> str:
    if hasattr(source, "read"):
        data = source.read()
    else:
        with open(source, "rb") as f:
            data = f.read()
    if isinstance(data, bytes):
        data = data.decode("utf-8-sig")
    return data.lstrip("\ufeff")


def _row_to_holding(row: dict) -> Tuple[Optional[Holding], List[str]]:
    fields = {}
    for key, value in row.items():
        if key is None:
            continue
        name = _IMPORT_COLUMNS.get(key.strip().lower().replace(" ", "").replace("_", ""))
        if name:
            fields[name] = (value or "").strip()

    symbol = fields.get("symbol", "")
    errors = validate_symbol(symbol)

    shares        = to_number(fields.get("shares"))
    avg_price     = to_number(fields.get("avg_price"))
    current_price = to_number(fields.get("current_price"))
    dividend_yld  = to_number(fields.get("dividend_yield"))
    errors += validate_holding(shares, avg_price, current_price, dividend_yld)
    if errors:
        return None, errors

    for warning in validate_frequency(fields.get("payout_frequency", "")):
        logger.warning("%s: %s Treated as quarterly.", symbol.upper(), warning)

    cost_basis = to_number(fields.get("cost_basis"))
    return Holding(
        symbol=symbol,
        shares=shares,
        avg_price=avg_price,
        current_price=current_price or None,
        cost_basis=cost_basis or None,
        dividend_yield=dividend_yld,
        sector=fields.get("sector", ""),
        payout_frequency=normalise_frequency(fields.get("payout_frequency")),
    ), []


def import_from_csv(source: Union[str, IO]) -> Tuple[List[Holding], List[str]]:
    """
    Read holdings from a CSV file path or file-like object.
    Returns (holdings, errors); invalid rows are skipped and reported by
    their line number in the file. A symbol repeated later in the file
    overwrites the earlier row.
    """
    reader   = csv.DictReader(io.StringIO(_read_text(source)))
    holdings = {}
    errors   = []
    for line, row in enumerate(reader, start=2):
        if not any((v or "").strip() for v in row.values() if isinstance(v, str)):
            continue
        holding, row_errors = _row_to_holding(row)
        if row_errors:
            errors += [f"Row {line}: {e}" for e in row_errors]
            continue
        holdings[holding.symbol] = holding
    logger.info("Imported %d holdings (%d errors)", len(holdings), len(errors))
    return list(holdings.values()), errors


# ── Dividend records CSV ──────────────────────────────────────────────────────

DIVIDEND_CSV_FIELDS = ["Symbol", "Ex Date", "Payment Date", "Amount"]

_DIVIDEND_COLUMNS = {
    "symbol": "symbol", "ticker": "symbol",
    "amount": "amount", "dividend": "amount", "amountpershare": "amount",
    "date": "payment_date", "paymentdate": "payment_date", "paydate": "payment_date",
    "exdate": "ex_date", "exdividenddate": "ex_date",
}


def write_dividends_csv(records: List[Tuple[str, DividendPayment]], f: IO[str]) -> None:
    w = csv.DictWriter(f, fieldnames=DIVIDEND_CSV_FIELDS)
    w.writeheader()
    for symbol, p in records:
        w.writerow({"Symbol": symbol, "Ex Date": p.ex_date,
                    "Payment Date": p.payment_date, "Amount": round(p.amount, 6)})


def export_dividends_to_csv(records: List[Tuple[str, DividendPayment]],
                            filename: Optional[str] = None) -> str:
    filename = filename or _default_name("csv", prefix="dividends")
    with open(filename, "w", newline="") as f:
        write_dividends_csv(records, f)
    logger.info("Exported %d dividend records to %s", len(records), filename)
    return filename


def import_dividends_csv(source: Union[str, IO]
                         ) -> Tuple[List[Tuple[str, DividendPayment]], List[str]]:
    """
    Read received dividends (symbol, amount per share, date) from CSV.
    `date` is the payment date; an Ex Date column is optional and defaults
    to the payment date. Returns (records, errors) like import_from_csv.
    """
    reader  = csv.DictReader(io.StringIO(_read_text(source)))
    records = []
    errors  = []
    for line, row in enumerate(reader, start=2):
        if not any((v or "").strip() for v in row.values() if isinstance(v, str)):
            continue
        fields = {}
        for key, value in row.items():
            if key is None:
                continue
            name = _DIVIDEND_COLUMNS.get(key.strip().lower().replace(" ", "").replace("_", ""))
            if name:
                fields[name] = (value or "").strip()

        symbol = fields.get("symbol", "")
        amount = to_number(fields.get("amount"))
        row_errors = validate_symbol(symbol) + validate_dividend(
            amount, fields.get("payment_date"), fields.get("ex_date"))
        if row_errors:
            errors += [f"Row {line}: {e}" for e in row_errors]
            continue

        paid = parse_date(fields["payment_date"])
        ex   = parse_date(fields.get("ex_date")) or paid
        records.append((symbol.upper(), DividendPayment(ex_date=ex, payment_date=paid,
                                                        amount=amount)))
    logger.info("Imported %d dividend records (%d errors)", len(records), len(errors))
    return records, errors


# ── Excel export ──────────────────────────────────────────────────────────────

def export_to_excel(holdings: List[Holding], filename: Optional[str] = None,
                    start: Optional[date] = None) -> str:
    filename = filename or _default_name("xlsx")
    wb = openpyxl.Workbook()
    _holdings_sheet(wb, holdings)
    _income_sheet(wb, holdings, start)
    if "Sheet" in wb.sheetnames:
        del wb["Sheet"]
    wb.save(filename)
    logger.info("Exported %d holdings to %s", len(holdings), filename)
    return filename


def _title(ws, text: str, last_col: str) -> None:
    for row, value, size in [(1, text, 16),
                             (2, f"Generated: {datetime.now().strftime('%d %b %Y  %H:%M')}", 10)]:
        ws.merge_cells(f"A{row}:{last_col}{row}")
        c = ws[f"A{row}"]
        c.value = value
        c.font  = Font(name="Arial", size=size, bold=(row == 1), italic=(row == 2), color=HEADER_FG)
        c.fill  = _header_fill(HEADER_BG if row == 1 else SUBHEAD_BG)
        c.alignment = Alignment(horizontal="center", vertical="center")
    ws.row_dimensions[1].height = 30


def _holdings_sheet(wb, holdings: List[Holding]) -> None:
    ws = wb.create_sheet("Holdings")
    _title(ws, "Dividend Portfolio", "L")

    for col, h in enumerate(CSV_FIELDS, 1):
        _style(ws.cell(4, col, h), font=_header_font(), fill=_header_fill(), align="center")
    ws.row_dimensions[4].height = 20

    fmts = [None, None, "#,##0.0000", CUR_FMT, CUR_FMT, CUR_FMT, CUR_FMT,
            PNL_FMT, "0.00%;[Red]-0.00%", "0.00%", None, CUR_FMT]
    for i, h in enumerate(holdings):
        row  = 5 + i
        fill = PatternFill("solid", fgColor=ALT_ROW if i % 2 == 0 else "FFFFFF")
        vals = [h.symbol, h.sector, h.shares, h.avg_price, h.current_price,
                h.cost_basis, h.market_value, h.gain_loss,
                h.gain_loss_percent / 100, h.dividend_yield / 100,
                h.frequency, h.annual_dividend_income]
        for col, (val, fmt) in enumerate(zip(vals, fmts), 1):
            cell = ws.cell(row, col, val)
            cell.font   = Font(name="Arial", size=10)
            cell.fill   = fill
            cell.border = _border()
            cell.alignment = Alignment(horizontal="right" if col > 2 and col != 11 else "left")
            if fmt: cell.number_format = fmt
            if col in (8, 9):
                cell.font = Font(name="Arial", size=10,
                                 color=POS_FG if h.gain_loss >= 0 else NEG_FG)

    # Totals row
    summary = portfolio_summary(holdings)
    tr      = 5 + len(holdings)
    for col in range(1, len(CSV_FIELDS) + 1):
        ws.cell(tr, col).fill   = _header_fill(SUBHEAD_BG)
        ws.cell(tr, col).border = _border()
    pnl_font = Font(name="Arial", bold=True,
                    color=POS_FG if summary.total_gain_loss >= 0 else NEG_FG)
    white    = Font(name="Arial", bold=True, color=HEADER_FG)
    _style(ws.cell(tr, 1, "TOTAL"), font=white)
    _style(ws.cell(tr, 6, summary.total_cost_basis), font=white, fmt=CUR_FMT, align="right")
    _style(ws.cell(tr, 7, summary.total_portfolio_value), font=white, fmt=CUR_FMT, align="right")
    _style(ws.cell(tr, 8, summary.total_gain_loss), font=pnl_font, fmt=PNL_FMT, align="right")
    _style(ws.cell(tr, 9, summary.gain_loss_percent / 100), font=pnl_font,
           fmt="0.00%", align="right")
    _style(ws.cell(tr, 10, summary.average_yield / 100), font=white, fmt="0.00%", align="right")
    _style(ws.cell(tr, 12, summary.total_annual_income), font=white, fmt=CUR_FMT, align="right")

    for i, w in enumerate([10, 22, 12, 12, 14, 14, 16, 14, 12, 12, 16, 14], 1):
        ws.column_dimensions[get_column_letter(i)].width = w
    ws.freeze_panes = "A5"


def _income_sheet(wb, holdings: List[Holding], start: Optional[date]) -> None:
    ws = wb.create_sheet("Monthly Income")
    _title(ws, "Projected Dividend Income", "C")

    for col, h in enumerate(["Month", "Year", "Income"], 1):
        _style(ws.cell(4, col, h), font=_header_font(), fill=_header_fill(), align="center")

    series = monthly_income_series(holdings, start)
    for i, m in enumerate(series):
        fill = PatternFill("solid", fgColor=ALT_ROW if i % 2 == 0 else "FFFFFF")
        _style(ws.cell(5 + i, 1, m.month), font=Font(name="Arial", size=10), fill=fill)
        _style(ws.cell(5 + i, 2, m.year), font=Font(name="Arial", size=10), fill=fill)
        _style(ws.cell(5 + i, 3, m.income), font=Font(name="Arial", size=10), fill=fill,
               fmt=CUR_FMT, align="right")

    tr = 5 + len(series)
    _style(ws.cell(tr, 1, "TOTAL"), font=Font(name="Arial", bold=True, color=HEADER_FG),
           fill=_header_fill(SUBHEAD_BG))
    _style(ws.cell(tr, 2), fill=_header_fill(SUBHEAD_BG))
    _style(ws.cell(tr, 3, sum(m.income for m in series)),
           font=Font(name="Arial", bold=True, color=HEADER_FG),
           fill=_header_fill(SUBHEAD_BG), fmt=CUR_FMT, align="right")

    for i, w in enumerate([10, 8, 14], 1):
        ws.column_dimensions[get_column_letter(i)].width = w
    ws.freeze_panes = "A5"
