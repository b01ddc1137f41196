import csv
import io

import openpyxl
import pytest

from divtracker.exporter import (
    CSV_FIELDS, DIVIDEND_CSV_FIELDS, export_dividends_to_csv, export_to_csv,
    export_to_excel, import_dividends_csv, import_from_csv, write_csv,
)
from divtracker.models import DividendPayment


def _csv(text: str) -> io.StringIO:
    return io.StringIO(text.strip() + "\n")


class TestImport:
    def test_basic_rows(self):
        holdings, errors = import_from_csv(_csv("""
Symbol,Shares,Avg Price,Current Price,Dividend Yield,Sector,Payout Frequency
ko,100,40,50,4,Consumer Defensive,Quarterly
O,200,"$60.00",55,5.6%,Real Estate,monthly
"""))
        assert errors == []
        ko, o = holdings
        assert (ko.symbol, ko.shares, ko.avg_price, ko.current_price) == ("KO", 100, 40, 50)
        assert ko.frequency == "quarterly"
        assert o.avg_price == 60.0
        assert o.dividend_yield == 5.6
        assert o.cost_basis == pytest.approx(12000)

    def test_header_aliases(self):
        holdings, errors = import_from_csv(_csv("""
ticker,quantity,avg_cost,price,yield,frequency,cost_basis
PEP,10,150,160,3.1,quarterly,1525
"""))
        assert errors == []
        [h] = holdings
        assert (h.symbol, h.shares, h.avg_price, h.current_price) == ("PEP", 10, 150, 160)
        assert h.cost_basis == 1525

    def test_missing_current_price_uses_avg_price(self):
        [h], _ = import_from_csv(_csv("Symbol,Shares,Avg Price\nVZ,10,40"))
        assert h.current_price == 40
        assert h.sector == "Unknown"

    def test_invalid_rows_reported_by_line(self):
        holdings, errors = import_from_csv(_csv("""
Symbol,Shares,Avg Price
KO,10,50
,5,20
PEP,abc,150
"""))
        assert [h.symbol for h in holdings] == ["KO"]
        assert errors[0] == "Row 3: Symbol cannot be empty."
        assert errors[1].startswith("Row 4: Shares must be at least")

    def test_repeated_symbol_overwrites(self):
        holdings, errors = import_from_csv(_csv("""
Symbol,Shares,Avg Price
KO,10,50
PEP,5,150
ko,25,52
"""))
        assert errors == []
        assert {h.symbol: h.shares for h in holdings} == {"KO": 25, "PEP": 5}

    def test_unknown_frequency_imported_as_quarterly(self, caplog):
        [h], errors = import_from_csv(_csv("Symbol,Shares,Avg Price,Frequency\nKO,10,50,weekly"))
        assert errors == []
        assert h.payout_frequency == "quarterly"
        assert "Unknown payout frequency" in caplog.text

    def test_blank_lines_skipped(self):
        holdings, errors = import_from_csv(_csv("Symbol,Shares,Avg Price\n,,\nKO,10,50"))
        assert errors == []
        assert len(holdings) == 1

    def test_utf8_bom_from_file(self, tmp_path):
        path = tmp_path / "holdings.csv"
        path.write_bytes(b"\xef\xbb\xbfSymbol,Shares,Avg Price\nKO,10,50\n")
        holdings, errors = import_from_csv(str(path))
        assert errors == []
        assert holdings[0].symbol == "KO"


class TestCsvExport:
    def test_columns_and_values(self, mixed_holdings):
        buf = io.StringIO()
        write_csv(mixed_holdings, buf)
        rows = list(csv.DictReader(io.StringIO(buf.getvalue())))
        assert list(rows[0].keys()) == CSV_FIELDS
        o = rows[0]
        assert o["Symbol"] == "O"
        assert float(o["Market Value"]) == 11000
        assert float(o["Gain/Loss"]) == -1000
        assert float(o["Annual Income"]) == pytest.approx(616)
        assert rows[2]["Payout Frequency"] == "semi-annual"

    def test_export_then_import_keeps_positions(self, mixed_holdings, tmp_path):
        path = export_to_csv(mixed_holdings, str(tmp_path / "out.csv"))
        holdings, errors = import_from_csv(path)
        assert errors == []
        assert [(h.symbol, h.shares, h.frequency) for h in holdings] == \
            [(h.symbol, h.shares, h.frequency) for h in mixed_holdings]


class TestExcelExport:
    def test_sheets_and_totals(self, mixed_holdings, start, tmp_path):
        path = export_to_excel(mixed_holdings, str(tmp_path / "out.xlsx"), start=start)
        wb   = openpyxl.load_workbook(path)
        assert wb.sheetnames == ["Holdings", "Monthly Income"]

        ws = wb["Holdings"]
        assert [ws.cell(4, c).value for c in range(1, 13)] == CSV_FIELDS
        assert ws.cell(5, 1).value == "O"
        total_row = 5 + len(mixed_holdings)
        assert ws.cell(total_row, 1).value == "TOTAL"
        assert ws.cell(total_row, 7).value == pytest.approx(20400)
        assert ws.cell(total_row, 12).value == pytest.approx(790)

        income = wb["Monthly Income"]
        assert (income.cell(5, 1).value, income.cell(5, 2).value) == ("Jan", "2026")
        assert income.cell(17, 1).value == "TOTAL"
        assert income.cell(17, 3).value == pytest.approx(790)

    def test_empty_portfolio(self, tmp_path):
        path = export_to_excel([], str(tmp_path / "empty.xlsx"))
        ws   = openpyxl.load_workbook(path)["Holdings"]
        assert ws.cell(5, 1).value == "TOTAL"
        assert ws.cell(5, 12).value == 0


class TestDividendsCsv:
    def test_import_symbol_amount_date(self):
        records, errors = import_dividends_csv(_csv("""
symbol,amount,date
ko,0.51,2025-10-01
PEP,1.42,2026-01-06
"""))
        assert errors == []
        assert records == [
            ("KO", DividendPayment("2025-10-01", "2025-10-01", 0.51)),
            ("PEP", DividendPayment("2026-01-06", "2026-01-06", 1.42)),
        ]

    def test_ex_date_column_and_date_formats(self):
        records, errors = import_dividends_csv(_csv("""
Ticker,Ex Date,Payment Date,Dividend
KO,09/15/2025,2025/10/01,$0.51
"""))
        assert errors == []
        assert records == [("KO", DividendPayment("2025-09-15", "2025-10-01", 0.51))]

    def test_invalid_rows_reported_by_line(self):
        records, errors = import_dividends_csv(_csv("""
symbol,amount,date
KO,0.51,2025-10-01
PEP,0,2026-01-06
JNJ,1.30,next week
"""))
        assert [s for s, _ in records] == ["KO"]
        assert errors == [
            "Row 3: Dividend amount must be greater than 0.",
            "Row 4: Date 'next week' is not a valid date (use YYYY-MM-DD).",
        ]

    def test_ex_date_after_payment_rejected(self):
        records, errors = import_dividends_csv(_csv("""
symbol,ex date,payment date,amount
KO,2025-10-02,2025-10-01,0.51
"""))
        assert records == []
        assert errors == ["Row 2: Ex-date cannot be after the payment date."]

    def test_export_columns_then_import(self, tmp_path):
        records = [("PEP", DividendPayment("2025-12-05", "2026-01-06", 1.4225)),
                   ("KO", DividendPayment("2025-09-15", "2025-10-01", 0.51))]
        path = export_dividends_to_csv(records, str(tmp_path / "divs.csv"))
        with open(path, newline="") as f:
            reader = csv.DictReader(f)
            assert reader.fieldnames == DIVIDEND_CSV_FIELDS
            assert next(reader)["Ex Date"] == "2025-12-05"
        imported, errors = import_dividends_csv(path)
        assert errors == []
        assert imported == records

    def test_default_filename(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert export_dividends_to_csv([]).startswith("dividends_")
