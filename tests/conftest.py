import matplotlib
matplotlib.use("Agg")

from datetime import date

import pytest

from divtracker.db import JsonDocumentRepository, SQLiteRepository
from divtracker.models import DividendPayment, Holding

# Projection window starts here in every test: Jan 2026 … Dec 2026
START = date(2026, 1, 15)


# ── The reference holding: 100 × $50 at 4% → $200 a year ──
def reference_holding(frequency="quarterly", **overrides) -> Holding:
    fields = dict(symbol="KO", shares=100, avg_price=40.0, current_price=50.0,
                  dividend_yield=4.0, sector="Consumer Defensive",
                  payout_frequency=frequency)
    fields.update(overrides)
    return Holding(**fields)


@pytest.fixture
def make_holding():
    return reference_holding


@pytest.fixture
def start():
    return START


@pytest.fixture
def mixed_holdings():
    """
    O    : 200 × $55  @ 5.6%  monthly      → 616.00 / yr,  cost 200 × 60 = 12000
    JNJ  :  20 × $150 @ 3.0%  quarterly    →  90.00 / yr,  cost 20 × 160 =  3200
    UL   :  50 × $48  @ 3.5%  semi-annual  →  84.00 / yr,  cost 50 × 40  =  2000
    BRK  :  10 × $400 @ 0%    annual       →   0.00 / yr,  cost 10 × 300 =  3000
    Total value  = 11000 + 3000 + 2400 + 4000 = 20400
    Total cost   = 12000 + 3200 + 2000 + 3000 = 20200
    Total income = 790.00
    """
    return [
        Holding("O",   200, 60.0,  55.0,  dividend_yield=5.6, sector="Real Estate",
                payout_frequency="monthly"),
        Holding("JNJ",  20, 160.0, 150.0, dividend_yield=3.0, sector="Healthcare",
                payout_frequency="quarterly",
                dividend_history=[
                    DividendPayment("2025-11-25", "2025-12-09", 1.30),
                    DividendPayment("2025-08-26", "2025-09-09", 1.30),
                ]),
        Holding("UL",   50, 40.0,  48.0,  dividend_yield=3.5, sector="Consumer Defensive",
                payout_frequency="semi-annual"),
        Holding("BRK",  10, 300.0, 400.0, dividend_yield=0.0, sector="Financial Services",
                payout_frequency="annual"),
    ]


@pytest.fixture(params=["sqlite", "json"])
def repository(request, tmp_path):
    if request.param == "sqlite":
        repo = SQLiteRepository(str(tmp_path / "test.db"))
    else:
        repo = JsonDocumentRepository(str(tmp_path / "test.json"))
    yield repo
    repo.close()
