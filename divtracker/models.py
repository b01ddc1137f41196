"""
divtracker/models.py  —  Pure dataclasses, no dependencies on other divtracker modules.

Every figure a holding reports (market value, gain/loss, income) is a property
computed from its inputs on each access. Nothing derived is ever stored.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, List, Optional

MONTHLY     = "monthly"
QUARTERLY   = "quarterly"
SEMI_ANNUAL = "semi-annual"
ANNUAL      = "annual"

PAYOUT_FREQUENCIES = (MONTHLY, QUARTERLY, SEMI_ANNUAL, ANNUAL)
DEFAULT_FREQUENCY  = QUARTERLY
UNKNOWN_SECTOR     = "Unknown"


def normalise_frequency(value: Optional[str]) -> str:
    """Unrecognised or missing payout frequencies are treated as quarterly."""
    v = (value or "").strip().lower()
    return v if v in PAYOUT_FREQUENCIES else DEFAULT_FREQUENCY


@dataclass
class DividendPayment:
    ex_date:      str    # "YYYY-MM-DD"
    payment_date: str    # "YYYY-MM-DD"
    amount:       float  # per share


@dataclass
class Holding:
    symbol:           str
    shares:           float
    avg_price:        float
    current_price:    Optional[float] = None   # None → avg_price
    cost_basis:       Optional[float] = None   # None → shares × avg_price
    dividend_yield:   float = 0.0              # percent, 3.5 == 3.5%
    sector:           str   = UNKNOWN_SECTOR
    payout_frequency: str   = DEFAULT_FREQUENCY
    dividend_history: List[DividendPayment] = field(default_factory=list)

    def __post_init__(self):
        self.symbol = self.symbol.strip().upper()
        if self.current_price is None:
            self.current_price = self.avg_price
        if self.cost_basis is None:
            self.cost_basis = self.shares * self.avg_price
        if not (self.sector or "").strip():
            self.sector = UNKNOWN_SECTOR

    @property
    def frequency(self) -> str:
        return normalise_frequency(self.payout_frequency)

    @property
    def market_value(self) -> float:
        return self.shares * self.current_price

    @property
    def gain_loss(self) -> float:
        return self.market_value - self.shares * self.avg_price

    @property
    def gain_loss_percent(self) -> float:
        return (self.gain_loss / self.cost_basis * 100
                if self.cost_basis > 0 else 0.0)

    @property
    def annual_dividend_income(self) -> float:
        if not (self.dividend_yield and self.shares and self.current_price):
            return 0.0
        return self.current_price * self.shares * (self.dividend_yield / 100)

    def with_price(self, price: Optional[float]) -> "Holding":
        """Copy with a live quote applied; None keeps the last known price."""
        if price is None:
            return replace(self)
        return replace(self, current_price=float(price))


@dataclass
class Portfolio:
    id:       str
    name:     str
    holdings: Dict[str, Holding] = field(default_factory=dict)

    def add(self, holding: Holding) -> None:
        # Same symbol overwrites the existing position
        self.holdings[holding.symbol] = holding

    def remove(self, symbol: str) -> bool:
        return self.holdings.pop(symbol.strip().upper(), None) is not None

    def all_holdings(self) -> List[Holding]:
        return list(self.holdings.values())


@dataclass
class MonthlyIncome:
    month:  str     # "Jan"
    year:   str     # "2026"
    income: float

    @property
    def label(self) -> str:
        return f"{self.month} {self.year}"


@dataclass
class PortfolioSummary:
    total_portfolio_value: float = 0.0
    total_cost_basis:      float = 0.0
    total_gain_loss:       float = 0.0
    gain_loss_percent:     float = 0.0
    total_annual_income:   float = 0.0
    monthly_average:       float = 0.0
    quarterly_average:     float = 0.0
    weekly_average:        float = 0.0
    daily_average:         float = 0.0
    average_yield:         float = 0.0
    yield_on_cost:         float = 0.0


EX_DATE      = "ex-date"
PAYMENT_DATE = "payment-date"


@dataclass
class UpcomingPayout:
    """One calendar entry: an estimated ex-date or payment date."""
    symbol:           str
    kind:             str     # EX_DATE or PAYMENT_DATE
    day:              date
    amount_per_share: float
    shares:           float
    total_amount:     float
