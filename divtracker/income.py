"""
divtracker/income.py  —  Dividend income projection

Turns a list of holdings into a 12-month forward income series and a
portfolio summary.

Payout timing is approximated: every schedule is phase-aligned to the first
month of the window (quarterly payers pay in months 0, 3, 6, 9; semi-annual
in 0 and 6; annual in 0). Real ex-dividend calendars are not modelled.

Everything here is pure. Same holdings in, same numbers out; no network,
no caching, and no division is allowed to produce NaN or inf.
"""

from datetime import date
from typing import Dict, List, Optional, Tuple

import pandas as pd

from divtracker.config import PROJECTION_MONTHS
from divtracker.models import (
    ANNUAL, EX_DATE, MONTHLY, PAYMENT_DATE, QUARTERLY, SEMI_ANNUAL,
    Holding, MonthlyIncome, PortfolioSummary, UpcomingPayout,
)

# frequency → (months between payouts, payouts per year)
_SCHEDULE = {
    MONTHLY:     (1, 12),
    QUARTERLY:   (3, 4),
    SEMI_ANNUAL: (6, 2),
    ANNUAL:      (12, 1),
}


def _month_start(start: Optional[date]) -> date:
    d = start or date.today()
    return date(d.year, d.month, 1)


def _shift_month(d: date, months: int) -> date:
    index = d.year * 12 + (d.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


# ── Payout scheduler ──────────────────────────────────────────────────────────

def payout_schedule(holding: Holding, months: int = PROJECTION_MONTHS) -> List[float]:
    """
    Income contributed by one holding in each of the next `months` months.

    Annual payers only pay at i == 0, so a window longer than 12 months does
    not repeat the annual payment.
    """
    annual = holding.annual_dividend_income
    if not annual:
        return [0.0] * months

    period, per_year = _SCHEDULE[holding.frequency]
    payout = annual / per_year
    if holding.frequency == ANNUAL:
        return [payout if i == 0 else 0.0 for i in range(months)]
    return [payout if i % period == 0 else 0.0 for i in range(months)]


def monthly_income_series(holdings: List[Holding],
                          start: Optional[date] = None,
                          months: int = PROJECTION_MONTHS) -> List[MonthlyIncome]:
    first    = _month_start(start)
    totals   = [0.0] * months
    for h in holdings:
        for i, amount in enumerate(payout_schedule(h, months)):
            totals[i] += amount

    series = []
    for i, income in enumerate(totals):
        d = _shift_month(first, i)
        series.append(MonthlyIncome(month=d.strftime("%b"),
                                    year=d.strftime("%Y"),
                                    income=income))
    return series


# ── Aggregator ────────────────────────────────────────────────────────────────

def portfolio_summary(holdings: List[Holding],
                      start: Optional[date] = None) -> PortfolioSummary:
    series       = monthly_income_series(holdings, start)
    total_income = sum(m.income for m in series)

    total_value = sum(h.market_value for h in holdings)
    total_cost  = sum(h.cost_basis for h in holdings)
    gain_loss   = total_value - total_cost

    return PortfolioSummary(
        total_portfolio_value=total_value,
        total_cost_basis=total_cost,
        total_gain_loss=gain_loss,
        gain_loss_percent=gain_loss / total_cost * 100 if total_cost > 0 else 0.0,
        total_annual_income=total_income,
        monthly_average=total_income / 12,
        quarterly_average=total_income / 4,
        weekly_average=total_income / 52,
        daily_average=total_income / 365,
        # Unweighted mean across holdings, not weighted by market value
        average_yield=(sum(h.dividend_yield for h in holdings) / len(holdings)
                       if holdings else 0.0),
        yield_on_cost=total_income / total_cost * 100 if total_cost > 0 else 0.0,
    )


def apply_quotes(holdings: List[Holding],
                 quotes: Dict[str, Optional[float]]) -> List[Holding]:
    """Pair holdings with live quotes. Missing quotes keep the last known price."""
    return [h.with_price(quotes.get(h.symbol)) for h in holdings]


def yet_to_receive(series: List[MonthlyIncome]) -> float:
    """Income still expected in the window after the current month."""
    if not series:
        return 0.0
    return sum(m.income for m in series) - series[0].income


# ── Next payment estimate ─────────────────────────────────────────────────────

def estimate_next_dates(holding: Holding) -> Tuple[Optional[str], Optional[str]]:
    """
    Next (ex_date, payment_date) estimated from the most recent payment in the
    holding's history, one payout period later. Month-end dates clamp
    (Jan 31 + 1 month → Feb 28/29).
    """
    if not holding.dividend_history:
        return None, None
    last   = max(holding.dividend_history, key=lambda p: p.ex_date)
    months = _SCHEDULE[holding.frequency][0]
    offset = pd.DateOffset(months=months)
    ex_date  = (pd.Timestamp(last.ex_date) + offset).strftime("%Y-%m-%d")
    pay_date = (pd.Timestamp(last.payment_date or last.ex_date) + offset).strftime("%Y-%m-%d")
    return ex_date, pay_date


# ── Dividend calendar ─────────────────────────────────────────────────────────

# Estimated day of month for calendar entries
_EX_DAY      = 15
_PAYMENT_DAY = 28


def upcoming_payouts(holdings: List[Holding],
                     start: Optional[date] = None,
                     months: int = PROJECTION_MONTHS) -> List[UpcomingPayout]:
    """
    Calendar of estimated ex-dates and payment dates over the projection
    window. Payout months follow payout_schedule, ex-dates fall on the 15th
    and payments on the 28th. A payout whose ex-date is not after `start`
    has already happened and is left out.
    """
    today   = start or date.today()
    first   = _month_start(today)
    entries = []
    for h in holdings:
        for i, amount in enumerate(payout_schedule(h, months)):
            if not amount:
                continue
            month = _shift_month(first, i)
            ex    = month.replace(day=_EX_DAY)
            if ex <= today:
                continue
            per_share = amount / h.shares
            for kind, day in ((EX_DATE, ex), (PAYMENT_DATE, month.replace(day=_PAYMENT_DAY))):
                entries.append(UpcomingPayout(symbol=h.symbol, kind=kind, day=day,
                                              amount_per_share=per_share,
                                              shares=h.shares, total_amount=amount))
    entries.sort(key=lambda e: (e.day, e.symbol, e.kind))
    return entries


def payouts_in_month(payouts: List[UpcomingPayout], year: int, month: int,
                     ex_dates: bool = True,
                     payment_dates: bool = True) -> List[UpcomingPayout]:
    kinds = {k for k, on in ((EX_DATE, ex_dates), (PAYMENT_DATE, payment_dates)) if on}
    return [p for p in payouts
            if p.day.year == year and p.day.month == month and p.kind in kinds]


def payment_total(payouts: List[UpcomingPayout]) -> float:
    """Cash expected from the payment-date entries (ex-dates would double count)."""
    return sum(p.total_amount for p in payouts if p.kind == PAYMENT_DATE)
