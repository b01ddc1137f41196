"""
divtracker/calculator.py  —  DRIP (dividend reinvestment) projection

Monthly compounding. Each month:
  1. dividend = balance × yield / 12, reinvested into the balance
  2. the monthly contribution is added
  3. the balance grows by (dividend growth + price growth) / 12

Separate from the income projector: this answers "what if I keep
reinvesting", not "what will my current holdings pay".
"""

from dataclasses import dataclass


@dataclass
class DripResult:
    final_value:         float
    total_dividends:     float
    total_contributions: float   # includes the starting amount

    @property
    def total_growth(self) -> float:
        return self.final_value - self.total_contributions


def drip_projection(starting: float,
                    monthly_contribution: float,
                    yield_pct: float,
                    dividend_growth_pct: float = 0.0,
                    price_growth_pct: float = 0.0,
                    years: int = 10) -> DripResult:
    if years <= 0:
        raise ValueError("Years must be a positive integer.")
    if min(starting, monthly_contribution, yield_pct,
           dividend_growth_pct, price_growth_pct) < 0:
        raise ValueError("Inputs must be non-negative.")
    if starting == 0 and monthly_contribution == 0:
        raise ValueError("Please enter a starting amount or monthly contribution.")

    r = yield_pct / 100
    g = dividend_growth_pct / 100
    p = price_growth_pct / 100

    balance       = starting
    dividends     = 0.0
    contributions = starting
    for _ in range(years * 12):
        div            = balance * r / 12
        dividends     += div
        balance       += div + monthly_contribution
        contributions += monthly_contribution
        balance       *= 1 + (g + p) / 12

    return DripResult(final_value=balance,
                      total_dividends=dividends,
                      total_contributions=contributions)
