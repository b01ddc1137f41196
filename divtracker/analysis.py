"""
divtracker/analysis.py  —  Sector allocation, performers and yield comparisons
"""

from typing import Dict, List

import pandas as pd

from divtracker.models import Holding, MonthlyIncome


def sector_allocation(holdings: List[Holding]) -> pd.DataFrame:
    rows: Dict[str, float] = {}
    for h in holdings:
        rows[h.sector] = rows.get(h.sector, 0.0) + h.market_value
    if not rows:
        return pd.DataFrame(columns=["Sector", "Value", "Weight (%)"])
    total = sum(rows.values())
    return pd.DataFrame([{"Sector": k, "Value": round(v, 2),
                          "Weight (%)": round(v / total * 100, 2) if total else 0.0}
                         for k, v in sorted(rows.items(), key=lambda x: -x[1])])


def top_performers(holdings: List[Holding], limit: int = 5) -> List[Holding]:
    return sorted(holdings, key=lambda h: h.gain_loss_percent, reverse=True)[:limit]


def worst_performers(holdings: List[Holding], limit: int = 5) -> List[Holding]:
    return sorted(holdings, key=lambda h: h.gain_loss_percent)[:limit]


def yield_comparison(holdings: List[Holding]) -> pd.DataFrame:
    """Current yield next to yield on cost (what the position pays on what was paid for it)."""
    return pd.DataFrame([{
        "Symbol":            h.symbol,
        "Current Yield (%)": h.dividend_yield,
        "Yield on Cost (%)": (h.dividend_yield * h.current_price / h.avg_price
                              if h.avg_price else 0.0),
    } for h in holdings], columns=["Symbol", "Current Yield (%)", "Yield on Cost (%)"])


def dividends_by_month(holdings: List[Holding]) -> pd.DataFrame:
    """
    Recorded dividend history grouped by payment month (YYYY-MM).
    Amounts are per share, so they are scaled by the current share count.
    """
    rows: Dict[str, float] = {}
    for h in holdings:
        for p in h.dividend_history:
            month = (p.payment_date or p.ex_date)[:7]
            rows[month] = rows.get(month, 0.0) + p.amount * h.shares
    return pd.DataFrame([{"Month": m, "Amount": round(v, 2)}
                         for m, v in sorted(rows.items())],
                        columns=["Month", "Amount"])


def income_frame(series: List[MonthlyIncome]) -> pd.DataFrame:
    return pd.DataFrame([{"Month": m.label, "Income": m.income} for m in series],
                        columns=["Month", "Income"])
