"""
divtracker/charts.py
====================
matplotlib charts for the CLI: projected monthly income, sector allocation
and cost basis vs market value.

Each chart has a builder that returns the Figure and a show_* wrapper that
saves it to PNG and opens a window.
"""

from typing import List

import matplotlib.pyplot as plt
import matplotlib.ticker as mticker
import numpy as np

from divtracker.analysis import sector_allocation
from divtracker.config import CURRENCY_SYMBOL
from divtracker.models import Holding, MonthlyIncome


# ── Global style ──────────────────────────────────────────────────────────────
BG      = "#0f0f0f"
SURFACE = "#1a1a1a"
BORDER  = "#2a2a2a"
TEXT    = "#cccccc"
MUTED   = "#666666"
GAIN    = "#4caf7d"
LOSS    = "#e05c5c"
BLUE    = "#5b9bd5"
PALETTE = ["#4caf7d", "#5b9bd5", "#e8a838", "#b07fd4", "#e05c5c", "#4db6ac", "#f06292"]

plt.rcParams.update({
    "figure.facecolor":  BG,
    "axes.facecolor":    SURFACE,
    "axes.edgecolor":    BORDER,
    "axes.labelcolor":   MUTED,
    "axes.titlecolor":   TEXT,
    "axes.titlesize":    13,
    "axes.titlepad":     16,
    "axes.grid":         True,
    "grid.color":        BORDER,
    "grid.linewidth":    0.6,
    "xtick.color":       MUTED,
    "ytick.color":       MUTED,
    "xtick.labelsize":   9,
    "ytick.labelsize":   9,
    "legend.facecolor":  SURFACE,
    "legend.edgecolor":  BORDER,
    "legend.labelcolor": TEXT,
    "legend.fontsize":   9,
    "text.color":        TEXT,
    "font.family":       "sans-serif",
    "figure.dpi":        120,
})

_money = mticker.FuncFormatter(lambda y, _: f"{CURRENCY_SYMBOL}{y:,.0f}")


def _savefig(fig: plt.Figure, filename: str) -> None:
    plt.tight_layout()
    fig.savefig(filename, bbox_inches="tight", facecolor=BG)
    plt.show()
    print(f"  Saved: {filename}")


def _clean_spines(ax) -> None:
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)


# ── Monthly income ────────────────────────────────────────────────────────────

def income_bar_chart(series: List[MonthlyIncome]) -> plt.Figure:
    labels  = [m.month for m in series]
    incomes = [m.income for m in series]
    fig, ax = plt.subplots(figsize=(10, 4.5))

    bars = ax.bar(labels, incomes, color=GAIN, width=0.6, zorder=3)
    ax.yaxis.set_major_formatter(_money)
    first, last = series[0], series[-1]
    ax.set_title(f"Projected Dividend Income  ·  {first.label} – {last.label}")
    _clean_spines(ax)

    peak = max(incomes) if incomes else 0
    for bar, income in zip(bars, incomes):
        if income:
            ax.text(bar.get_x() + bar.get_width() / 2, income + peak * 0.01,
                    f"{CURRENCY_SYMBOL}{income:,.0f}", ha="center", va="bottom",
                    fontsize=7.5, color=MUTED)
    return fig


def show_income_chart(series: List[MonthlyIncome]) -> None:
    _savefig(income_bar_chart(series), "dividend_income.png")


# ── Sector donut ──────────────────────────────────────────────────────────────

def sector_donut_chart(holdings: List[Holding]) -> plt.Figure:
    alloc   = sector_allocation(holdings)
    labels  = list(alloc["Sector"])
    values  = list(alloc["Value"])
    colours = [PALETTE[i % len(PALETTE)] for i in range(len(values))]

    fig, ax = plt.subplots(figsize=(7, 6))
    wedges, _, autotexts = ax.pie(
        values,
        labels=None,
        colors=colours,
        autopct=lambda p: f"{p:.1f}%" if p > 4 else "",
        startangle=90,
        wedgeprops={"width": 0.55, "edgecolor": BG, "linewidth": 2},
        pctdistance=0.78,
    )
    for at in autotexts:
        at.set_fontsize(8)
        at.set_color(TEXT)

    ax.text(0, 0.08, "Total", ha="center", va="center", fontsize=9, color=MUTED)
    ax.text(0, -0.08, f"{CURRENCY_SYMBOL}{sum(values):,.0f}", ha="center", va="center",
            fontsize=14, fontweight="bold", color=TEXT)
    ax.legend(
        wedges, [f"{l}  {CURRENCY_SYMBOL}{v:,.0f}" for l, v in zip(labels, values)],
        loc="lower center", bbox_to_anchor=(0.5, -0.08),
        ncol=min(3, max(len(labels), 1)), frameon=True,
    )
    ax.set_title("Sector Allocation")
    return fig


def show_sector_chart(holdings: List[Holding]) -> None:
    if not holdings or not sum(h.market_value for h in holdings):
        print("No holdings with a market value to chart.")
        return
    _savefig(sector_donut_chart(holdings), "sector_allocation.png")


# ── Cost basis vs market value ────────────────────────────────────────────────

def value_bar_chart(holdings: List[Holding]) -> plt.Figure:
    symbols = [h.symbol for h in holdings]
    values  = [h.market_value for h in holdings]
    costs   = [h.cost_basis for h in holdings]

    x     = np.arange(len(symbols))
    width = 0.38
    fig, ax = plt.subplots(figsize=(max(6, len(symbols) * 1.6), 5))

    ax.bar(x - width / 2, costs, width, label="Cost Basis",
           color=BLUE, alpha=0.75, zorder=3)
    ax.bar(x + width / 2, values, width, label="Market Value",
           color=[GAIN if v >= c else LOSS for v, c in zip(values, costs)],
           alpha=0.9, zorder=3)

    ax.set_xticks(x)
    ax.set_xticklabels(symbols)
    ax.yaxis.set_major_formatter(_money)
    ax.set_title("Cost Basis vs Market Value")
    _clean_spines(ax)
    ax.legend()
    return fig


def show_value_chart(holdings: List[Holding]) -> None:
    if not holdings:
        print("No holdings to chart.")
        return
    _savefig(value_bar_chart(holdings), "portfolio_value.png")
