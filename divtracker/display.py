"""
divtracker/display.py
=====================
Renders holdings, the income projection and the portfolio summary in the
terminal using `rich`. Display logic only; every number comes from
divtracker.models / divtracker.income.
"""

from typing import List, Tuple

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from divtracker.config import CURRENCY_SYMBOL
from divtracker.income import estimate_next_dates, payment_total, yet_to_receive
from divtracker.models import (
    EX_DATE, DividendPayment, Holding, MonthlyIncome, PortfolioSummary, UpcomingPayout,
)

console = Console()

# ── Palette ─────────────────────────────────────────────────────────────────
GAIN   = "green"
LOSS   = "red"
MUTED  = "grey62"
ACCENT = "steel_blue1"
HEAD   = "bold white"

BAR_WIDTH = 28


# ── Formatters ───────────────────────────────────────────────────────────────

def _colour(value: float, text: str) -> str:
    if value > 0:  return f"[{GAIN}]{text}[/{GAIN}]"
    if value < 0:  return f"[{LOSS}]{text}[/{LOSS}]"
    return f"[{MUTED}]{text}[/{MUTED}]"

def _cur(value: float) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}{CURRENCY_SYMBOL}{abs(value):,.2f}"

def _pct(value: float) -> str:
    sign = "+" if value > 0 else ""
    return f"{sign}{value:.2f}%"

def _arrow(value: float) -> str:
    if value > 0:  return f"[{GAIN}]▲[/{GAIN}]"
    if value < 0:  return f"[{LOSS}]▼[/{LOSS}]"
    return f"[{MUTED}]─[/{MUTED}]"

def _table(**kwargs) -> Table:
    return Table(box=box.SIMPLE, show_header=True, header_style=f"bold {ACCENT}",
                 show_edge=False, pad_edge=True, **kwargs)


# ── Holdings ─────────────────────────────────────────────────────────────────

def print_holdings(holdings: List[Holding], stale: frozenset = frozenset()) -> None:
    if not holdings:
        console.print(f"\n  [{MUTED}]No holdings yet. Press 2 to add your first position.[/{MUTED}]\n")
        return

    table = _table(row_styles=["", "on grey7"])
    table.add_column("",          width=2)
    table.add_column("Symbol",    style=HEAD, min_width=7)
    table.add_column("Sector",    style=MUTED, min_width=12)
    table.add_column("Shares",    justify="right", min_width=9)
    table.add_column("Avg Price", justify="right", style=MUTED)
    table.add_column("Price",     justify="right")
    table.add_column("Value",     justify="right", style=HEAD)
    table.add_column("Gain/Loss", justify="right")
    table.add_column("%",         justify="right")
    table.add_column("Yield",     justify="right")
    table.add_column("Freq",      style=MUTED)
    table.add_column("Income/yr", justify="right")

    for h in holdings:
        price = _cur(h.current_price)
        if h.symbol in stale:
            price = f"[{MUTED}]{price}*[/{MUTED}]"
        table.add_row(
            _arrow(h.gain_loss),
            h.symbol,
            h.sector,
            f"{h.shares:,.4f}",
            _cur(h.avg_price),
            price,
            _cur(h.market_value),
            _colour(h.gain_loss, _cur(h.gain_loss)),
            _colour(h.gain_loss_percent, _pct(h.gain_loss_percent)),
            f"{h.dividend_yield:.2f}%",
            h.frequency,
            _cur(h.annual_dividend_income),
        )

    console.print()
    console.print(table)
    if stale:
        console.print(f"  [{MUTED}]* last known price, live quote unavailable[/{MUTED}]")


# ── Summary ──────────────────────────────────────────────────────────────────

def print_summary(summary: PortfolioSummary) -> None:
    s = summary
    lines = [
        f"[{MUTED}]Value[/{MUTED}]          [bold white]{_cur(s.total_portfolio_value)}[/bold white]",
        f"[{MUTED}]Cost Basis[/{MUTED}]     [white]{_cur(s.total_cost_basis)}[/white]",
        f"[{MUTED}]Gain/Loss[/{MUTED}]      {_colour(s.total_gain_loss, _cur(s.total_gain_loss))}"
        f"  {_colour(s.gain_loss_percent, _pct(s.gain_loss_percent))}",
        "",
        f"[{MUTED}]Annual Income[/{MUTED}]  [bold white]{_cur(s.total_annual_income)}[/bold white]",
        f"[{MUTED}]Per Quarter[/{MUTED}]    [white]{_cur(s.quarterly_average)}[/white]",
        f"[{MUTED}]Per Month[/{MUTED}]      [white]{_cur(s.monthly_average)}[/white]",
        f"[{MUTED}]Per Week[/{MUTED}]       [white]{_cur(s.weekly_average)}[/white]",
        f"[{MUTED}]Per Day[/{MUTED}]        [white]{_cur(s.daily_average)}[/white]",
        "",
        f"[{MUTED}]Average Yield[/{MUTED}]  [white]{s.average_yield:.2f}%[/white]",
        f"[{MUTED}]Yield on Cost[/{MUTED}]  [white]{s.yield_on_cost:.2f}%[/white]",
    ]
    console.print(Panel("\n".join(lines), title="[bold white]Summary[/bold white]",
                        border_style=ACCENT, padding=(1, 2)))


# ── Income projection ────────────────────────────────────────────────────────

def print_income_projection(series: List[MonthlyIncome]) -> None:
    peak  = max((m.income for m in series), default=0.0)
    table = _table()
    table.add_column("Month",  min_width=9)
    table.add_column("Income", justify="right", min_width=11, style=HEAD)
    table.add_column("",       min_width=BAR_WIDTH)

    for m in series:
        fill = round(m.income / peak * BAR_WIDTH) if peak else 0
        bar  = (f"[{ACCENT}]{'█' * fill}[/{ACCENT}]"
                f"[{MUTED}]{'░' * (BAR_WIDTH - fill)}[/{MUTED}]")
        table.add_row(m.label, _cur(m.income), bar)

    console.print()
    console.print(table)
    total = sum(m.income for m in series)
    console.print(f"  [{MUTED}]Total[/{MUTED}]  [bold white]{_cur(total)}[/bold white]"
                  f"     [{MUTED}]Yet to receive[/{MUTED}]  [white]{_cur(yet_to_receive(series))}[/white]\n")


# ── Holding detail ───────────────────────────────────────────────────────────

def print_holding_detail(holding: Holding) -> None:
    h = holding
    next_ex, next_pay = estimate_next_dates(h)
    title = f"[bold white]{h.symbol}[/bold white]  [{MUTED}]{h.sector}[/{MUTED}]"
    lines = [
        f"[{MUTED}]Shares[/{MUTED}]          [white]{h.shares:,.6f}[/white]",
        f"[{MUTED}]Avg Price[/{MUTED}]       [white]{_cur(h.avg_price)}[/white]",
        f"[{MUTED}]Current Price[/{MUTED}]   [white]{_cur(h.current_price)}[/white]",
        f"[{MUTED}]Cost Basis[/{MUTED}]      [white]{_cur(h.cost_basis)}[/white]",
        f"[{MUTED}]Market Value[/{MUTED}]    [white]{_cur(h.market_value)}[/white]",
        f"[{MUTED}]Gain/Loss[/{MUTED}]       {_colour(h.gain_loss, _cur(h.gain_loss))}"
        f"  {_colour(h.gain_loss_percent, _pct(h.gain_loss_percent))}",
        f"[{MUTED}]Yield[/{MUTED}]           [white]{h.dividend_yield:.2f}%  ({h.frequency})[/white]",
        f"[{MUTED}]Annual Income[/{MUTED}]   [white]{_cur(h.annual_dividend_income)}[/white]",
    ]
    if next_ex:
        lines.append(f"[{MUTED}]Next Ex / Pay[/{MUTED}]   [white]{next_ex}  /  {next_pay}[/white]")
    console.print()
    console.print(Panel("\n".join(lines), title=title, border_style=ACCENT, padding=(1, 2)))

    if not h.dividend_history:
        return
    t_table = _table()
    t_table.add_column("Ex-Date",  style=MUTED)
    t_table.add_column("Paid",     style=MUTED)
    t_table.add_column("Per Share", justify="right")
    t_table.add_column("Received",  justify="right", style=HEAD)
    for p in h.dividend_history:
        t_table.add_row(p.ex_date, p.payment_date, _cur(p.amount), _cur(p.amount * h.shares))
    console.print(t_table)
    console.print()


# ── Sector allocation ────────────────────────────────────────────────────────

def print_sector_allocation(allocation) -> None:
    """`allocation` is the DataFrame from analysis.sector_allocation."""
    if allocation.empty:
        return
    table = _table()
    table.add_column("Sector", min_width=14)
    table.add_column("Value",  justify="right", min_width=13)
    table.add_column("",       min_width=36)
    for row in allocation.itertuples(index=False):
        pct  = row[2]
        fill = round(pct / 100 * BAR_WIDTH)
        bar  = (f"[{ACCENT}]{'█' * fill}[/{ACCENT}]"
                f"[{MUTED}]{'░' * (BAR_WIDTH - fill)}[/{MUTED}]"
                f"  [{MUTED}]{pct:.1f}%[/{MUTED}]")
        table.add_row(row[0], _cur(row[1]), bar)
    console.print(table)


# ── Dividend calendar ────────────────────────────────────────────────────────

def print_upcoming_payouts(payouts: List[UpcomingPayout]) -> None:
    if not payouts:
        console.print(f"[{MUTED}]No upcoming dividends in this period.[/{MUTED}]")
        return
    table = _table()
    table.add_column("Date",      min_width=12)
    table.add_column("Symbol",    style="bold cyan")
    table.add_column("Event",     style=MUTED)
    table.add_column("Per Share", justify="right")
    table.add_column("Shares",    justify="right", style=MUTED)
    table.add_column("Total",     justify="right", style=HEAD)
    for p in payouts:
        event = "Ex-dividend" if p.kind == EX_DATE else "Payment"
        table.add_row(p.day.strftime("%a %d %b %Y"), p.symbol, event,
                      _cur(p.amount_per_share), f"{p.shares:,.4g}", _cur(p.total_amount))
    console.print()
    console.print(table)
    console.print(f"  [{MUTED}]Expected payments[/{MUTED}]  "
                  f"[bold white]{_cur(payment_total(payouts))}[/bold white]\n")


# ── Dividend records ─────────────────────────────────────────────────────────

def print_dividend_records(records: List[Tuple[str, DividendPayment]]) -> None:
    if not records:
        console.print(f"[{MUTED}]No dividends recorded.[/{MUTED}]")
        return
    table = _table()
    table.add_column("#",         style=MUTED, justify="right")
    table.add_column("Symbol",    style="bold cyan")
    table.add_column("Ex-Date",   style=MUTED)
    table.add_column("Paid")
    table.add_column("Per Share", justify="right", style=HEAD)
    for i, (symbol, p) in enumerate(records, 1):
        table.add_row(str(i), symbol, p.ex_date, p.payment_date, _cur(p.amount))
    console.print(table)
