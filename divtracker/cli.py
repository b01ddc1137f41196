"""
divtracker/cli.py
=================
The interactive command-line interface.

Every screen follows the same order: refresh quotes (falling back to the
last known price), recompute from the current holdings, render. Nothing
computed is kept between screens.
"""

import logging
from typing import List

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Confirm, Prompt

from divtracker import analysis, charts, config, display, exporter
from divtracker.calculator import drip_projection
from divtracker.db import Repository, open_repository
from divtracker.income import (
    monthly_income_series, payouts_in_month, portfolio_summary, upcoming_payouts,
)
from divtracker.models import PAYOUT_FREQUENCIES, DividendPayment, Holding
from divtracker.portfolio import PortfolioBook, PortfolioError
from divtracker.prices import PriceFetcher, fetch_dividend_history
from divtracker.validation import (
    parse_date, to_number, validate_dividend, validate_holding, validate_name,
    validate_symbol,
)

console = Console()
logger  = logging.getLogger(__name__)


def setup_logging(level: str = config.LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    # yfinance is chatty at INFO
    logging.getLogger("yfinance").setLevel(logging.WARNING)


class CLI:
    """Main command-line interface class."""

    def __init__(self, book: PortfolioBook = None, fetcher: PriceFetcher = None,
                 repository: Repository = None):
        # book and fetcher always share one store
        if book is None:
            book = PortfolioBook(repository or open_repository())
        if fetcher is None:
            fetcher = PriceFetcher(repository=book.repository)
        self.book    = book
        self.fetcher = fetcher

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    def _refreshed_holdings(self) -> List[Holding]:
        """Apply live quotes to the selected portfolio and return its holdings."""
        holdings = self.book.get_holdings()
        if not holdings:
            return holdings
        console.print("[dim]Fetching live prices...[/dim]")
        quotes = self.fetcher.get_prices([h.symbol for h in holdings])
        return self.book.update_prices(quotes)

    def _prompt_number(self, prompt: str, default: float = None,
                       allow_zero: bool = False) -> float:
        """Keep asking until the user enters a usable number."""
        while True:
            raw = Prompt.ask(prompt, default=None if default is None else str(default))
            value = to_number(raw)
            if value < 0 or (value == 0 and not allow_zero):
                console.print("[red]Please enter a positive number.[/red]")
                continue
            return value

    def _prompt_symbol(self, prompt: str = "Symbol (e.g. KO, O, JNJ)") -> str:
        while True:
            symbol = Prompt.ask(prompt).strip().upper()
            errors = validate_symbol(symbol)
            if not errors:
                return symbol
            for e in errors:
                console.print(f"[red]{e}[/red]")

    def _print_errors(self, errors: List[str]) -> None:
        for e in errors:
            console.print(f"[red]{e}[/red]")

    # -----------------------------------------------------------------------
    # Menu actions
    # -----------------------------------------------------------------------

    def view_portfolio(self):
        holdings = self._refreshed_holdings()
        stale = frozenset(h.symbol for h in holdings if self.fetcher.is_stale(h.symbol))
        console.print(f"\n[steel_blue1]── {self.book.selected.name} ──[/steel_blue1]")
        display.print_holdings(holdings, stale)
        if holdings:
            display.print_summary(portfolio_summary(holdings))

    def add_holding(self):
        """Guided flow to add a holding (an existing symbol is overwritten)."""
        console.print("\n[steel_blue1]── Add Holding ──[/steel_blue1]")
        symbol = self._prompt_symbol()
        if self.book.get_holding(symbol) and not Confirm.ask(
                f"[yellow]{symbol} already exists. Replace it?[/yellow]"):
            return

        shares    = self._prompt_number("Shares")
        avg_price = self._prompt_number("Average price per share")
        live      = self.fetcher.get_quote(symbol)
        current   = self._prompt_number("Current price", default=live or avg_price)
        yld       = self._prompt_number("Dividend yield % (e.g. 3.5)", default=0.0,
                                        allow_zero=True)
        sector    = Prompt.ask("Sector", default="Unknown")
        frequency = Prompt.ask("Payout frequency", choices=list(PAYOUT_FREQUENCIES),
                               default="quarterly")

        errors = validate_holding(shares, avg_price, current, yld)
        if errors:
            self._print_errors(errors)
            return

        self.book.save_holding(Holding(
            symbol=symbol, shares=shares, avg_price=avg_price,
            current_price=current, dividend_yield=yld, sector=sector,
            payout_frequency=frequency,
            dividend_history=fetch_dividend_history(symbol),
        ))
        console.print(f"[green]✓ {symbol} saved[/green]")

    def edit_holding(self):
        holding = self._pick_holding()
        if holding is None:
            return
        shares    = self._prompt_number("Shares", default=holding.shares)
        avg_price = self._prompt_number("Average price", default=holding.avg_price)
        yld       = self._prompt_number("Dividend yield %", default=holding.dividend_yield,
                                        allow_zero=True)
        sector    = Prompt.ask("Sector", default=holding.sector)
        frequency = Prompt.ask("Payout frequency", choices=list(PAYOUT_FREQUENCIES),
                               default=holding.frequency)
        errors = validate_holding(shares, avg_price, holding.current_price, yld)
        if errors:
            self._print_errors(errors)
            return
        self.book.edit_holding(holding.symbol, shares=shares, avg_price=avg_price,
                               dividend_yield=yld, sector=sector,
                               payout_frequency=frequency)
        console.print(f"[green]✓ {holding.symbol} updated[/green]")

    def _pick_holding(self):
        holdings = self.book.get_holdings()
        if not holdings:
            console.print("[yellow]No holdings found.[/yellow]")
            return None
        console.print("\nAvailable symbols: " +
                      ", ".join(f"[cyan]{h.symbol}[/cyan]" for h in holdings))
        symbol  = Prompt.ask("Enter symbol").strip().upper()
        holding = self.book.get_holding(symbol)
        if holding is None:
            console.print(f"[red]Symbol '{symbol}' not found.[/red]")
        return holding

    def view_holding_detail(self):
        holding = self._pick_holding()
        if holding is None:
            return
        price = self.fetcher.get_quote(holding.symbol)
        display.print_holding_detail(holding.with_price(price))

    def remove_holding(self):
        symbol = Prompt.ask("Enter symbol to remove").strip().upper()
        if Confirm.ask(f"[red]Delete {symbol} from '{self.book.selected.name}'?[/red]"):
            if self.book.remove_holding(symbol):
                console.print(f"[green]✓ {symbol} removed.[/green]")
            else:
                console.print(f"[red]'{symbol}' not found.[/red]")

    def show_income(self):
        holdings = self._refreshed_holdings()
        display.print_income_projection(monthly_income_series(holdings))

    def show_charts(self):
        holdings = self._refreshed_holdings()
        if not holdings:
            console.print("[yellow]No holdings to chart.[/yellow]")
            return
        console.print("\n[steel_blue1]── Charts ──[/steel_blue1]")
        console.print("  1. Monthly income (bar)")
        console.print("  2. Sector allocation (donut)")
        console.print("  3. Cost basis vs market value (bar)")
        choice = Prompt.ask("Choose", choices=["1", "2", "3"])
        if choice == "1":
            charts.show_income_chart(monthly_income_series(holdings))
        elif choice == "2":
            charts.show_sector_chart(holdings)
        else:
            charts.show_value_chart(holdings)

    def show_analytics(self):
        holdings = self._refreshed_holdings()
        if not holdings:
            console.print("[yellow]No holdings found.[/yellow]")
            return
        console.print("\n[steel_blue1]── Sector Allocation ──[/steel_blue1]")
        display.print_sector_allocation(analysis.sector_allocation(holdings))
        best  = analysis.top_performers(holdings, 3)
        worst = analysis.worst_performers(holdings, 3)
        console.print("[steel_blue1]── Best ──[/steel_blue1]  " +
                      "  ".join(f"{h.symbol} {h.gain_loss_percent:+.2f}%" for h in best))
        console.print("[steel_blue1]── Worst ──[/steel_blue1] " +
                      "  ".join(f"{h.symbol} {h.gain_loss_percent:+.2f}%" for h in worst))
        console.print()

    def drip_calculator(self):
        console.print("\n[steel_blue1]── DRIP Calculator ──[/steel_blue1]")
        try:
            result = drip_projection(
                starting=to_number(Prompt.ask("Starting amount", default="10000")),
                monthly_contribution=to_number(Prompt.ask("Monthly contribution", default="0")),
                yield_pct=to_number(Prompt.ask("Dividend yield %", default="4")),
                dividend_growth_pct=to_number(Prompt.ask("Dividend growth % / yr", default="0")),
                price_growth_pct=to_number(Prompt.ask("Price growth % / yr", default="0")),
                years=int(to_number(Prompt.ask("Years", default="10"))),
            )
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            return
        sym = config.CURRENCY_SYMBOL
        console.print(Panel(
            f"Final value          [bold white]{sym}{result.final_value:,.2f}[/bold white]\n"
            f"Dividends received   {sym}{result.total_dividends:,.2f}\n"
            f"Total contributed    {sym}{result.total_contributions:,.2f}\n"
            f"Growth               {sym}{result.total_growth:,.2f}",
            border_style="steel_blue1", padding=(1, 2)))

    def show_calendar(self):
        holdings = self._refreshed_holdings()
        payouts  = upcoming_payouts(holdings)
        month    = Prompt.ask("Month (YYYY-MM, blank for the next 12 months)", default="").strip()
        if month:
            parsed = parse_date(f"{month}-01")
            if parsed is None:
                console.print(f"[red]'{month}' is not a month (use YYYY-MM).[/red]")
                return
            year, mon = int(parsed[:4]), int(parsed[5:7])
            payouts = payouts_in_month(payouts, year, mon)
        console.print("\n[steel_blue1]── Dividend Calendar ──[/steel_blue1]")
        display.print_upcoming_payouts(payouts)

    def _prompt_dividend(self, current: DividendPayment = None):
        """Ask for amount and dates. Returns a DividendPayment or None if invalid."""
        amount = to_number(Prompt.ask("Amount per share",
                                      default=None if current is None else str(current.amount)))
        paid   = Prompt.ask("Payment date (YYYY-MM-DD)",
                            default=None if current is None else current.payment_date)
        ex     = Prompt.ask("Ex-date (blank = payment date)",
                            default="" if current is None else current.ex_date)
        errors = validate_dividend(amount, paid, ex)
        if errors:
            self._print_errors(errors)
            return None
        paid = parse_date(paid)
        return DividendPayment(ex_date=parse_date(ex) or paid, payment_date=paid, amount=amount)

    def _pick_dividend(self, records):
        index = int(self._prompt_number("Number")) - 1
        if not 0 <= index < len(records):
            console.print("[red]No such dividend.[/red]")
            return None, None
        symbol, payment = records[index]
        history = self.book.get_holding(symbol).dividend_history
        return symbol, history.index(payment)

    def manage_dividends(self):
        console.print("\n[steel_blue1]── Dividends Received ──[/steel_blue1]")
        records = self.book.dividend_records()
        display.print_dividend_records(records)
        console.print("\n  a = add   e = edit   d = delete   i = import CSV   x = export CSV   b = back")
        choice = Prompt.ask("Choose", choices=["a", "e", "d", "i", "x", "b"], default="b")
        try:
            if choice == "a":
                holding = self._pick_holding()
                if holding is None:
                    return
                payment = self._prompt_dividend()
                if payment:
                    self.book.add_dividend(holding.symbol, payment)
                    console.print(f"[green]✓ Dividend added to {holding.symbol}[/green]")
            elif choice in ("e", "d") and records:
                symbol, index = self._pick_dividend(records)
                if symbol is None:
                    return
                if choice == "e":
                    current = self.book.get_holding(symbol).dividend_history[index]
                    payment = self._prompt_dividend(current)
                    if payment:
                        self.book.edit_dividend(symbol, index, ex_date=payment.ex_date,
                                                payment_date=payment.payment_date,
                                                amount=payment.amount)
                        console.print("[green]✓ Dividend updated[/green]")
                elif Confirm.ask(f"[red]Delete this {symbol} dividend?[/red]"):
                    self.book.remove_dividend(symbol, index)
                    console.print("[green]✓ Dividend deleted[/green]")
            elif choice == "i":
                path = Prompt.ask("CSV file to import (symbol, amount, date)")
                try:
                    imported, errors = exporter.import_dividends_csv(path)
                except OSError as e:
                    console.print(f"[red]Could not read {path}: {e}[/red]")
                    return
                self._print_errors(errors + self.book.add_dividends(imported))
                console.print(f"[green]✓ Read {len(imported)} dividend records[/green]")
            elif choice == "x":
                if not records:
                    console.print("[yellow]No dividends to export.[/yellow]")
                    return
                fname = exporter.export_dividends_to_csv(records)
                console.print(f"[green]✓ CSV saved: {fname}[/green]")
        except PortfolioError as e:
            console.print(f"[red]{e}[/red]")

    def import_data(self):
        path = Prompt.ask("CSV file to import")
        try:
            holdings, errors = exporter.import_from_csv(path)
        except OSError as e:
            console.print(f"[red]Could not read {path}: {e}[/red]")
            return
        self._print_errors(errors)
        if holdings:
            self.book.save_holdings(holdings)
        console.print(f"[green]✓ Imported {len(holdings)} holdings[/green]")

    def export_data(self):
        holdings = self.book.get_holdings()
        if not holdings:
            console.print("[yellow]No holdings to export.[/yellow]")
            return
        console.print("\n  1. Export to Excel (.xlsx)")
        console.print("  2. Export to CSV")
        console.print("  3. Both")
        choice = Prompt.ask("Choose", choices=["1", "2", "3"])
        if choice in ("1", "3"):
            fname = exporter.export_to_excel(holdings)
            console.print(f"[green]✓ Excel saved: {fname}[/green]")
        if choice in ("2", "3"):
            fname = exporter.export_to_csv(holdings)
            console.print(f"[green]✓ CSV saved:   {fname}[/green]")

    def refresh_prices(self):
        self.fetcher.clear_cache()
        holdings = self._refreshed_holdings()
        console.print(f"[green]✓ Refreshed {len(holdings)} prices.[/green]")

    def manage_portfolios(self):
        console.print("\n[steel_blue1]── Portfolios ──[/steel_blue1]")
        for i, p in enumerate(self.book.portfolios, 1):
            mark = "[green]●[/green]" if p.id == self.book.selected_id else " "
            console.print(f"  {mark} {i}. {p.name}  [dim]({len(p.holdings)} holdings)[/dim]")
        console.print("\n  s = select   c = create   r = rename   d = delete   b = back")
        choice = Prompt.ask("Choose", choices=["s", "c", "r", "d", "b"], default="b")
        if choice == "b":
            return
        if choice == "c":
            name   = Prompt.ask("Name")
            errors = validate_name(name)
            if errors:
                self._print_errors(errors)
                return
            self.book.create_portfolio(name)
            return

        index = int(self._prompt_number("Number")) - 1
        if not 0 <= index < len(self.book.portfolios):
            console.print("[red]No such portfolio.[/red]")
            return
        target = self.book.portfolios[index]
        try:
            if choice == "s":
                self.book.select(target.id)
            elif choice == "r":
                name = Prompt.ask("New name", default=target.name)
                errors = validate_name(name)
                if errors:
                    self._print_errors(errors)
                    return
                self.book.rename_portfolio(target.id, name)
            elif Confirm.ask(f"[red]Delete '{target.name}' and all its holdings?[/red]"):
                self.book.delete_portfolio(target.id)
        except PortfolioError as e:
            console.print(f"[red]{e}[/red]")

    # -----------------------------------------------------------------------
    # Main loop
    # -----------------------------------------------------------------------

    MENU = """
[grey39]┌─────────────────────────────────┐[/grey39]
[grey39]│[/grey39]  [steel_blue1]Dividend Tracker[/steel_blue1]                [grey39]│[/grey39]
[grey39]├─────────────────────────────────┤[/grey39]
[grey39]│[/grey39]  [white]1[/white]  [grey62]View portfolio[/grey62]              [grey39]│[/grey39]
[grey39]│[/grey39]  [white]2[/white]  [grey62]Add holding[/grey62]                 [grey39]│[/grey39]
[grey39]│[/grey39]  [white]3[/white]  [grey62]Edit holding[/grey62]                [grey39]│[/grey39]
[grey39]│[/grey39]  [white]4[/white]  [grey62]View holding detail[/grey62]         [grey39]│[/grey39]
[grey39]│[/grey39]  [white]5[/white]  [grey62]Income projection[/grey62]           [grey39]│[/grey39]
[grey39]│[/grey39]  [white]6[/white]  [grey62]Charts[/grey62]                      [grey39]│[/grey39]
[grey39]│[/grey39]  [white]7[/white]  [grey62]Sectors & performers[/grey62]        [grey39]│[/grey39]
[grey39]│[/grey39]  [white]8[/white]  [grey62]DRIP calculator[/grey62]             [grey39]│[/grey39]
[grey39]│[/grey39]  [white]9[/white]  [grey62]Remove a holding[/grey62]            [grey39]│[/grey39]
[grey39]│[/grey39]  [white]i[/white]  [grey62]Import CSV[/grey62]                  [grey39]│[/grey39]
[grey39]│[/grey39]  [white]e[/white]  [grey62]Export  (Excel / CSV)[/grey62]       [grey39]│[/grey39]
[grey39]│[/grey39]  [white]r[/white]  [grey62]Refresh prices[/grey62]              [grey39]│[/grey39]
[grey39]│[/grey39]  [white]c[/white]  [grey62]Dividend calendar[/grey62]           [grey39]│[/grey39]
[grey39]│[/grey39]  [white]d[/white]  [grey62]Dividends received[/grey62]          [grey39]│[/grey39]
[grey39]│[/grey39]  [white]p[/white]  [grey62]Portfolios[/grey62]                  [grey39]│[/grey39]
[grey39]│[/grey39]  [white]q[/white]  [grey62]Quit[/grey62]                        [grey39]│[/grey39]
[grey39]└─────────────────────────────────┘[/grey39]"""

    def run(self):
        console.print(Panel(
            "[bold white]Dividend Tracker[/bold white]  [grey62]income projections · yfinance[/grey62]",
            border_style="grey39",
            padding=(0, 2),
        ))

        actions = {
            "1": self.view_portfolio,
            "2": self.add_holding,
            "3": self.edit_holding,
            "4": self.view_holding_detail,
            "5": self.show_income,
            "6": self.show_charts,
            "7": self.show_analytics,
            "8": self.drip_calculator,
            "9": self.remove_holding,
            "i": self.import_data,
            "e": self.export_data,
            "r": self.refresh_prices,
            "c": self.show_calendar,
            "d": self.manage_dividends,
            "p": self.manage_portfolios,
        }
        while True:
            console.print(self.MENU)
            choice = Prompt.ask("Choice", default="1").strip().lower()
            if choice == "q":
                console.print("[cyan]Goodbye! 👋[/cyan]")
                break
            action = actions.get(choice)
            if action is None:
                console.print("[red]Invalid choice. Please try again.[/red]")
                continue
            action()


def main():
    setup_logging()
    logger.debug("Storage backend: %s", config.STORAGE_BACKEND)
    CLI().run()
