"""
divtracker/portfolio.py  —  Portfolios and their holdings

PortfolioBook owns the in-memory list of portfolios and delegates all
persistence to a Repository (divtracker.db). Holding operations always act
on the selected portfolio. There is always at least one portfolio: a default
one is created on first use and the last one can never be deleted.

Changes are built on a copy of the portfolio and only replace the in-memory
one once the repository has accepted them, so a failed write leaves the book
exactly as it was.
"""

import logging
import uuid
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from divtracker import config
from divtracker.db import Repository
from divtracker.income import apply_quotes
from divtracker.models import DividendPayment, Holding, Portfolio

logger = logging.getLogger(__name__)


class PortfolioError(Exception):
    """Raised for operations on unknown portfolios, holdings or dividends."""


def _new_id() -> str:
    return uuid.uuid4().hex[:9]


def _sorted_history(history: List[DividendPayment]) -> List[DividendPayment]:
    # most recent first, as fetch_dividend_history returns them
    return sorted(history, key=lambda p: (p.ex_date, p.payment_date), reverse=True)


class PortfolioBook:
    def __init__(self, repository: Repository):
        self._repo       = repository
        self.portfolios: List[Portfolio] = []
        self.selected_id: str = ""
        self._load()

    def _load(self) -> None:
        self.portfolios = self._repo.get_portfolios()
        if not self.portfolios:
            default = Portfolio(id=_new_id(), name=config.DEFAULT_PORTFOLIO_NAME)
            self._repo.save_portfolio(default)
            self.portfolios = [default]
            logger.info("Created default portfolio %s", default.id)

        selected = self._repo.get_selected_id()
        if selected not in {p.id for p in self.portfolios}:
            selected = self.portfolios[0].id
            self._repo.set_selected_id(selected)
        self.selected_id = selected

    @property
    def repository(self) -> Repository:
        return self._repo

    def _find(self, portfolio_id: str) -> Portfolio:
        for p in self.portfolios:
            if p.id == portfolio_id:
                return p
        raise PortfolioError(f"Portfolio '{portfolio_id}' not found.")

    def _draft(self, portfolio: Portfolio) -> Portfolio:
        return replace(portfolio, holdings=dict(portfolio.holdings))

    def _commit(self, draft: Portfolio) -> None:
        """Persist a modified copy, then swap it in for the portfolio it came from."""
        self._repo.save_portfolio(draft)
        for i, p in enumerate(self.portfolios):
            if p.id == draft.id:
                self.portfolios[i] = draft
                return
        self.portfolios.append(draft)

    # ── Portfolios ────────────────────────────────────────────────────────────

    @property
    def selected(self) -> Portfolio:
        return self._find(self.selected_id)

    def select(self, portfolio_id: str) -> Portfolio:
        portfolio = self._find(portfolio_id)
        self._repo.set_selected_id(portfolio.id)
        self.selected_id = portfolio.id
        return portfolio

    def create_portfolio(self, name: str) -> Portfolio:
        portfolio = Portfolio(id=_new_id(), name=name.strip())
        self._commit(portfolio)
        self.select(portfolio.id)
        logger.info("Created portfolio '%s' (%s)", portfolio.name, portfolio.id)
        return portfolio

    def rename_portfolio(self, portfolio_id: str, name: str) -> None:
        draft = self._draft(self._find(portfolio_id))
        draft.name = name.strip()
        self._commit(draft)

    def delete_portfolio(self, portfolio_id: str) -> None:
        portfolio = self._find(portfolio_id)
        if len(self.portfolios) == 1:
            raise PortfolioError("Cannot delete the only portfolio.")
        self._repo.delete_portfolio(portfolio.id)
        self.portfolios.remove(portfolio)
        if self.selected_id == portfolio.id:
            self.select(self.portfolios[0].id)
        logger.info("Deleted portfolio '%s'", portfolio.name)

    # ── Holdings (selected portfolio) ─────────────────────────────────────────

    def get_holdings(self) -> List[Holding]:
        return self.selected.all_holdings()

    def get_holding(self, symbol: str) -> Optional[Holding]:
        return self.selected.holdings.get(symbol.strip().upper())

    def _require_holding(self, symbol: str) -> Holding:
        holding = self.get_holding(symbol)
        if holding is None:
            raise PortfolioError(f"Holding '{symbol.strip().upper()}' not found.")
        return holding

    def save_holding(self, holding: Holding) -> None:
        """Insert, or overwrite the existing holding with the same symbol."""
        self.save_holdings([holding])

    def save_holdings(self, holdings: List[Holding]) -> None:
        draft = self._draft(self.selected)
        for h in holdings:
            draft.add(h)
        self._commit(draft)

    def edit_holding(self, current_symbol: str, **changes) -> Holding:
        """
        Apply field changes to a holding. Changing shares or avg_price without
        an explicit cost_basis recomputes the cost basis. Passing `symbol`
        renames the holding.
        """
        current = self._require_holding(current_symbol)
        if ("shares" in changes or "avg_price" in changes) and "cost_basis" not in changes:
            changes["cost_basis"] = None
        updated = replace(current, **changes)

        draft = self._draft(self.selected)
        if updated.symbol != current.symbol:
            draft.remove(current.symbol)
        draft.add(updated)
        self._commit(draft)
        return updated

    def remove_holding(self, symbol: str) -> bool:
        draft = self._draft(self.selected)
        if not draft.remove(symbol):
            return False
        self._commit(draft)
        return True

    def update_prices(self, quotes: Dict[str, Optional[float]]) -> List[Holding]:
        """Store fresh quotes on the selected portfolio's holdings."""
        updated = apply_quotes(self.get_holdings(), quotes)
        self.save_holdings(updated)
        return updated

    # ── Dividend records (selected portfolio) ─────────────────────────────────

    def dividend_records(self) -> List[Tuple[str, DividendPayment]]:
        """Every recorded payment as (symbol, payment), most recent first."""
        records = [(h.symbol, p) for h in self.get_holdings() for p in h.dividend_history]
        return sorted(records, key=lambda r: (r[1].payment_date, r[1].ex_date, r[0]),
                      reverse=True)

    def add_dividend(self, symbol: str, payment: DividendPayment) -> Holding:
        holding = self._require_holding(symbol)
        updated = replace(holding,
                          dividend_history=_sorted_history(holding.dividend_history + [payment]))
        self.save_holding(updated)
        return updated

    def add_dividends(self, records: List[Tuple[str, DividendPayment]]) -> List[str]:
        """
        Add many payments in one write. Records for symbols that are not held
        are skipped and reported.
        """
        draft   = self._draft(self.selected)
        skipped = []
        for symbol, payment in records:
            key     = symbol.strip().upper()
            holding = draft.holdings.get(key)
            if holding is None:
                skipped.append(f"No holding for '{key}', dividend skipped.")
                continue
            draft.holdings[key] = replace(
                holding, dividend_history=_sorted_history(holding.dividend_history + [payment]))
        self._commit(draft)
        return skipped

    def edit_dividend(self, symbol: str, index: int, **changes) -> DividendPayment:
        """Change fields of the payment at `index` in the holding's history."""
        holding = self._require_holding(symbol)
        if not 0 <= index < len(holding.dividend_history):
            raise PortfolioError(f"{holding.symbol} has no dividend #{index + 1}.")
        history = list(holding.dividend_history)
        history[index] = replace(history[index], **changes)
        edited = history[index]
        self.save_holding(replace(holding, dividend_history=_sorted_history(history)))
        return edited

    def remove_dividend(self, symbol: str, index: int) -> DividendPayment:
        holding = self._require_holding(symbol)
        if not 0 <= index < len(holding.dividend_history):
            raise PortfolioError(f"{holding.symbol} has no dividend #{index + 1}.")
        history = list(holding.dividend_history)
        removed = history.pop(index)
        self.save_holding(replace(holding, dividend_history=history))
        return removed
