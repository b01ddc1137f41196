"""
divtracker/db.py  —  Storage layer

Two interchangeable stores behind one Repository interface:

  SQLiteRepository        : single-file embedded database (default)
  JsonDocumentRepository  : every portfolio as one JSON document in a file,
                            the shape a remote document store would hold

The backend is picked once, at construction, from config.STORAGE_BACKEND
(see open_repository). Nothing above this layer branches on it.

SQLite schema
─────────────
  portfolios   : one row per portfolio (id, name, position)
  holdings     : one row per (portfolio, symbol), FK → portfolios.id
  dividends    : dividend history per holding, FK → holdings
  settings     : key/value, currently only the selected portfolio id
  price_cache  : last known price per symbol
"""

import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import asdict
from datetime import datetime
from typing import Dict, List, Optional

from divtracker import config
from divtracker.models import DividendPayment, Holding, Portfolio

logger = logging.getLogger(__name__)

# ── Schema ────────────────────────────────────────────────────────────────────

_SCHEMA = """
PRAGMA journal_mode = WAL;
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS portfolios (
    id       TEXT PRIMARY KEY,
    name     TEXT NOT NULL,
    position INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS holdings (
    portfolio_id     TEXT NOT NULL REFERENCES portfolios(id) ON DELETE CASCADE,
    symbol           TEXT NOT NULL,
    shares           REAL NOT NULL CHECK(shares >= 0),
    avg_price        REAL NOT NULL CHECK(avg_price >= 0),
    current_price    REAL NOT NULL CHECK(current_price >= 0),
    cost_basis       REAL NOT NULL,
    dividend_yield   REAL NOT NULL DEFAULT 0 CHECK(dividend_yield >= 0),
    sector           TEXT NOT NULL DEFAULT 'Unknown',
    payout_frequency TEXT NOT NULL DEFAULT 'quarterly',
    PRIMARY KEY (portfolio_id, symbol)
);

CREATE TABLE IF NOT EXISTS dividends (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    portfolio_id TEXT NOT NULL,
    symbol       TEXT NOT NULL,
    ex_date      TEXT NOT NULL,
    payment_date TEXT NOT NULL,
    amount       REAL NOT NULL,
    FOREIGN KEY (portfolio_id, symbol)
        REFERENCES holdings(portfolio_id, symbol) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_dividends_holding ON dividends(portfolio_id, symbol);

CREATE TABLE IF NOT EXISTS settings (
    key   TEXT PRIMARY KEY,
    value TEXT
);

CREATE TABLE IF NOT EXISTS price_cache (
    symbol     TEXT PRIMARY KEY,
    price      REAL NOT NULL,
    updated_at TEXT NOT NULL
);
"""


@contextmanager
def _tx(conn: sqlite3.Connection):
    """Context manager that commits on success, rolls back on error."""
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


# ── Interface ─────────────────────────────────────────────────────────────────

class Repository:
    """Everything PortfolioBook and PriceFetcher need from a store."""

    def get_portfolios(self) -> List[Portfolio]:
        raise NotImplementedError

    def save_portfolio(self, portfolio: Portfolio) -> None:
        raise NotImplementedError

    def delete_portfolio(self, portfolio_id: str) -> None:
        raise NotImplementedError

    def get_selected_id(self) -> Optional[str]:
        raise NotImplementedError

    def set_selected_id(self, portfolio_id: str) -> None:
        raise NotImplementedError

    def get_price_cache(self) -> Dict[str, float]:
        raise NotImplementedError

    def set_prices(self, prices: Dict[str, float]) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


# ── SQLite ────────────────────────────────────────────────────────────────────

class SQLiteRepository(Repository):

    def __init__(self, path: Optional[str] = None):
        self.path = path or config.DB_FILE
        # Streamlit reruns the script on worker threads
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(_SCHEMA)

    def _load_holdings(self, portfolio_id: str) -> Dict[str, Holding]:
        rows = self.conn.execute(
            "SELECT * FROM holdings WHERE portfolio_id = ? ORDER BY rowid",
            (portfolio_id,)
        ).fetchall()
        holdings = {}
        for row in rows:
            div_rows = self.conn.execute(
                "SELECT * FROM dividends WHERE portfolio_id = ? AND symbol = ? "
                "ORDER BY ex_date DESC, id",
                (portfolio_id, row["symbol"])
            ).fetchall()
            holdings[row["symbol"]] = Holding(
                symbol=row["symbol"],
                shares=row["shares"],
                avg_price=row["avg_price"],
                current_price=row["current_price"],
                cost_basis=row["cost_basis"],
                dividend_yield=row["dividend_yield"],
                sector=row["sector"],
                payout_frequency=row["payout_frequency"],
                dividend_history=[
                    DividendPayment(ex_date=d["ex_date"],
                                    payment_date=d["payment_date"],
                                    amount=d["amount"])
                    for d in div_rows
                ],
            )
        return holdings

    def get_portfolios(self) -> List[Portfolio]:
        rows = self.conn.execute(
            "SELECT * FROM portfolios ORDER BY position, rowid").fetchall()
        return [Portfolio(id=r["id"], name=r["name"],
                          holdings=self._load_holdings(r["id"]))
                for r in rows]

    def save_portfolio(self, portfolio: Portfolio) -> None:
        """Replace the portfolio row and all its holdings in one transaction."""
        with _tx(self.conn):
            position = self.conn.execute(
                "SELECT COALESCE(MAX(position), -1) + 1 FROM portfolios").fetchone()[0]
            self.conn.execute("""
                INSERT INTO portfolios (id, name, position) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET name = excluded.name
            """, (portfolio.id, portfolio.name, position))
            self.conn.execute("DELETE FROM holdings WHERE portfolio_id = ?",
                              (portfolio.id,))
            self.conn.executemany("""
                INSERT INTO holdings (portfolio_id, symbol, shares, avg_price,
                                      current_price, cost_basis, dividend_yield,
                                      sector, payout_frequency)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, [(portfolio.id, h.symbol, h.shares, h.avg_price, h.current_price,
                   h.cost_basis, h.dividend_yield, h.sector, h.payout_frequency)
                  for h in portfolio.holdings.values()])
            self.conn.executemany("""
                INSERT INTO dividends (portfolio_id, symbol, ex_date, payment_date, amount)
                VALUES (?, ?, ?, ?, ?)
            """, [(portfolio.id, h.symbol, d.ex_date, d.payment_date, d.amount)
                  for h in portfolio.holdings.values()
                  for d in h.dividend_history])
        logger.debug("Saved portfolio %s (%d holdings)",
                     portfolio.id, len(portfolio.holdings))

    def delete_portfolio(self, portfolio_id: str) -> None:
        with _tx(self.conn):
            self.conn.execute("DELETE FROM portfolios WHERE id = ?", (portfolio_id,))

    def get_selected_id(self) -> Optional[str]:
        row = self.conn.execute(
            "SELECT value FROM settings WHERE key = 'selected_portfolio'").fetchone()
        return row["value"] if row else None

    def set_selected_id(self, portfolio_id: str) -> None:
        with _tx(self.conn):
            self.conn.execute("""
                INSERT INTO settings (key, value) VALUES ('selected_portfolio', ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """, (portfolio_id,))

    def get_price_cache(self) -> Dict[str, float]:
        rows = self.conn.execute("SELECT symbol, price FROM price_cache").fetchall()
        return {r["symbol"]: r["price"] for r in rows}

    def set_prices(self, prices: Dict[str, float]) -> None:
        now = datetime.now().isoformat()
        with _tx(self.conn):
            self.conn.executemany("""
                INSERT INTO price_cache (symbol, price, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(symbol) DO UPDATE SET
                    price      = excluded.price,
                    updated_at = excluded.updated_at
            """, [(s, p, now) for s, p in prices.items()])

    def close(self) -> None:
        self.conn.close()


# ── JSON document store ───────────────────────────────────────────────────────

def _holding_from_dict(d: dict) -> Holding:
    history = [DividendPayment(**p) for p in d.get("dividend_history", [])]
    return Holding(**{**d, "dividend_history": history})


class JsonDocumentRepository(Repository):
    """
    Layout of the file:
        {"portfolios": [{"id", "name", "holdings": [...]}, ...],
         "selected_portfolio": "<id>",
         "price_cache": {"KO": 61.2, ...}}
    The whole document is rewritten on every change.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path or config.JSON_FILE
        self._doc = self._read()

    def _read(self) -> dict:
        empty = {"portfolios": [], "selected_portfolio": None, "price_cache": {}}
        if not os.path.exists(self.path):
            return empty
        try:
            with open(self.path) as f:
                doc = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Could not read %s, starting empty: %s", self.path, e)
            return empty
        if not isinstance(doc, dict):
            logger.warning("%s does not hold a portfolio document, starting empty", self.path)
            return empty
        return {**empty, **doc}

    def _write(self) -> None:
        tmp = f"{self.path}.tmp"
        with open(tmp, "w") as f:
            json.dump(self._doc, f, indent=2)
        os.replace(tmp, self.path)
        logger.debug("Wrote %s", self.path)

    def get_portfolios(self) -> List[Portfolio]:
        portfolios = []
        for p in self._doc["portfolios"]:
            holdings = [_holding_from_dict(h) for h in p.get("holdings", [])]
            portfolios.append(Portfolio(id=p["id"], name=p["name"],
                                        holdings={h.symbol: h for h in holdings}))
        return portfolios

    def save_portfolio(self, portfolio: Portfolio) -> None:
        doc = {"id": portfolio.id, "name": portfolio.name,
               "holdings": [asdict(h) for h in portfolio.holdings.values()]}
        docs = self._doc["portfolios"]
        for i, existing in enumerate(docs):
            if existing["id"] == portfolio.id:
                docs[i] = doc
                break
        else:
            docs.append(doc)
        self._write()

    def delete_portfolio(self, portfolio_id: str) -> None:
        self._doc["portfolios"] = [p for p in self._doc["portfolios"]
                                   if p["id"] != portfolio_id]
        self._write()

    def get_selected_id(self) -> Optional[str]:
        return self._doc.get("selected_portfolio")

    def set_selected_id(self, portfolio_id: str) -> None:
        self._doc["selected_portfolio"] = portfolio_id
        self._write()

    def get_price_cache(self) -> Dict[str, float]:
        return dict(self._doc.get("price_cache", {}))

    def set_prices(self, prices: Dict[str, float]) -> None:
        self._doc.setdefault("price_cache", {}).update(prices)
        self._write()


# ── Factory ───────────────────────────────────────────────────────────────────

def open_repository(backend: Optional[str] = None,
                    path: Optional[str] = None) -> Repository:
    backend = (backend or config.STORAGE_BACKEND).lower()
    if backend == "sqlite":
        return SQLiteRepository(path)
    if backend == "json":
        return JsonDocumentRepository(path)
    raise ValueError(f"Unknown storage backend '{backend}' (use 'sqlite' or 'json').")
