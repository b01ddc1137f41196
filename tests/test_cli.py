import pytest
from rich.prompt import Prompt

from divtracker import cli as cli_module
from divtracker.cli import CLI
from divtracker.db import JsonDocumentRepository
from divtracker.models import DividendPayment, Holding
from divtracker.portfolio import PortfolioBook
from divtracker.prices import PriceFetcher


@pytest.fixture
def repo(tmp_path):
    return JsonDocumentRepository(str(tmp_path / "cli.json"))


def _answers(monkeypatch, *values):
    replies = iter(values)
    monkeypatch.setattr(Prompt, "ask", lambda *a, **k: next(replies))


class TestSharedRepository:
    def test_fetcher_uses_book_repository(self, repo, monkeypatch):
        monkeypatch.setattr(cli_module, "open_repository",
                            lambda *a, **k: pytest.fail("opened a second store"))
        app = CLI(book=PortfolioBook(repo))
        assert app.fetcher._repo is repo

    def test_book_built_on_given_repository(self, repo):
        app = CLI(repository=repo)
        assert app.book.repository is repo
        assert app.fetcher._repo is repo

    def test_given_fetcher_kept(self, repo):
        fetcher = PriceFetcher(repository=repo)
        app = CLI(fetcher=fetcher, repository=repo)
        assert app.fetcher is fetcher
        assert app.book.repository is repo

    def test_default_opens_one_store(self, repo, monkeypatch):
        opened = []

        def fake_open(*args, **kwargs):
            opened.append(repo)
            return repo

        monkeypatch.setattr(cli_module, "open_repository", fake_open)
        app = CLI()
        assert opened == [repo]
        assert app.fetcher._repo is repo


class TestDividendScreens:
    @pytest.fixture
    def app(self, repo):
        book = PortfolioBook(repo)
        book.save_holding(Holding("KO", shares=100, avg_price=50.0, current_price=50.0,
                                  dividend_yield=4.0))
        return CLI(book=book, fetcher=PriceFetcher(repository=repo))

    def test_import_dividends_csv(self, app, tmp_path, monkeypatch):
        path = tmp_path / "divs.csv"
        path.write_text("symbol,amount,date\nKO,0.51,2025-10-01\nXYZ,0.20,2025-10-01\n")
        _answers(monkeypatch, "i", str(path))
        app.manage_dividends()
        [(symbol, payment)] = app.book.dividend_records()
        assert (symbol, payment.payment_date, payment.amount) == ("KO", "2025-10-01", 0.51)

    def test_delete_dividend(self, app, monkeypatch):
        app.book.add_dividends([("KO", DividendPayment("2025-09-15", "2025-10-01", 0.51))])
        _answers(monkeypatch, "d", "1")
        monkeypatch.setattr(cli_module.Confirm, "ask", lambda *a, **k: True)
        app.manage_dividends()
        assert app.book.dividend_records() == []

    def test_calendar_rejects_bad_month(self, app, monkeypatch):
        monkeypatch.setattr(app.fetcher, "get_prices", lambda symbols: {})
        monkeypatch.setattr(cli_module.display, "print_upcoming_payouts",
                            lambda payouts: pytest.fail("rendered a bad month"))
        _answers(monkeypatch, "2026-13")
        app.show_calendar()

    def test_calendar_filters_month(self, app, monkeypatch):
        shown = []
        monkeypatch.setattr(app.fetcher, "get_prices", lambda symbols: {})
        monkeypatch.setattr(cli_module.display, "print_upcoming_payouts", shown.append)
        _answers(monkeypatch, "2099-01")
        app.show_calendar()
        assert shown == [[]]
