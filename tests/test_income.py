import math
from datetime import date

import pytest

from divtracker.income import (
    apply_quotes, estimate_next_dates, monthly_income_series, payment_total,
    payout_schedule, payouts_in_month, upcoming_payouts,
    portfolio_summary, yet_to_receive,
)
from divtracker.models import EX_DATE, PAYMENT_DATE, DividendPayment, Holding


class TestPayoutSchedule:
    # 100 shares × $50 × 4% = $200 a year

    def test_quarterly_pays_every_third_month_from_month_zero(self, make_holding):
        assert payout_schedule(make_holding("quarterly")) == pytest.approx(
            [50, 0, 0, 50, 0, 0, 50, 0, 0, 50, 0, 0])

    def test_monthly_spreads_evenly(self, make_holding):
        schedule = payout_schedule(make_holding("monthly"))
        assert len(schedule) == 12
        assert schedule == pytest.approx([200 / 12] * 12)
        assert schedule[0] == pytest.approx(16.67, abs=0.005)

    def test_semi_annual_pays_months_zero_and_six(self, make_holding):
        assert payout_schedule(make_holding("semi-annual")) == pytest.approx(
            [100, 0, 0, 0, 0, 0, 100, 0, 0, 0, 0, 0])

    def test_annual_pays_only_month_zero(self, make_holding):
        assert payout_schedule(make_holding("annual")) == pytest.approx(
            [200] + [0] * 11)

    def test_annual_not_repeated_in_longer_window(self, make_holding):
        schedule = payout_schedule(make_holding("annual"), months=24)
        assert schedule[0] == pytest.approx(200)
        assert sum(schedule) == pytest.approx(200)

    @pytest.mark.parametrize("frequency", ["biweekly", "", None, "QUARTERLY "])
    def test_unknown_frequency_behaves_like_quarterly(self, make_holding, frequency):
        assert payout_schedule(make_holding(frequency)) == \
            payout_schedule(make_holding("quarterly"))

    @pytest.mark.parametrize("field", ["dividend_yield", "shares", "current_price"])
    def test_zero_inputs_contribute_nothing(self, make_holding, field):
        h = make_holding("monthly", **{field: 0})
        assert payout_schedule(h) == [0.0] * 12


class TestMonthlyIncomeSeries:
    def test_labels_start_at_current_month(self, make_holding, start):
        series = monthly_income_series([make_holding()], start)
        assert [m.month for m in series] == ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
                                             "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
        assert {m.year for m in series} == {"2026"}

    def test_labels_roll_over_the_year(self, make_holding):
        series = monthly_income_series([make_holding()], date(2025, 11, 30))
        assert (series[0].month, series[0].year) == ("Nov", "2025")
        assert (series[2].month, series[2].year) == ("Jan", "2026")
        assert (series[11].month, series[11].year) == ("Oct", "2026")
        assert series[0].label == "Nov 2025"

    def test_empty_holdings_give_twelve_zero_months(self, start):
        series = monthly_income_series([], start)
        assert len(series) == 12
        assert all(m.income == 0 for m in series)

    def test_sums_holdings_per_month(self, mixed_holdings, start):
        # O 51.333/mo; JNJ 22.5 at 0,3,6,9; UL 42 at 0,6; BRK nothing
        incomes = [m.income for m in monthly_income_series(mixed_holdings, start)]
        assert incomes[0] == pytest.approx(616 / 12 + 22.5 + 42)
        assert incomes[1] == pytest.approx(616 / 12)
        assert incomes[3] == pytest.approx(616 / 12 + 22.5)
        assert incomes[6] == pytest.approx(616 / 12 + 22.5 + 42)

    def test_yet_to_receive_excludes_current_month(self, make_holding, start):
        series = monthly_income_series([make_holding("quarterly")], start)
        assert yet_to_receive(series) == pytest.approx(150)
        assert yet_to_receive([]) == 0.0


class TestPortfolioSummary:
    def test_mixed_portfolio(self, mixed_holdings, start):
        s = portfolio_summary(mixed_holdings, start)
        assert s.total_portfolio_value == pytest.approx(20400)
        assert s.total_cost_basis == pytest.approx(20200)
        assert s.total_gain_loss == pytest.approx(200)
        assert s.gain_loss_percent == pytest.approx(200 / 20200 * 100)
        assert s.total_annual_income == pytest.approx(790)
        assert s.monthly_average == pytest.approx(790 / 12)
        assert s.quarterly_average == pytest.approx(790 / 4)
        assert s.weekly_average == pytest.approx(790 / 52)
        assert s.daily_average == pytest.approx(790 / 365)
        # unweighted: (5.6 + 3.0 + 3.5 + 0) / 4
        assert s.average_yield == pytest.approx(3.025)
        assert s.yield_on_cost == pytest.approx(790 / 20200 * 100)

    def test_series_total_matches_per_holding_income(self, mixed_holdings, start):
        s = portfolio_summary(mixed_holdings, start)
        direct = sum(h.annual_dividend_income for h in mixed_holdings)
        assert abs(s.total_annual_income - direct) < 1e-6

    @pytest.mark.parametrize("frequency", ["monthly", "quarterly", "semi-annual",
                                           "annual", "weekly"])
    def test_series_total_matches_for_every_frequency(self, make_holding, frequency, start):
        h = make_holding(frequency, shares=37.5, current_price=81.13, dividend_yield=2.87)
        s = portfolio_summary([h], start)
        assert abs(s.total_annual_income - h.annual_dividend_income) < 1e-6

    def test_idempotent(self, mixed_holdings, start):
        assert portfolio_summary(mixed_holdings, start) == \
            portfolio_summary(mixed_holdings, start)
        assert monthly_income_series(mixed_holdings, start) == \
            monthly_income_series(mixed_holdings, start)

    def test_does_not_mutate_holdings(self, mixed_holdings, start):
        before = [(h.symbol, h.shares, h.current_price, h.cost_basis) for h in mixed_holdings]
        portfolio_summary(mixed_holdings, start)
        after = [(h.symbol, h.shares, h.current_price, h.cost_basis) for h in mixed_holdings]
        assert before == after

    def test_empty_portfolio_is_all_zero(self, start):
        s = portfolio_summary([], start)
        for value in vars(s).values():
            assert value == 0
            assert not math.isnan(value)

    def test_zero_cost_basis_guards(self, start):
        h = Holding("FREE", shares=10, avg_price=0.0, current_price=20.0,
                    dividend_yield=5.0)
        s = portfolio_summary([h], start)
        assert s.total_cost_basis == 0
        assert s.gain_loss_percent == 0
        assert s.yield_on_cost == 0
        assert s.total_annual_income == pytest.approx(10)


class TestApplyQuotes:
    def test_applies_quote_and_keeps_last_known_when_missing(self, mixed_holdings):
        updated = apply_quotes(mixed_holdings, {"O": 60.0, "JNJ": None})
        by_symbol = {h.symbol: h for h in updated}
        assert by_symbol["O"].current_price == 60.0
        assert by_symbol["JNJ"].current_price == 150.0
        assert by_symbol["UL"].current_price == 48.0

    def test_returns_copies(self, mixed_holdings):
        updated = apply_quotes(mixed_holdings, {"O": 60.0})
        assert mixed_holdings[0].current_price == 55.0
        assert updated[0] is not mixed_holdings[0]

    def test_cost_basis_not_changed_by_quote(self, mixed_holdings):
        updated = apply_quotes(mixed_holdings, {"O": 70.0})
        assert updated[0].cost_basis == pytest.approx(12000)


class TestEstimateNextDates:
    def test_no_history(self, make_holding):
        assert estimate_next_dates(make_holding()) == (None, None)

    def test_quarterly_adds_three_months_to_latest(self, mixed_holdings):
        jnj = mixed_holdings[1]
        assert estimate_next_dates(jnj) == ("2026-02-25", "2026-03-09")

    def test_month_end_clamps(self, make_holding):
        h = make_holding("monthly", dividend_history=[
            DividendPayment("2026-01-31", "2026-01-31", 0.25)])
        assert estimate_next_dates(h) == ("2026-02-28", "2026-02-28")

    def test_annual_adds_a_year(self, make_holding):
        h = make_holding("annual", dividend_history=[
            DividendPayment("2025-04-10", "2025-04-30", 2.0)])
        assert estimate_next_dates(h) == ("2026-04-10", "2026-04-30")


class TestUpcomingPayouts:
    # Reference holding: $50 a quarter on 100 shares → $0.50 a share

    def test_quarterly_entries_after_start(self, make_holding, start):
        # Window starts on Jan 15, so January's ex-date has already passed
        payouts = upcoming_payouts([make_holding("quarterly")], start)
        assert [(p.day, p.kind) for p in payouts] == [
            (date(2026, 4, 15), EX_DATE), (date(2026, 4, 28), PAYMENT_DATE),
            (date(2026, 7, 15), EX_DATE), (date(2026, 7, 28), PAYMENT_DATE),
            (date(2026, 10, 15), EX_DATE), (date(2026, 10, 28), PAYMENT_DATE),
        ]
        first = payouts[0]
        assert first.amount_per_share == pytest.approx(0.5)
        assert first.shares == 100
        assert first.total_amount == pytest.approx(50)

    def test_current_month_included_before_ex_date(self, make_holding):
        payouts = upcoming_payouts([make_holding("quarterly")], date(2026, 1, 10))
        assert payouts[0].day == date(2026, 1, 15)
        assert payment_total(payouts) == pytest.approx(200)

    def test_follows_projection_schedule(self, mixed_holdings):
        # From Jan 1 nothing has passed, so payments match the monthly series
        first_day = date(2026, 1, 1)
        payouts   = upcoming_payouts(mixed_holdings, first_day)
        series    = monthly_income_series(mixed_holdings, first_day)
        for i, m in enumerate(series):
            paid = payment_total(payouts_in_month(payouts, 2026, i + 1))
            assert paid == pytest.approx(m.income)

    def test_zero_yield_holdings_have_no_entries(self, mixed_holdings, start):
        assert "BRK" not in {p.symbol for p in upcoming_payouts(mixed_holdings, start)}

    def test_sorted_by_day(self, mixed_holdings, start):
        days = [p.day for p in upcoming_payouts(mixed_holdings, start)]
        assert days == sorted(days)

    def test_month_filter(self, mixed_holdings, start):
        payouts = upcoming_payouts(mixed_holdings, start)
        # July: O monthly, JNJ quarterly, UL semi-annual
        july = payouts_in_month(payouts, 2026, 7)
        assert {p.symbol for p in july} == {"O", "JNJ", "UL"}
        assert payment_total(july) == pytest.approx(616 / 12 + 22.5 + 42)

        ex_only = payouts_in_month(payouts, 2026, 7, payment_dates=False)
        assert {p.kind for p in ex_only} == {EX_DATE}
        assert payment_total(ex_only) == 0
        assert payouts_in_month(payouts, 2027, 7) == []

    def test_empty(self, start):
        assert upcoming_payouts([], start) == []
