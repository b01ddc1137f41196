"""
app.py  —  Dividend Tracker  |  streamlit run app.py
"""

import io, os, tempfile
from datetime import date
from typing import List

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

import divtracker.exporter as exporter
from divtracker import analysis
from divtracker.calculator import drip_projection
from divtracker.config import CURRENCY_SYMBOL
from divtracker.db import open_repository
from divtracker.income import (
    estimate_next_dates, monthly_income_series, payment_total, payouts_in_month,
    portfolio_summary, upcoming_payouts, yet_to_receive,
)
from divtracker.models import EX_DATE, PAYOUT_FREQUENCIES, DividendPayment, Holding
from divtracker.portfolio import PortfolioBook, PortfolioError
from divtracker.prices import PriceFetcher, fetch_dividend_history
from divtracker.validation import (
    parse_date, validate_dividend, validate_holding, validate_name, validate_symbol,
)

# ── Page config ───────────────────────────────────────────────────────────────
st.set_page_config(page_title="Dividend Tracker", page_icon="💸",
                   layout="wide", initial_sidebar_state="expanded")

# ── Colours ───────────────────────────────────────────────────────────────────
GAIN    = "#4caf7d"
BLUE    = "#5b9bd5"
BG      = "#0f0f0f"
PALETTE = ["#4caf7d","#5b9bd5","#e8a838","#b07fd4",
           "#e05c5c","#4db6ac","#f06292","#a1887f"]

st.markdown("""
<style>
  [data-testid="metric-container"]{background:#1a1a1a;border:1px solid #2a2a2a;
      border-radius:8px;padding:14px 18px}
  [data-testid="stMetricValue"]{font-size:1.35rem}
  [data-testid="stSidebar"]{background:#111}
  .block-container{padding-top:1.5rem}
  .section-title{font-size:.75rem;font-weight:600;letter-spacing:.1em;
      text-transform:uppercase;color:#555;margin:1.5rem 0 .5rem}
</style>
""", unsafe_allow_html=True)

# ── Session state ─────────────────────────────────────────────────────────────
if "repo"    not in st.session_state: st.session_state.repo    = open_repository()
if "fetcher" not in st.session_state: st.session_state.fetcher = PriceFetcher(repository=st.session_state.repo)
if "book"    not in st.session_state: st.session_state.book    = PortfolioBook(st.session_state.repo)

def book()    -> PortfolioBook: return st.session_state.book
def fetcher() -> PriceFetcher:  return st.session_state.fetcher

# ── Holdings with live prices ─────────────────────────────────────────────────
def get_holdings() -> List[Holding]:
    """Quotes are throttled by the fetcher; failures keep the last known price."""
    holdings = book().get_holdings()
    if not holdings:
        return holdings
    with st.spinner("Fetching live prices…"):
        quotes = fetcher().get_prices([h.symbol for h in holdings])
    return book().update_prices(quotes)

# ── Helpers ───────────────────────────────────────────────────────────────────
def fmt_cur(v: float) -> str: return f"{'-' if v < 0 else ''}{CURRENCY_SYMBOL}{abs(v):,.2f}"
def fmt_pct(v: float) -> str: return f"{'+'if v>0 else''}{v:.2f}%"

def _chart_layout(title="", height=400) -> dict:
    return dict(title=title, paper_bgcolor=BG, plot_bgcolor=BG,
                font_color="#cccccc", height=height,
                xaxis=dict(gridcolor="#1e1e1e"),
                yaxis=dict(gridcolor="#1e1e1e"),
                margin=dict(t=50, b=20, l=10, r=10))

def _section(title: str):
    st.markdown(f'<p class="section-title">{title}</p>', unsafe_allow_html=True)

def _file_bytes(write) -> io.BytesIO:
    """Run an exporter that writes to a path and return the bytes."""
    buf = io.BytesIO()
    with tempfile.NamedTemporaryFile(delete=False) as tmp:
        tmp_path = tmp.name
    try:
        write(tmp_path)
        with open(tmp_path, "rb") as f:
            buf.write(f.read())
    finally:
        os.unlink(tmp_path)
    buf.seek(0)
    return buf

def _holdings_frame(holdings: List[Holding]) -> pd.DataFrame:
    return pd.DataFrame([{
        "Symbol":        h.symbol,
        "Sector":        h.sector,
        "Shares":        h.shares,
        "Avg Price":     h.avg_price,
        "Price":         h.current_price,
        "Cost Basis":    h.cost_basis,
        "Value":         h.market_value,
        "Gain/Loss":     h.gain_loss,
        "Gain/Loss %":   h.gain_loss_percent,
        "Yield %":       h.dividend_yield,
        "Frequency":     h.frequency,
        "Annual Income": h.annual_dividend_income,
        "Next Ex-Date":  estimate_next_dates(h)[0] or "—",
    } for h in holdings])

# ── Sidebar ───────────────────────────────────────────────────────────────────
PAGES = ["Dashboard","Holdings","Add Holding","Dividend Calendar","Dividends",
         "Import / Export","DRIP Calculator","Portfolios"]

def render_sidebar():
    with st.sidebar:
        st.markdown("## 💸 Dividend Tracker")
        names = {p.id: p.name for p in book().portfolios}
        chosen = st.selectbox("Portfolio", list(names), format_func=names.get,
                              index=list(names).index(book().selected_id))
        if chosen != book().selected_id:
            book().select(chosen); st.rerun()
        st.divider()
        page = st.radio("Nav", PAGES, label_visibility="collapsed")
        st.divider()
        summary = portfolio_summary(book().get_holdings())
        st.metric("Portfolio Value", fmt_cur(summary.total_portfolio_value))
        st.metric("Annual Income",   fmt_cur(summary.total_annual_income))
        st.divider()
        if st.button("🔄  Refresh Prices", use_container_width=True):
            fetcher().clear_cache(); st.rerun()
        stale = [h.symbol for h in book().get_holdings() if fetcher().is_stale(h.symbol)]
        if stale:
            st.caption(f"Last known prices in use for: {', '.join(sorted(stale))}")
    return page

# ── Dashboard ─────────────────────────────────────────────────────────────────
def render_dashboard():
    st.markdown("## Dashboard")
    holdings = get_holdings()
    if not holdings:
        st.info("Your portfolio is empty. Go to **Add Holding** to get started.")
        return
    s      = portfolio_summary(holdings)
    series = monthly_income_series(holdings)

    c1,c2,c3,c4 = st.columns(4)
    c1.metric("Portfolio Value", fmt_cur(s.total_portfolio_value))
    c2.metric("Gain/Loss",       fmt_cur(s.total_gain_loss), delta=fmt_pct(s.gain_loss_percent))
    c3.metric("Annual Income",   fmt_cur(s.total_annual_income))
    c4.metric("Yield on Cost",   f"{s.yield_on_cost:.2f}%")
    c1,c2,c3,c4 = st.columns(4)
    c1.metric("Monthly",        fmt_cur(s.monthly_average))
    c2.metric("Daily",          fmt_cur(s.daily_average))
    c3.metric("Yet to receive", fmt_cur(yet_to_receive(series)))
    c4.metric("Average Yield",  f"{s.average_yield:.2f}%")
    st.divider()

    _chart_income(series)
    col_l, col_r = st.columns(2)
    with col_l: _chart_sectors(holdings)
    with col_r: _chart_yields(holdings)


def _chart_income(series):
    frame = analysis.income_frame(series)
    fig = go.Figure(go.Bar(x=frame["Month"], y=frame["Income"], marker_color=GAIN,
        hovertemplate=f"<b>%{{x}}</b><br>{CURRENCY_SYMBOL}%{{y:,.2f}}<extra></extra>"))
    fig.update_layout(**_chart_layout("Projected Monthly Income", 360))
    st.plotly_chart(fig, use_container_width=True)


def _chart_sectors(holdings):
    alloc = analysis.sector_allocation(holdings)
    if alloc.empty or not alloc["Value"].sum(): return
    fig = go.Figure(go.Pie(labels=alloc["Sector"], values=alloc["Value"], hole=0.55,
        marker=dict(colors=PALETTE, line=dict(color=BG, width=2)),
        textinfo="label+percent"))
    fig.update_layout(**_chart_layout("Sector Allocation", 340))
    fig.update_layout(showlegend=False)
    st.plotly_chart(fig, use_container_width=True)


def _chart_yields(holdings):
    frame = analysis.yield_comparison(holdings)
    fig = go.Figure([
        go.Bar(name="Current Yield", x=frame["Symbol"], y=frame["Current Yield (%)"], marker_color=BLUE),
        go.Bar(name="Yield on Cost", x=frame["Symbol"], y=frame["Yield on Cost (%)"], marker_color=GAIN),
    ])
    fig.update_layout(**_chart_layout("Yield vs Yield on Cost (%)", 340))
    fig.update_layout(barmode="group")
    st.plotly_chart(fig, use_container_width=True)

# ── Holdings ──────────────────────────────────────────────────────────────────
def render_holdings():
    st.markdown("## Holdings")
    holdings = get_holdings()
    if not holdings:
        st.info("No holdings yet."); return
    st.dataframe(_holdings_frame(holdings), use_container_width=True, hide_index=True)

    _section("Best / worst performers")
    col_l, col_r = st.columns(2)
    with col_l:
        for h in analysis.top_performers(holdings, 3):
            st.write(f"**{h.symbol}**  {fmt_pct(h.gain_loss_percent)}")
    with col_r:
        for h in analysis.worst_performers(holdings, 3):
            st.write(f"**{h.symbol}**  {fmt_pct(h.gain_loss_percent)}")

    received = analysis.dividends_by_month(holdings)
    if not received.empty:
        _section("Dividends received")
        st.bar_chart(received, x="Month", y="Amount")

    _section("Remove a holding")
    symbol = st.selectbox("Symbol", [h.symbol for h in holdings], key="remove_symbol")
    if st.button("Remove", type="secondary"):
        book().remove_holding(symbol)
        st.success(f"{symbol} removed."); st.rerun()

# ── Add holding ───────────────────────────────────────────────────────────────
def render_add_holding():
    st.markdown("## Add Holding")
    st.caption("Saving a symbol that already exists replaces it.")
    with st.form("add_holding"):
        c1, c2 = st.columns(2)
        symbol    = c1.text_input("Symbol").strip().upper()
        sector    = c2.text_input("Sector", value="Unknown")
        shares    = c1.number_input("Shares", min_value=0.0, step=1.0)
        avg_price = c2.number_input("Average price", min_value=0.0, step=0.01)
        current   = c1.number_input("Current price (0 = live quote)", min_value=0.0, step=0.01)
        yld       = c2.number_input("Dividend yield %", min_value=0.0, step=0.1)
        frequency = c1.selectbox("Payout frequency", PAYOUT_FREQUENCIES, index=1)
        submitted = st.form_submit_button("Save")

    if not submitted:
        return
    errors = validate_symbol(symbol) + validate_holding(shares, avg_price, current, yld)
    if errors:
        for e in errors: st.error(e)
        return
    if not current:
        current = fetcher().get_quote(symbol) or avg_price
    book().save_holding(Holding(symbol=symbol, shares=shares, avg_price=avg_price,
                                current_price=current, dividend_yield=yld,
                                sector=sector, payout_frequency=frequency,
                                dividend_history=fetch_dividend_history(symbol)))
    st.success(f"{symbol} saved.")

# ── Import / export ───────────────────────────────────────────────────────────
def render_import_export():
    st.markdown("## Import / Export")
    _section("Import CSV")
    upload = st.file_uploader("Holdings CSV", type=["csv"])
    if upload is not None and st.button("Import"):
        holdings, errors = exporter.import_from_csv(upload)
        for e in errors: st.warning(e)
        if holdings:
            book().save_holdings(holdings)
        st.success(f"Imported {len(holdings)} holdings.")

    holdings = book().get_holdings()
    if not holdings:
        return
    _section("Export")
    c1, c2 = st.columns(2)
    c1.download_button("⬇  CSV", _file_bytes(lambda p: exporter.export_to_csv(holdings, p)),
                       file_name="holdings.csv", mime="text/csv")
    c2.download_button("⬇  Excel", _file_bytes(lambda p: exporter.export_to_excel(holdings, p)),
                       file_name="holdings.xlsx",
                       mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")

# ── Dividend calendar ─────────────────────────────────────────────────────────
def render_calendar():
    st.markdown("## Dividend Calendar")
    payouts = upcoming_payouts(get_holdings())
    if not payouts:
        st.info("No upcoming dividends. Add holdings with a dividend yield."); return
    months = sorted({(p.day.year, p.day.month) for p in payouts})
    c1, c2, c3 = st.columns([2, 1, 1])
    year, month = c1.selectbox("Month", months,
                               format_func=lambda ym: date(ym[0], ym[1], 1).strftime("%B %Y"))
    show_ex  = c2.checkbox("Ex-dates", value=True)
    show_pay = c3.checkbox("Payment dates", value=True)
    shown = payouts_in_month(payouts, year, month, ex_dates=show_ex, payment_dates=show_pay)
    st.metric("Expected this month", fmt_cur(payment_total(shown)))
    if shown:
        st.dataframe(pd.DataFrame([{
            "Date":      p.day.strftime("%a %d %b"),
            "Symbol":    p.symbol,
            "Event":     "Ex-dividend" if p.kind == EX_DATE else "Payment",
            "Per Share": fmt_cur(p.amount_per_share),
            "Shares":    p.shares,
            "Total":     fmt_cur(p.total_amount),
        } for p in shown]), use_container_width=True, hide_index=True)

# ── Dividends received ────────────────────────────────────────────────────────
def render_dividends():
    st.markdown("## Dividends Received")
    records  = book().dividend_records()
    holdings = book().get_holdings()
    if records:
        st.dataframe(pd.DataFrame([{
            "#": i, "Symbol": s, "Ex-Date": p.ex_date, "Paid": p.payment_date,
            "Per Share": p.amount, "Received": p.amount * book().get_holding(s).shares,
        } for i, (s, p) in enumerate(records, 1)]), use_container_width=True, hide_index=True)
        st.download_button("⬇  Dividends CSV",
                           _file_bytes(lambda p: exporter.export_dividends_to_csv(records, p)),
                           file_name="dividends.csv", mime="text/csv")
    else:
        st.info("No dividends recorded yet.")

    if holdings:
        _section("Add dividend")
        with st.form("add_dividend", clear_on_submit=True):
            c1, c2, c3, c4 = st.columns(4)
            symbol = c1.selectbox("Symbol", [h.symbol for h in holdings])
            amount = c2.number_input("Amount per share", min_value=0.0, step=0.01, format="%.4f")
            paid   = c3.date_input("Payment date", value=date.today())
            ex     = c4.date_input("Ex-date", value=paid)
            if st.form_submit_button("Add"):
                errors = validate_dividend(amount, paid.isoformat(), ex.isoformat())
                if errors:
                    for e in errors: st.error(e)
                else:
                    book().add_dividend(symbol, DividendPayment(
                        ex_date=ex.isoformat(), payment_date=paid.isoformat(), amount=amount))
                    st.rerun()

    if records:
        _section("Edit / delete")
        labels = [f"{i}. {s}  {p.payment_date}  {fmt_cur(p.amount)}"
                  for i, (s, p) in enumerate(records, 1)]
        pick   = st.selectbox("Dividend", range(len(records)), format_func=labels.__getitem__)
        symbol, payment = records[pick]
        index  = book().get_holding(symbol).dividend_history.index(payment)
        c1, c2, c3 = st.columns(3)
        amount = c1.number_input("Amount per share", min_value=0.0, value=payment.amount,
                                 step=0.01, format="%.4f", key=f"amt{pick}")
        paid   = c2.text_input("Payment date", value=payment.payment_date, key=f"paid{pick}")
        ex     = c3.text_input("Ex-date", value=payment.ex_date, key=f"ex{pick}")
        b1, b2 = st.columns(2)
        if b1.button("Save changes"):
            errors = validate_dividend(amount, paid, ex)
            if errors:
                for e in errors: st.error(e)
            else:
                book().edit_dividend(symbol, index, amount=amount,
                                     payment_date=parse_date(paid), ex_date=parse_date(ex))
                st.rerun()
        if b2.button("Delete dividend", type="secondary"):
            book().remove_dividend(symbol, index); st.rerun()

    _section("Import CSV  (symbol, amount, date)")
    upload = st.file_uploader("Dividends CSV", type=["csv"], key="div_upload")
    if upload is not None and st.button("Import dividends"):
        imported, errors = exporter.import_dividends_csv(upload)
        for e in errors + book().add_dividends(imported): st.warning(e)
        st.success(f"Read {len(imported)} dividend records.")

# ── DRIP calculator ───────────────────────────────────────────────────────────
def render_drip():
    st.markdown("## DRIP Calculator")
    c1, c2, c3 = st.columns(3)
    starting     = c1.number_input("Starting amount", min_value=0.0, value=10_000.0, step=100.0)
    contribution = c2.number_input("Monthly contribution", min_value=0.0, value=0.0, step=50.0)
    years        = c3.number_input("Years", min_value=1, value=10, step=1)
    yld          = c1.number_input("Dividend yield %", min_value=0.0, value=4.0, step=0.1)
    div_growth   = c2.number_input("Dividend growth % / yr", min_value=0.0, value=0.0, step=0.1)
    price_growth = c3.number_input("Price growth % / yr", min_value=0.0, value=0.0, step=0.1)
    try:
        r = drip_projection(starting, contribution, yld, div_growth, price_growth, int(years))
    except ValueError as e:
        st.error(str(e)); return
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Final Value",      fmt_cur(r.final_value))
    c2.metric("Dividends",        fmt_cur(r.total_dividends))
    c3.metric("Contributions",    fmt_cur(r.total_contributions))
    c4.metric("Growth",           fmt_cur(r.total_growth))

# ── Portfolios ────────────────────────────────────────────────────────────────
def render_portfolios():
    st.markdown("## Portfolios")
    for p in book().portfolios:
        st.write(f"{'●' if p.id == book().selected_id else '○'}  **{p.name}**  "
                 f"· {len(p.holdings)} holdings")
    _section("Create")
    name = st.text_input("New portfolio name")
    if st.button("Create"):
        errors = validate_name(name)
        if errors:
            for e in errors: st.error(e)
        else:
            book().create_portfolio(name); st.rerun()

    _section("Rename / delete selected")
    current = book().selected
    new_name = st.text_input("Name", value=current.name, key="rename")
    c1, c2 = st.columns(2)
    if c1.button("Rename") and not validate_name(new_name):
        book().rename_portfolio(current.id, new_name); st.rerun()
    if c2.button("Delete", type="secondary"):
        try:
            book().delete_portfolio(current.id); st.rerun()
        except PortfolioError as e:
            st.error(str(e))

# ── Router ────────────────────────────────────────────────────────────────────
page = render_sidebar()
if   page == "Dashboard":       render_dashboard()
elif page == "Holdings":        render_holdings()
elif page == "Add Holding":     render_add_holding()
elif page == "Dividend Calendar": render_calendar()
elif page == "Dividends":       render_dividends()
elif page == "Import / Export": render_import_export()
elif page == "DRIP Calculator": render_drip()
elif page == "Portfolios":      render_portfolios()
