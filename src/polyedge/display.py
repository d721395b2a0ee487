"""Terminal tables for CLI output using rich."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import rich.box
from rich.console import Console
from rich.table import Table

from polyedge.config import EdgeConfig
from polyedge.models import (
    DetailedTrader,
    FollowedTrader,
    ScoredTrader,
    ScreenerReport,
    Signal,
    SignalTier,
    TradeMetrics,
    TraderRecord,
)
from polyedge.screener import consistent_winners, hot_hands, top_by_efficiency, top_by_profit, volume_leaders

console = Console()

_RANK_COLORS: dict[int, str] = {
    1: "#FFD700",  # gold
    2: "#C0C0C0",  # silver
    3: "#CD7F32",  # bronze
}

_TIER_STYLES: dict[SignalTier, str] = {
    SignalTier.HIGH: "bold green",
    SignalTier.MEDIUM: "yellow",
    SignalTier.LOW: "dim",
}


def _short_wallet(wallet: str) -> str:
    return f"{wallet[:6]}..{wallet[-4:]}" if len(wallet) > 10 else wallet


def _score_style(score: float) -> str:
    if score >= 70:
        return "green"
    if score >= 50:
        return "yellow"
    return "dim"


def _money(value: float) -> str:
    if abs(value) >= 1_000_000:
        return f"${value / 1_000_000:,.2f}M"
    if abs(value) >= 1_000:
        return f"${value / 1_000:,.1f}K"
    return f"${value:,.0f}"


def _rank_cell(i: int) -> str:
    color = _RANK_COLORS.get(i)
    return f"[bold {color}]{i}[/]" if color else str(i)


def render_edge_table(scored: Sequence[ScoredTrader], title: str = "Edge Traders") -> Table:
    """Ranked traders with their edge score and main statistics."""
    table = Table(title=title, box=rich.box.SIMPLE_HEAVY, show_edge=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Trader", style="bold")
    table.add_column("Edge", justify="right")
    table.add_column("PnL", justify="right")
    table.add_column("Volume", justify="right")
    table.add_column("Eff", justify="right")
    table.add_column("WR", justify="right")
    table.add_column("PF", justify="right")
    table.add_column("Trades", justify="right")

    for i, s in enumerate(scored, 1):
        score = s.edge.edge_score
        pnl_color = "green" if s.trader.pnl >= 0 else "red"
        table.add_row(
            _rank_cell(i),
            f"{s.trader.display_name} ({_short_wallet(s.wallet)})",
            f"[{_score_style(score)}]{score:.1f}[/]",
            f"[{pnl_color}]{_money(s.trader.pnl)}[/]",
            _money(s.trader.volume),
            f"{s.efficiency:.1%}",
            f"{s.metrics.win_rate:.0%}",
            f"{s.metrics.profit_factor:.2f}",
            str(s.metrics.total_trades),
        )
    return table


def render_signals_table(signals: Sequence[Signal], title: str = "Copy Signals") -> Table:
    table = Table(title=title, box=rich.box.SIMPLE_HEAVY, show_edge=False)
    table.add_column("Tier")
    table.add_column("Side")
    table.add_column("Outcome")
    table.add_column("Market", max_width=48)
    table.add_column("Size", justify="right")
    table.add_column("Avg", justify="right")
    table.add_column("Traders")

    for sig in signals:
        style = _TIER_STYLES[sig.tier]
        table.add_row(
            f"[{style}]{sig.tier.value}[/]",
            sig.side.value,
            sig.outcome,
            sig.market,
            _money(sig.total_size),
            f"{sig.avg_price * 100:.1f}¢",
            ", ".join(t.name for t in sig.traders),
        )
    return table


def render_following_table(following: Sequence[FollowedTrader]) -> Table:
    table = Table(title="Following", box=rich.box.SIMPLE_HEAVY, show_edge=False)
    table.add_column("Name", style="bold")
    table.add_column("Wallet")
    for trader in following:
        table.add_row(trader.name, trader.wallet)
    return table


def _signed_money(value: float) -> str:
    return f"[green]+{_money(value)}[/]" if value >= 0 else f"[red]-{_money(-value)}[/]"


def _win_rate_cell(metrics: TradeMetrics | None) -> str:
    if metrics is None or metrics.total_trades == 0:
        return "-"
    return f"{metrics.win_rate:.1%}"


def render_leaderboard_table(
    traders: Sequence[TraderRecord],
    title: str,
    volume_first: bool = False,
    details: Mapping[str, TradeMetrics] | None = None,
) -> Table:
    """Leaderboard rows; a WR column is added when *details* is given."""
    table = Table(title=title, box=rich.box.SIMPLE_HEAVY, show_edge=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Trader", style="bold", max_width=24)
    money_columns = ["Volume", "PnL"] if volume_first else ["PnL", "Volume"]
    for name in money_columns:
        table.add_column(name, justify="right")
    if details is not None:
        table.add_column("WR", justify="right")

    for i, t in enumerate(traders, 1):
        money = [_money(t.volume), _signed_money(t.pnl)] if volume_first else [_signed_money(t.pnl), _money(t.volume)]
        row = [_rank_cell(i), t.display_name, *money]
        if details is not None:
            row.append(_win_rate_cell(details.get(t.wallet)))
        table.add_row(*row)
    return table


def render_efficiency_table(detailed: Sequence[DetailedTrader], title: str = "Top by Efficiency") -> Table:
    table = Table(title=title, box=rich.box.SIMPLE_HEAVY, show_edge=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Trader", style="bold", max_width=24)
    table.add_column("PnL/Vol", justify="right")
    table.add_column("WR", justify="right")
    table.add_column("Trades", justify="right")

    for i, d in enumerate(detailed, 1):
        table.add_row(
            _rank_cell(i),
            d.trader.display_name,
            f"{d.efficiency:.1%}",
            _win_rate_cell(d.metrics),
            str(d.metrics.total_trades or "-"),
        )
    return table


def render_consistent_table(detailed: Sequence[DetailedTrader], title: str = "Consistent Winners") -> Table:
    table = Table(title=title, box=rich.box.SIMPLE_HEAVY, show_edge=False)
    table.add_column("Trader", style="bold", max_width=24)
    table.add_column("WR", justify="right")
    table.add_column("W/L", justify="right")
    table.add_column("Avg Win", justify="right")
    table.add_column("Avg Loss", justify="right")

    if not detailed:
        table.caption = "No traders match criteria"
    for d in detailed:
        table.add_row(
            d.trader.display_name,
            _win_rate_cell(d.metrics),
            f"{d.metrics.wins}/{d.metrics.losses}",
            _signed_money(d.metrics.avg_win),
            _signed_money(-d.metrics.avg_loss),
        )
    return table


def render_screen_report(report: ScreenerReport, config: EdgeConfig) -> list[Table]:
    """Every screener section, in display order."""
    details = {d.wallet: d.metrics for d in report.detailed}
    tables = [
        render_leaderboard_table(top_by_profit(report), "Top 20 by All-Time Profit", details=details),
        render_leaderboard_table(hot_hands(report), "Hot Hands Today"),
        render_leaderboard_table(volume_leaders(report), "Volume Leaders", volume_first=True),
    ]
    if report.detailed:
        tables.append(render_efficiency_table(top_by_efficiency(report.detailed, config.SCREEN_EFFICIENCY_MIN_VOLUME)))
        tables.append(render_consistent_table(consistent_winners(report.detailed, config)))
    return tables


def print_table(table: Table) -> None:
    console.print(table)
