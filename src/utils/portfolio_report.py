from __future__ import annotations

from typing import Sequence

from domain.portfolio import AssetSummary, GainShare, PortfolioSummary, WalletSummary

from .formatting import format_currency, format_decimal, format_percentage


def _render_table(header: Sequence[str], rows: Sequence[Sequence[str]]) -> list[str]:
    widths = [max(len(header[i]), max((len(row[i]) for row in rows), default=0)) for i in range(len(header))]
    # First column is left aligned, numbers are right aligned.
    header_line = " ".join(
        f"{label:<{widths[i]}}" if i == 0 else f"{label:>{widths[i]}}" for i, label in enumerate(header)
    )
    lines = [header_line, "-" * len(header_line)]
    for row in rows:
        lines.append(
            " ".join(f"{cell:<{widths[i]}}" if i == 0 else f"{cell:>{widths[i]}}" for i, cell in enumerate(row))
        )
    lines.append("-" * len(header_line))
    return lines


def asset_rows(summaries: Sequence[AssetSummary]) -> list[tuple[str, ...]]:
    return [
        (
            summary.asset.symbol,
            format_decimal(summary.quantity_held),
            format_currency(summary.current_price_usd),
            format_currency(summary.cost_basis),
            format_currency(summary.current_value),
            format_currency(summary.gain),
            format_percentage(summary.gain_percentage),
            format_currency(summary.realized_gain),
        )
        for summary in summaries
    ]


ASSET_HEADER = ("Asset", "Quantity", "Price USD", "Cost USD", "Value USD", "Gain USD", "Gain %", "Realized USD")


def render_asset_summaries(summaries: Sequence[AssetSummary]) -> str:
    lines = ["Portfolio by asset:"]
    if not summaries:
        lines.append("  (empty)")
        return "\n".join(lines)
    lines.extend(_render_table(ASSET_HEADER, asset_rows(summaries)))
    return "\n".join(lines)


def render_wallet_summaries(summaries: Sequence[WalletSummary]) -> str:
    lines = ["Portfolio by wallet:"]
    if not summaries:
        lines.append("  (empty)")
        return "\n".join(lines)
    for wallet_summary in summaries:
        lines.append("")
        lines.append(
            f"{wallet_summary.wallet.name} ({wallet_summary.wallet.symbol}): "
            f"value {format_currency(wallet_summary.current_value)} USD, "
            f"gain {format_currency(wallet_summary.gain)} USD ({format_percentage(wallet_summary.gain_percentage)})"
        )
        lines.extend(_render_table(ASSET_HEADER, asset_rows(wallet_summary.assets)))
    return "\n".join(lines)


def render_portfolio_summary(summary: PortfolioSummary, distribution: Sequence[GainShare] = ()) -> str:
    lines = [
        "Portfolio totals:",
        f"  Cost basis:     {format_currency(summary.total_cost_basis)} USD",
        f"  Current value:  {format_currency(summary.current_value)} USD",
        f"  Unrealized:     {format_currency(summary.gain)} USD ({format_percentage(summary.gain_percentage)})",
        f"  Proceeds:       {format_currency(summary.total_disposed_usd)} USD",
        f"  Realized gain:  {format_currency(summary.realized_gain)} USD",
    ]
    if distribution:
        lines.append("")
        lines.extend(
            _render_table(
                ("Asset", "Gain USD", "Share"),
                [
                    (share.symbol, format_currency(share.gain), format_percentage(share.percentage))
                    for share in distribution
                ],
            )
        )
    return "\n".join(lines)
