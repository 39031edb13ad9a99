"""Portfolio valuation over a ledger.

Cost basis follows a single weighted-average model per (wallet, asset) book:
acquisitions add their USD value, disposals remove the average cost of the
quantity they take, transfers carry the average cost of the sent quantity
into the destination wallet.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Iterable

from domain.catalog import Asset, AssetId, CatalogSnapshot, Wallet, WalletId
from domain.movements import Deposit, Ledger, Movement, Swap, Transfer, Withdrawal

logger = logging.getLogger(__name__)

ZERO = Decimal(0)


def gain_percentage(gain: Decimal, cost_basis: Decimal) -> Decimal:
    if cost_basis == 0:
        return ZERO
    return gain / cost_basis * 100


@dataclass
class _Deficit:
    quantity: Decimal
    settle: Callable[[Decimal], None]


@dataclass
class _CostBook:
    """Weighted-average book for one (wallet, asset).

    Outflows dated before the inflow that funded them leave the book short.
    The shortfall is priced at the unit cost of the next inflow and charged
    to whatever consumed it: the realized gain of a disposal, or the cost of
    the wallet a transfer moved it to.
    """

    quantity: Decimal = ZERO
    cost: Decimal = ZERO
    acquired_usd: Decimal = ZERO
    disposed_usd: Decimal = ZERO
    realized_gain: Decimal = ZERO
    deficits: list[_Deficit] = field(default_factory=list)

    def acquire(self, quantity: Decimal, cost: Decimal) -> None:
        self.acquired_usd += cost
        self.receive(quantity, cost)

    def dispose(self, quantity: Decimal, proceeds: Decimal) -> None:
        removed_cost = self.take(quantity, self._charge_realized)
        self.disposed_usd += proceeds
        self.realized_gain += proceeds - removed_cost

    def receive(self, quantity: Decimal, cost: Decimal) -> None:
        remaining = quantity
        remaining_cost = cost
        while self.deficits and remaining > 0:
            deficit = self.deficits[0]
            covered = min(deficit.quantity, remaining)
            covered_cost = cost * covered / quantity
            deficit.settle(covered_cost)
            remaining_cost -= covered_cost
            deficit.quantity -= covered
            remaining -= covered
            if deficit.quantity == 0:
                self.deficits.pop(0)
        self.quantity += quantity
        self.cost += remaining_cost

    def take(self, quantity: Decimal, settle: Callable[[Decimal], None]) -> Decimal:
        """Remove ``quantity`` units and return the cost known to leave with them.

        Units beyond what the book holds are recorded as a deficit and priced
        later through ``settle``.
        """
        held = max(self.quantity, ZERO)
        if quantity >= held:
            removed_cost = self.cost
            if quantity > held:
                self.deficits.append(_Deficit(quantity - held, settle))
        else:
            removed_cost = self.cost * quantity / held
        self.quantity -= quantity
        self.cost -= removed_cost
        return removed_cost

    def add_cost(self, cost: Decimal) -> None:
        self.cost += cost

    def _charge_realized(self, cost: Decimal) -> None:
        self.realized_gain -= cost


BookKey = tuple[WalletId, AssetId]


def _build_books(movements: Iterable[Movement]) -> dict[BookKey, _CostBook]:
    books: dict[BookKey, _CostBook] = defaultdict(_CostBook)
    for movement in Ledger(movements).chronological():
        if isinstance(movement, Deposit):
            books[(movement.wallet_id, movement.asset_id)].acquire(movement.crypto_quantity, movement.total_value_usd)
        elif isinstance(movement, Withdrawal):
            books[(movement.wallet_id, movement.asset_id)].dispose(movement.crypto_quantity, movement.total_value_usd)
        elif isinstance(movement, Transfer):
            destination = books[(movement.destination_wallet_id, movement.asset_id)]
            moved_cost = books[(movement.source_wallet_id, movement.asset_id)].take(
                movement.quantity_sent, destination.add_cost
            )
            destination.receive(movement.quantity_received, moved_cost)
        elif isinstance(movement, Swap):
            books[(movement.wallet_id, movement.source_asset_id)].dispose(
                movement.quantity_source, movement.value_usd_source
            )
            books[(movement.wallet_id, movement.destination_asset_id)].acquire(
                movement.quantity_destination, movement.value_usd_destination
            )
        else:
            raise TypeError(f"Unsupported movement type: {type(movement).__name__}")

    for (wallet_id, asset_id), book in books.items():
        if book.quantity < 0:
            logger.warning(
                "Negative holding while valuing portfolio wallet=%s asset=%s quantity=%s",
                wallet_id,
                asset_id,
                book.quantity,
            )
    return books


@dataclass
class AssetSummary:
    asset: Asset
    quantity_held: Decimal
    cost_basis: Decimal
    total_acquired_usd: Decimal
    total_disposed_usd: Decimal
    realized_gain: Decimal

    @property
    def current_price_usd(self) -> Decimal:
        return self.asset.current_price_usd

    @property
    def current_value(self) -> Decimal:
        return self.quantity_held * self.asset.current_price_usd

    @property
    def gain(self) -> Decimal:
        return self.current_value - self.cost_basis

    @property
    def gain_percentage(self) -> Decimal:
        return gain_percentage(self.gain, self.cost_basis)


@dataclass
class WalletSummary:
    wallet: Wallet
    assets: list[AssetSummary] = field(default_factory=list)

    @property
    def current_value(self) -> Decimal:
        return sum((asset.current_value for asset in self.assets), start=ZERO)

    @property
    def cost_basis(self) -> Decimal:
        return sum((asset.cost_basis for asset in self.assets), start=ZERO)

    @property
    def gain(self) -> Decimal:
        return self.current_value - self.cost_basis

    @property
    def gain_percentage(self) -> Decimal:
        return gain_percentage(self.gain, self.cost_basis)


@dataclass
class PortfolioSummary:
    total_cost_basis: Decimal
    current_value: Decimal
    total_disposed_usd: Decimal
    realized_gain: Decimal

    @property
    def gain(self) -> Decimal:
        return self.current_value - self.total_cost_basis

    @property
    def gain_percentage(self) -> Decimal:
        return gain_percentage(self.gain, self.total_cost_basis)


@dataclass
class GainShare:
    asset_id: AssetId
    symbol: str
    gain: Decimal
    current_value: Decimal
    percentage: Decimal


def _summarize(asset: Asset, books: Iterable[_CostBook]) -> AssetSummary:
    books = list(books)
    return AssetSummary(
        asset=asset,
        quantity_held=sum((book.quantity for book in books), start=ZERO),
        cost_basis=sum((book.cost for book in books), start=ZERO),
        total_acquired_usd=sum((book.acquired_usd for book in books), start=ZERO),
        total_disposed_usd=sum((book.disposed_usd for book in books), start=ZERO),
        realized_gain=sum((book.realized_gain for book in books), start=ZERO),
    )


def _sorted_by_value(summaries: list[AssetSummary]) -> list[AssetSummary]:
    return sorted(summaries, key=lambda summary: summary.current_value, reverse=True)


def summarize_by_asset(
    ledger: Ledger | Iterable[Movement],
    catalog: CatalogSnapshot,
    wallet_ids: set[WalletId] | None = None,
) -> list[AssetSummary]:
    """One summary per asset with activity in the given wallets (all wallets when None)."""
    books = _build_books(ledger)
    books_by_asset: dict[AssetId, list[_CostBook]] = defaultdict(list)
    for (wallet_id, asset_id), book in books.items():
        if wallet_ids is None or wallet_id in wallet_ids:
            books_by_asset[asset_id].append(book)

    summaries: list[AssetSummary] = []
    for asset_id, asset_books in books_by_asset.items():
        asset = catalog.asset(asset_id)
        if asset is None:
            logger.warning("Skipping movements of asset %s missing from the catalog", asset_id)
            continue
        summaries.append(_summarize(asset, asset_books))
    return _sorted_by_value(summaries)


def summarize_by_wallet(ledger: Ledger | Iterable[Movement], catalog: CatalogSnapshot) -> list[WalletSummary]:
    books = _build_books(ledger)
    result: list[WalletSummary] = []
    for wallet in catalog.wallets:
        summaries: list[AssetSummary] = []
        for asset in catalog.assets:
            book = books.get((wallet.id, asset.id))
            if book is None:
                continue
            summaries.append(_summarize(asset, [book]))
        if summaries:
            result.append(WalletSummary(wallet=wallet, assets=_sorted_by_value(summaries)))
    return result


def summarize_portfolio(asset_summaries: Iterable[AssetSummary]) -> PortfolioSummary:
    summaries = list(asset_summaries)
    return PortfolioSummary(
        total_cost_basis=sum((summary.cost_basis for summary in summaries), start=ZERO),
        current_value=sum((summary.current_value for summary in summaries), start=ZERO),
        total_disposed_usd=sum((summary.total_disposed_usd for summary in summaries), start=ZERO),
        realized_gain=sum((summary.realized_gain for summary in summaries), start=ZERO),
    )


def gain_distribution(asset_summaries: Iterable[AssetSummary]) -> list[GainShare]:
    """Each asset's gain as a share of the sum of absolute gains."""
    summaries = list(asset_summaries)
    total_absolute = sum((abs(summary.gain) for summary in summaries), start=ZERO)
    shares = [
        GainShare(
            asset_id=summary.asset.id,
            symbol=summary.asset.symbol,
            gain=summary.gain,
            current_value=summary.current_value,
            percentage=summary.gain / total_absolute * 100 if total_absolute != 0 else ZERO,
        )
        for summary in summaries
    ]
    return sorted(shares, key=lambda share: share.gain, reverse=True)
