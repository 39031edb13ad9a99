"""Domain models and calculations for the portfolio tracker.

Catalogs, movements and the ledger are in-memory (Pydantic) models,
independent from the persistence models so business rules and valuation can
be tested without a database.
"""

__all__ = [
    "balance",
    "catalog",
    "movements",
    "portfolio",
    "price_history",
    "wallet_balance_tracker",
]
