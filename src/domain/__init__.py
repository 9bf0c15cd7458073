"""Domain models and the lot costing engine.

This package holds the in-memory (Pydantic) models for action records, lots,
movements and transactions, the account/lot ledger, lot selection policies and
the engine that ties them together. Nothing in here touches files, the network
or the process environment.
"""

__all__ = [
    "accounts",
    "errors",
    "inventory",
    "ledger",
    "records",
    "selection",
    "settings",
]
