"""Mining reward ledger and payout custodian."""

__version__ = "0.1.0"
