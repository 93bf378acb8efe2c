"""Back-office reconciliation for a membership business: processor fees, settlement matching and bank transaction rules."""

__version__ = "0.1.0"
