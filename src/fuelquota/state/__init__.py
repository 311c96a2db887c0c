"""State/store layer.

The only place quota periods are kept and the only code allowed to
change a period's remaining balance.
"""

from fuelquota.state.store import DuplicateActivePeriodError, InMemoryQuotaStore, QuotaKey, QuotaStore

__all__ = ["DuplicateActivePeriodError", "InMemoryQuotaStore", "QuotaKey", "QuotaStore"]
