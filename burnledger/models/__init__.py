from burnledger.models.ledger import DailyBurnedEntry
from burnledger.models.profile import UserProfile
from burnledger.models.body_metrics import BodyMetricsEntry

__all__ = [
    "DailyBurnedEntry",
    "UserProfile",
    "BodyMetricsEntry",
]
