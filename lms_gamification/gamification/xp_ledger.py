"""
XP Ledger

Append-only record of XP grants with timestamps. Totals are never derived
from it (they live on UserStats); it exists so that time-windowed views such
as the weekly leaderboard and the XP history can be computed.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional
import logging

from lms_gamification.models.gamification import XpRewardType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class XpTransaction:
    user_id: str
    amount: int
    source_type: XpRewardType
    awarded_at: datetime
    course_id: Optional[str] = None
    reason: str = ""


class InMemoryXpLedger:
    """
    In-memory ledger keyed by user

    Entries older than `retention` are pruned on write so the ledger stays
    bounded; it must be at least as long as the widest window queried.
    """

    def __init__(self, retention: timedelta = timedelta(days=35)):
        self._transactions: Dict[str, List[XpTransaction]] = {}
        self.retention = retention

    async def record(self, transaction: XpTransaction) -> None:
        """Append one XP grant"""
        entries = self._transactions.setdefault(transaction.user_id, [])
        entries.append(transaction)

        cutoff = transaction.awarded_at - self.retention
        if entries and entries[0].awarded_at < cutoff:
            self._transactions[transaction.user_id] = [t for t in entries if t.awarded_at >= cutoff]

        logger.debug(
            f"Ledger: {transaction.amount} XP to user {transaction.user_id} "
            f"for {transaction.source_type.value}"
        )

    async def history(self, user_id: str, since: datetime) -> List[XpTransaction]:
        """Transactions for a user at or after `since`, newest first"""
        entries = [t for t in self._transactions.get(user_id, []) if t.awarded_at >= since]
        return sorted(entries, key=lambda t: t.awarded_at, reverse=True)

    async def window_totals(self, since: datetime, until: Optional[datetime] = None) -> Dict[str, int]:
        """
        XP per user within [since, until]

        Only users with at least one transaction inside the window are
        included. Dict order follows first-ever ledger activity.
        """
        totals: Dict[str, int] = {}
        for user_id, entries in self._transactions.items():
            in_window = [
                t for t in entries
                if t.awarded_at >= since and (until is None or t.awarded_at <= until)
            ]
            if in_window:
                totals[user_id] = sum(t.amount for t in in_window)
        return totals


def window_start(now: datetime, days: int) -> datetime:
    """Start of a trailing window of `days` days ending at `now`"""
    return now - timedelta(days=days)
