"""Run-wide tally for Locust load test scenarios.

Locust users share one process, so a module-level tally sees every response.
"""

from collections import Counter
from dataclasses import dataclass, field


@dataclass
class DeliveryTally:
    """Counts replayed notifications by the outcome the server reported."""

    deliveries: int = 0
    outcomes: dict[str, int] = field(default_factory=dict)
    settled_tran_ids: list[str] = field(default_factory=list)

    def record(self, tran_id: str, outcome: str) -> None:
        self.deliveries += 1
        self.outcomes[outcome] = self.outcomes.get(outcome, 0) + 1
        if outcome == "success":
            self.settled_tran_ids.append(tran_id)

    @property
    def double_settled(self) -> set[str]:
        """Transactions answered "success" more than once."""
        counts = Counter(self.settled_tran_ids)
        return {tran_id for tran_id, count in counts.items() if count > 1}
