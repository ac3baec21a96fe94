"""Farming plot model.

Growth timing lives in the ``grow`` task ledger keyed by plot id; the
plot only remembers what was planted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class FarmingPlot:
    pid: str
    seed_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.seed_id is None
