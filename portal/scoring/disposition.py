"""
Dispositions: operational outcomes layered over the score-derived status.

DROP and CALLBACK replace scoring entirely; INFO_REQUESTED keeps full
scoring but its tag is what gets persisted and displayed as the status.
"""
from enum import Enum
from typing import Optional

from portal.config import (
    DISPOSITION_DROP, DISPOSITION_INFO_REQUESTED, DISPOSITION_CALLBACK, STATUS_LABELS,
)


class Disposition(str, Enum):
    DROP = DISPOSITION_DROP
    INFO_REQUESTED = DISPOSITION_INFO_REQUESTED
    CALLBACK = DISPOSITION_CALLBACK

    @property
    def label(self) -> str:
        return STATUS_LABELS[self.value]

    @property
    def requires_scoring(self) -> bool:
        return self is Disposition.INFO_REQUESTED

    @classmethod
    def from_status(cls, status: Optional[str]) -> Optional['Disposition']:
        """Recover the disposition from a stored status tag, if it is one."""
        if not status:
            return None
        try:
            return cls(status.strip())
        except ValueError:
            return None
