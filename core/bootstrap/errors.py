"""
Tally Bootstrap — Startup Failure
===================================
Raised by the startup self-check when the store or ledger cannot
be trusted. The process must not serve traffic after this.
"""

from typing import Optional


class SystemBootstrapError(Exception):
    """
    invariant:        machine-readable name of the broken law,
                      e.g. TABLES_MISSING or LEDGER_SEQUENCE_GAP
    detail:           what was found
    sequence_number:  ledger position of the break, when there is one
    """

    def __init__(
        self,
        invariant: str,
        detail: str,
        sequence_number: Optional[int] = None,
    ):
        self.invariant = invariant
        self.detail = detail
        self.sequence_number = sequence_number
        super().__init__(f"TALLY BOOTSTRAP FAILURE: {invariant}: {detail}")

    def to_dict(self) -> dict:
        return {
            "invariant": self.invariant,
            "detail": self.detail,
            "sequence_number": self.sequence_number,
        }
