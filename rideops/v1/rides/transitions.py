"""
Edge trigger for ride status transitions.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TransitionDetector:
    """
    Fires once per transition into ``target_status``.

    A missing previous status (initial insert) counts as non-terminal, so a
    row created directly in the target status still fires. Rewriting the
    same status does not.
    """

    target_status: str

    def should_fire(self, previous_status: str | None, new_status: str | None) -> bool:
        if new_status != self.target_status:
            return False
        return previous_status != self.target_status
