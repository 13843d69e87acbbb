"""Safety observers and the supervisor that aggregates them.

Each observer consumes its own sensor stream and keeps a last-known verdict
that the control tick reads without blocking. The supervisor vetoes motion
as soon as any observer reports unsafe. Observers start unsafe: a sensor that
has never reported cannot vouch for the robot's surroundings.
"""

import logging
import math
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

import numpy as np

from .config import SCAN_MIN_CLEARANCE, SKIN_CONTACT_THRESHOLD


class SafetyObserver(Protocol):
    tag: str

    def safe(self) -> bool:
        ...


class ScanObserver:
    """Proximity observer fed by planar range scans.

    Attributes:
        min_clearance: Ranges at or below this distance veto motion (m).
        closest_range: Closest valid range of the last scan (m).
    """

    tag = "scan_safety_observer"

    def __init__(self, min_clearance: float = SCAN_MIN_CLEARANCE) -> None:
        self.min_clearance = min_clearance
        self.closest_range: Optional[float] = None
        self._safe = False

    def update_scan(
        self,
        ranges: Sequence[float],
        range_min: float = 0.0,
        range_max: float = math.inf,
    ) -> None:
        """Recompute the verdict from a new scan.

        Readings that are not finite or fall outside [range_min, range_max]
        are treated as "no return" and ignored.

        Args:
            ranges: Range readings (m)
            range_min: Minimum valid range of the sensor (m)
            range_max: Maximum valid range of the sensor (m)
        """
        r = np.asarray(ranges, dtype=np.float64)
        valid = r[np.isfinite(r) & (r >= range_min) & (r <= range_max)]
        closest = float(valid.min()) if valid.size else math.inf
        was_safe = self._safe
        self.closest_range = closest
        self._safe = closest > self.min_clearance
        if was_safe and not self._safe:
            logging.warning(f"Scan observer: obstacle at {closest:.2f}m, stopping")

    def safe(self) -> bool:
        return self._safe


class ArmSkinObserver:
    """Contact observer fed by the arm's pressure-sensitive skin.

    Attributes:
        contact_threshold: Normalized pressure above which a cell is in contact.
    """

    tag = "arm_skin_observer"

    def __init__(self, contact_threshold: float = SKIN_CONTACT_THRESHOLD) -> None:
        self.contact_threshold = contact_threshold
        self._safe = False

    def update_pressures(self, pressures: Sequence[float]) -> None:
        values = np.asarray(pressures, dtype=np.float64)
        in_contact = bool(np.any(values > self.contact_threshold))
        if self._safe and in_contact:
            logging.warning("Arm skin observer: contact detected, stopping")
        self._safe = not in_contact

    def safe(self) -> bool:
        return self._safe


OBSERVER_TYPES = {
    ScanObserver.tag: ScanObserver,
    ArmSkinObserver.tag: ArmSkinObserver,
}


def create_observer(tag: str) -> SafetyObserver:
    """Build a safety observer from its configuration tag.

    Raises:
        ValueError: If the tag does not name a known observer.
    """
    try:
        observer_type = OBSERVER_TYPES[tag]
    except KeyError:
        raise ValueError(
            f"Unknown safety observer '{tag}'. Available: {', '.join(sorted(OBSERVER_TYPES))}"
        ) from None
    return observer_type()


class SafetySupervisor:
    """Aggregates an ensemble of safety observers by logical AND."""

    def __init__(self, observers: Iterable[SafetyObserver] = ()) -> None:
        self._observers: List[SafetyObserver] = list(observers)

    @classmethod
    def from_tags(cls, tags: Iterable[str]) -> "SafetySupervisor":
        return cls(create_observer(tag) for tag in tags)

    @property
    def observers(self) -> List[SafetyObserver]:
        return list(self._observers)

    @property
    def tags(self) -> List[str]:
        return [observer.tag for observer in self._observers]

    def observer(self, tag: str) -> Optional[SafetyObserver]:
        """Return the first observer with ``tag``, or None."""
        for observer in self._observers:
            if observer.tag == tag:
                return observer
        return None

    def all_safe(self) -> bool:
        """True unless some observer currently reports unsafe."""
        return all(observer.safe() for observer in self._observers)

    def unsafe_tags(self) -> List[str]:
        return [observer.tag for observer in self._observers if not observer.safe()]

    def get_diagnostics(self) -> Dict[str, bool]:
        return {observer.tag: observer.safe() for observer in self._observers}
