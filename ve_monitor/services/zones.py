"""
Zone classification for the live CUSUM display.
"""

from ..constants import RED_ZONE_START, YELLOW_ZONE_START
from ..models.enums import Zone


def classify_zone(normalized_score: float, in_recovery: bool = False) -> Zone:
    """
    Map a normalized CUSUM score to a display zone.

    Recovery overrides the numeric zone; otherwise green below 0.5h,
    yellow from 0.5h up to h, red at or above h.
    """
    if in_recovery:
        return Zone.RECOVERY
    if normalized_score < YELLOW_ZONE_START:
        return Zone.GREEN
    if normalized_score < RED_ZONE_START:
        return Zone.YELLOW
    return Zone.RED
