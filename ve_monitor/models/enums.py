"""
Enums for VE Threshold Monitor
"""

from enum import Enum


class RunType(str, Enum):
    """Intensity domain of a training run."""
    MODERATE = "MODERATE"
    HEAVY = "HEAVY"
    SEVERE = "SEVERE"

    @classmethod
    def from_string(cls, value: str) -> "RunType":
        """Convert string to RunType enum."""
        value_upper = value.upper().strip()
        if value_upper in ("MODERATE", "VT1", "VT1_STEADY", "VT1 (STEADY STATE)"):
            return cls.MODERATE
        elif value_upper in ("HEAVY", "VT2", "VT2_INTERVAL", "VT2 (INTERVALS)"):
            return cls.HEAVY
        elif value_upper == "SEVERE":
            return cls.SEVERE
        raise ValueError(f"Unknown run type: {value}")

    @property
    def threshold_label(self) -> str:
        """Which ventilatory threshold the work phase is held against."""
        return "vt1" if self is RunType.MODERATE else "vt2"


class WorkoutPhase(str, Enum):
    """Phase of a workout session."""
    WARMUP = "warmup"
    WORKOUT = "workout"
    COOLDOWN = "cooldown"

    @classmethod
    def from_string(cls, value: str) -> "WorkoutPhase":
        value_lower = value.lower().strip()
        if value_lower in ("work", "workout"):
            return cls.WORKOUT
        for phase in cls:
            if phase.value == value_lower:
                return phase
        raise ValueError(f"Unknown workout phase: {value}")


class Zone(str, Enum):
    """Display zone derived from the normalized CUSUM score."""
    GREEN = "GREEN"
    YELLOW = "YELLOW"
    RED = "RED"
    RECOVERY = "RECOVERY"

    @property
    def display_name(self) -> str:
        """Human-readable display name."""
        return {
            self.GREEN: "Below Threshold",
            self.YELLOW: "Approaching Threshold",
            self.RED: "Above Threshold",
            self.RECOVERY: "Recovery",
        }[self]

    @property
    def color(self) -> str:
        """Color code for UI display."""
        return {
            self.GREEN: "green",
            self.YELLOW: "yellow",
            self.RED: "red",
            self.RECOVERY: "blue",
        }[self]
