"""
Run and Phase Configuration for VE Threshold Monitor
"""

from typing import List
from pydantic import BaseModel, Field, model_validator

from ..constants import SIGMA_PCT_HEAVY, SIGMA_PCT_MODERATE, SIGMA_PCT_SEVERE
from .enums import RunType, WorkoutPhase


class PhaseConfig(BaseModel):
    """
    Configuration for a single workout phase.

    Holds everything the orchestrator and the detection core need for one
    phase: how long it lasts, which baseline the CUSUM is held against,
    how sensitive it is, and whether the phase is split into intervals.
    """

    phase: WorkoutPhase = Field(description="Workout phase")
    duration_sec: float = Field(ge=0, description="Phase duration (seconds)")
    baseline_ve: float = Field(gt=0, description="CUSUM baseline VE (L/min)")
    sigma_pct: float = Field(gt=0, description="Sigma as % of baseline VE")
    speed_mph: float = Field(default=0.0, ge=0, description="Treadmill speed (mph)")
    num_intervals: int = Field(default=1, ge=1, description="Number of work intervals")
    interval_duration_sec: float = Field(
        default=0.0,
        ge=0,
        description="Work interval duration (seconds)"
    )
    recovery_duration_sec: float = Field(
        default=0.0,
        ge=0,
        description="Recovery duration after each interval (seconds)"
    )
    run_type_label: str = Field(
        default="vt1",
        description="Threshold label recorded with exported data ('vt1' or 'vt2')"
    )

    class Config:
        """Pydantic configuration."""
        frozen = True

    @model_validator(mode="before")
    @classmethod
    def _normalize_intervals(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("num_intervals", 1) <= 1:
            # A single interval is continuous: no recovery, one block
            data["num_intervals"] = 1
            data["recovery_duration_sec"] = 0.0
            data["interval_duration_sec"] = data.get("duration_sec", 0.0)
        elif data.get("interval_duration_sec") is None:
            data["interval_duration_sec"] = data.get("duration_sec", 0.0)
        return data

    @property
    def is_interval_mode(self) -> bool:
        return self.num_intervals > 1

    @property
    def cycle_duration_sec(self) -> float:
        """Work interval plus its recovery."""
        return self.interval_duration_sec + self.recovery_duration_sec


class RunConfig(BaseModel):
    """User's configuration for a full run (warmup, workout, cooldown)."""

    run_type: RunType = Field(description="Intensity domain of the workout phase")
    speed_mph: float = Field(default=0.0, ge=0, description="Workout speed (mph)")

    num_intervals: int = Field(default=1, ge=1, description="Number of work intervals")
    interval_duration_min: float = Field(
        default=4.0,
        ge=0,
        description="Work interval duration (minutes)"
    )
    recovery_duration_min: float = Field(
        default=1.0,
        ge=0,
        description="Recovery duration (minutes)"
    )

    # Thresholds (supplied by the user or an external calibration source)
    vt1_ve: float = Field(gt=0, description="VT1 VE threshold (L/min)")
    vt2_ve: float = Field(gt=0, description="VT2 VE threshold (L/min)")

    # Warmup / cooldown
    warmup_duration_min: float = Field(default=0.0, ge=0, description="Warmup duration (minutes)")
    cooldown_duration_min: float = Field(default=0.0, ge=0, description="Cooldown duration (minutes)")
    warmup_speed_mph: float = Field(default=5.0, ge=0, description="Warmup speed (mph)")
    cooldown_speed_mph: float = Field(default=5.0, ge=0, description="Cooldown speed (mph)")

    # Sigma percentages (CUSUM sensitivity per domain)
    sigma_pct_moderate: float = Field(
        default=SIGMA_PCT_MODERATE,
        gt=0,
        description="Sigma as % of baseline VE for moderate-domain phases"
    )
    sigma_pct_heavy: float = Field(
        default=SIGMA_PCT_HEAVY,
        gt=0,
        description="Sigma as % of baseline VE for heavy-domain work"
    )
    sigma_pct_severe: float = Field(
        default=SIGMA_PCT_SEVERE,
        gt=0,
        description="Sigma as % of baseline VE for severe-domain work"
    )

    class Config:
        """Pydantic configuration."""
        json_schema_extra = {
            "example": {
                "run_type": "HEAVY",
                "speed_mph": 8.5,
                "num_intervals": 12,
                "interval_duration_min": 4.0,
                "recovery_duration_min": 1.0,
                "vt1_ve": 60.0,
                "vt2_ve": 80.0,
                "warmup_duration_min": 10.0,
                "cooldown_duration_min": 5.0,
            }
        }

    @property
    def work_baseline_ve(self) -> float:
        return self.vt1_ve if self.run_type == RunType.MODERATE else self.vt2_ve

    @property
    def work_sigma_pct(self) -> float:
        return {
            RunType.MODERATE: self.sigma_pct_moderate,
            RunType.HEAVY: self.sigma_pct_heavy,
            RunType.SEVERE: self.sigma_pct_severe,
        }[self.run_type]

    @property
    def work_num_intervals(self) -> int:
        # Moderate runs are always a single continuous block
        return 1 if self.run_type == RunType.MODERATE else self.num_intervals

    def phase_config(self, phase: WorkoutPhase) -> PhaseConfig:
        """
        Build the configuration for one phase of this run.

        Warmup and cooldown always run continuously against VT1 with the
        moderate sigma, regardless of the workout's run type.
        """
        if phase == WorkoutPhase.WARMUP:
            return PhaseConfig(
                phase=phase,
                duration_sec=self.warmup_duration_min * 60.0,
                baseline_ve=self.vt1_ve,
                sigma_pct=self.sigma_pct_moderate,
                speed_mph=self.warmup_speed_mph,
                run_type_label="vt1",
            )
        if phase == WorkoutPhase.COOLDOWN:
            return PhaseConfig(
                phase=phase,
                duration_sec=self.cooldown_duration_min * 60.0,
                baseline_ve=self.vt1_ve,
                sigma_pct=self.sigma_pct_moderate,
                speed_mph=self.cooldown_speed_mph,
                run_type_label="vt1",
            )

        num_intervals = self.work_num_intervals
        interval_sec = self.interval_duration_min * 60.0
        if num_intervals > 1:
            recovery_sec = self.recovery_duration_min * 60.0
            duration_sec = num_intervals * (interval_sec + recovery_sec)
        else:
            recovery_sec = 0.0
            duration_sec = interval_sec

        return PhaseConfig(
            phase=phase,
            duration_sec=duration_sec,
            baseline_ve=self.work_baseline_ve,
            sigma_pct=self.work_sigma_pct,
            speed_mph=self.speed_mph,
            num_intervals=num_intervals,
            interval_duration_sec=interval_sec,
            recovery_duration_sec=recovery_sec,
            run_type_label=self.run_type.threshold_label,
        )

    def phase_plan(self) -> List[PhaseConfig]:
        """Ordered phases of this run, skipping warmup/cooldown when not configured."""
        plan = []
        if self.warmup_duration_min > 0:
            plan.append(self.phase_config(WorkoutPhase.WARMUP))
        plan.append(self.phase_config(WorkoutPhase.WORKOUT))
        if self.cooldown_duration_min > 0:
            plan.append(self.phase_config(WorkoutPhase.COOLDOWN))
        return plan
