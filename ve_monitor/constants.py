"""
Domain constants for the VE Threshold Monitor.

These are fixed design values for breath-by-breath VE monitoring, not
tunable pipeline settings.
"""

# =============================================================================
# VitalPro Type 1 frames
# =============================================================================

FRAME_TYPE_RESPIRATORY = 0x01
FRAME_LENGTH = 17
TICK_OFFSET = 1
VE_OFFSET = 13

# Empirical tick rate of the strap's counter
TICKS_PER_SECOND = 25.0

# Added to the tick accumulator whenever the raw counter goes backwards
TICK_ROLLOVER = 65536

# =============================================================================
# Signal filtering
# =============================================================================

MEDIAN_WINDOW = 9
BIN_SIZE_SEC = 4.0

# =============================================================================
# CUSUM
# =============================================================================

SLACK_MULTIPLIER = 0.5
THRESHOLD_MULTIPLIER = 5.0
NORMALIZED_SCORE_CEILING = 1.5

# Default sigma (% of baseline VE) per intensity domain
SIGMA_PCT_MODERATE = 10.0
SIGMA_PCT_HEAVY = 5.0
SIGMA_PCT_SEVERE = 5.0

# =============================================================================
# Zones
# =============================================================================

YELLOW_ZONE_START = 0.5
RED_ZONE_START = 1.0

# =============================================================================
# Trend line / charting
# =============================================================================

LOESS_FRAC = 0.4
LOESS_MIN_WINDOW = 2
CHART_WINDOW_SEC = 600.0

# =============================================================================
# Recording / export
# =============================================================================

GAP_THRESHOLD_SEC = 5.0
GAP_FILL_SPACING_SEC = 3.0
TERMINAL_WINDOW_SEC = 30.0
