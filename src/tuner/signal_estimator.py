"""
Signal estimator for raw tuner debug counters

HEURISTIC - calibration pending. The device only exposes an undocumented
dbg=<signal>-<snr>/<third> counter pair, not calibrated dBm/dB values.
The buckets below map observed raw values (roughly 9-86) onto a realistic
ATSC dBm band; they are approximations and may be recalibrated.
"""

import math

from .models import SignalEstimate

# (lower bound of raw value, dBm at the bucket's upper reference, upper reference)
SIGNAL_BUCKETS = (
    (80, -40.0, 100),  # Strong: -40 to -50 dBm
    (60, -50.0, 80),   # Good: -50 to -60 dBm
    (20, -60.0, 60),   # Fair: -60 to -80 dBm
)
WEAK_BUCKET = (-80.0, 20)  # Weak: below -80 dBm
SIGNAL_SLOPE = 0.5
SNR_SCALE = 0.31  # 0-80 raw is roughly 0-25 dB


def _round_tenth(value: float) -> float:
    """Round to one decimal place, halves rounded up"""
    return math.floor(value * 10 + 0.5) / 10


def estimate_signal_dbm(signal_raw: int) -> float:
    for lower, reference_dbm, reference_raw in SIGNAL_BUCKETS:
        if signal_raw >= lower:
            return reference_dbm - (reference_raw - signal_raw) * SIGNAL_SLOPE
    reference_dbm, reference_raw = WEAK_BUCKET
    return reference_dbm - (reference_raw - signal_raw) * SIGNAL_SLOPE


def estimate(signal_raw: int, snr_raw: int) -> SignalEstimate:
    """Map raw debug counters to estimated signal dBm and SNR dB"""
    ss_db = _round_tenth(estimate_signal_dbm(signal_raw))
    snr_db = _round_tenth(snr_raw * SNR_SCALE) if snr_raw > 0 else 0.0
    return SignalEstimate(ss_db=ss_db, snr_db=snr_db)
