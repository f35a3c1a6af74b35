"""Bitcoin fee oracle client and unshielding fee heuristic."""

from btc_portal.chain.fees.client import FeeEstimator, estimate_unshielding_fee

__all__ = ["FeeEstimator", "estimate_unshielding_fee"]
