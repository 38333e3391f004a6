"""Risk scoring helpers for ContextGuard."""

from .scoring import RiskWeights, TrustBand, band_for, summarize_scores

__all__ = ["RiskWeights", "TrustBand", "band_for", "summarize_scores"]
