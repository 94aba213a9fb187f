"""Observability helpers for ClaimGate."""

from claimgate.observability.metrics import metrics

__all__ = ["metrics"]
