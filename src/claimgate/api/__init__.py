"""ClaimGate REST API."""

from claimgate.api.router import router

__all__ = ["router"]
