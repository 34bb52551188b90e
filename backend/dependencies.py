"""Shared FastAPI dependencies for the route modules."""

from fastapi import Request

from config import GOAL_AGGREGATION_POLICY
from services.progress_service import AggregationPolicy, build_policy


def get_aggregation_policy() -> AggregationPolicy:
    """The goal roll-up strategy handed to every write path. Tests override this."""
    return build_policy(GOAL_AGGREGATION_POLICY)


def client_meta(request: Request) -> tuple[str, str]:
    ip = request.client.host if request.client else "unknown"
    return ip, request.headers.get("user-agent", "unknown")
