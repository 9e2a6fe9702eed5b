"""
Shared FastAPI dependencies.

The matching engine is created once in the application lifespan and kept
on app.state; endpoints receive it through get_matching_engine.
"""

from fastapi import Request

from backend.app.domain.matching.engine import MatchingEngine


def get_matching_engine(request: Request) -> MatchingEngine:
    """FastAPI dependency returning the application's matching engine."""
    return request.app.state.matching_engine
