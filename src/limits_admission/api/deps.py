from __future__ import annotations

from fastapi import Request

from limits_admission.admission.engine import DecisionEngine
from limits_admission.policy.store import PolicyStore


def get_engine(request: Request) -> DecisionEngine:
    return request.app.state.engine


def get_store(request: Request) -> PolicyStore | None:
    return getattr(request.app.state, "store", None)
