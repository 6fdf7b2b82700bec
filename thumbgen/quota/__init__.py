"""Subscription plans and quota checks."""

from .gate import (
    PLAN_LIMITS,
    SUBSCRIPTION_PERIOD,
    PlanType,
    QuotaGate,
    UsageSummary,
    can_submit_generation,
    can_submit_training,
)

__all__ = [
    "PLAN_LIMITS",
    "SUBSCRIPTION_PERIOD",
    "PlanType",
    "QuotaGate",
    "UsageSummary",
    "can_submit_generation",
    "can_submit_training",
]
