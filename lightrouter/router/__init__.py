"""
Router module: Model selection and fallback execution.

This module contains:
- selector.py: TaskRequirement, SelectionPlan and the pure ranking function
- engine.py: Router, which executes a plan attempt by attempt
"""

from lightrouter.router.engine import GenerationOutcome, Router
from lightrouter.router.selector import (
    SelectionPlan,
    TaskRequirement,
    check_eligibility,
    rank_candidates,
    select_plan,
)

__all__ = [
    "TaskRequirement",
    "SelectionPlan",
    "check_eligibility",
    "rank_candidates",
    "select_plan",
    "Router",
    "GenerationOutcome",
]
