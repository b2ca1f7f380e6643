from .engine import apply_transition, allowed_transitions
from .registry import WORKFLOWS

__all__ = ["WORKFLOWS", "allowed_transitions", "apply_transition"]
