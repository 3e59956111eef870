"""quantsim.models

Process parameter sets and the closed registry of process variants.
"""

from .params import parameter_dict
from .processes import (
    GenerationMethod,
    JumpTerm,
    ProcessKind,
    ProcessModel,
    available_models,
    get_model,
    model_for,
    resolve_model,
)

__all__ = [
    "GenerationMethod",
    "JumpTerm",
    "ProcessKind",
    "ProcessModel",
    "available_models",
    "get_model",
    "model_for",
    "parameter_dict",
    "resolve_model",
]
