"""Bulk generation: phase machine, run models and errors.

The orchestrator itself lives in ``trackforge.generation.pipeline``.
"""

from .errors import (
    GenerationCancelled,
    GenerationError,
    InvalidTransitionError,
    ScheduleNotFoundError,
    ServiceAPIError,
    ServiceAuthError,
    SynthesisFailedError,
    SynthesisTimeoutError,
)
from .models import GenerationRequest, GenerationResult, ProgressEvent
from .phases import Phase, PhaseMachine

__all__ = [
    "GenerationCancelled",
    "GenerationError",
    "GenerationRequest",
    "GenerationResult",
    "InvalidTransitionError",
    "Phase",
    "PhaseMachine",
    "ProgressEvent",
    "ScheduleNotFoundError",
    "ServiceAPIError",
    "ServiceAuthError",
    "SynthesisFailedError",
    "SynthesisTimeoutError",
]
