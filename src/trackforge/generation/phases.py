"""Phase machine for a single generation attempt.

Phases advance strictly forward through::

    title -> synth -> wait -> download -> image -> complete

Skipping ahead is allowed (an audio cache hit goes from ``title``
straight to ``complete``), ``error`` is reachable from any non-terminal
phase, and nothing leaves ``complete`` or ``error``.
"""

import logging
from collections.abc import Callable
from enum import Enum

from .errors import InvalidTransitionError

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    TITLE = "title"
    SYNTH = "synth"
    WAIT = "wait"
    DOWNLOAD = "download"
    IMAGE = "image"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.COMPLETE, Phase.ERROR)


FORWARD_ORDER = (
    Phase.TITLE,
    Phase.SYNTH,
    Phase.WAIT,
    Phase.DOWNLOAD,
    Phase.IMAGE,
    Phase.COMPLETE,
)

TransitionCallback = Callable[[Phase, Phase], None]


class PhaseMachine:
    """Tracks the phase of one attempt and rejects illegal transitions."""

    def __init__(
        self,
        initial: Phase = Phase.TITLE,
        on_transition: TransitionCallback | None = None,
    ) -> None:
        """Initialize phase machine.

        Args:
            initial: Starting phase
            on_transition: Called with (previous, current) after every transition
        """
        self.phase = initial
        self.on_transition = on_transition

    @property
    def is_terminal(self) -> bool:
        return self.phase.is_terminal

    def can_transition(self, target: Phase) -> bool:
        if self.phase.is_terminal:
            return False
        if target is Phase.ERROR:
            return True
        return FORWARD_ORDER.index(target) > FORWARD_ORDER.index(self.phase)

    def transition(self, target: Phase) -> None:
        """Move to ``target``.

        Raises:
            InvalidTransitionError: If the move is backwards, a repeat, or
                leaves a terminal phase
        """
        if not self.can_transition(target):
            raise InvalidTransitionError(self.phase.value, target.value)

        previous = self.phase
        self.phase = target
        logger.debug(f"Phase {previous.value} -> {target.value}")

        if self.on_transition is not None:
            self.on_transition(previous, target)

    def fail(self) -> None:
        """Move to ``error`` unless the machine already ended."""
        if not self.phase.is_terminal:
            self.transition(Phase.ERROR)
