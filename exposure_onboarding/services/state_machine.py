"""
Wizard state machine.

Pure transitions ``(state, event, gate, profile) -> state`` with no I/O so
navigation rules can be tested without the orchestrator. A transition the
gates do not allow returns the state unchanged.
"""

from dataclasses import dataclass, field, replace
from typing import FrozenSet, Iterable, Union

from ..profile import OnboardingProfile
from ..rules.step_gate import FIRST_STEP, LAST_STEP, Step, StepGate


@dataclass(frozen=True)
class WizardState:
    current_step: Step = FIRST_STEP
    completed_steps: FrozenSet[Step] = field(default_factory=frozenset)

    def is_complete(self, step: Step) -> bool:
        return step in self.completed_steps

    def with_completed(self, steps: Iterable[Step]) -> "WizardState":
        return replace(self, completed_steps=self.completed_steps | frozenset(steps))


@dataclass(frozen=True)
class Advance:
    """Leave the current step forward; its submit handler already succeeded."""


@dataclass(frozen=True)
class Retreat:
    """Go back one step. Completion is kept."""


@dataclass(frozen=True)
class JumpTo:
    target: Step


@dataclass(frozen=True)
class MarkComplete:
    step: Step


WizardEvent = Union[Advance, Retreat, JumpTo, MarkComplete]


def transition(
    state: WizardState,
    event: WizardEvent,
    gate: StepGate,
    profile: OnboardingProfile
) -> WizardState:
    if isinstance(event, Advance):
        # The terminal step is completed by issuing the attestation, not by advancing
        if state.current_step == LAST_STEP:
            return state
        target = Step(state.current_step + 1)
        if not gate.can_enter(target, profile):
            return state
        return replace(state.with_completed([state.current_step]), current_step=target)

    if isinstance(event, Retreat):
        return replace(state, current_step=Step(max(state.current_step - 1, FIRST_STEP)))

    if isinstance(event, JumpTo):
        target = Step(event.target)
        if target > state.current_step and not gate.can_enter(target, profile):
            return state
        return replace(state, current_step=target)

    if isinstance(event, MarkComplete):
        return state.with_completed([Step(event.step)])

    raise TypeError(f"Unknown wizard event: {event!r}")
