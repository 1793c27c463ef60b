"""Step state machine of the release builder workflow.

Five steps: source -> items -> generate -> edit -> publish. Moving to a
step is a request that only succeeds when the step's guard holds; anything
else (unreachable step, unknown step name) leaves the state untouched.

Guards are pure predicates over BuilderState:

| Target   | Guard                                                   |
|----------|---------------------------------------------------------|
| source   | always                                                  |
| items    | the active provider has a source selector set           |
| generate | at least one item is selected                           |
| edit     | a draft has been created                                |
| publish  | a draft has been created                                |

Guards are evaluated on every request rather than cached, so a selection
change is reflected immediately.
"""

from __future__ import annotations

from collections.abc import Callable

from release_builder.logging_config import get_logger
from release_builder.schemas import BuilderState, BuilderStep

logger = get_logger(__name__)

StepGuard = Callable[[BuilderState], bool]


def has_source_selector(state: BuilderState) -> bool:
    return bool(state.filter_for().selector)


def has_selection(state: BuilderState) -> bool:
    return len(state.selected_ids) > 0


def has_draft(state: BuilderState) -> bool:
    return state.draft_id is not None


GUARDS: dict[BuilderStep, StepGuard] = {
    BuilderStep.SOURCE: lambda state: True,
    BuilderStep.ITEMS: has_source_selector,
    BuilderStep.GENERATE: has_selection,
    BuilderStep.EDIT: has_draft,
    BuilderStep.PUBLISH: has_draft,
}


def parse_step(token: str | BuilderStep | None) -> BuilderStep | None:
    """Map a step name to a BuilderStep, or None when it isn't one."""
    if isinstance(token, BuilderStep):
        return token
    if not token:
        return None
    try:
        return BuilderStep(token.strip().lower())
    except ValueError:
        return None


def read_step(token: str | None) -> BuilderStep:
    """Initial step for a new session: absent or unknown names mean Source."""
    return parse_step(token) or BuilderStep.SOURCE


def can_access_step(state: BuilderState, step: BuilderStep) -> bool:
    return GUARDS[step](state)


def accessible_steps(state: BuilderState) -> dict[BuilderStep, bool]:
    return {step: can_access_step(state, step) for step in BuilderStep}


def request_step(state: BuilderState, target: str | BuilderStep | None) -> bool:
    """Move ``state`` to ``target`` if its guard holds.

    Args:
        state: The session state, mutated in place on success
        target: A BuilderStep or a raw step name from outside (e.g. a query
                parameter)

    Returns:
        True when the step changed or already was ``target``; False when
        the request was ignored.
    """
    step = parse_step(target)
    if step is None:
        logger.debug("step_request_ignored", target=str(target), reason="unknown_step")
        return False
    if not can_access_step(state, step):
        logger.debug("step_request_ignored", target=step.value, reason="guard_failed")
        return False
    if state.step != step:
        logger.info("step_changed", from_step=state.step.value, to_step=step.value)
        state.step = step
    return True


def editor_path(state: BuilderState) -> str | None:
    """Where the external editor takes over once a draft exists."""
    if state.draft_id is None:
        return None
    return f"/dashboard/releases/edit/{state.draft_id}"
