"""
Step Navigator Module

Drives the wizard through its fixed step order. Moving forward requires the
current step to validate; moving back, jumping to a step and save-and-exit
persist best-effort without validation. Saving and moving are separate
outcomes: a failed save is reported on the result but never blocks the move.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from flask import current_app

from will_drafter import entity_store
from will_drafter.context_builder import (
    SECTION_PERSONAL_INFO, SECTION_FAMILY_DETAILS, SECTION_ASSETS,
    SECTION_BENEFICIARIES, SECTION_ASSET_ALLOCATION, SECTION_EXECUTOR,
    LIST_SECTIONS, section_items
)
from will_drafter.entity_store import DraftUnavailable
from will_drafter.validation import ValidationResult, validate_step


class Step(Enum):
    PERSONAL_INFO = 'personal_info'
    FAMILY_DETAILS = 'family_details'
    ASSETS = 'assets'
    BENEFICIARIES = 'beneficiaries'
    ASSET_ALLOCATION = 'asset_allocation'
    EXECUTOR = 'executor'
    REVIEW = 'review'

    @property
    def section(self) -> Optional[str]:
        """Draft section edited on this step (None for review)."""
        return STEP_SECTIONS.get(self)

    @property
    def label(self) -> str:
        return STEP_LABELS[self]

    @property
    def index(self) -> int:
        return STEP_ORDER.index(self)

    @classmethod
    def parse(cls, value: Any) -> 'Step':
        """Accept a Step, its value ('asset_allocation') or its section name ('assetAllocation')."""
        if isinstance(value, cls):
            return value
        for step in cls:
            if value in (step.value, step.section):
                return step
        raise ValueError(f'Unknown step: {value}')


STEP_ORDER: List[Step] = [
    Step.PERSONAL_INFO,
    Step.FAMILY_DETAILS,
    Step.ASSETS,
    Step.BENEFICIARIES,
    Step.ASSET_ALLOCATION,
    Step.EXECUTOR,
    Step.REVIEW,
]

STEP_SECTIONS: Dict[Step, str] = {
    Step.PERSONAL_INFO: SECTION_PERSONAL_INFO,
    Step.FAMILY_DETAILS: SECTION_FAMILY_DETAILS,
    Step.ASSETS: SECTION_ASSETS,
    Step.BENEFICIARIES: SECTION_BENEFICIARIES,
    Step.ASSET_ALLOCATION: SECTION_ASSET_ALLOCATION,
    Step.EXECUTOR: SECTION_EXECUTOR,
}

STEP_LABELS: Dict[Step, str] = {
    Step.PERSONAL_INFO: 'Personal Info',
    Step.FAMILY_DETAILS: 'Family',
    Step.ASSETS: 'Assets',
    Step.BENEFICIARIES: 'Beneficiaries',
    Step.ASSET_ALLOCATION: 'Allocation',
    Step.EXECUTOR: 'Executor',
    Step.REVIEW: 'Review',
}

DASHBOARD = 'dashboard'
SAVE_FAILED_MESSAGE = 'Could not save your progress. Your changes may not be saved.'


@dataclass
class NavigationResult:
    """Outcome of a navigation action."""
    moved: bool
    target: str
    saved: bool = True
    message: str = ''
    errors: ValidationResult = field(default_factory=ValidationResult)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ok': self.moved,
            'target': self.target,
            'saved': self.saved,
            'message': self.message,
            'errors': self.errors.to_dict()['errors'],
        }


class StepNavigator:
    """
    Wizard state for one user.

    Args:
        user_id: Owner of the draft
        current: Step the user is on
        store: Persistence module exposing put_section (defaults to entity_store)
    """

    def __init__(self, user_id: str, current: Step = Step.PERSONAL_INFO, store=None):
        self.user_id = user_id
        self.current = Step.parse(current)
        self.store = store or entity_store

    def _persist(self, payload: Optional[Dict[str, Any]]) -> NavigationResult:
        """Save the current step's payload; failures are reported, not raised."""
        result = NavigationResult(moved=False, target=self.current.value)
        section = self.current.section
        if section is None or not payload:
            return result
        try:
            self.store.put_section(self.user_id, section, payload)
        except DraftUnavailable as e:
            current_app.logger.error(f'Wizard save failed on {section} for {self.user_id}: {str(e)}')
            result.saved = False
            result.message = SAVE_FAILED_MESSAGE
        return result

    def _move(self, result: NavigationResult, step: Step) -> NavigationResult:
        self.current = step
        result.moved = True
        result.target = step.value
        return result

    def next(self, payload: Optional[Dict[str, Any]] = None) -> NavigationResult:
        """Validate the current step, save it and advance."""
        section = self.current.section
        if section is not None:
            errors = validate_step(section, payload or {})
            if not errors.is_valid:
                return NavigationResult(
                    moved=False, target=self.current.value, saved=False,
                    message='Please correct the highlighted fields.', errors=errors
                )

        result = self._persist(payload)
        index = self.current.index
        if index + 1 >= len(STEP_ORDER):
            return result
        return self._move(result, STEP_ORDER[index + 1])

    def previous(self, payload: Optional[Dict[str, Any]] = None) -> NavigationResult:
        """Save the current step without validating and move back."""
        result = self._persist(payload)
        index = self.current.index
        if index == 0:
            return result
        return self._move(result, STEP_ORDER[index - 1])

    def go_to(self, step: Any, payload: Optional[Dict[str, Any]] = None) -> NavigationResult:
        """Save the current step without validating and jump to any step."""
        target = Step.parse(step)
        result = self._persist(payload)
        return self._move(result, target)

    def save_and_exit(self, payload: Optional[Dict[str, Any]] = None) -> NavigationResult:
        """Save the current step without validating and leave for the dashboard."""
        result = self._persist(payload)
        result.moved = True
        result.target = DASHBOARD
        if result.saved:
            result.message = 'Progress saved.'
        return result


def _step_completed(step: Step, draft: Dict[str, Any]) -> bool:
    section = step.section
    if section is None:
        return False
    if section in LIST_SECTIONS:
        return bool(section_items(draft, section))
    return validate_step(section, draft.get(section) or {}).is_valid


def progress(draft: Dict[str, Any], current: Any = Step.PERSONAL_INFO) -> List[Dict[str, Any]]:
    """
    Describe every step for the progress indicator.

    A data step is completed when its section validates (singletons) or
    holds at least one item (lists). Review is never marked completed.
    """
    current = Step.parse(current)
    return [
        {
            'step': step.value,
            'label': step.label,
            'index': step.index,
            'current': step is current,
            'completed': _step_completed(step, draft or {}),
        }
        for step in STEP_ORDER
    ]
