"""
Shared step machine for the filing wizards.

A wizard holds the form values, the current (1-based) step and the furthest
step reached. Moving forward validates the fields owned by the current step;
moving back never validates. Steps that end in a server call are advanced by
the concrete wizard's action methods instead of ``next_step``.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic.alias_generators import to_snake

from ..api.client import ApiError, FilingApiClient
from ..billing.credit_check import CreditCheckResult, CreditGate
from ..monitoring.notifications import FilingMonitor, NotificationCenter, ToastVariant
from ..validation.form_schemas import FORM_MODELS, FilingType, FormModel
from ..validation.form_validator import FormValidationResult, FormValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WizardStep:
    """One page of a wizard."""
    title: str
    estimated_minutes: int = 0
    fields: Tuple[str, ...] = ()
    advanced_by_action: bool = False


@dataclass(frozen=True)
class SubmissionWarning:
    """Contents of the legal confirmation shown before a filing is sent."""
    filing_name: str
    authority: str
    credit_cost: int


class FilingWizard:
    """
    Base class for the Annual Accounts, CS01 and CT600 wizards.
    """

    FILING_TYPE: FilingType = None
    STEPS: Sequence[WizardStep] = ()
    FILING_NAME = ''
    AUTHORITY = ''

    def __init__(
        self,
        api_client: Optional[FilingApiClient] = None,
        notifications: Optional[NotificationCenter] = None,
        credit_gate: Optional[CreditGate] = None,
        validator: Optional[FormValidator] = None,
        monitor: Optional[FilingMonitor] = None,
        form_data: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the wizard.

        Args:
            api_client: Client used by the submit/compute actions
            notifications: Where toasts are raised (shared with the monitor)
            credit_gate: Gate consulted before submission; None means no check
            validator: Form validator, one is built when omitted
            monitor: Metrics sink for submissions
            form_data: Initial snake_case form values
        """
        if not self.STEPS:
            raise ValueError(f"{type(self).__name__} defines no steps")

        self.api_client = api_client or FilingApiClient()
        self.monitor = monitor or FilingMonitor(notifications)
        self.notifications = notifications or self.monitor.notifications
        self.credit_gate = credit_gate
        self.credit_result: Optional[CreditCheckResult] = None
        self._credits_checked_for: Optional[int] = None
        self.validator = validator or FormValidator()

        self.form_data: Dict[str, Any] = dict(form_data or {})
        self.errors: Dict[str, str] = {}
        self.current_step = 1
        self.max_step_reached = 1
        self.confirmation_pending = False
        self.is_busy = False

    # Navigation

    @property
    def total_steps(self) -> int:
        return len(self.STEPS)

    @property
    def step(self) -> WizardStep:
        return self.STEPS[self.current_step - 1]

    @property
    def step_titles(self) -> List[str]:
        return [s.title for s in self.STEPS]

    @property
    def is_complete(self) -> bool:
        return self.current_step == self.total_steps

    @property
    def progress_percentage(self) -> float:
        return self.current_step / self.total_steps * 100

    @property
    def remaining_minutes(self) -> int:
        """Estimated minutes left, counting the current step."""
        if self.is_complete:
            return 0
        return sum(s.estimated_minutes for s in self.STEPS[self.current_step - 1:])

    def next_step(self) -> bool:
        """
        Validate the current step and move forward.

        Returns:
            bool: True when the wizard advanced
        """
        if self.is_complete:
            return False
        if self.step.advanced_by_action:
            logger.debug(f"Step {self.current_step} of {self.FILING_TYPE.value} advances through its action")
            return False

        result = self.validate_step()
        if not result.is_valid:
            return False

        self._set_step(self.current_step + 1)
        return True

    def previous_step(self) -> bool:
        """Move back one step without validating."""
        if self.current_step <= 1 or self.is_complete:
            return False
        self.current_step -= 1
        return True

    def go_to(self, step: int):
        """
        Jump to a step already reached.

        Raises:
            ValueError: If the step is out of range or not yet reached
        """
        if not 1 <= step <= self.total_steps:
            raise ValueError(f"Step {step} is out of range 1-{self.total_steps}")
        if step > self.max_step_reached:
            raise ValueError(f"Step {step} has not been reached yet")
        self.current_step = step

    def _set_step(self, step: int):
        self.current_step = step
        self.max_step_reached = max(self.max_step_reached, step)

    # Form values

    def update(self, **values):
        """Set form values by snake_case field name."""
        self.form_data.update(values)
        for name in values:
            self.errors.pop(name, None)

    def prefill(self, data: Dict[str, Any], skip: Sequence[str] = ()):
        """Load camelCase server data into the form."""
        for key, value in data.items():
            if key in skip:
                continue
            self.form_data[to_snake(key)] = value

    def validate_step(self, step: Optional[int] = None) -> FormValidationResult:
        """Validate the fields owned by a step (the current one by default)."""
        wizard_step = self.STEPS[(step or self.current_step) - 1]
        result = self.validator.validate_fields(self.FILING_TYPE, self.form_data, wizard_step.fields)
        self.errors = result.as_dict()
        return result

    def validate_form(self) -> Optional[FormModel]:
        """Validate the whole form; returns the model or None with ``errors`` set."""
        result = self.validator.validate(self.FILING_TYPE, self.form_data)
        self.errors = result.as_dict()
        self.monitor.track_validation(self.FILING_TYPE.value, 1, 1 if result.is_valid else 0)
        return result.model if result.is_valid else None

    def build_model(self) -> FormModel:
        return FORM_MODELS[self.FILING_TYPE].model_validate(self.form_data)

    # Credits and submission

    def required_credits(self) -> Optional[int]:
        """Tiered credit cost when it can be worked out locally."""
        return None

    def check_credits(self) -> CreditCheckResult:
        required = self.required_credits()
        self.credit_result = self.credit_gate.check(self.FILING_TYPE, required)
        self._credits_checked_for = required
        return self.credit_result

    @property
    def can_submit(self) -> bool:
        """
        False when the credit gate reports insufficient credits, or while busy.

        The last check is reused only while it succeeded and the tiered cost
        it was made for still applies.
        """
        if self.is_busy:
            return False
        if self.credit_gate is None:
            return True
        result = self.credit_result
        if result is None or result.error or self._credits_checked_for != self.required_credits():
            result = self.check_credits()
        return result.valid

    def submission_warning(self) -> SubmissionWarning:
        cost = self.required_credits()
        if cost is None and self.credit_result is not None:
            cost = self.credit_result.required_credits
        return SubmissionWarning(self.FILING_NAME, self.AUTHORITY, cost or 0)

    def request_submission(self) -> SubmissionWarning:
        """Open the confirmation warning; the filing is only sent on confirm."""
        self.confirmation_pending = True
        return self.submission_warning()

    def cancel_submission(self):
        self.confirmation_pending = False

    def _ensure_credits(self) -> bool:
        """Check the balance again right before a submission is sent."""
        if self.is_busy:
            return False
        if self.credit_gate is None:
            return True
        result = self.check_credits()
        if result.valid:
            return True
        description = result.error or f"You need {result.shortfall} more credits for this filing."
        self.notifications.error('Insufficient Credits', description, component=self.FILING_TYPE.value)
        return False

    def _run_action(
        self,
        action: Callable[[], Any],
        success: Callable[[Any], Tuple[str, str]],
        failure_title: str,
        default_error: str,
        next_step: Optional[int] = None,
        use_server_message: bool = True,
        track_submission: bool = False,
    ) -> Optional[Any]:
        """
        Run a server call, move to ``next_step`` on success and raise a toast either way.

        Returns:
            The decoded response, or None when the call failed
        """
        self.is_busy = True
        started = time.monotonic()
        try:
            response = action()
        except ApiError as e:
            description = (e.message if use_server_message else '') or default_error
            self.notifications.toast(failure_title, description, ToastVariant.DESTRUCTIVE, self.FILING_TYPE.value)
            if track_submission:
                self.monitor.track_submission(self.FILING_TYPE.value, False, time.monotonic() - started)
            return None
        finally:
            self.is_busy = False

        if next_step is not None:
            self._set_step(next_step)
        title, description = success(response)
        self.notifications.toast(title, description, component=self.FILING_TYPE.value)
        if track_submission:
            self.monitor.track_submission(self.FILING_TYPE.value, True, time.monotonic() - started)
        return response
