"""
Credit gate for filing submission.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from ..api.client import ApiError, FilingApiClient
from ..validation.form_schemas import FilingType
from .filing_costs import get_filing_cost

logger = logging.getLogger(__name__)


@dataclass
class CreditCheckResult:
    """Whether the account can pay for a filing."""
    valid: bool
    current_credits: int
    required_credits: int
    error: Optional[str] = None

    @property
    def shortfall(self) -> int:
        return max(0, self.required_credits - self.current_credits)


class CreditGate:
    """
    Decides whether a wizard may submit.

    With an API client the balance check is delegated to the billing
    endpoint. Without one, a known balance is compared against the local
    cost table.
    """

    def __init__(self, api_client: Optional[FilingApiClient] = None, known_balance: Optional[int] = None):
        self.api_client = api_client
        self.known_balance = known_balance
        self.last_result: Optional[CreditCheckResult] = None

    def check(self, filing_type: Union[FilingType, str], required_credits: Optional[int] = None) -> CreditCheckResult:
        """
        Check credits for a filing.

        Args:
            filing_type: Filing being submitted
            required_credits: Tiered cost when already known locally

        Returns:
            CreditCheckResult: ``valid`` is False when the check itself failed
        """
        filing_type = FilingType(filing_type)
        required = required_credits if required_credits is not None else get_filing_cost(filing_type)

        if self.api_client is not None:
            try:
                response = self.api_client.validate_credits(filing_type.value)
            except ApiError as e:
                logger.error(f"Credit check for {filing_type.value} failed: {e}")
                result = CreditCheckResult(False, 0, required, error='Unable to verify credit balance. Please try again.')
            else:
                result = CreditCheckResult(
                    valid=bool(response.get('valid')),
                    current_credits=int(response.get('currentCredits', 0)),
                    required_credits=int(response.get('requiredCredits', required)),
                )
        else:
            balance = self.known_balance or 0
            result = CreditCheckResult(balance >= required, balance, required)

        if not result.valid and result.error is None:
            logger.info(
                f"Insufficient credits for {filing_type.value}: have {result.current_credits}, "
                f"need {result.required_credits}"
            )
        self.last_result = result
        return result
