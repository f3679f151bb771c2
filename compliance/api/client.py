"""
HTTP client for the filing service REST API.

All calls send and receive JSON except the two multipart upload endpoints.
Any non-2xx response or transport failure raises ``ApiError``.
"""
import logging
from typing import Any, BinaryIO, Dict, List, Optional, Union

import requests

from config.filing_config import API_CONFIG

logger = logging.getLogger(__name__)

ANALYTICS_REPORTS = ('dashboard', 'user-activity', 'revenue', 'filings')
PRODUCTION_REPORTS = ('errors', 'api-performance', 'user-activity', 'filing-progress')


class ApiError(Exception):
    """An API call that failed, carrying the server's message where there is one."""

    def __init__(self, status_code: int, message: str, payload: Optional[Any] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.payload = payload

    def __str__(self):
        return f"{self.status_code}: {self.message}" if self.status_code else self.message


class FilingApiClient:
    """
    Thin wrapper over ``requests.Session`` for the filing service endpoints.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        session_cookie: Optional[str] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Service root, e.g. https://app.example.co.uk
            timeout: Per-request timeout in seconds
            session: Pre-built session (tests inject a mock here)
            session_cookie: Value of the ``connect.sid`` login cookie
        """
        self.base_url = (base_url or API_CONFIG['base_url']).rstrip('/')
        self.timeout = timeout if timeout is not None else API_CONFIG['timeout_seconds']
        self.session = session or requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
            'User-Agent': API_CONFIG['user_agent'],
        })
        cookie = session_cookie if session_cookie is not None else API_CONFIG['session_cookie']
        if cookie:
            self.session.cookies.set('connect.sid', cookie)

    def request(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[Dict] = None,
        files: Optional[Dict] = None,
        data: Optional[Dict] = None,
    ) -> Any:
        """
        Perform a request and decode the JSON response.

        Returns:
            The decoded body, or None for an empty response
        """
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {path}")
        try:
            response = self.session.request(
                method, url, json=json, params=params, files=files, data=data, timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiError(0, f"Network error: {e}") from e

        if not response.ok:
            error = self._error_from_response(response)
            logger.warning(f"{method} {path} returned {response.status_code}: {error.message}")
            raise error

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _error_from_response(response: requests.Response) -> ApiError:
        payload = None
        message = None
        try:
            payload = response.json()
        except ValueError:
            pass
        if isinstance(payload, dict):
            message = payload.get('message') or payload.get('error')
        if not message:
            message = response.text or response.reason or 'Request failed'
        return ApiError(response.status_code, message, payload)

    def get(self, path: str, params: Optional[Dict] = None) -> Any:
        return self.request('GET', path, params=params)

    def post(self, path: str, json: Optional[Any] = None) -> Any:
        return self.request('POST', path, json=json)

    # Admin analytics

    def get_admin_analytics(self, report: str, days: int = 30) -> Dict:
        """
        Fetch an admin analytics report.

        Args:
            report: One of dashboard, user-activity, revenue, filings
            days: Time range in days
        """
        if report not in ANALYTICS_REPORTS:
            raise ValueError(f"Unknown analytics report: {report}")
        return self.get(f"/api/admin/analytics/{report}", params={'days': days})

    def get_production_analytics(self, report: str, days: int = 7) -> Dict:
        """
        Fetch a production monitoring report.

        Args:
            report: One of errors, api-performance, user-activity, filing-progress
            days: Time range in days
        """
        if report not in PRODUCTION_REPORTS:
            raise ValueError(f"Unknown production report: {report}")
        return self.get(f"/api/admin/analytics/production/{report}", params={'days': days})

    # Annual accounts

    def get_prior_year_accounts(self, company_id: Union[int, str]) -> Dict:
        return self.get(f"/api/annual-accounts/prior-year/{company_id}")

    def generate_ixbrl(self, accounts: Dict) -> Dict:
        return self.post('/api/annual-accounts/generate-ixbrl', accounts)

    def submit_annual_accounts(self, payload: Dict) -> Dict:
        return self.post('/api/annual-accounts/submit', payload)

    # Confirmation statement

    def submit_confirmation_statement(self, statement: Dict) -> Dict:
        return self.post('/api/confirmation-statement/submit', statement)

    # Corporation tax

    def get_current_ct600(self) -> Optional[Dict]:
        return self.get('/api/ct600/current')

    def compute_ct600(self, form: Dict) -> Dict:
        return self.post('/api/ct600/compute', form)

    def submit_ct600(self, payload: Dict) -> Dict:
        return self.post('/api/ct600/submit', payload)

    def generate_ct600_xml(self, corporation_tax_data: Dict) -> Dict:
        return self.post('/api/hmrc/ct600/generate-xml', {'corporationTaxData': corporation_tax_data})

    def submit_ct600_to_hmrc(self, corporation_tax_data: Dict) -> Dict:
        return self.post('/api/hmrc/ct600/submit', {'corporationTaxData': corporation_tax_data})

    def get_hmrc_submission_status(self, correlation_id: str) -> Dict:
        return self.get(f"/api/hmrc/ct600/status/{correlation_id}")

    def run_hmrc_test_submission(self) -> Dict:
        return self.post('/api/hmrc/ct600/test-submission')

    # Documents

    def list_documents(self) -> List[Dict]:
        return self.get('/api/documents') or []

    def upload_document(self, filename: str, content: Union[bytes, BinaryIO], document_type: str) -> Dict:
        """Multipart upload of a supporting document."""
        return self.request(
            'POST', '/api/documents/upload',
            files={'file': (filename, content)},
            data={'type': document_type},
        )

    def delete_document(self, document_id: int) -> None:
        self.request('DELETE', f"/api/documents/{document_id}")

    def process_document(self, document_id: int) -> Dict:
        return self.post(f"/api/documents/{document_id}/process")

    # Opening trial balances

    def upload_trial_balance(
        self,
        filename: str,
        content: Union[bytes, BinaryIO],
        company_id: Union[int, str],
        period_start_date: str = '',
        period_end_date: str = '',
        notes: str = '',
    ) -> Dict:
        return self.request(
            'POST', '/api/opening-trial-balances/upload',
            files={'file': (filename, content)},
            data={
                'companyId': str(company_id),
                'periodStartDate': period_start_date,
                'periodEndDate': period_end_date,
                'notes': notes,
            },
        )

    def get_trial_balances(self, company_id: Union[int, str]) -> List[Dict]:
        return self.get(f"/api/opening-trial-balances/{company_id}") or []

    def verify_trial_balance(self, balance_id: int, is_verified: bool = True, notes: Optional[str] = None) -> Dict:
        return self.request(
            'PUT', f"/api/opening-trial-balances/{balance_id}/verify",
            json={'isVerified': is_verified, 'notes': notes},
        )

    # Filings

    def list_filings(self) -> List[Dict]:
        return self.get('/api/filings') or []

    def create_filing(self, filing: Dict) -> Dict:
        return self.post('/api/filings', filing)

    def update_filing(self, filing_id: int, changes: Dict) -> Dict:
        return self.request('PATCH', f"/api/filings/{filing_id}", json=changes)

    def delete_filing(self, filing_id: int) -> None:
        self.request('DELETE', f"/api/filings/{filing_id}")

    def submit_filing(self, filing_id: int) -> Dict:
        return self.post(f"/api/filings/{filing_id}/submit")

    # Billing

    def validate_credits(self, filing_type: str) -> Dict:
        return self.get(f"/api/billing/validate-credits/{filing_type}")

    def get_credit_balance(self) -> Dict:
        return self.get('/api/billing/credits')

    # Companies House lookups

    def search_companies(self, query: str, items_per_page: int = 20, start_index: int = 0) -> Dict:
        return self.get('/api/companies-house/search', params={
            'q': query, 'items_per_page': items_per_page, 'start_index': start_index,
        })

    def get_company(self, company_number: str) -> Dict:
        return self.get(f"/api/companies-house/company/{company_number}")

    def get_filing_history(self, company_number: str, items_per_page: int = 20, start_index: int = 0) -> Dict:
        return self.get(
            f"/api/companies-house/company/{company_number}/filing-history",
            params={'items_per_page': items_per_page, 'start_index': start_index},
        )

    def get_company_officers(self, company_number: str, items_per_page: int = 20, start_index: int = 0) -> Dict:
        return self.get(
            f"/api/companies-house/company/{company_number}/officers",
            params={'items_per_page': items_per_page, 'start_index': start_index},
        )

    def prepare_confirmation_statement(self, company_number: str) -> Dict:
        return self.get(f"/api/companies-house/company/{company_number}/confirmation-statement")

    def file_confirmation_statement(self, company_number: str, statement: Dict) -> Dict:
        return self.post(f"/api/companies-house/company/{company_number}/confirmation-statement", statement)

    def get_filing_deadlines(self, company_number: str) -> Dict:
        return self.get(f"/api/companies-house/company/{company_number}/filing-deadlines")
