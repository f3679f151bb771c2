"""
Pytest configuration and shared fixtures for the filing client tests.
"""
import pytest
import tempfile
from datetime import datetime
from pathlib import Path
from unittest.mock import Mock
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from compliance.api.client import FilingApiClient
from compliance.monitoring.notifications import FilingMonitor, NotificationCenter
from compliance.templates.template_manager import TemplateManager
from compliance.validation.form_validator import FormValidator
from config.filing_config import TEMPLATES_DIR


@pytest.fixture
def annual_accounts_data():
    """Valid annual accounts form values for a small company."""
    return {
        "company_name": "Acme Widgets Ltd",
        "company_number": "12345678",
        "registered_office": "1 High Street, London, EC1A 1AA",
        "financial_year_start": "2023-04-01",
        "financial_year_end": "2024-03-31",
        "entity_size": "small",
        "director_names": "Jane Smith, John Brown",
        "intangible_assets": 0,
        "tangible_assets": 45000,
        "investments": 0,
        "stocks": 12000,
        "debtors": 30000,
        "cash_at_bank": 58000,
        "creditors_due_within_year": 25000,
        "creditors_due_after_year": 10000,
        "called_up_share_capital": 100,
        "profit_and_loss_account": 109900,
        "turnover": 480000,
        "cost_of_sales": 210000,
        "gross_profit": 270000,
        "administrative_expenses": 190000,
        "operating_profit": 80000,
        "audit_exempt": True,
    }


@pytest.fixture
def confirmation_statement_data():
    """Valid CS01 form values with one PSC and one share class."""
    return {
        "company_name": "Acme Widgets Ltd",
        "company_number": "12345678",
        "registered_office": "1 High Street, London, EC1A 1AA",
        "sic_codes": "62020, 62090",
        "trading_status": "trading",
        "directors": "Jane Smith, John Brown",
        "pscs": [
            {
                "name": "Jane Smith",
                "nationality": "British",
                "date_of_birth": "1980-05-14",
                "service_address": "1 High Street, London",
                "nature_of_control": ["shares_over_25", "voting_over_25"],
            }
        ],
        "share_capital_changed": False,
        "share_classes": [
            {"class_name": "Ordinary", "number_of_shares": 100, "nominal_value": 1.0, "currency": "GBP",
             "amount_paid_up": 100, "amount_unpaid": 0},
        ],
        "shareholders": [
            {"name": "Jane Smith", "share_class": "Ordinary", "number_of_shares": 60},
            {"name": "John Brown", "share_class": "Ordinary", "number_of_shares": 40},
        ],
        "statement_date": "2024-06-14",
        "made_up_to_date": "2024-06-01",
    }


@pytest.fixture
def ct600_data():
    """Valid CT600 form values for a simple trading company."""
    return {
        "company_name": "Acme Widgets Ltd",
        "company_number": "12345678",
        "utr": "1234567890",
        "accounting_period_start": "2023-04-01",
        "accounting_period_end": "2024-03-31",
        "turnover": 500000,
        "cost_of_sales": 200000,
        "operating_expenses": 150000,
        "interest_received": 1000,
        "dividends_received": 0,
        "property_income": 0,
        "depreciation_add_back": 10000,
        "capital_allowances": 12000,
        "entertainment_expenses": 1000,
        "losses_brought_forward": 0,
        "rd_relief_claim": 0,
        "charitable_donations": 0,
        "number_of_associated_companies": 0,
    }


@pytest.fixture
def ct600_company_details(ct600_data):
    """CT600 values for the Company & Period step only; later steps still empty."""
    names = ('company_name', 'company_number', 'utr', 'accounting_period_start', 'accounting_period_end')
    return {name: ct600_data[name] for name in names}


@pytest.fixture
def cs01_company_details(confirmation_statement_data):
    """CS01 values for the Company Details step only; later steps still empty."""
    names = (
        'company_name', 'company_number', 'registered_office', 'sic_codes', 'trading_status',
        'statement_date', 'made_up_to_date',
    )
    return {name: confirmation_statement_data[name] for name in names}


@pytest.fixture
def mock_api_client():
    """Mock filing API client."""
    client = Mock(spec=FilingApiClient)
    client.validate_credits.return_value = {'valid': True, 'currentCredits': 1000, 'requiredCredits': 200}
    client.list_filings.return_value = []
    client.list_documents.return_value = []
    return client


@pytest.fixture
def mock_session():
    """Mock requests session returning an empty 200 JSON response."""
    session = Mock()
    session.headers = {}
    session.cookies = Mock()
    response = Mock()
    response.ok = True
    response.status_code = 200
    response.content = b'{}'
    response.json.return_value = {}
    session.request.return_value = response
    return session


@pytest.fixture
def notifications():
    """NotificationCenter instance for testing."""
    return NotificationCenter()


@pytest.fixture
def filing_monitor(notifications):
    """FilingMonitor sharing the test notification center."""
    return FilingMonitor(notifications)


@pytest.fixture
def form_validator():
    """FormValidator instance for testing."""
    return FormValidator()


@pytest.fixture
def temp_output_dir():
    """Temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def temp_templates_dir():
    """Temporary directory holding a single versioned template."""
    with tempfile.TemporaryDirectory() as temp_dir:
        templates_dir = Path(temp_dir)

        version_dir = templates_dir / "ct600" / "v1.0"
        version_dir.mkdir(parents=True)
        (version_dir / "template.html").write_text(
            "<h1>{{ form.company_name }}</h1>"
            "<p>UTR {{ form.utr | mask_utr }}</p>"
            "<p>Due {{ computation.corporation_tax_due | gbp }}</p>"
        )
        (version_dir / "config.json").write_text(
            '{"title": "Test CT600", "created_date": "2024-01-01", "is_active": true}'
        )

        yield templates_dir


@pytest.fixture
def template_manager():
    """TemplateManager over the templates shipped with the project."""
    return TemplateManager(templates_dir=TEMPLATES_DIR)


@pytest.fixture
def airflow_context():
    """Mock Airflow context for testing DAG tasks."""
    context = {
        'logical_date': datetime(2024, 6, 30),
        'ds': '2024-06-30',
        'ds_nodash': '20240630',
        'run_id': 'scheduled__2024-06-30T00:00:00+00:00',
        'task_instance': Mock(),
        'dag_run': Mock(start_date=None),
    }

    # Configure task instance XCom methods
    context['task_instance'].xcom_push = Mock()
    context['task_instance'].xcom_pull = Mock()

    return context


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Automatically set up test environment for all tests."""
    # Configure logging to reduce noise during tests
    import logging
    logging.getLogger('watchdog').setLevel(logging.CRITICAL)
    logging.getLogger('reportlab').setLevel(logging.CRITICAL)
    logging.getLogger('weasyprint').setLevel(logging.CRITICAL)

    yield
