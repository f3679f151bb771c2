"""
Tests for the Annual Accounts, CS01 and CT600 wizards.
"""
import pytest
from compliance.api.client import ApiError
from compliance.billing.credit_check import CreditGate
from compliance.wizards import AnnualAccountsWizard, ConfirmationStatementWizard, CT600Wizard


@pytest.fixture
def accounts_wizard(mock_api_client, notifications, filing_monitor, annual_accounts_data):
    return AnnualAccountsWizard(
        api_client=mock_api_client,
        notifications=notifications,
        credit_gate=CreditGate(known_balance=500),
        monitor=filing_monitor,
        form_data=annual_accounts_data,
    )


@pytest.fixture
def cs01_wizard(mock_api_client, notifications, filing_monitor, confirmation_statement_data):
    return ConfirmationStatementWizard(
        api_client=mock_api_client,
        notifications=notifications,
        credit_gate=CreditGate(known_balance=500),
        monitor=filing_monitor,
        form_data=confirmation_statement_data,
    )


@pytest.fixture
def ct600_wizard(mock_api_client, notifications, filing_monitor, ct600_data):
    return CT600Wizard(
        api_client=mock_api_client,
        notifications=notifications,
        credit_gate=CreditGate(known_balance=500),
        monitor=filing_monitor,
        form_data=ct600_data,
    )


class TestWizardNavigation:
    """Test cases for the shared step machine."""

    def test_initial_state(self, accounts_wizard):
        assert accounts_wizard.current_step == 1
        assert accounts_wizard.total_steps == 6
        assert accounts_wizard.remaining_minutes == 35
        assert accounts_wizard.step_titles[0] == 'Company Info'

    def test_next_step_advances_when_valid(self, accounts_wizard):
        assert accounts_wizard.next_step()
        assert accounts_wizard.current_step == 2
        assert accounts_wizard.max_step_reached == 2
        assert accounts_wizard.progress_percentage == pytest.approx(100 / 3)

    def test_next_step_blocked_by_errors(self, accounts_wizard):
        accounts_wizard.update(company_name='')

        assert not accounts_wizard.next_step()
        assert accounts_wizard.current_step == 1
        assert accounts_wizard.errors['company_name'] == 'Company name is required'

    def test_update_clears_field_error(self, accounts_wizard):
        accounts_wizard.update(company_name='')
        accounts_wizard.next_step()

        accounts_wizard.update(company_name='Acme Widgets Ltd')

        assert 'company_name' not in accounts_wizard.errors

    def test_action_steps_do_not_advance(self, accounts_wizard):
        for _ in range(3):
            accounts_wizard.next_step()

        assert accounts_wizard.current_step == 4
        assert not accounts_wizard.next_step()
        assert accounts_wizard.current_step == 4

    def test_previous_step(self, accounts_wizard):
        assert not accounts_wizard.previous_step()

        accounts_wizard.next_step()
        assert accounts_wizard.previous_step()
        assert accounts_wizard.current_step == 1

    def test_go_to(self, accounts_wizard):
        accounts_wizard.next_step()
        accounts_wizard.next_step()

        accounts_wizard.go_to(1)
        assert accounts_wizard.current_step == 1

        with pytest.raises(ValueError, match='not been reached'):
            accounts_wizard.go_to(4)
        with pytest.raises(ValueError, match='out of range'):
            accounts_wizard.go_to(7)


class TestAnnualAccountsWizard:
    """Test cases for AnnualAccountsWizard."""

    def test_load_prior_year(self, accounts_wizard, mock_api_client, notifications):
        mock_api_client.get_prior_year_accounts.return_value = {
            'success': True,
            'data': {
                'turnoverPrior': 410000,
                'cashAtBankPrior': 31000,
                'yearEnding': '2023-03-31',
                'sourceType': 'filed_accounts',
            },
        }

        assert accounts_wizard.load_prior_year(17)

        assert accounts_wizard.form_data['turnover_prior'] == 410000
        assert accounts_wizard.form_data['cash_at_bank_prior'] == 31000
        assert 'year_ending' not in accounts_wizard.form_data
        assert notifications.latest.description == 'Comparative figures loaded from 31/03/2023 (filed_accounts)'

        assert not accounts_wizard.load_prior_year(17)
        mock_api_client.get_prior_year_accounts.assert_called_once_with(17)

    def test_load_prior_year_without_data(self, accounts_wizard, mock_api_client):
        mock_api_client.get_prior_year_accounts.return_value = {'success': False}

        assert not accounts_wizard.load_prior_year(17)
        assert not accounts_wizard.prior_year_loaded

    def test_auto_detect_entity_size(self, accounts_wizard):
        assert accounts_wizard.auto_detect_entity_size() == 'micro'
        assert accounts_wizard.required_credits() == 150

    def test_generate_ixbrl(self, accounts_wizard, mock_api_client, notifications):
        mock_api_client.generate_ixbrl.return_value = {'html': '<html>ixbrl</html>'}

        preview = accounts_wizard.generate_ixbrl()

        assert preview == {'html': '<html>ixbrl</html>'}
        assert accounts_wizard.current_step == 5
        assert accounts_wizard.ixbrl_preview == preview
        assert notifications.latest.title == 'iXBRL Generated'
        payload = mock_api_client.generate_ixbrl.call_args.args[0]
        assert payload['entitySize'] == 'micro'

    def test_generate_ixbrl_failure(self, accounts_wizard, mock_api_client, notifications):
        mock_api_client.generate_ixbrl.side_effect = ApiError(500, '')

        assert accounts_wizard.generate_ixbrl() is None
        assert accounts_wizard.current_step == 1
        assert notifications.latest.title == 'Generation Failed'
        assert notifications.latest.description == 'Failed to generate iXBRL accounts'

    def test_generate_ixbrl_invalid_form(self, accounts_wizard, mock_api_client):
        accounts_wizard.update(registered_office='')

        assert accounts_wizard.generate_ixbrl() is None
        mock_api_client.generate_ixbrl.assert_not_called()
        assert accounts_wizard.errors['registered_office'] == 'Registered office is required'

    def test_confirm_requires_request(self, accounts_wizard):
        with pytest.raises(ValueError):
            accounts_wizard.confirm_submission()

    def test_submission_flow(self, accounts_wizard, mock_api_client, filing_monitor, notifications):
        mock_api_client.generate_ixbrl.return_value = {'html': '<html/>'}
        mock_api_client.submit_annual_accounts.return_value = {'filingId': 99}
        accounts_wizard.select_document(3)
        accounts_wizard.select_document(3)
        accounts_wizard.generate_ixbrl()

        warning = accounts_wizard.request_submission()
        assert warning.filing_name == 'Annual Accounts'
        assert warning.authority == 'Companies House'
        assert warning.credit_cost == 150

        assert accounts_wizard.confirm_submission() == {'filingId': 99}
        payload = mock_api_client.submit_annual_accounts.call_args.args[0]
        assert payload['ixbrlData'] == {'html': '<html/>'}
        assert payload['documentIds'] == [3]
        assert accounts_wizard.is_complete
        assert not accounts_wizard.confirmation_pending
        assert notifications.latest.title == 'Submitted Successfully'
        assert filing_monitor.metrics.get_counter('submissions_successful_total') == 1

    def test_cancel_submission(self, accounts_wizard, mock_api_client):
        accounts_wizard.request_submission()
        accounts_wizard.cancel_submission()

        with pytest.raises(ValueError):
            accounts_wizard.confirm_submission()
        mock_api_client.submit_annual_accounts.assert_not_called()

    def test_insufficient_credits(self, accounts_wizard, mock_api_client, notifications):
        accounts_wizard.credit_gate = CreditGate(known_balance=10)

        accounts_wizard.request_submission()
        assert accounts_wizard.confirm_submission() is None

        mock_api_client.submit_annual_accounts.assert_not_called()
        assert notifications.latest.title == 'Insufficient Credits'
        assert notifications.latest.description == 'You need 190 more credits for this filing.'
        assert not accounts_wizard.can_submit


class TestConfirmationStatementWizard:
    """Test cases for ConfirmationStatementWizard."""

    def test_steps(self, cs01_wizard):
        assert cs01_wizard.step_titles == ['Company Details', 'PSC & Directors', 'Share Capital', 'Submit']

        assert cs01_wizard.next_step()
        assert cs01_wizard.next_step()
        assert cs01_wizard.current_step == 3
        assert not cs01_wizard.next_step()

    def test_psc_step_requires_psc(self, cs01_wizard):
        cs01_wizard.update(pscs=[])
        cs01_wizard.next_step()

        assert not cs01_wizard.next_step()
        assert cs01_wizard.errors['pscs'] == 'At least one person with significant control is required'

    def test_add_share_class_and_capital(self, cs01_wizard):
        cs01_wizard.add_share_class(class_name='Preference', number_of_shares=50, nominal_value=2.0)

        capital = cs01_wizard.statement_of_capital()

        assert [row['class_name'] for row in capital] == ['Ordinary', 'Preference']
        assert capital[1]['aggregate_nominal_value'] == 100.0

    def test_add_psc(self, cs01_wizard):
        cs01_wizard.add_psc(
            name='John Brown', date_of_birth='1975-01-02', service_address='London',
            nature_of_control=['appoint_directors'],
        )

        assert len(cs01_wizard.form_data['pscs']) == 2
        assert cs01_wizard.validate_form() is not None

    def test_capital_empty_when_incomplete(self, cs01_wizard):
        cs01_wizard.update(company_number='')

        assert cs01_wizard.statement_of_capital() == []

    def test_submit(self, cs01_wizard, mock_api_client, notifications):
        mock_api_client.submit_confirmation_statement.return_value = {'status': 'accepted'}

        assert cs01_wizard.submit() == {'status': 'accepted'}

        payload = mock_api_client.submit_confirmation_statement.call_args.args[0]
        assert payload['sicCodes'] == '62020, 62090'
        assert payload['pscs'][0]['natureOfControl'] == ['shares_over_25', 'voting_over_25']
        assert cs01_wizard.current_step == 4
        assert notifications.latest.description == 'Confirmation Statement has been submitted to Companies House'

    def test_submit_failure_uses_server_message(self, cs01_wizard, mock_api_client, notifications, filing_monitor):
        mock_api_client.submit_confirmation_statement.side_effect = ApiError(400, 'Company is dissolved')

        assert cs01_wizard.submit() is None

        assert cs01_wizard.current_step == 1
        assert notifications.latest.title == 'Submission Failed'
        assert notifications.latest.description == 'Company is dissolved'
        assert filing_monitor.metrics.get_counter('submissions_failed_total') == 1

    def test_submission_warning_uses_flat_cost(self, cs01_wizard):
        cs01_wizard.check_credits()

        assert cs01_wizard.submission_warning().credit_cost == 100


class TestCT600Wizard:
    """Test cases for CT600Wizard."""

    def test_income_step_advanced_by_compute(self, ct600_wizard):
        assert ct600_wizard.next_step()
        assert ct600_wizard.current_step == 2
        assert not ct600_wizard.next_step()

    def test_compute(self, ct600_wizard, mock_api_client, notifications):
        mock_api_client.compute_ct600.return_value = {'corporationTaxDue': 36000}

        assert ct600_wizard.compute() == {'corporationTaxDue': 36000}

        assert ct600_wizard.current_step == 3
        assert notifications.latest.title == 'Tax Computed'
        assert notifications.latest.description == 'Corporation Tax: £36000.00'
        assert ct600_wizard.review.is_valid
        assert ct600_wizard.estimate.corporation_tax_due == pytest.approx(36000)

    def test_compute_without_tax_due(self, ct600_wizard, mock_api_client, notifications):
        mock_api_client.compute_ct600.return_value = {'corporationTaxDue': None, 'status': 'pending'}

        assert ct600_wizard.compute() == {'corporationTaxDue': None, 'status': 'pending'}

        assert ct600_wizard.current_step == 3
        assert notifications.latest.description == 'Corporation Tax: £0.00'

    def test_compute_failure_hides_server_message(self, ct600_wizard, mock_api_client, notifications):
        mock_api_client.compute_ct600.side_effect = ApiError(500, 'Traceback (most recent call last)')

        assert ct600_wizard.compute() is None

        assert ct600_wizard.computation is None
        assert notifications.latest.description == 'Failed to compute corporation tax'

    def test_submit_requires_computation(self, ct600_wizard):
        with pytest.raises(ValueError, match='Compute the return before submitting'):
            ct600_wizard.submit()

    def test_submit(self, ct600_wizard, mock_api_client, notifications):
        mock_api_client.compute_ct600.return_value = {'corporationTaxDue': 36000}
        mock_api_client.submit_ct600.return_value = {'correlationId': 'abc'}
        ct600_wizard.compute()

        assert ct600_wizard.submit() == {'correlationId': 'abc'}

        payload = mock_api_client.submit_ct600.call_args.args[0]
        assert payload['utr'] == '1234567890'
        assert payload['computation'] == {'corporationTaxDue': 36000}
        assert ct600_wizard.is_complete
        assert notifications.latest.description == 'CT600 has been submitted to HMRC'

    def test_supplementary_pages_drive_cost(self, ct600_wizard):
        assert ct600_wizard.required_credits() == 150

        ct600_wizard.update(is_close_company=True, has_property_income=True)

        assert len(ct600_wizard.required_supplementary_pages) == 2
        assert ct600_wizard.required_credits() == 200

    def test_load_current(self, ct600_wizard, mock_api_client):
        mock_api_client.get_current_ct600.return_value = {
            'id': 5,
            'status': 'draft',
            'formData': {'companyName': 'Acme Holdings Ltd', 'numberOfAssociatedCompanies': 2},
        }

        assert ct600_wizard.load_current()
        assert ct600_wizard.form_data['company_name'] == 'Acme Holdings Ltd'
        assert ct600_wizard.form_data['number_of_associated_companies'] == 2

    def test_load_current_none(self, ct600_wizard, mock_api_client):
        mock_api_client.get_current_ct600.return_value = None

        assert not ct600_wizard.load_current()

    def test_box_breakdown(self, ct600_wizard):
        breakdown = ct600_wizard.box_breakdown()

        assert breakdown['company_info'][2] == {'box': '3', 'label': 'UTR', 'value': '1234567890'}


class TestFirstStepDateOrder:
    """Test cases for date order checks on a first step filled in on its own."""

    def test_ct600_period_end_before_start(self, ct600_wizard, ct600_company_details):
        ct600_wizard.form_data = {
            **ct600_company_details,
            'accounting_period_start': '2024-03-31',
            'accounting_period_end': '2023-04-01',
        }

        assert not ct600_wizard.next_step()

        assert ct600_wizard.current_step == 1
        assert ct600_wizard.errors == {
            'accounting_period_end': 'Accounting period end date must be after start date',
        }

    def test_cs01_made_up_to_after_statement_date(self, cs01_wizard, cs01_company_details):
        cs01_wizard.form_data = {
            **cs01_company_details,
            'statement_date': '2024-01-01',
            'made_up_to_date': '2024-06-01',
        }

        assert not cs01_wizard.next_step()

        assert cs01_wizard.current_step == 1
        assert cs01_wizard.errors == {'made_up_to_date': 'Made up to date cannot be after the statement date'}

    def test_valid_first_step_advances(self, ct600_wizard, ct600_company_details):
        ct600_wizard.form_data = dict(ct600_company_details)

        assert ct600_wizard.next_step()
        assert ct600_wizard.current_step == 2


class TestCreditRecheck:
    """Test cases for credit checks made before each submission."""

    def test_failed_check_is_retried_on_submit(self, cs01_wizard, mock_api_client, notifications):
        mock_api_client.validate_credits.side_effect = [
            ApiError(503, 'Service unavailable'),
            {'valid': True, 'currentCredits': 500, 'requiredCredits': 100},
        ]
        mock_api_client.submit_confirmation_statement.return_value = {'status': 'accepted'}
        cs01_wizard.credit_gate = CreditGate(api_client=mock_api_client)

        assert not cs01_wizard.can_submit
        assert cs01_wizard.submit() == {'status': 'accepted'}

        assert mock_api_client.validate_credits.call_count == 2
        assert notifications.latest.title == 'Submitted Successfully'

    def test_failed_check_error_shown(self, cs01_wizard, mock_api_client, notifications):
        mock_api_client.validate_credits.side_effect = ApiError(503, 'Service unavailable')
        cs01_wizard.credit_gate = CreditGate(api_client=mock_api_client)

        assert cs01_wizard.submit() is None

        mock_api_client.submit_confirmation_statement.assert_not_called()
        assert notifications.latest.title == 'Insufficient Credits'
        assert notifications.latest.description == 'Unable to verify credit balance. Please try again.'

    def test_entity_size_change_rechecks_balance(self, accounts_wizard, mocker):
        accounts_wizard.credit_gate = CreditGate(known_balance=250)
        check = mocker.spy(accounts_wizard.credit_gate, 'check')

        assert accounts_wizard.can_submit
        assert accounts_wizard.can_submit
        assert check.call_count == 1

        accounts_wizard.update(entity_size='large')

        assert not accounts_wizard.can_submit
        assert check.call_count == 2
        assert accounts_wizard.credit_result.required_credits == 400
        assert accounts_wizard.submission_warning().credit_cost == 400
