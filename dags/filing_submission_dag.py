"""
Apache Airflow DAG that submits filing drafts dropped into the inbox folder.
"""
import logging
import sys
import time
from datetime import datetime, timedelta
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from airflow import DAG
from airflow.exceptions import AirflowException
from airflow.models import Variable
from airflow.operators.empty import EmptyOperator
from airflow.operators.python import PythonOperator

from config.filing_config import API_CONFIG, DEFAULT_DAG_ARGS, MONITORING_CONFIG
from compliance.api.client import ApiError, FilingApiClient
from compliance.billing.credit_check import CreditGate
from compliance.billing.filing_costs import (
    detect_ct600_complexity,
    get_annual_accounts_cost,
    get_ct600_cost,
    get_filing_cost,
)
from compliance.ct600.box_mapping import required_supplementary_pages
from compliance.ct600.ct600_validator import computation_from_response
from compliance.documents.inbox_watcher import InboxConfig, InboxItem, InboxWatcher, document_type_for
from compliance.documents.uploader import DocumentManager, UploadFile, UploadRejected
from compliance.monitoring.notifications import FilingMonitor
from compliance.pdf.pdf_generator import ReviewPackGenerator
from compliance.validation.form_schemas import FORM_MODELS, FilingType
from compliance.validation.form_validator import FormValidator, detect_entity_size

logger = logging.getLogger(__name__)

DAG_ID = 'filing_submission'
DESCRIPTION = 'Validate, price, render and submit filing drafts from the inbox'

default_args = {
    'owner': DEFAULT_DAG_ARGS['owner'],
    'depends_on_past': DEFAULT_DAG_ARGS['depends_on_past'],
    'start_date': datetime(2024, 1, 1),
    'email_on_failure': DEFAULT_DAG_ARGS['email_on_failure'],
    'email_on_retry': DEFAULT_DAG_ARGS['email_on_retry'],
    'retries': DEFAULT_DAG_ARGS['retries'],
    'retry_delay': timedelta(minutes=DEFAULT_DAG_ARGS['retry_delay_minutes']),
}

dag = DAG(
    dag_id=DAG_ID,
    default_args=default_args,
    description=DESCRIPTION,
    schedule=timedelta(hours=1),
    catchup=False,
    max_active_runs=1,
    tags=['compliance', 'companies-house', 'hmrc', 'filings'],
)


def _api_client() -> FilingApiClient:
    return FilingApiClient(
        base_url=Variable.get('filing_api_base_url', default_var=API_CONFIG['base_url']),
        session_cookie=Variable.get('filing_api_session_cookie', default_var=API_CONFIG['session_cookie']),
    )


def _pull(context, task_id: str, key: str):
    return context['task_instance'].xcom_pull(task_ids=task_id, key=key) or []


def _reject_source(source: str, reason: str):
    InboxWatcher(InboxConfig(process_existing=False)).reject(InboxItem('draft', Path(source)), reason)


def required_credits_for(filing_type: FilingType, form: dict) -> int:
    """Tiered credit cost for a validated draft."""
    if filing_type == FilingType.ANNUAL_ACCOUNTS:
        return get_annual_accounts_cost(form.get('entity_size', 'small'))
    if filing_type == FilingType.CORPORATION_TAX:
        return get_ct600_cost(detect_ct600_complexity(required_supplementary_pages(form)))
    return get_filing_cost(filing_type)


def collect_inbox(**context) -> list:
    """
    Read drafts and supporting documents from the inbox.

    Documents are uploaded straight away; drafts are handed on via XCom.
    """
    watcher = None
    try:
        batch_size = int(Variable.get('inbox_batch_size', default_var=50))
        watcher = InboxWatcher(InboxConfig(process_existing=True))
        if not watcher.connect():
            raise AirflowException('Failed to start the inbox watcher')

        items = watcher.consume_batch(batch_size=batch_size)
        documents = DocumentManager(_api_client())

        drafts = []
        uploaded = 0
        for index, item in enumerate(items):
            if item.kind == 'document':
                document_type = item.metadata.get('document_type') or document_type_for(item.source)
                try:
                    documents.upload_document(UploadFile(item.source.name, item.payload), document_type)
                except (UploadRejected, ApiError) as e:
                    watcher.reject(item, str(e))
                    continue
                watcher.acknowledge(item)
                uploaded += 1
                continue

            drafts.append({
                'reference': f"{item.source.stem}-{index}",
                'source': str(item.source),
                'filing_type': item.filing_type,
                'company_id': item.payload.get('company_id'),
                'document_ids': item.payload.get('document_ids', []),
                'form': item.form,
            })

        logger.info(f"Collected {len(drafts)} drafts and uploaded {uploaded} documents")
        context['task_instance'].xcom_push(key='drafts', value=drafts)
        context['task_instance'].xcom_push(key='inbox_status', value=watcher.get_statistics())
        return drafts

    except (OSError, ApiError) as e:
        logger.error(f"Error collecting inbox: {str(e)}")
        raise AirflowException(f"Inbox collection failed: {str(e)}")
    finally:
        if watcher:
            watcher.close()


def validate_drafts(**context) -> list:
    """Validate each draft against its filing type's form rules."""
    drafts = _pull(context, 'collect_inbox', 'drafts')
    if not drafts:
        logger.warning('No drafts received from the inbox')
        return []

    validator = FormValidator()
    monitor = FilingMonitor()
    started = time.monotonic()

    validated, rejected = [], []
    for draft in drafts:
        try:
            filing_type = FilingType(draft['filing_type'])
        except ValueError:
            rejected.append({**draft, 'errors': {'filing_type': f"Unknown filing type: {draft['filing_type']}"}})
            continue

        result = validator.validate(filing_type, draft['form'])
        if result.is_valid:
            form = result.data
            if filing_type == FilingType.ANNUAL_ACCOUNTS:
                form['entity_size'] = detect_entity_size(result.model.turnover, result.model.total_assets)
            validated.append({**draft, 'filing_type': filing_type.value, 'form': form})
        else:
            rejected.append({**draft, 'errors': result.as_dict()})
            logger.warning(f"Draft {draft['reference']} failed validation: {result.as_dict()}")

    for rejected_draft in rejected:
        _reject_source(rejected_draft['source'], f"Validation failed: {rejected_draft['errors']}")

    monitor.track_validation('inbox', len(drafts), len(validated), time.monotonic() - started)
    logger.info(f"Validated {len(validated)} of {len(drafts)} drafts")
    context['task_instance'].xcom_push(key='validated_drafts', value=validated)
    context['task_instance'].xcom_push(key='rejected_drafts', value=rejected)
    return validated


def check_credits(**context) -> list:
    """Drop drafts the account cannot afford."""
    drafts = _pull(context, 'validate_drafts', 'validated_drafts')
    gate = CreditGate(_api_client())

    affordable = []
    for draft in drafts:
        filing_type = FilingType(draft['filing_type'])
        required = required_credits_for(filing_type, draft['form'])
        result = gate.check(filing_type, required)
        if result.valid:
            affordable.append({**draft, 'required_credits': required})
        else:
            reason = result.error or f"Insufficient credits: need {result.required_credits}, have {result.current_credits}"
            logger.warning(f"Draft {draft['reference']} held back: {reason}")
            _reject_source(draft['source'], reason)

    context['task_instance'].xcom_push(key='affordable_drafts', value=affordable)
    return affordable


def prepare_filings(**context) -> list:
    """
    Run the server-side preparation step: CT600 computation or iXBRL generation.
    """
    drafts = _pull(context, 'check_credits', 'affordable_drafts')
    client = _api_client()

    prepared = []
    for draft in drafts:
        filing_type = FilingType(draft['filing_type'])
        model = FORM_MODELS[filing_type].model_validate(draft['form'])
        try:
            if filing_type == FilingType.CORPORATION_TAX:
                draft = {**draft, 'computation': client.compute_ct600(model.to_api_payload())}
            elif filing_type == FilingType.ANNUAL_ACCOUNTS:
                draft = {**draft, 'ixbrl': client.generate_ixbrl(model.to_api_payload())}
        except ApiError as e:
            logger.error(f"Preparation failed for {draft['reference']}: {e.message}")
            _reject_source(draft['source'], f"Preparation failed: {e.message}")
            continue
        prepared.append(draft)

    context['task_instance'].xcom_push(key='prepared_drafts', value=prepared)
    return prepared


def render_review_packs(**context) -> dict:
    """Render a review pack PDF for each prepared filing."""
    drafts = _pull(context, 'prepare_filings', 'prepared_drafts')
    if not drafts:
        return {}

    generator = ReviewPackGenerator()
    monitor = FilingMonitor()
    started = time.monotonic()

    results = {}
    for draft in drafts:
        filing_type = FilingType(draft['filing_type'])
        model = FORM_MODELS[filing_type].model_validate(draft['form'])
        computation = None
        if filing_type == FilingType.CORPORATION_TAX:
            computation = computation_from_response(model, draft.get('computation'))
        pdf_path = generator.generate_review_pack(filing_type, model, computation)
        if pdf_path and generator.validate_pdf_output(pdf_path):
            results[draft['reference']] = {
                'success': True,
                'pdf_path': str(pdf_path),
                'file_size': pdf_path.stat().st_size,
            }
        else:
            results[draft['reference']] = {'success': False, 'error': 'PDF generation or validation failed'}

    successful = sum(1 for r in results.values() if r['success'])
    total_size = sum(r.get('file_size', 0) for r in results.values())
    monitor.track_pdf_generation(len(results), successful, time.monotonic() - started, total_size)

    context['task_instance'].xcom_push(key='review_packs', value=results)
    return results


def submit_filings(**context) -> dict:
    """Submit every prepared filing to its authority."""
    drafts = _pull(context, 'prepare_filings', 'prepared_drafts')
    client = _api_client()
    monitor = FilingMonitor()

    results = {}
    for draft in drafts:
        filing_type = FilingType(draft['filing_type'])
        payload = FORM_MODELS[filing_type].model_validate(draft['form']).to_api_payload()
        started = time.monotonic()
        try:
            if filing_type == FilingType.ANNUAL_ACCOUNTS:
                response = client.submit_annual_accounts({
                    **payload,
                    'ixbrlData': draft.get('ixbrl'),
                    'documentIds': draft.get('document_ids', []),
                })
            elif filing_type == FilingType.CONFIRMATION_STATEMENT:
                response = client.submit_confirmation_statement(payload)
            else:
                response = client.submit_ct600({**payload, 'computation': draft.get('computation')})
        except ApiError as e:
            monitor.track_submission(filing_type.value, False, time.monotonic() - started)
            results[draft['reference']] = {'success': False, 'error': e.message}
            _reject_source(draft['source'], f"Submission failed: {e.message}")
            continue

        monitor.track_submission(filing_type.value, True, time.monotonic() - started)
        results[draft['reference']] = {'success': True, 'response': response}
        InboxWatcher(InboxConfig(process_existing=False)).acknowledge(InboxItem('draft', Path(draft['source'])))

    logger.info(f"Submitted {sum(1 for r in results.values() if r['success'])} of {len(results)} filings")
    context['task_instance'].xcom_push(key='submission_results', value=results)
    return results


def publish_summary(**context) -> dict:
    """Summarise the run for the logs and the health check."""
    drafts = _pull(context, 'collect_inbox', 'drafts')
    rejected = _pull(context, 'validate_drafts', 'rejected_drafts')
    packs = context['task_instance'].xcom_pull(task_ids='render_review_packs', key='review_packs') or {}
    submissions = context['task_instance'].xcom_pull(task_ids='submit_filings', key='submission_results') or {}

    submitted = sum(1 for r in submissions.values() if r.get('success'))
    summary = {
        'logical_date': context['logical_date'].isoformat(),
        'drafts_collected': len(drafts),
        'drafts_rejected': len(rejected),
        'submissions_attempted': len(submissions),
        'submissions_successful': submitted,
        'review_packs': [r['pdf_path'] for r in packs.values() if r.get('success')],
        'success_rate': (submitted / len(submissions) * 100) if submissions else 100.0,
    }

    dag_run = context.get('dag_run')
    duration = (datetime.now(dag_run.start_date.tzinfo) - dag_run.start_date).total_seconds() \
        if dag_run and dag_run.start_date else 0.0
    summary['duration_seconds'] = duration

    FilingMonitor().track_batch_run(context['run_id'], duration, submitted == len(submissions), summary)
    logger.info(f"Filing run summary: {summary}")
    return summary


def check_submission_health(**context):
    """Log the run's health against the success-rate thresholds."""
    summary = context['task_instance'].xcom_pull(task_ids='publish_summary')
    if not summary:
        logger.error('No run summary available for health check')
        return

    checker = FilingMonitor().health_checker
    healthy = checker.check_success_rate(summary['submissions_attempted'], summary['submissions_successful'])
    healthy = checker.check_processing_time(summary['drafts_collected'], summary['duration_seconds']) and healthy

    success_rate = summary['success_rate']
    if success_rate >= MONITORING_CONFIG['healthy_success_rate']:
        logger.info(f"Submissions healthy: {success_rate:.1f}% success rate")
    elif success_rate >= MONITORING_CONFIG['warning_success_rate']:
        logger.warning(f"Submissions degraded: {success_rate:.1f}% success rate")
    else:
        logger.error(f"Submissions unhealthy: {success_rate:.1f}% success rate")
    return healthy


start_task = EmptyOperator(task_id='start', dag=dag)

collect_task = PythonOperator(task_id='collect_inbox', python_callable=collect_inbox, dag=dag)
validate_task = PythonOperator(task_id='validate_drafts', python_callable=validate_drafts, dag=dag)
credits_task = PythonOperator(task_id='check_credits', python_callable=check_credits, dag=dag)
prepare_task = PythonOperator(task_id='prepare_filings', python_callable=prepare_filings, dag=dag)
render_task = PythonOperator(task_id='render_review_packs', python_callable=render_review_packs, dag=dag)
submit_task = PythonOperator(task_id='submit_filings', python_callable=submit_filings, dag=dag)
summary_task = PythonOperator(task_id='publish_summary', python_callable=publish_summary, dag=dag)
health_task = PythonOperator(task_id='check_submission_health', python_callable=check_submission_health, dag=dag)

end_task = EmptyOperator(task_id='end', dag=dag)

start_task >> collect_task >> validate_task >> credits_task >> prepare_task
prepare_task >> render_task >> submit_task >> summary_task >> health_task >> end_task
