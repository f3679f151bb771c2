"""
Configuration settings for the UK filing compliance client.
"""
import os
from pathlib import Path

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
TEMPLATES_DIR = PROJECT_ROOT / "templates"
LOGS_DIR = PROJECT_ROOT / "logs"
OUTPUT_DIR = PROJECT_ROOT / "output"

# Filing service API
API_CONFIG = {
    'base_url': os.getenv('FILING_API_BASE_URL', 'http://localhost:5000'),
    'timeout_seconds': float(os.getenv('FILING_API_TIMEOUT', '30')),
    'session_cookie': os.getenv('FILING_API_SESSION_COOKIE', ''),
    'user_agent': 'uk-filing-client/1.0.0',
}

# Document upload limits
DOCUMENT_CONFIG = {
    'max_file_size_bytes': 10 * 1024 * 1024,  # 10MB
    'document_types': ['trial_balance', 'invoice', 'bank_statement', 'accounting_export'],
    'trial_balance_extensions': ['.xlsx', '.xls', '.csv'],
    'recent_documents_count': 5,
}

# Inbox watcher configuration
INBOX_CONFIG = {
    'input_dir': os.getenv('INBOX_DIR', PROJECT_ROOT / 'inbox'),
    'archive_dir': os.getenv('INBOX_ARCHIVE_DIR', PROJECT_ROOT / 'archive'),
    'error_dir': os.getenv('INBOX_ERROR_DIR', PROJECT_ROOT / 'error'),
    'file_pattern': os.getenv('INBOX_FILE_PATTERN', '*.json'),
    'process_existing': os.getenv('INBOX_PROCESS_EXISTING', 'true').lower() == 'true',
    'batch_size': int(os.getenv('INBOX_BATCH_SIZE', '50')),
    'polling_interval': int(os.getenv('INBOX_POLLING_INTERVAL', '5')),
}

# Autosave timings
AUTOSAVE_CONFIG = {
    'interval_seconds': 30,
    'debounce_seconds': 1,
    'recovery_file': os.getenv('AUTOSAVE_RECOVERY_FILE', PROJECT_ROOT / '.autosave-recovery.json'),
}

# PDF generation settings
PDF_CONFIG = {
    'page_size': 'A4',
    'margins': {
        'top': 56,
        'bottom': 56,
        'left': 56,
        'right': 56
    },
    'font_size': {
        'title': 16,
        'heading': 12,
        'body': 10
    }
}

# Template configuration
TEMPLATE_CONFIG = {
    'default_template': 'ct600',
    'default_version': '1.0',
    'supported_formats': ['annual_accounts', 'confirmation_statement', 'ct600'],
    'template_cache_ttl': 3600  # 1 hour
}

# Airflow DAG default arguments
DEFAULT_DAG_ARGS = {
    'owner': 'compliance-engineering',
    'depends_on_past': False,
    'email_on_failure': True,
    'email_on_retry': False,
    'retries': 1,
    'retry_delay_minutes': 10,
}

# Monitoring and notifications
MONITORING_CONFIG = {
    'max_notifications': 500,
    'log_level': os.getenv('LOG_LEVEL', 'INFO'),
    'healthy_success_rate': 95.0,
    'warning_success_rate': 80.0,
}
