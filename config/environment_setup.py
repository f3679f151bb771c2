"""
Logging, working directories and a configuration self-check for the filing client.
"""
import os
import sys
import logging
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urlparse

from config.filing_config import (
    API_CONFIG,
    INBOX_CONFIG,
    LOGS_DIR,
    MONITORING_CONFIG,
    OUTPUT_DIR,
    TEMPLATE_CONFIG,
    TEMPLATES_DIR,
)

logger = logging.getLogger(__name__)

# Libraries that log every request or font lookup at INFO
NOISY_LOGGERS = ['urllib3', 'watchdog', 'reportlab', 'weasyprint', 'fontTools']


def setup_logging(log_level: Optional[str] = None, log_file: str = 'filing_client.log'):
    """
    Send client and DAG logs to ``logs/`` and the console.

    Args:
        log_level: Logging level name, defaults to the monitoring config
        log_file: File name under the logs directory
    """
    level_name = (log_level or MONITORING_CONFIG['log_level']).upper()
    LOGS_DIR.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(LOGS_DIR / log_file),
            logging.StreamHandler()
        ]
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def create_required_directories() -> List[Path]:
    """Create the log, review-pack and inbox directories named in the config."""
    required_dirs = [
        LOGS_DIR,
        OUTPUT_DIR,
        Path(INBOX_CONFIG['input_dir']),
        Path(INBOX_CONFIG['archive_dir']),
        Path(INBOX_CONFIG['error_dir']),
    ]
    for path in required_dirs:
        path.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Ensured directory exists: {path}")
    return required_dirs


def check_configuration(templates_dir: Optional[Path] = None) -> List[str]:
    """
    Look for settings that would stop a filing from being prepared or submitted.

    Returns:
        List[str]: One message per problem; empty when the configuration is usable
    """
    problems = []

    parsed = urlparse(API_CONFIG['base_url'])
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        problems.append(f"Filing API base URL is not an http(s) URL: {API_CONFIG['base_url']!r}")
    if API_CONFIG['timeout_seconds'] <= 0:
        problems.append('Filing API timeout must be positive')

    templates_dir = Path(templates_dir or TEMPLATES_DIR)
    for template_type in TEMPLATE_CONFIG['supported_formats']:
        type_dir = templates_dir / template_type
        if not type_dir.is_dir() or not any(type_dir.glob('**/*.html')):
            problems.append(f"No review-pack template for {template_type} under {templates_dir}")

    if INBOX_CONFIG['batch_size'] < 1:
        problems.append('Inbox batch size must be at least 1')
    if MONITORING_CONFIG['warning_success_rate'] > MONITORING_CONFIG['healthy_success_rate']:
        problems.append('Warning success rate is above the healthy success rate')

    return problems


def get_environment_info() -> Dict[str, str]:
    """Describe the running environment without exposing the session cookie."""
    return {
        'python_version': sys.version.split()[0],
        'environment': os.environ.get('ENVIRONMENT', 'development'),
        'api_base_url': API_CONFIG['base_url'],
        'session_cookie': 'set' if API_CONFIG['session_cookie'] else 'not set',
        'inbox_dir': str(INBOX_CONFIG['input_dir']),
        'output_dir': str(OUTPUT_DIR),
        'log_level': MONITORING_CONFIG['log_level'],
    }


def main() -> int:
    """Console entry point: prepare logging and directories, then report problems."""
    setup_logging()
    create_required_directories()

    for key, value in get_environment_info().items():
        logger.info(f"{key}: {value}")

    problems = check_configuration()
    for problem in problems:
        logger.error(problem)
    if problems:
        return 1

    logger.info("Filing client environment ready")
    return 0


if __name__ == '__main__':
    sys.exit(main())
