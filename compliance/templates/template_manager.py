"""
Versioned review-pack templates for each filing type.
"""
import json
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from dateutil import parser as date_parser
from jinja2 import Environment, FileSystemLoader, Template, TemplateNotFound

from config.filing_config import TEMPLATE_CONFIG, TEMPLATES_DIR

logger = logging.getLogger(__name__)


def gbp_filter(value: Optional[Union[int, float]], pence: bool = True) -> str:
    """Format an amount as pounds sterling, with negatives in brackets."""
    if value is None or value == '':
        return '£0.00' if pence else '£0'
    amount = float(value)
    text = f"£{abs(amount):,.2f}" if pence else f"£{abs(amount):,.0f}"
    return f"({text})" if amount < 0 else text


def uk_date_filter(value: Union[str, date, datetime, None], format_type: str = 'short') -> str:
    """Format a date the UK way: 31/03/2024, or 31 March 2024 when long."""
    if not value:
        return ''
    if isinstance(value, str):
        try:
            value = date_parser.isoparse(value)
        except ValueError:
            return value

    if format_type == 'short':
        return value.strftime('%d/%m/%Y')
    elif format_type == 'long':
        return f"{value.day} {value.strftime('%B %Y')}"
    elif format_type == 'iso':
        return value.strftime('%Y-%m-%d')
    return value.strftime(format_type)


def percentage_filter(value: Optional[float], precision: int = 1) -> str:
    """Format a fraction as a percentage: 0.25 -> 25.0%"""
    return f"{(value or 0) * 100:.{precision}f}%"


def mask_utr_filter(utr: Optional[str]) -> str:
    """Show only the last three digits of a UTR."""
    utr = (utr or '').replace(' ', '')
    if len(utr) > 3:
        return f"{'*' * (len(utr) - 3)}{utr[-3:]}"
    return utr


class TemplateVersion:
    """One version of a filing type's template."""

    def __init__(self, name: str, version: str, template_path: Path, config: Dict):
        self.name = name
        self.version = version
        self.template_path = template_path
        self.config = config
        self.title = config.get('title', name.replace('_', ' ').title())
        self.created_date = date_parser.isoparse(
            config.get('created_date', datetime.now(timezone.utc).isoformat())
        )
        self.is_active = config.get('is_active', True)

    @property
    def version_key(self):
        return tuple(int(part) if part.isdigit() else 0 for part in self.version.split('.'))


class TemplateManager:
    """
    Loads ``templates/<filing type>/v<version>/template.html`` with an
    optional ``config.json`` beside each, and renders them with the
    filing filters registered.
    """

    def __init__(self, templates_dir: Optional[Path] = None):
        self.templates_dir = Path(templates_dir or TEMPLATES_DIR)
        self.config = TEMPLATE_CONFIG
        self._template_cache: Dict[str, Template] = {}
        self._template_registry: Dict[str, Dict[str, TemplateVersion]] = {}
        self._load_templates()

        self.jinja_env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True
        )
        self._register_custom_filters()

    def _load_templates(self):
        """Scan the templates directory for filing types and their versions."""
        if not self.templates_dir.exists():
            logger.warning(f"Templates directory not found: {self.templates_dir}")
            return

        for type_dir in self.templates_dir.iterdir():
            if type_dir.is_dir():
                self._load_template_type(type_dir.name, type_dir)

        logger.info(f"Loaded {len(self._template_registry)} template types")

    def _load_template_type(self, template_type: str, type_dir: Path):
        self._template_registry[template_type] = {}

        for item in type_dir.iterdir():
            if item.is_dir():
                # Version directory (e.g. v1.0)
                self._load_template_version(template_type, item.name.lstrip('v'), item)
            elif item.suffix == '.html':
                # Loose HTML file is the default version
                self._register(template_type, self.config['default_version'], item, {})

    def _load_template_version(self, template_type: str, version: str, version_dir: Path):
        config_file = version_dir / 'config.json'
        template_file = version_dir / 'template.html'

        config = {}
        if config_file.exists():
            try:
                with open(config_file, 'r') as f:
                    config = json.load(f)
            except json.JSONDecodeError as e:
                logger.error(f"Invalid template config {config_file}: {str(e)}")
                return

        if template_file.exists():
            self._register(template_type, version, template_file, config)

    def _register(self, template_type: str, version: str, template_file: Path, config: Dict):
        self._template_registry.setdefault(template_type, {})[version] = TemplateVersion(
            name=template_type,
            version=version,
            template_path=template_file,
            config=config
        )
        logger.debug(f"Loaded template {template_type} v{version}")

    def _find_template_version(self, template_name: str, version: Optional[str] = None) -> Optional[TemplateVersion]:
        """
        Find a template version.

        Args:
            template_name: Filing type
            version: Version string, or None for the latest active version

        Returns:
            Optional[TemplateVersion]: Template version or None
        """
        versions = self._template_registry.get(template_name)
        if not versions:
            return None

        if version:
            return versions.get(version)

        active_versions = [tv for tv in versions.values() if tv.is_active]
        if not active_versions:
            return None
        return max(active_versions, key=lambda tv: tv.version_key)

    def get_template(self, template_name: str, version: Optional[str] = None) -> Optional[Template]:
        """
        Get a template by filing type and version.

        Returns:
            Optional[Template]: Jinja2 template, or None if there is no such template
        """
        cache_key = f"{template_name}:{version or 'latest'}"
        if cache_key in self._template_cache:
            return self._template_cache[cache_key]

        template_version = self._find_template_version(template_name, version)
        if not template_version:
            logger.error(f"Template not found: {template_name} v{version}")
            return None

        template_path = template_version.template_path.relative_to(self.templates_dir)
        try:
            template = self.jinja_env.get_template(template_path.as_posix())
        except TemplateNotFound:
            logger.error(f"Template file not found: {template_name} v{version}")
            return None

        self._template_cache[cache_key] = template
        logger.debug(f"Retrieved template {template_name} v{template_version.version}")
        return template

    def get_available_templates(self) -> Dict[str, List[str]]:
        return {name: sorted(versions) for name, versions in self._template_registry.items()}

    def select_template(self, filing_type: str, version: Optional[str] = None) -> Optional[Template]:
        """
        Pick the template for a filing, falling back to its latest active version.
        """
        logger.info(f"Selecting template: {filing_type} v{version or 'latest'}")

        template = self.get_template(filing_type, version)
        if not template and version:
            logger.warning(f"Template {filing_type} v{version} not found, using latest")
            template = self.get_template(filing_type)
        return template

    def _register_custom_filters(self):
        self.jinja_env.filters['gbp'] = gbp_filter
        self.jinja_env.filters['uk_date'] = uk_date_filter
        self.jinja_env.filters['percentage'] = percentage_filter
        self.jinja_env.filters['mask_utr'] = mask_utr_filter

    def render_template(self, template: Template, data: Dict[str, Any]) -> str:
        """
        Render a template with the filing data.

        Args:
            template: Jinja2 template object
            data: Render context, typically ``form`` plus extras such as ``computation``

        Returns:
            str: Rendered HTML
        """
        context = {
            **data,
            'now': datetime.now(timezone.utc),
        }
        return template.render(**context)

    def clear_cache(self):
        self._template_cache.clear()
        logger.info("Template cache cleared")
