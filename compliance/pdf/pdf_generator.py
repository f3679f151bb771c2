"""
Review-pack PDFs for filings, rendered with WeasyPrint or drawn with ReportLab.
"""
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import weasyprint
from reportlab.lib import colors
from reportlab.lib.colors import HexColor
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from reportlab.platypus.flowables import HRFlowable

from config.filing_config import OUTPUT_DIR, PDF_CONFIG, TEMPLATES_DIR
from ..billing.filing_costs import (
    detect_ct600_complexity,
    get_annual_accounts_cost,
    get_ct600_cost,
    get_filing_cost,
)
from ..ct600.ct600_validator import (
    CT600Computation,
    estimate_ct600_tax,
    generate_box_breakdown,
    validate_ct600,
)
from ..templates.template_manager import TemplateManager, gbp_filter, mask_utr_filter, uk_date_filter
from ..validation.form_schemas import FilingType, FormModel

logger = logging.getLogger(__name__)

TEMPLATE_NAMES = {
    FilingType.ANNUAL_ACCOUNTS: 'annual_accounts',
    FilingType.CONFIRMATION_STATEMENT: 'confirmation_statement',
    FilingType.CORPORATION_TAX: 'ct600',
}


class ReviewPackGenerator:
    """
    Generates the review pack a director signs off before a filing is submitted.
    """

    def __init__(self, output_dir: Optional[Path] = None, template_manager: Optional[TemplateManager] = None):
        """
        Args:
            output_dir: Directory to save generated PDFs
            template_manager: Template source, defaults to the bundled templates
        """
        self.output_dir = Path(output_dir or OUTPUT_DIR)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.config = PDF_CONFIG
        self.template_manager = template_manager or TemplateManager()

    def _styles(self) -> str:
        css_path = Path(self.template_manager.templates_dir) / 'base_styles.css'
        if not css_path.exists():
            css_path = TEMPLATES_DIR / 'base_styles.css'
        return css_path.read_text() if css_path.exists() else ''

    def build_context(self, filing_type: Union[FilingType, str], form: FormModel,
                      computation: Optional[CT600Computation] = None) -> Dict:
        """
        Render context for a filing's template.

        Args:
            filing_type: Filing type of the form
            form: Validated form model
            computation: CT600 computation; estimated from the form when omitted

        Returns:
            Dict: ``form`` plus the extras that filing type's template reads
        """
        filing_type = FilingType(filing_type)
        context = {'form': form, 'filing_type': filing_type.value, 'styles': self._styles()}

        if filing_type == FilingType.ANNUAL_ACCOUNTS:
            context['credits'] = get_annual_accounts_cost(form.entity_size)
        elif filing_type == FilingType.CONFIRMATION_STATEMENT:
            context['credits'] = get_filing_cost(filing_type)
            context['capital'] = form.statement_of_capital()
        else:
            computation = computation or estimate_ct600_tax(form)
            checks = validate_ct600(form)
            context.update({
                'computation': computation,
                'breakdown': generate_box_breakdown(form, computation),
                'supplementary_pages': checks.required_supplementary_pages,
                'warnings': [w.message for w in checks.warnings],
                'credits': get_ct600_cost(detect_ct600_complexity(checks.required_supplementary_pages)),
            })
        return context

    def generate_pdf_from_html(self, html_content: str, output_path: Path) -> bool:
        """
        Generate a PDF from HTML using WeasyPrint.

        Returns:
            bool: True if successful, False otherwise
        """
        try:
            weasyprint.HTML(string=html_content, base_url=str(self.template_manager.templates_dir)).write_pdf(
                str(output_path)
            )
            logger.info(f"Successfully generated PDF: {output_path}")
            return True

        except Exception as e:
            logger.error(f"Error generating PDF from HTML: {str(e)}")
            return False

    def render_html(self, filing_type: Union[FilingType, str], form: FormModel,
                    computation: Optional[CT600Computation] = None,
                    template_version: Optional[str] = None) -> Optional[str]:
        """Render a filing's review pack to HTML, or None when no template is found."""
        filing_type = FilingType(filing_type)
        template = self.template_manager.select_template(TEMPLATE_NAMES[filing_type], template_version)
        if not template:
            logger.error(f"No template found for {filing_type.value}")
            return None
        return self.template_manager.render_template(
            template, self.build_context(filing_type, form, computation)
        )

    def generate_review_pack(self, filing_type: Union[FilingType, str], form: FormModel,
                             computation: Optional[CT600Computation] = None,
                             template_version: Optional[str] = None) -> Optional[Path]:
        """
        Render and write a filing's review pack.

        Returns:
            Optional[Path]: Path to the PDF, or None if it failed
        """
        filing_type = FilingType(filing_type)
        html_content = self.render_html(filing_type, form, computation, template_version)
        if html_content is None:
            return None

        output_path = self.output_dir / self._generate_filename(filing_type.value, form)
        if self.generate_pdf_from_html(html_content, output_path):
            return output_path
        return None

    def generate_ct600_breakdown_pdf(self, form: FormModel,
                                     computation: Optional[CT600Computation] = None) -> Optional[Path]:
        """
        Draw the CT600 box breakdown directly with ReportLab.

        Returns:
            Optional[Path]: Path to the PDF, or None if it failed
        """
        output_path = self.output_dir / self._generate_filename('ct600_breakdown', form)
        try:
            computation = computation or estimate_ct600_tax(form)
            breakdown = generate_box_breakdown(form, computation)

            doc = SimpleDocTemplate(
                str(output_path),
                pagesize=A4,
                rightMargin=self.config['margins']['right'],
                leftMargin=self.config['margins']['left'],
                topMargin=self.config['margins']['top'],
                bottomMargin=self.config['margins']['bottom']
            )

            styles = getSampleStyleSheet()
            title_style = ParagraphStyle(
                'BreakdownTitle',
                parent=styles['Heading1'],
                fontSize=self.config['font_size']['title'],
                spaceAfter=18,
                alignment=TA_CENTER
            )
            heading_style = ParagraphStyle(
                'BreakdownHeading',
                parent=styles['Heading2'],
                fontSize=self.config['font_size']['heading'],
                spaceAfter=8,
                textColor=HexColor('#2c5f7d')
            )
            body_style = ParagraphStyle(
                'BreakdownBody',
                parent=styles['Normal'],
                fontSize=self.config['font_size']['body'],
                spaceAfter=4
            )

            story = [
                Paragraph('CT600 Box Breakdown', title_style),
                Paragraph(f"<b>{form.company_name}</b> &middot; UTR {mask_utr_filter(form.utr)}", body_style),
                Paragraph(
                    f"Accounting period {uk_date_filter(form.accounting_period_start)} to "
                    f"{uk_date_filter(form.accounting_period_end)}",
                    body_style
                ),
                Spacer(1, 14),
            ]

            for section, rows in breakdown.items():
                story.append(Paragraph(section.replace('_', ' ').title(), heading_style))
                table_rows, highlights = self._breakdown_rows(rows)
                table = Table(table_rows, colWidths=[0.7 * inch, 3.8 * inch, 1.8 * inch])
                style = [
                    ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
                    ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
                    ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
                    ('FONTSIZE', (0, 0), (-1, -1), 9),
                    ('ALIGN', (2, 0), (2, -1), 'RIGHT'),
                    ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
                ]
                for index in highlights:
                    style.append(('BACKGROUND', (0, index), (-1, index), HexColor('#eff6ff')))
                    style.append(('FONTNAME', (0, index), (-1, index), 'Helvetica-Bold'))
                table.setStyle(TableStyle(style))
                story.append(table)
                story.append(Spacer(1, 12))

            story.append(HRFlowable(width="100%", thickness=1, color=colors.grey))
            story.append(Spacer(1, 8))
            story.append(Paragraph(
                f"<b>Corporation Tax due:</b> {gbp_filter(computation.corporation_tax_due)} "
                f"(effective rate {computation.effective_rate:.2f}%)",
                body_style
            ))
            if computation.payment_due_date:
                story.append(Paragraph(
                    f"<b>Payment due:</b> {uk_date_filter(computation.payment_due_date, 'long')}", body_style
                ))
            footer = f"Estimate generated on {datetime.now().strftime('%d %B %Y at %H:%M')}"
            story.append(Spacer(1, 20))
            story.append(Paragraph(footer, ParagraphStyle('Footer', parent=styles['Normal'], fontSize=8,
                                                          alignment=TA_CENTER)))

            doc.build(story)

            logger.info(f"Successfully generated CT600 breakdown PDF: {output_path}")
            return output_path

        except Exception as e:
            logger.error(f"Error generating CT600 breakdown PDF: {str(e)}")
            return None

    @staticmethod
    def _breakdown_rows(rows: List[Dict]) -> Tuple[List[List[str]], List[int]]:
        table_rows = [['Box', 'Description', 'Value']]
        highlights = []
        for row in rows:
            value = row.get('value')
            if row.get('currency'):
                text = gbp_filter(value)
            elif row['box'] == '3':
                text = mask_utr_filter(value)
            elif row['box'] in ('30', '35'):
                text = uk_date_filter(value)
            else:
                text = '' if value is None else str(value)
            label = row['label'] + (' (calculated)' if row.get('calculated') else '')
            table_rows.append([row['box'], label, text])
            if row.get('highlight'):
                highlights.append(len(table_rows) - 1)
        return table_rows, highlights

    @staticmethod
    def _generate_filename(prefix: str, form: FormModel) -> str:
        company_number = getattr(form, 'company_number', '') or 'unknown'
        company_number = ''.join(c for c in company_number if c.isalnum())[:12]
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        return f"{prefix}_{company_number}_{timestamp}.pdf"

    def validate_pdf_output(self, pdf_path: Optional[Path]) -> bool:
        """
        Check a generated PDF exists, is not trivially small and has a PDF header.
        """
        if not pdf_path or not pdf_path.exists():
            return False

        if pdf_path.stat().st_size < 1000:
            logger.warning(f"PDF file too small: {pdf_path.stat().st_size} bytes")
            return False

        with open(pdf_path, 'rb') as f:
            if f.read(4) != b'%PDF':
                logger.error("Invalid PDF header")
                return False

        logger.debug(f"PDF validation passed: {pdf_path}")
        return True

    def batch_generate(self, filings: List[Tuple[str, FilingType, FormModel]]) -> Dict[str, Optional[Path]]:
        """
        Generate review packs for several filings.

        Args:
            filings: (reference, filing type, form) triples

        Returns:
            Dict[str, Optional[Path]]: Reference mapped to PDF path, None where it failed
        """
        results = {}
        for reference, filing_type, form in filings:
            results[reference] = self.generate_review_pack(filing_type, form)
            if results[reference]:
                logger.info(f"Generated review pack for {reference}")
            else:
                logger.error(f"Failed to generate review pack for {reference}")

        successful = len([p for p in results.values() if p])
        logger.info(f"Batch generation complete: {successful} successful, {len(results) - successful} failed")
        return results
