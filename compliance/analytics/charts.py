"""
ReportLab charts and the printable analytics report.
"""
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
from reportlab.graphics.charts.barcharts import VerticalBarChart
from reportlab.graphics.charts.linecharts import HorizontalLineChart
from reportlab.graphics.charts.piecharts import Pie
from reportlab.graphics.shapes import Drawing, String
from reportlab.lib import colors
from reportlab.lib.colors import HexColor
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from config.filing_config import OUTPUT_DIR, PDF_CONFIG
from .dashboard import AdminAnalytics, PIE_COLORS

logger = logging.getLogger(__name__)

CHART_WIDTH = 440
CHART_HEIGHT = 200
BAR_COLOR = '#82ca9d'


def _empty_chart(title: str) -> Drawing:
    drawing = Drawing(CHART_WIDTH, 40)
    drawing.add(String(0, 24, title, fontName='Helvetica-Bold', fontSize=11))
    drawing.add(String(0, 6, 'No data for this period', fontSize=9, fillColor=colors.grey))
    return drawing


def _date_labels(frame: pd.DataFrame) -> List[str]:
    return [d.strftime('%d/%m') for d in frame['date']]


def bar_chart(frame: pd.DataFrame, category: str, value: str, title: str,
              color: str = BAR_COLOR) -> Drawing:
    """
    Vertical bar chart. Rows carrying a ``color`` column get per-bar colours.

    Args:
        frame: Source data
        category: Column holding bar labels (dates are shown as dd/mm)
        value: Column holding bar heights
        title: Chart title
        color: Bar colour when the frame has no colour column
    """
    if frame.empty:
        return _empty_chart(title)

    drawing = Drawing(CHART_WIDTH, CHART_HEIGHT + 30)
    drawing.add(String(0, CHART_HEIGHT + 14, title, fontName='Helvetica-Bold', fontSize=11))

    chart = VerticalBarChart()
    chart.x, chart.y = 40, 30
    chart.width, chart.height = CHART_WIDTH - 60, CHART_HEIGHT - 40
    chart.data = [[float(v) for v in frame[value]]]
    labels = _date_labels(frame) if category == 'date' else [str(c) for c in frame[category]]
    chart.categoryAxis.categoryNames = labels
    chart.categoryAxis.labels.fontSize = 7
    chart.categoryAxis.labels.angle = 30 if len(labels) > 8 else 0
    chart.valueAxis.valueMin = 0
    chart.bars[0].fillColor = HexColor(color)
    if 'color' in frame.columns:
        for i, bar_color in enumerate(frame['color']):
            chart.bars[(0, i)].fillColor = HexColor(bar_color)
    drawing.add(chart)
    return drawing


def pie_chart(frame: pd.DataFrame, title: str, label: str = 'name', value: str = 'value') -> Drawing:
    """Pie chart labelled with name and count, using the frame's colours when present."""
    if frame.empty:
        return _empty_chart(title)

    drawing = Drawing(CHART_WIDTH, CHART_HEIGHT + 30)
    drawing.add(String(0, CHART_HEIGHT + 14, title, fontName='Helvetica-Bold', fontSize=11))

    pie = Pie()
    pie.x, pie.y = 140, 20
    pie.width = pie.height = CHART_HEIGHT - 40
    pie.data = [float(v) for v in frame[value]]
    pie.labels = [f"{n}: {int(v)}" for n, v in zip(frame[label], frame[value])]
    pie.slices.fontSize = 8
    palette = list(frame['color']) if 'color' in frame.columns else PIE_COLORS
    for i in range(len(pie.data)):
        pie.slices[i].fillColor = HexColor(palette[i % len(palette)])
    drawing.add(pie)
    return drawing


def line_chart(frame: pd.DataFrame, value: str, title: str, color: str = '#8884d8') -> Drawing:
    """Line chart over the frame's ``date`` column."""
    if frame.empty:
        return _empty_chart(title)

    drawing = Drawing(CHART_WIDTH, CHART_HEIGHT + 30)
    drawing.add(String(0, CHART_HEIGHT + 14, title, fontName='Helvetica-Bold', fontSize=11))

    chart = HorizontalLineChart()
    chart.x, chart.y = 40, 30
    chart.width, chart.height = CHART_WIDTH - 60, CHART_HEIGHT - 40
    chart.data = [[float(v) for v in frame[value]]]
    chart.categoryAxis.categoryNames = _date_labels(frame)
    chart.categoryAxis.labels.fontSize = 7
    chart.valueAxis.valueMin = 0
    chart.lines[0].strokeColor = HexColor(color)
    chart.lines[0].strokeWidth = 2
    drawing.add(chart)
    return drawing


def build_charts(frames: Dict[str, pd.DataFrame]) -> List[Drawing]:
    """Charts for the analytics report, in page order."""
    return [
        line_chart(frames['revenue_by_date'], 'revenue', 'Revenue Trend', color='#0088FE'),
        bar_chart(frames['activity_by_date'], 'date', 'users', 'User Activity'),
        pie_chart(frames['users_by_role'], 'Users by Role'),
        pie_chart(frames['filings_by_status'], 'Filings by Status'),
        pie_chart(frames['filings_by_type'], 'Filings by Type'),
        line_chart(frames['errors_by_date'], 'errors', 'Error Trend', color='#EF4444'),
        bar_chart(frames['errors_by_severity'], 'severity', 'count', 'Errors by Severity'),
        line_chart(frames['api_calls_by_date'], 'calls', 'API Calls', color='#00C49F'),
        pie_chart(frames['status_codes'], 'Status Codes'),
    ]


class AnalyticsReport:
    """
    Writes the admin analytics dashboard to a PDF.
    """

    def __init__(self, analytics: AdminAnalytics, output_dir: Optional[Path] = None):
        self.analytics = analytics
        self.output_dir = Path(output_dir or OUTPUT_DIR)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.config = PDF_CONFIG

    def _table(self, rows: List[List[str]], col_widths: List[float]) -> Table:
        table = Table(rows, colWidths=col_widths)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 8),
            ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
        ]))
        return table

    def write(self, filename: Optional[str] = None) -> Optional[Path]:
        """
        Build the report.

        Returns:
            Optional[Path]: Path to the PDF, or None if it could not be written
        """
        filename = filename or f"analytics_{self.analytics.days}d_{datetime.now().strftime('%Y%m%d_%H%M%S')}.pdf"
        output_path = self.output_dir / filename

        try:
            summary = self.analytics.summary()
            frames = self.analytics.frames()

            styles = getSampleStyleSheet()
            title_style = ParagraphStyle(
                'ReportTitle', parent=styles['Heading1'],
                fontSize=self.config['font_size']['title'], alignment=TA_CENTER, spaceAfter=18,
            )
            heading_style = ParagraphStyle(
                'ReportHeading', parent=styles['Heading2'],
                fontSize=self.config['font_size']['heading'], textColor=HexColor('#2c5f7d'), spaceAfter=8,
            )

            story = [
                Paragraph('Admin Analytics', title_style),
                Paragraph(f"Last {self.analytics.days} days", styles['Normal']),
                Spacer(1, 12),
                self._table([
                    ['Metric', 'Value'],
                    ['Filing submission rate', f"{summary['submission_rate']:.1f}%"],
                    ['Average order value', f"£{summary['average_order_value']:.2f}"],
                    ['New users', str(summary['new_users'])],
                    ['Errors', str(summary['total_errors'])],
                    ['API calls', f"{summary['total_api_calls']:,}"],
                    ['Average response time', f"{summary['avg_response_ms']}ms"],
                    ['Active users', str(summary['active_users'])],
                ], [250, 150]),
                Spacer(1, 18),
            ]

            for drawing in build_charts(frames):
                story.append(drawing)
                story.append(Spacer(1, 12))

            errors = frames['top_errors']
            if not errors.empty:
                story.append(Paragraph('Top Errors', heading_style))
                rows = [['Message', 'Occurrences']]
                rows += [[str(m)[:70], str(c)] for m, c in zip(errors['message'], errors['count'])]
                story.append(self._table(rows, [340, 100]))
                story.append(Spacer(1, 12))

            endpoints = frames['slowest_endpoints']
            if not endpoints.empty:
                story.append(Paragraph('Slowest Endpoints', heading_style))
                rows = [['Endpoint', 'Calls', 'Error rate', 'Avg time']]
                for _, row in endpoints.iterrows():
                    rows.append([
                        str(row['endpoint'])[:50], str(row['calls']),
                        f"{row['error_rate']:.1f}%", f"{round(row['avg_response_ms'])}ms",
                    ])
                story.append(self._table(rows, [240, 60, 70, 70]))

            doc = SimpleDocTemplate(
                str(output_path), pagesize=A4,
                rightMargin=self.config['margins']['right'],
                leftMargin=self.config['margins']['left'],
                topMargin=self.config['margins']['top'],
                bottomMargin=self.config['margins']['bottom'],
            )
            doc.build(story)

            logger.info(f"Analytics report written: {output_path}")
            return output_path

        except Exception as e:
            logger.error(f"Error writing analytics report: {str(e)}")
            return None
