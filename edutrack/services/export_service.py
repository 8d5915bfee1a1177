import io
from collections import Counter
from datetime import datetime
from xml.sax.saxutils import escape

import pandas as pd
import xlsxwriter
from reportlab.graphics.charts.piecharts import Pie
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

DESCRIPTION_PREVIEW_LENGTH = 100

STATUS_COLORS = {
    'reported': '#ffc107',
    'acknowledged': '#17a2b8',
    'in-progress': '#fd7e14',
    'resolved': '#28a745',
    'rejected': '#dc3545',
}


def description_preview(text, length=DESCRIPTION_PREVIEW_LENGTH):
    text = text or ''
    return text if len(text) <= length else text[:length] + '...'


def _timestamp(value):
    return value.isoformat() if value else ''


def _pdf_cell(record, key):
    value = record.get(key)
    if value is None:
        return ''
    if key == 'createdAt':
        value = value[:10]
    # Paragraph text is parsed as markup
    return escape(str(value))


def export_record(report):
    """Flat export view of a report; anonymous reporters are masked"""
    school = report.school
    reporter = report.reporter
    return {
        'id': report.id,
        'title': report.title,
        'description': report.description,
        'issueType': report.issue_type,
        'priority': report.priority,
        'status': report.status,
        'studentsAffected': report.students_affected,
        'estimatedCost': report.estimated_cost,
        'resolutionCost': report.resolution_cost,
        'fundingSource': report.funding_source,
        'createdAt': _timestamp(report.created_at),
        'resolvedAt': _timestamp(report.resolved_at),
        'schoolName': school.name if school else None,
        'schoolType': school.school_type if school else None,
        'schoolAddress': school.address if school else None,
        'schoolLga': school.lga if school else None,
        'reporterName': 'Anonymous' if report.is_anonymous or reporter is None else reporter.full_name,
    }


# Column label -> export record key
TABULAR_COLUMNS = [
    ('Report ID', 'id'),
    ('Title', 'title'),
    ('Description', 'description'),
    ('Issue Type', 'issueType'),
    ('Priority', 'priority'),
    ('Status', 'status'),
    ('Students Affected', 'studentsAffected'),
    ('Estimated Cost', 'estimatedCost'),
    ('Resolution Cost', 'resolutionCost'),
    ('Funding Source', 'fundingSource'),
    ('School Name', 'schoolName'),
    ('School Type', 'schoolType'),
    ('School Address', 'schoolAddress'),
    ('LGA', 'schoolLga'),
    ('Reporter', 'reporterName'),
    ('Created At', 'createdAt'),
    ('Resolved At', 'resolvedAt'),
]


class ExportService:
    """Render report exports in the supported download formats"""

    @staticmethod
    def filename(extension):
        return f"edutrack_reports_{datetime.utcnow().strftime('%Y%m%d%H%M%S')}.{extension}"

    @staticmethod
    def tabular_rows(records):
        rows = []
        for record in records:
            row = {}
            for label, key in TABULAR_COLUMNS:
                value = record.get(key)
                if key == 'description':
                    value = description_preview(value)
                row[label] = '' if value is None else value
            rows.append(row)
        return rows

    @staticmethod
    def to_csv(records):
        frame = pd.DataFrame(ExportService.tabular_rows(records), columns=[label for label, _ in TABULAR_COLUMNS])
        return frame.to_csv(index=False)

    @staticmethod
    def to_xlsx(records, filters=None):
        output = io.BytesIO()
        workbook = xlsxwriter.Workbook(output, {'in_memory': True})

        title_format = workbook.add_format({'bold': True, 'font_size': 14, 'align': 'center'})
        header_format = workbook.add_format({
            'bold': True,
            'font_color': '#FFFFFF',
            'bg_color': '#4F81BD',
            'align': 'center',
            'valign': 'vcenter',
            'border': 1
        })
        data_format = workbook.add_format({'border': 1, 'valign': 'vcenter'})
        money_format = workbook.add_format({'border': 1, 'num_format': '#,##0.00'})
        footer_format = workbook.add_format({'italic': True, 'font_size': 10})

        worksheet = workbook.add_worksheet('Reports')
        worksheet.set_column(0, 0, 38)   # Report ID
        worksheet.set_column(1, 2, 40)   # Title, Description
        worksheet.set_column(3, 9, 16)
        worksheet.set_column(10, 12, 30)  # School
        worksheet.set_column(13, 16, 20)

        last_col = len(TABULAR_COLUMNS) - 1
        row = 0
        worksheet.merge_range(row, 0, row, last_col, 'EduTrack Infrastructure Reports', title_format)
        row += 1
        if filters:
            applied = ', '.join(f'{k}: {v}' for k, v in filters.items() if v)
            worksheet.write(row, 0, f'Filters: {applied or "none"}')
            row += 1
        row += 1

        for col, (label, _) in enumerate(TABULAR_COLUMNS):
            worksheet.write(row, col, label, header_format)
        worksheet.freeze_panes(row + 1, 0)
        row += 1

        for record in ExportService.tabular_rows(records):
            for col, (label, key) in enumerate(TABULAR_COLUMNS):
                value = record[label]
                if key in ('estimatedCost', 'resolutionCost') and value != '':
                    worksheet.write_number(row, col, float(value), money_format)
                else:
                    worksheet.write(row, col, value, data_format)
            row += 1

        row += 1
        worksheet.write(row, 0, f'Generated {datetime.utcnow().strftime("%Y-%m-%d %H:%M")} UTC '
                                f'({len(records)} reports)', footer_format)

        workbook.close()
        output.seek(0)
        return output

    @staticmethod
    def to_pdf(records, filters=None):
        output = io.BytesIO()
        doc = SimpleDocTemplate(
            output,
            pagesize=landscape(A4),
            leftMargin=1.2 * cm,
            rightMargin=1.2 * cm,
            topMargin=1.2 * cm,
            bottomMargin=1.2 * cm,
            title="EduTrack Infrastructure Reports"
        )

        styles = getSampleStyleSheet()
        styles.add(ParagraphStyle(name="CenterSmall", alignment=TA_CENTER, fontSize=9))
        styles.add(ParagraphStyle(name="Cell", alignment=TA_LEFT, fontSize=8, leading=10))

        flow = [Paragraph("<b>EduTrack Infrastructure Reports</b>", styles["Title"])]
        if filters:
            applied = ', '.join(f'{k}: {v}' for k, v in filters.items() if v)
            flow.append(Paragraph(f"Filters: {applied or 'none'}", styles["CenterSmall"]))
        flow.append(Spacer(1, 0.4 * cm))

        # Narrow column set so the table fits a landscape page
        columns = [('Title', 'title'), ('School', 'schoolName'), ('LGA', 'schoolLga'),
                   ('Issue', 'issueType'), ('Priority', 'priority'), ('Status', 'status'),
                   ('Students', 'studentsAffected'), ('Created', 'createdAt')]
        table_data = [[label for label, _ in columns]]
        for record in records:
            table_data.append([Paragraph(_pdf_cell(record, key), styles["Cell"]) for _, key in columns])

        tbl = Table(table_data, repeatRows=1,
                    colWidths=[7.0 * cm, 5.5 * cm, 3.0 * cm, 2.8 * cm, 2.0 * cm, 2.4 * cm, 1.8 * cm, 2.2 * cm])
        table_style = TableStyle([
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, 0), 9),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('LINEBELOW', (0, 0), (-1, 0), 1, colors.HexColor('#c5c9d3')),
            ('GRID', (0, 1), (-1, -1), 0.5, colors.lightgrey),
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#e9eefb')),
        ])
        # Zebra striping for readability
        for i in range(1, len(table_data)):
            if i % 2 == 1:
                table_style.add('BACKGROUND', (0, i), (-1, i), colors.whitesmoke)
        tbl.setStyle(table_style)
        flow.append(tbl)
        flow.append(Spacer(1, 0.6 * cm))

        status_counts = Counter(record.get('status') for record in records)
        if status_counts:
            drawing = Drawing(220, 140)
            pie = Pie()
            pie.x = 5
            pie.y = 10
            pie.width = 110
            pie.height = 110
            statuses = sorted(status_counts)
            pie.data = [status_counts[s] for s in statuses]
            pie.labels = []
            pie.slices.strokeWidth = 0.5
            for i, status in enumerate(statuses):
                pie.slices[i].fillColor = colors.HexColor(STATUS_COLORS.get(status, '#6c757d'))
            drawing.add(pie)

            total = sum(status_counts.values())
            legend = [Paragraph(f'<font color="{STATUS_COLORS.get(s, "#6c757d")}">&#9632;</font> '
                                f'{s}: {status_counts[s]} ({status_counts[s] / total * 100:.1f}%)', styles["Cell"])
                      for s in statuses]
            legend_tbl = Table([[item] for item in legend], colWidths=[160])
            chart = Table([[drawing, legend_tbl],
                           [Paragraph("<b>Reports by Status</b>", styles["CenterSmall"]), Spacer(1, 0)]],
                          colWidths=[130, 170])
            chart.setStyle(TableStyle([('VALIGN', (0, 0), (-1, -1), 'MIDDLE')]))
            flow.append(chart)

        flow.append(Spacer(1, 0.6 * cm))
        flow.append(Paragraph(f"Generated by EduTrack on {datetime.utcnow().strftime('%Y-%m-%d %H:%M')} UTC",
                              styles["CenterSmall"]))

        doc.build(flow)
        output.seek(0)
        return output
