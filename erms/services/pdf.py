import io
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from erms.schemas.report import EmployeePerformanceRow, ProjectReportRow

PROJECT_SUMMARY_HEADERS = ["Project Name", "Manager", "Total Tasks", "Completed Tasks"]
EMPLOYEE_PERFORMANCE_HEADERS = ["Employee Name", "Department", "Total Tasks", "Completed Tasks", "Performance"]


def render_table_pdf(title: str, headers: list[str], rows: list[list[str]], chart: io.BytesIO | None = None) -> bytes:
    """Centered title, then a full-width table, then an optional chart image."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=0.75 * inch, rightMargin=0.75 * inch)

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "ReportTitle", parent=styles["Title"], fontSize=20, leading=24, alignment=TA_CENTER
    )
    cell_style = styles["BodyText"]

    story = [Paragraph(escape(title), title_style), Spacer(1, 0.3 * inch)]

    data = [headers] + [[Paragraph(escape(str(value)), cell_style) for value in row] for row in rows]
    col_width = doc.width / len(headers)
    table = Table(data, colWidths=[col_width] * len(headers), repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#2c3e50")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f4f6f7")]),
    ]))
    story.append(table)

    if chart is not None:
        story.append(Spacer(1, 0.4 * inch))
        story.append(Image(chart, width=6 * inch, height=3 * inch))

    doc.build(story)
    return buffer.getvalue()


def project_summary_pdf(rows: list[ProjectReportRow], chart: io.BytesIO | None = None) -> bytes:
    body = [
        [r.project_name, r.manager_name, str(r.total_tasks), str(r.completed_tasks)]
        for r in rows
    ]
    return render_table_pdf("Project Summary Report", PROJECT_SUMMARY_HEADERS, body, chart)


def employee_performance_pdf(rows: list[EmployeePerformanceRow]) -> bytes:
    body = [
        [r.employee_name, r.department_name, str(r.total_tasks), str(r.completed_tasks), r.performance_label]
        for r in rows
    ]
    return render_table_pdf("Employee Performance Report", EMPLOYEE_PERFORMANCE_HEADERS, body)
