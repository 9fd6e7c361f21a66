"""
Report export to CSV, Excel and PDF.

Exports are built in memory from a report dict: a title block, the flat
``summary`` as key/value rows, then the ``items`` table.
"""

import csv
import io
import logging
from typing import Any, Dict, List

from django.http import HttpResponse
from django.utils import timezone

import openpyxl
from openpyxl.styles import Font, PatternFill
from reportlab.lib import colors
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from apps.core.exceptions import BadRequest

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "pdf": "application/pdf",
}


def _headers(items: List[Dict[str, Any]]) -> List[str]:
    headers = []
    for row in items:
        for key in row:
            if key not in headers:
                headers.append(key)
    return headers


def _title(report: Dict[str, Any]) -> str:
    return report["report_type"].replace("_", " ").title()


class ReportExportService:
    """Render a report dict as CSV, XLSX or PDF bytes."""

    def __init__(self, tenant):
        self.tenant = tenant

    def _subtitle_lines(self, report: Dict[str, Any]) -> List[str]:
        period = report.get("period") or {}
        return [
            f"Generated on: {timezone.now().strftime('%Y-%m-%d %H:%M:%S')}",
            f"Business: {self.tenant.company_name if self.tenant else 'Unknown'}",
            f"Period: {period.get('start_date', '')} to {period.get('end_date', '')}",
        ]

    def export_to_csv(self, report: Dict[str, Any]) -> bytes:
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow([_title(report)])
        for line in self._subtitle_lines(report):
            writer.writerow([line])
        writer.writerow([])

        for key, value in (report.get("summary") or {}).items():
            writer.writerow([key, value])
        writer.writerow([])

        items = report.get("items") or []
        if items:
            dict_writer = csv.DictWriter(buffer, fieldnames=_headers(items), restval="")
            dict_writer.writeheader()
            dict_writer.writerows(items)
        return buffer.getvalue().encode("utf-8")

    def export_to_excel(self, report: Dict[str, Any]) -> bytes:
        workbook = openpyxl.Workbook()
        worksheet = workbook.active
        worksheet.title = "Report Data"

        row = self._add_excel_title(worksheet, report)
        row = self._add_excel_summary(worksheet, report.get("summary") or {}, row)

        items = report.get("items") or []
        if items:
            headers = self._add_excel_headers(worksheet, items, row)
            self._add_excel_data(worksheet, items, headers, row)
        self._adjust_excel_columns(worksheet)

        buffer = io.BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    def _add_excel_title(self, worksheet, report: Dict[str, Any]) -> int:
        worksheet["A1"] = _title(report)
        worksheet["A1"].font = Font(size=16, bold=True)
        for offset, line in enumerate(self._subtitle_lines(report), 2):
            worksheet.cell(row=offset, column=1, value=line)
        return 6

    def _add_excel_summary(self, worksheet, summary: Dict[str, Any], start_row: int) -> int:
        row = start_row
        for key, value in summary.items():
            worksheet.cell(row=row, column=1, value=key).font = Font(bold=True)
            worksheet.cell(row=row, column=2, value=value)
            row += 1
        return row + 1

    def _add_excel_headers(self, worksheet, items: List[Dict], start_row: int) -> List[str]:
        headers = _headers(items)
        for col, header in enumerate(headers, 1):
            cell = worksheet.cell(row=start_row, column=col, value=header)
            cell.font = Font(bold=True)
            cell.fill = PatternFill(start_color="CCCCCC", end_color="CCCCCC", fill_type="solid")
        return headers

    def _add_excel_data(self, worksheet, items: List[Dict], headers: List[str], start_row: int):
        for row_idx, row_data in enumerate(items, start_row + 1):
            for col_idx, header in enumerate(headers, 1):
                worksheet.cell(row=row_idx, column=col_idx, value=row_data.get(header, ""))

    def _adjust_excel_columns(self, worksheet):
        """Auto-adjust column widths."""
        for column in worksheet.columns:
            max_length = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
            worksheet.column_dimensions[column[0].column_letter].width = min(max_length + 2, 50)

    def export_to_pdf(self, report: Dict[str, Any]) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=landscape(letter))
        styles = getSampleStyleSheet()
        story = [Paragraph(_title(report), styles["Title"]), Spacer(1, 12)]
        for line in self._subtitle_lines(report):
            story.append(Paragraph(line, styles["Normal"]))
        story.append(Spacer(1, 12))

        summary = report.get("summary") or {}
        if summary:
            summary_table = Table([[key, str(value)] for key, value in summary.items()])
            summary_table.setStyle(
                TableStyle(
                    [
                        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                        ("FONTSIZE", (0, 0), (-1, -1), 9),
                        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                    ]
                )
            )
            story.extend([summary_table, Spacer(1, 12)])

        items = report.get("items") or []
        if items:
            headers = _headers(items)
            table_data = [headers] + [[str(row.get(header, "")) for header in headers] for row in items]
            table = Table(table_data, repeatRows=1)
            table.setStyle(
                TableStyle(
                    [
                        ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
                        ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
                        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                        ("FONTSIZE", (0, 0), (-1, 0), 10),
                        ("BOTTOMPADDING", (0, 0), (-1, 0), 12),
                        ("BACKGROUND", (0, 1), (-1, -1), colors.beige),
                        ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
                        ("FONTSIZE", (0, 1), (-1, -1), 8),
                        ("GRID", (0, 0), (-1, -1), 1, colors.black),
                        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                    ]
                )
            )
            story.append(table)

        story.append(Spacer(1, 12))
        story.append(Paragraph(f"Total rows: {len(items)}", styles["Normal"]))
        doc.build(story)
        return buffer.getvalue()

    def export(self, report: Dict[str, Any], export_format: str) -> bytes:
        exporters = {
            "csv": self.export_to_csv,
            "xlsx": self.export_to_excel,
            "pdf": self.export_to_pdf,
        }
        if export_format not in exporters:
            raise BadRequest(
                f"Unsupported export format '{export_format}'.",
                details={"supported": sorted(exporters)},
            )
        return exporters[export_format](report)


def export_response(tenant, report, export_format):
    """Wrap an exported report in a download response."""
    content = ReportExportService(tenant).export(report, export_format)
    filename = f"{report['report_type']}_{timezone.localdate().strftime('%Y%m%d')}.{export_format}"
    response = HttpResponse(content, content_type=CONTENT_TYPES[export_format])
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    logger.info(f"Exported {report['report_type']} report as {export_format} for {tenant}")
    return response
