"""
Excel report generator for settlement reconciliation.
Creates multi-sheet workbooks with formatted output.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional
import logging

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Border, Side
from openpyxl.worksheet.worksheet import Worksheet

from ..config import ReconConfig
from ..models.fees import BatchFeeSummary
from ..models.rules import PendingMatch
from ..models.settlement import ReconciliationStats, Settlement
from ..utils.exceptions import ReportGenerationError

logger = logging.getLogger(__name__)

# Style definitions
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
MATCH_FILL = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
VARIANCE_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
UNMATCHED_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)
MONEY_FORMAT = "£#,##0.00"


class ExcelReportGenerator:
    """Generates Excel reconciliation reports with multiple sheets."""

    def __init__(self, config: ReconConfig):
        """
        Initialize the report generator.

        Args:
            config: Application configuration
        """
        self.config = config
        self.sheet_config = config.output.sheets

    def generate_report(
        self,
        user_id: str,
        stats: ReconciliationStats,
        settlements: list[Settlement],
        pending_matches: list[PendingMatch],
        output_path: Path,
        fee_summary: Optional[BatchFeeSummary] = None,
    ) -> Path:
        """
        Generate the complete reconciliation report.

        Args:
            user_id: Tenant the report covers
            stats: Reconciliation counters
            settlements: All of the tenant's settlements
            pending_matches: Rule matches awaiting review
            output_path: Path for output file
            fee_summary: Processor fees for the period, if calculated

        Returns:
            Path to generated report

        Raises:
            ReportGenerationError: If the workbook cannot be written
        """
        logger.info(f"Generating Excel report: {output_path}")

        wb = Workbook()
        if wb.active:
            wb.remove(wb.active)

        sheets = self.sheet_config
        if sheets.summary.enabled:
            self._create_summary_sheet(wb, user_id, stats, settlements, len(pending_matches))
        if sheets.unreconciled.enabled:
            self._create_settlement_sheet(
                wb, sheets.unreconciled.name, [s for s in settlements if not s.reconciled]
            )
        if sheets.reconciled.enabled:
            self._create_settlement_sheet(
                wb, sheets.reconciled.name, [s for s in settlements if s.reconciled]
            )
        if sheets.fees.enabled and fee_summary is not None:
            self._create_fee_sheet(wb, fee_summary)
        if sheets.pending_matches.enabled:
            self._create_pending_sheet(wb, pending_matches)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            wb.save(output_path)
        except OSError as e:
            raise ReportGenerationError(f"Failed to write report {output_path}: {e}") from e

        logger.info(f"Report saved: {output_path}")
        return output_path

    def _create_summary_sheet(
        self,
        wb: Workbook,
        user_id: str,
        stats: ReconciliationStats,
        settlements: list[Settlement],
        pending_count: int,
    ) -> None:
        """Create the summary sheet with key metrics."""
        ws = wb.create_sheet(self.sheet_config.summary.name)

        ws["A1"] = "Settlement Reconciliation Summary"
        ws["A1"].font = Font(size=16, bold=True)
        ws.merge_cells("A1:D1")

        unreconciled_value = sum(
            (s.mb_net for s in settlements if not s.reconciled), start=0
        )
        rows = [
            ("Account:", user_id),
            ("Generated At:", datetime.now().strftime("%Y-%m-%d %H:%M:%S")),
            ("", ""),
            ("Reconciled Settlements:", stats.total_reconciled),
            ("  Auto-reconciled:", stats.auto_reconciled_count),
            ("  Manually reconciled:", stats.manual_reconciled_count),
            ("Unreconciled Settlements:", stats.total_unreconciled),
            ("Unreconciled Value:", float(unreconciled_value)),
            ("Average Variance:", float(stats.average_variance)),
            ("Pending Rule Matches:", pending_count),
        ]

        for i, (label, value) in enumerate(rows, start=3):
            ws[f"A{i}"] = label
            ws[f"B{i}"] = value
            if label in ("Unreconciled Value:", "Average Variance:"):
                ws[f"B{i}"].number_format = MONEY_FORMAT

        ws.column_dimensions["A"].width = 30
        ws.column_dimensions["B"].width = 40

    def _create_settlement_sheet(
        self, wb: Workbook, sheet_name: str, settlements: list[Settlement]
    ) -> None:
        ws = wb.create_sheet(sheet_name)
        headers = [
            "Settlement ID",
            "Settlement Date",
            "Transactions",
            "Gross",
            "Fees",
            "Net",
            "Bank Transaction",
            "Bank Amount",
            "Variance",
            "Reconciled At",
            "Method",
        ]
        self._write_headers(ws, headers)

        for row_num, s in enumerate(settlements, start=2):
            method = ""
            if s.reconciled:
                method = "Auto" if s.auto_reconciled else "Manual"
            row_data = [
                s.settlement_id,
                s.settlement_date,
                s.transaction_count,
                float(s.gross) if s.gross is not None else "",
                float(s.fees) if s.fees is not None else "",
                float(s.mb_net),
                s.bank_transaction_id or "",
                float(s.bank_amount) if s.bank_amount is not None else "",
                float(s.variance) if s.variance is not None else "",
                s.reconciled_at.strftime("%Y-%m-%d %H:%M:%S") if s.reconciled_at else "",
                method,
            ]

            if not s.reconciled:
                fill = UNMATCHED_FILL
            elif s.variance:
                fill = VARIANCE_FILL
            else:
                fill = MATCH_FILL

            for col, value in enumerate(row_data, start=1):
                cell = ws.cell(row=row_num, column=col, value=value)
                cell.border = THIN_BORDER
                cell.fill = fill
                if col in (4, 5, 6, 8, 9) and value != "":
                    cell.number_format = MONEY_FORMAT

        self._auto_fit_columns(ws)

    def _create_fee_sheet(self, wb: Workbook, fee_summary: BatchFeeSummary) -> None:
        """Create the processor fee breakdown sheet."""
        ws = wb.create_sheet(self.sheet_config.fees.name)
        self._write_headers(ws, ["Fee Type", "Transactions", "Fees"])

        row = 2
        for fee_type, bucket in fee_summary.breakdown.items():
            ws.cell(row=row, column=1, value=fee_type.value).border = THIN_BORDER
            ws.cell(row=row, column=2, value=bucket.count).border = THIN_BORDER
            cell = ws.cell(row=row, column=3, value=float(bucket.fees))
            cell.border = THIN_BORDER
            cell.number_format = MONEY_FORMAT
            row += 1

        row += 1
        totals = [
            ("Percentage Fees", fee_summary.total_percentage_fees),
            ("Fixed Fees", fee_summary.total_fixed_fees),
            ("Total Fees", fee_summary.total_fees),
        ]
        for label, value in totals:
            ws.cell(row=row, column=1, value=label).font = Font(bold=True)
            ws.cell(row=row, column=3, value=float(value)).number_format = MONEY_FORMAT
            row += 1
        ws.cell(row=row, column=1, value="Fee-free Transactions").font = Font(bold=True)
        ws.cell(row=row, column=2, value=fee_summary.skipped_count)

        self._auto_fit_columns(ws)

    def _create_pending_sheet(self, wb: Workbook, matches: list[PendingMatch]) -> None:
        """Create the sheet of rule matches awaiting review."""
        ws = wb.create_sheet(self.sheet_config.pending_matches.name)
        headers = [
            "Match ID",
            "Transaction ID",
            "Rule ID",
            "Suggested Category",
            "Suggested Staff",
            "Suggested Vendor",
            "Notes",
            "Confidence",
            "Created At",
        ]
        self._write_headers(ws, headers)

        for row_num, m in enumerate(matches, start=2):
            row_data = [
                m.id,
                m.transaction_id,
                m.rule_id,
                m.suggested_category_id or "",
                m.suggested_staff_id or "",
                m.suggested_vendor_id or "",
                m.suggested_notes or "",
                f"{m.match_confidence:.2f}",
                m.created_at.strftime("%Y-%m-%d %H:%M:%S") if m.created_at else "",
            ]
            for col, value in enumerate(row_data, start=1):
                ws.cell(row=row_num, column=col, value=value).border = THIN_BORDER

        self._auto_fit_columns(ws)

    @staticmethod
    def _write_headers(ws: Worksheet, headers: list[str]) -> None:
        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.border = THIN_BORDER

    def _auto_fit_columns(self, ws: Worksheet) -> None:
        """Auto-fit column widths based on content."""
        for column_cells in ws.columns:
            max_length = 0
            column = column_cells[0].column_letter

            for cell in column_cells:
                if cell.value is not None:
                    max_length = max(max_length, len(str(cell.value)))

            ws.column_dimensions[column].width = min(max_length + 2, 50)
