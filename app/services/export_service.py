from __future__ import annotations
from datetime import date, datetime, timezone
from typing import List
import io
import logging

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from app.schemas.meter import MeterResponse
from app.services.consumption import OverviewStats

logger = logging.getLogger(__name__)

METER_COLUMNS = [
	("Name", 30),
	("Number", 20),
	("Kind", 12),
	("Facility", 30),
	("Location", 30),
	("Status", 14),
	("Previous reading", 18),
	("Current reading", 18),
	("Unit", 8),
	("Consumption", 16),
	("Consumption (MWh)", 18),
	("Last reading", 16),
	("Conversion", 30),
]

HEADER_FILL = PatternFill(start_color="DDEBF7", end_color="DDEBF7", fill_type="solid")
THIN_BORDER = Border(
	left=Side(style='thin'),
	right=Side(style='thin'),
	top=Side(style='thin'),
	bottom=Side(style='thin')
)


class ExportService:
	"""Builds XLSX reports of meters and their consumption"""

	def _draw_header(self, worksheet: Worksheet, columns) -> None:
		for col, (title, width) in enumerate(columns, start=1):
			cell = worksheet.cell(row=1, column=col, value=title)
			cell.font = Font(bold=True)
			cell.fill = HEADER_FILL
			cell.border = THIN_BORDER
			cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
			worksheet.column_dimensions[get_column_letter(col)].width = width
		worksheet.freeze_panes = "A2"

	def _draw_meters(self, worksheet: Worksheet, meters: List[MeterResponse]) -> None:
		self._draw_header(worksheet, METER_COLUMNS)

		for row_idx, meter in enumerate(meters, start=2):
			values = [
				meter.name,
				meter.number,
				meter.kind.value,
				meter.facility_name,
				meter.location,
				meter.status.value,
				meter.previous_reading,
				meter.current_reading,
				meter.unit,
				meter.consumption,
				meter.consumption_equivalent,
				meter.last_reading_date,
				meter.conversion_note,
			]
			for col, value in enumerate(values, start=1):
				cell = worksheet.cell(row=row_idx, column=col, value=value)
				cell.border = THIN_BORDER
				if isinstance(value, float):
					cell.number_format = "#,##0.00" if col != 11 else "#,##0.000"
				elif isinstance(value, date):
					cell.number_format = "dd.mm.yyyy"

	def _draw_summary(self, worksheet: Worksheet, stats: OverviewStats) -> None:
		worksheet.column_dimensions["A"].width = 34
		worksheet.column_dimensions["B"].width = 20

		rows = [
			("Generated at", datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")),
			("Meters", stats.total_meters),
			("Active meters", stats.count_active),
			("Heat meters", stats.heat_meters),
			("Gas meters", stats.gas_meters),
			("Electric meters", stats.electric_meters),
			("Total consumption (MWh)", stats.total_consumption_equivalent),
			("Average consumption (MWh)", stats.average_consumption),
			("Gas conversion factor (MWh/m³)", stats.conversion_factor),
		]
		for row_idx, (label, value) in enumerate(rows, start=1):
			worksheet.cell(row=row_idx, column=1, value=label).font = Font(bold=True)
			worksheet.cell(row=row_idx, column=2, value=value)

		row_idx = len(rows) + 2
		worksheet.cell(row=row_idx, column=1, value="Consumption by kind").font = Font(bold=True, size=12)
		for group in stats.by_kind:
			row_idx += 1
			worksheet.cell(row=row_idx, column=1, value=group.key)
			worksheet.cell(row=row_idx, column=2, value=group.consumption)

		row_idx += 2
		worksheet.cell(row=row_idx, column=1, value="Consumption by facility").font = Font(bold=True, size=12)
		for group in stats.by_facility:
			row_idx += 1
			worksheet.cell(row=row_idx, column=1, value=group.label or group.key)
			worksheet.cell(row=row_idx, column=2, value=group.consumption)

	def export_meters(self, meters: List[MeterResponse], stats: OverviewStats) -> io.BytesIO:
		"""Workbook with a 'Meters' sheet and a 'Summary' sheet"""
		wb = Workbook()
		ws = wb.active
		ws.title = "Meters"
		self._draw_meters(ws, meters)
		self._draw_summary(wb.create_sheet("Summary"), stats)

		buffer = io.BytesIO()
		wb.save(buffer)
		buffer.seek(0)

		logger.info(f"Meter export generated: {len(meters)} meter(s)")
		return buffer
