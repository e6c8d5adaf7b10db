"""
utils/export.py — Excel export of the plant journal using openpyxl.

Generates an .xlsx workbook with two sheets:
- "Plants": one row per plant, health column coloured by score band
- "Summary": the journal statistics

Used by routes/statistics.py (GET /statistics/excel).
"""

from datetime import date, datetime
from io import BytesIO
from typing import List, Optional

import openpyxl
from openpyxl.utils import get_column_letter
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from models import SavedPlant
from plant_stats import HEALTHY_SCORE, NEEDS_CARE_SCORE, PlantStats, days_since_watered


# Health score band colours
HEALTH_FILLS = {
    'good': PatternFill(start_color='4CAF50', end_color='4CAF50', fill_type='solid'),
    'fair': PatternFill(start_color='FFB300', end_color='FFB300', fill_type='solid'),
    'poor': PatternFill(start_color='D32F2F', end_color='D32F2F', fill_type='solid'),
}

HEADER_FONT = Font(name='Calibri', bold=True, color='FFFFFF', size=11)
HEADER_FILL = PatternFill(start_color='1565C0', end_color='1565C0', fill_type='solid')
HEADER_ALIGNMENT = Alignment(horizontal='center', vertical='center', wrap_text=True)
TITLE_FONT = Font(name='Calibri', bold=True, size=14)
HEADER_BORDER = Border(
    bottom=Side(style='thin', color='0D47A1'),
    right=Side(style='thin', color='E2E8F0'),
)
CELL_BORDER = Border(
    bottom=Side(style='thin', color='E2E8F0'),
    right=Side(style='thin', color='E2E8F0'),
)

PLANT_COLUMNS = [
    ('Name', 24),
    ('Common name', 22),
    ('Scientific name', 26),
    ('Health', 10),
    ('Status', 12),
    ('Confidence', 11),
    ('Added', 13),
    ('Last watered', 16),
    ('Days dry', 14),
    ('Last fertilized', 16),
    ('Notes', 40),
]


def _health_band(score: int) -> str:
    if score >= HEALTHY_SCORE:
        return 'good'
    if score >= NEEDS_CARE_SCORE:
        return 'fair'
    return 'poor'


def _format_date(value: Optional[datetime]) -> str:
    return value.strftime('%Y-%m-%d') if value else ''


def _build_plants_sheet(ws, plants: List[SavedPlant], now: Optional[datetime] = None):
    """Populate a worksheet with one styled row per plant."""
    for col_idx, (col_name, width) in enumerate(PLANT_COLUMNS, 1):
        cell = ws.cell(row=1, column=col_idx, value=col_name)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT
        cell.border = HEADER_BORDER
        ws.column_dimensions[get_column_letter(col_idx)].width = width

    for row_idx, plant in enumerate(plants, 2):
        days = days_since_watered(plant, now)
        values = [
            plant.display_name,
            plant.common_name,
            plant.plant_name,
            plant.health_score,
            plant.health_status,
            plant.confidence,
            _format_date(plant.date_added),
            _format_date(plant.last_watered),
            days if days is not None else 'Never',
            _format_date(plant.last_fertilized),
            plant.notes or '',
        ]
        for col_idx, value in enumerate(values, 1):
            ws.cell(row=row_idx, column=col_idx, value=value).border = CELL_BORDER

        health_cell = ws.cell(row=row_idx, column=4)
        health_cell.fill = HEALTH_FILLS[_health_band(plant.health_score)]
        health_cell.font = Font(color='FFFFFF', bold=True)

    # Freeze header row
    ws.freeze_panes = 'A2'


def _build_summary_sheet(ws, stats: PlantStats):
    ws.cell(row=1, column=1, value="Plant journal").font = TITLE_FONT
    ws.merge_cells('A1:B1')
    ws.cell(row=2, column=1, value=f"Date: {date.today().strftime('%Y-%m-%d')}")

    rows = [
        ("Total plants:", stats.total_plants),
        ("Healthy plants:", stats.healthy_plants),
        ("Plants needing care:", stats.plants_needing_care),
        ("Plants needing water:", stats.plants_needing_water),
        ("Average health score:", stats.average_health_score),
    ]
    for offset, (label, value) in enumerate(rows):
        ws.cell(row=4 + offset, column=1, value=label)
        ws.cell(row=4 + offset, column=2, value=value)

    ws.column_dimensions['A'].width = 28
    ws.column_dimensions['B'].width = 12


def generate_journal_excel(plants: List[SavedPlant], stats: PlantStats, now: Optional[datetime] = None):
    """Generate an Excel workbook for the whole journal.

    Returns:
        (BytesIO buffer, filename)
    """
    wb = openpyxl.Workbook()
    ws_plants = wb.active
    ws_plants.title = "Plants"
    _build_plants_sheet(ws_plants, plants, now)

    ws_summary = wb.create_sheet(title="Summary")
    _build_summary_sheet(ws_summary, stats)

    buffer = BytesIO()
    wb.save(buffer)
    buffer.seek(0)

    filename = f"plant_journal_{date.today().strftime('%Y%m%d')}.xlsx"
    return buffer, filename
