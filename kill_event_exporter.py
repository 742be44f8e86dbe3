"""
Kill Event Exporter
===================

Exports the kill events of the current scan session to an Excel file.

Columns: Kill Date (UTC), Killed Player, Killer, Zone, Weapon, Class,
Damage Type, Result
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

import re
import openpyxl
from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
from openpyxl.utils import get_column_letter

from kill_event_models import KillEvent


def _result_label(event: KillEvent, handle: str) -> str:
    if event.killer == handle and event.killed_player != handle:
        return "Kill"
    return "Death"


def export_kill_events(
    events: Iterable[KillEvent],
    output_dir: Path,
    handle: str = "UnknownPlayer",
) -> Optional[Path]:
    """
    Export kill events to an XLSX file.

    Args:
        events: Kill events, newest first (ScanSession.get_kill_events())
        output_dir: Directory to write the file into
        handle: Monitored player handle, used for the title and filename

    Returns:
        Path to created file, or None if there are no events
    """
    rows = [e for e in events if e is not None]
    if not rows:
        return None

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Kill Events"

    # --- Styles ---
    title_font = Font(name="Calibri", size=14, bold=True, color="7A1F1F")
    subtitle_font = Font(name="Calibri", size=10, italic=True, color="555555")
    header_font = Font(name="Calibri", size=11, bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="7A1F1F", end_color="7A1F1F", fill_type="solid")
    header_alignment = Alignment(horizontal="center", vertical="center")
    data_font = Font(name="Calibri", size=10)
    data_font_ts = Font(name="Calibri", size=10, color="555555")
    kill_font = Font(name="Calibri", size=10, bold=True, color="2E7D32")
    death_font = Font(name="Calibri", size=10, bold=True, color="C62828")
    even_fill = PatternFill(start_color="FBF2F2", end_color="FBF2F2", fill_type="solid")
    thin_border = Border(
        bottom=Side(style="thin", color="ECD9D9"),
    )

    headers = [
        "Kill Date (UTC)", "Killed Player", "Killer", "Zone",
        "Weapon", "Class", "Damage Type", "Result",
    ]
    col_widths = [24, 26, 26, 34, 34, 18, 16, 10]
    last_col = get_column_letter(len(headers))

    # --- Title block ---
    ws.merge_cells(f"A1:{last_col}1")
    title_cell = ws["A1"]
    title_cell.value = "SC Kill Monitor - Kill Events"
    title_cell.font = title_font
    title_cell.alignment = Alignment(vertical="center")
    ws.row_dimensions[1].height = 30

    exported_at = datetime.now(timezone.utc)
    ws.merge_cells(f"A2:{last_col}2")
    sub_cell = ws["A2"]
    sub_cell.value = f"{handle}  ·  {len(rows)} events  ·  Exported {exported_at.strftime('%Y-%m-%d %H:%M')} UTC"
    sub_cell.font = subtitle_font
    ws.row_dimensions[2].height = 20

    # Blank spacer row
    ws.row_dimensions[3].height = 8

    # --- Header row (row 4) ---
    HEADER_ROW = 4
    for col_idx, (header, width) in enumerate(zip(headers, col_widths), 1):
        cell = ws.cell(row=HEADER_ROW, column=col_idx, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_alignment
        ws.column_dimensions[get_column_letter(col_idx)].width = width

    ws.row_dimensions[HEADER_ROW].height = 24

    # --- Data rows ---
    DATA_START = HEADER_ROW + 1
    for i, event in enumerate(rows):
        row_num = DATA_START + i

        # Excel has no timezone support: store naive UTC
        ts = event.timestamp.astimezone(timezone.utc).replace(tzinfo=None)
        ts_cell = ws.cell(row=row_num, column=1, value=ts)
        ts_cell.number_format = "YYYY-MM-DD HH:MM:SS"
        ts_cell.font = data_font_ts

        values = [
            event.killed_player,
            event.killer,
            event.zone,
            event.weapon,
            event.weapon_class,
            event.damage_type,
        ]
        for col_idx, value in enumerate(values, 2):
            ws.cell(row=row_num, column=col_idx, value=value).font = data_font

        result = _result_label(event, handle)
        result_cell = ws.cell(row=row_num, column=len(headers), value=result)
        result_cell.font = kill_font if result == "Kill" else death_font
        result_cell.alignment = Alignment(horizontal="center")

        # Alternating row shading + subtle bottom border
        if i % 2 == 0:
            for col_idx in range(1, len(headers) + 1):
                ws.cell(row=row_num, column=col_idx).fill = even_fill

        for col_idx in range(1, len(headers) + 1):
            ws.cell(row=row_num, column=col_idx).border = thin_border

    # Freeze header row so it stays visible when scrolling
    ws.freeze_panes = f"A{DATA_START}"

    # Auto-filter on the header row
    ws.auto_filter.ref = f"A{HEADER_ROW}:{last_col}{HEADER_ROW + len(rows)}"

    # --- Save ---
    safe_handle = re.sub(r"[^A-Za-z0-9_-]", "_", handle or "UnknownPlayer")
    filename = f"SC_Kill_Events_{safe_handle}_{exported_at.strftime('%Y%m%d_%H%M%S')}.xlsx"
    file_path = output_dir / filename

    wb.save(file_path)
    return file_path
