from __future__ import annotations

import textwrap
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from pharmacy_inventory.core.quantities import format_quantity
from pharmacy_inventory.models.movement import MOVEMENT_ENTRY

if TYPE_CHECKING:
    from pharmacy_inventory.services.report_service import HistoryFilters, HistoryRow

# A4 portrait in points.
PAGE_WIDTH = 595
PAGE_HEIGHT = 842
FONT_SIZE = 8
LINE_HEIGHT = 11

# Courier keeps the columns aligned; widths are in characters.
_HISTORY_COLUMNS = (("Type", 6), ("Date", 10), ("Key", 14), ("Responsible", 16), ("Description", 22))
_DETAILS_WIDTH = 34


def _escape_pdf_text(value: str) -> str:
    escaped = value.replace("\\", "\\\\")
    escaped = escaped.replace("(", "\\(")
    escaped = escaped.replace(")", "\\)")
    return escaped


def _page_stream(lines: list[str]) -> bytes:
    commands = ["BT", f"/F1 {FONT_SIZE} Tf", f"{LINE_HEIGHT} TL", f"36 {PAGE_HEIGHT - 40} Td"]
    for line in lines:
        commands.append(f"({_escape_pdf_text(line)}) Tj T*")
    commands.append("ET")
    return "\n".join(commands).encode("cp1252", errors="replace")


def build_text_pdf(
    *,
    title: str,
    lines: list[str],
    header_lines: list[str] | None = None,
    generated_at: datetime | None = None,
    lines_per_page: int = 60,
) -> bytes:
    """
    Render plain text lines into a multi-page PDF. `header_lines` repeat at
    the top of every page after the title block.
    """
    timestamp = generated_at or datetime.now(timezone.utc)
    repeated = list(header_lines or [])
    body = [line.rstrip() for line in lines]
    intro = [title, f"Generated: {timestamp.isoformat()}", ""]

    pages: list[list[str]] = []
    capacity = max(lines_per_page - len(repeated), 1)
    first_capacity = max(capacity - len(intro), 1)
    remaining = body
    pages.append(intro + repeated + remaining[:first_capacity])
    remaining = remaining[first_capacity:]
    while remaining:
        pages.append(repeated + remaining[:capacity])
        remaining = remaining[capacity:]

    page_count = len(pages)
    font_obj = 3
    first_page_obj = 4
    kids = " ".join(f"{first_page_obj + index * 2} 0 R" for index in range(page_count))

    objects: list[bytes] = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {page_count} >>".encode("ascii"),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Courier /Encoding /WinAnsiEncoding >>",
    ]
    for index, page_lines in enumerate(pages):
        content_obj = first_page_obj + index * 2 + 1
        footer = f"Page {index + 1} of {page_count}"
        stream = _page_stream(page_lines + [""] * 2 + [footer])
        objects.append(
            (
                f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 {PAGE_WIDTH} {PAGE_HEIGHT}] "
                f"/Resources << /Font << /F1 {font_obj} 0 R >> >> /Contents {content_obj} 0 R >>"
            ).encode("ascii")
        )
        objects.append(b"<< /Length %d >>\nstream\n%s\nendstream" % (len(stream), stream))

    pdf = b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n"
    offsets: list[int] = []
    for index, obj in enumerate(objects, start=1):
        offsets.append(len(pdf))
        pdf += f"{index} 0 obj\n".encode("ascii")
        pdf += obj + b"\nendobj\n"

    xref_offset = len(pdf)
    pdf += f"xref\n0 {len(objects) + 1}\n".encode("ascii")
    pdf += b"0000000000 65535 f \n"
    for offset in offsets:
        pdf += f"{offset:010d} 00000 n \n".encode("ascii")
    pdf += (
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n"
        f"startxref\n{xref_offset}\n%%EOF"
    ).encode("ascii")
    return pdf


def _cell(value: str, width: int) -> str:
    text = value if len(value) <= width else value[: width - 1] + "~"
    return text.ljust(width)


def _history_details(row: HistoryRow) -> str:
    movement = row.movement
    if movement.movement_type == MOVEMENT_ENTRY:
        expiry = movement.expiry_date.strftime("%d/%m/%Y") if movement.expiry_date else "N/A"
        return f"Lot: {movement.lot_id or 'N/A'}, Qty: {format_quantity(movement.quantity)}, Exp.: {expiry}"
    return (
        f"Qty: {format_quantity(movement.quantity)}, Reason: {row.reason_label}, "
        f"Lots: {row.affected_lots}"
    )


def history_table_lines(rows: list[HistoryRow]) -> tuple[list[str], list[str]]:
    header = " ".join(_cell(name, width) for name, width in _HISTORY_COLUMNS) + " Details"
    rule = "-" * (sum(width + 1 for _, width in _HISTORY_COLUMNS) + _DETAILS_WIDTH)

    lines: list[str] = []
    indent = " " * sum(width + 1 for _, width in _HISTORY_COLUMNS)
    for row in rows:
        movement = row.movement
        cells = (
            "Entry" if movement.movement_type == MOVEMENT_ENTRY else "Exit",
            movement.occurred_at.strftime("%d/%m/%Y"),
            movement.medication_key,
            movement.responsible,
            row.description,
        )
        prefix = " ".join(_cell(value, width) for value, (_, width) in zip(cells, _HISTORY_COLUMNS))
        wrapped = textwrap.wrap(_history_details(row), width=_DETAILS_WIDTH) or [""]
        lines.append(f"{prefix} {wrapped[0]}")
        lines.extend(f"{indent}{chunk}" for chunk in wrapped[1:])
    return [header, rule], lines


def render_history_pdf(
    rows: list[HistoryRow],
    filters: HistoryFilters,
    *,
    generated_at: datetime | None = None,
    lines_per_page: int = 60,
) -> bytes:
    header, body = history_table_lines(rows)
    movement_type = filters.movement_type or "both"
    start = filters.start_date.isoformat() if filters.start_date else "start"
    end = filters.end_date.isoformat() if filters.end_date else "end"
    return build_text_pdf(
        title="Inventory Traceability and Movements Report",
        header_lines=[f"Filter: type={movement_type}, period={start} to {end}", ""] + header,
        lines=body or ["No movements match the selected filters."],
        generated_at=generated_at,
        lines_per_page=lines_per_page,
    )
