from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from pharmacy_inventory.core.api_docs import error_responses
from pharmacy_inventory.core.config import settings
from pharmacy_inventory.core.deps import get_store
from pharmacy_inventory.models.movement import MOVEMENT_ENTRY
from pharmacy_inventory.repositories.base import InventoryStore
from pharmacy_inventory.schemas.inventory import ExpiryReportItemOut
from pharmacy_inventory.schemas.report import HistoryDetailsOut, HistoryItemOut, HistoryListOut
from pharmacy_inventory.services.expiry_service import build_expiry_report
from pharmacy_inventory.services.pdf_export_service import render_history_pdf
from pharmacy_inventory.services.report_service import HistoryFilters, movement_history

router = APIRouter(prefix="/api/inventory/reports", tags=["reports"])


@router.get(
    "/expiry",
    response_model=list[ExpiryReportItemOut],
    summary="Expiry semaphore report",
    description=(
        "Lots with stock, soonest expiry first, classified as expired, red, yellow or green "
        "by the days left until expiry."
    ),
    responses=error_responses(422, 500),
)
def expiry_report(
    as_of: date | None = Query(default=None, description="Reference date. Defaults to today."),
    store: InventoryStore = Depends(get_store),
):
    return [
        ExpiryReportItemOut(
            medication_key=row.medication_key,
            description=row.description,
            presentation=row.presentation,
            lot_id=row.lot_id,
            stock=float(row.stock),
            expiry_date=row.expiry_date,
            days_remaining=row.days_remaining,
            semaphore=row.semaphore.value,
        )
        for row in build_expiry_report(store, today=as_of)
    ]


def _history_filters(
    movement_type: str | None = Query(default=None, description="entry or exit"),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None, description="Inclusive"),
) -> HistoryFilters:
    return HistoryFilters(
        movement_type=movement_type.strip().lower() if movement_type else None,
        start_date=start_date,
        end_date=end_date,
    )


@router.get(
    "/history",
    response_model=HistoryListOut,
    summary="Movement history",
    description="Entries and exits, newest first, capped at the configured history limit.",
    responses=error_responses(422, 500),
)
def history(
    filters: HistoryFilters = Depends(_history_filters),
    store: InventoryStore = Depends(get_store),
):
    rows = movement_history(store, filters)
    items = [
        HistoryItemOut(
            id=row.movement.id,
            movement_type=row.movement.movement_type,
            medication_key=row.movement.medication_key,
            description=row.description,
            presentation=row.presentation,
            occurred_at=row.movement.occurred_at,
            responsible=row.movement.responsible,
            details=HistoryDetailsOut(
                quantity=float(row.movement.quantity),
                reason=row.reason_label,
                affected_lots=row.affected_lots,
                expiry_date=(
                    row.movement.expiry_date
                    if row.movement.movement_type == MOVEMENT_ENTRY
                    else None
                ),
            ),
        )
        for row in rows
    ]
    return HistoryListOut(items=items, count=len(items), limit=settings.history_limit)


@router.get(
    "/history/pdf",
    summary="Download movement history as PDF",
    responses={
        200: {"content": {"application/pdf": {}}, "description": "PDF document"},
        **error_responses(422, 500),
    },
)
def history_pdf(
    filters: HistoryFilters = Depends(_history_filters),
    store: InventoryStore = Depends(get_store),
):
    rows = movement_history(store, filters)
    pdf_bytes = render_history_pdf(rows, filters, lines_per_page=settings.pdf_rows_per_page)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": 'attachment; filename="inventory_history.pdf"'},
    )
