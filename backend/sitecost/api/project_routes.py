"""
Project & Quotation Routes

GET /api/projects/{project_id}/stats      — task/budget/issue statistics for one project
GET /api/quotations/{project_id}          — composed quotation as JSON (?quotationType=)
GET /api/quotations/{project_id}/pdf      — composed quotation rendered to PDF
"""
import logging
import re
from datetime import date
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from sitecost.api.deps import get_current_admin, get_settings, get_store
from sitecost.api.responses import ok
from sitecost.config import Settings
from sitecost.services.cost_rollup_engine import CostRollupEngine
from sitecost.services.quotation_composer import QuotationComposer
from sitecost.services.quotation_pdf import render_quotation_pdf
from sitecost.store.base import ResourceStore

router = APIRouter(tags=["Projects"])
logger = logging.getLogger("sitecost-api.projects")


@router.get("/api/projects/{project_id}/stats")
async def project_stats(
    project_id: str,
    store: ResourceStore = Depends(get_store),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    return ok(await CostRollupEngine(store).compute_project_stats(project_id))


@router.get("/api/quotations/{project_id}")
async def quotation_data(
    project_id: str,
    quotationType: str = "both",
    store: ResourceStore = Depends(get_store),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    return ok(await QuotationComposer(store).compose_quotation(project_id, quotationType))


@router.get("/api/quotations/{project_id}/pdf")
async def quotation_pdf(
    project_id: str,
    quotationType: str = "both",
    store: ResourceStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    quotation = await QuotationComposer(store).compose_quotation(project_id, quotationType)
    pdf = render_quotation_pdf(quotation, settings)
    slug = re.sub(r"\s+", "-", quotation["project"].get("name") or "project")
    filename = f"quotation-{slug}-{date.today().isoformat()}.pdf"
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
