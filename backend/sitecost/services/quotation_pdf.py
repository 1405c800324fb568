"""
Quotation PDF — renders a composed quotation to an A4 PDF.

Layout:
  - Branded header bar (company name + tagline) and footer on every page
  - Project details block
  - Budget summary (both sides with variance, or one side for estimate/final)
  - Task-wise breakdown table
  - Category-wise breakdown table
  - Validity note

Input is the dict returned by ``QuotationComposer.compose_quotation``.
Output is the PDF as bytes; nothing is written to disk.
"""
import io
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import cm
from reportlab.pdfgen import canvas as rl_canvas

logger = logging.getLogger("sitecost-quotation")

DEFAULT_COMPANY_NAME = "SITECOST CONSTRUCTION LTD"
DEFAULT_COMPANY_TAGLINE = "Professional Construction Services"
VALIDITY_DAYS = 30
HEADER_RGB = (0.12, 0.23, 0.37)
TOP_MARGIN = 4.5 * cm
BOTTOM_MARGIN = 2.5 * cm


# ── PDF helpers ───────────────────────────────────────────────────────────────

def _draw_header(c, page_w, page_h, company_name: str, tagline: str):
    c.setFillColorRGB(*HEADER_RGB)
    c.rect(0, page_h - 3*cm, page_w, 3*cm, fill=1, stroke=0)
    c.setFillColorRGB(1, 1, 1)
    c.setFont("Helvetica-Bold", 14)
    c.drawString(1.5*cm, page_h - 1.5*cm, company_name)
    c.setFont("Helvetica", 8)
    c.drawString(1.5*cm, page_h - 2.1*cm, tagline)
    c.setFont("Helvetica-Bold", 11)
    c.drawRightString(page_w - 1.5*cm, page_h - 1.5*cm, "QUOTATION")
    c.setStrokeColorRGB(0.85, 0.6, 0.2)
    c.setLineWidth(2)
    c.line(0, page_h - 3*cm, page_w, page_h - 3*cm)
    c.setLineWidth(1)
    c.setStrokeColorRGB(0, 0, 0)


def _draw_footer(c, page_w, page_num: int, company_name: str):
    c.setFillColorRGB(0.5, 0.5, 0.5)
    c.setFont("Helvetica", 7)
    c.drawString(1.5*cm, 0.8*cm, company_name)
    c.drawRightString(page_w - 1.5*cm, 0.8*cm, f"Page {page_num}")
    c.setStrokeColorRGB(0.7, 0.7, 0.7)
    c.line(1.5*cm, 1.2*cm, page_w - 1.5*cm, 1.2*cm)


def _amount(currency: str, value: Any) -> str:
    try:
        return f"{currency} {float(value):,.2f}"
    except (TypeError, ValueError):
        return f"{currency} 0.00"


def _clip(text: Any, limit: int) -> str:
    text = "" if text is None else str(text)
    return text if len(text) <= limit else text[: limit - 3] + "..."


class QuotationPdfRenderer:

    def __init__(self, settings=None):
        self.company_name = getattr(settings, "company_name", DEFAULT_COMPANY_NAME)
        self.tagline = getattr(settings, "company_tagline", DEFAULT_COMPANY_TAGLINE)
        self.default_currency = getattr(settings, "default_currency", "KES")

    def render(self, quotation: Dict[str, Any]) -> bytes:
        buffer = io.BytesIO()
        page_w, page_h = A4
        c = rl_canvas.Canvas(buffer, pagesize=A4)
        self._page_w, self._page_h = page_w, page_h

        project = quotation.get("project") or {}
        summary = quotation.get("budgetSummary") or {}
        qtype = quotation.get("quotationType", "both")
        currency = project.get("currency") or self.default_currency

        c.setTitle(f"Quotation - {project.get('name', '')}")
        self._new_page(c, first=True)

        y = page_h - TOP_MARGIN
        c.setFillColorRGB(0.08, 0.08, 0.12)
        c.setFont("Helvetica-Bold", 16)
        c.drawString(1.5*cm, y, _clip(project.get("name", "Project"), 60).upper())
        y -= 0.6*cm
        c.setFont("Helvetica", 9)
        c.setFillColorRGB(0.4, 0.4, 0.4)
        label = {"budgeted": "Estimate", "actual": "Final"}.get(qtype, "Budget vs Actual")
        c.drawString(1.5*cm, y, f"Date: {datetime.now().strftime('%d %b %Y')}  |  Type: {label}")

        y = self._project_block(c, y - 1.0*cm, project, currency)
        y = self._summary_block(c, y - 0.6*cm, summary, qtype, currency, len(quotation.get("tasks") or []))

        both = qtype == "both"
        headers = ["Task", "Budgeted", "Actual", "Variance", "Var %"] if both else ["Task", "Amount"]
        rows = []
        for t in summary.get("taskSummaries", []):
            if both:
                rows.append([
                    _clip(t.get("taskName"), 38),
                    _amount(currency, t.get("budgeted")),
                    _amount(currency, t.get("actual")),
                    _amount(currency, t.get("variance")),
                    f"{t.get('variancePercentage', 0)}%",
                ])
            else:
                value = t.get("budgeted") if qtype == "budgeted" else t.get("actual")
                rows.append([_clip(t.get("taskName"), 60), _amount(currency, value)])
        y = self._table(c, y - 0.8*cm, "TASK-WISE BREAKDOWN", headers, rows)

        cat_headers = ["Category", "Budgeted", "Actual", "Variance"] if both else ["Category", "Amount"]
        cat_rows = []
        for name, amounts in (summary.get("categoryBreakdown") or {}).items():
            budgeted = amounts.get("budgeted", 0)
            actual = amounts.get("actual", 0)
            if both:
                cat_rows.append([
                    _clip(name, 38),
                    _amount(currency, budgeted),
                    _amount(currency, actual),
                    _amount(currency, actual - budgeted),
                ])
            else:
                cat_rows.append([_clip(name, 60), _amount(currency, budgeted if qtype == "budgeted" else actual)])
        y = self._table(c, y - 0.8*cm, "CATEGORY-WISE BREAKDOWN", cat_headers, cat_rows)

        y = self._ensure_space(c, y - 0.8*cm, 1.5*cm)
        c.setFont("Helvetica-Oblique", 8)
        c.setFillColorRGB(0.4, 0.4, 0.4)
        c.drawString(1.5*cm, y, f"This quotation is valid for {VALIDITY_DAYS} days from the date of generation.")

        c.save()
        pdf = buffer.getvalue()
        logger.info(f"Quotation PDF rendered: {len(pdf)} bytes", extra={"project_id": project.get("id")})
        return pdf

    # ── blocks ──

    def _new_page(self, c, first: bool = False):
        if not first:
            c.showPage()
        _draw_header(c, self._page_w, self._page_h, self.company_name, self.tagline)
        _draw_footer(c, self._page_w, c.getPageNumber(), self.company_name)

    def _ensure_space(self, c, y: float, needed: float) -> float:
        if y - needed < BOTTOM_MARGIN:
            self._new_page(c)
            return self._page_h - TOP_MARGIN
        return y

    def _project_block(self, c, y: float, project: Dict[str, Any], currency: str) -> float:
        engineer = project.get("engineer") or {}
        details = [
            ("Client", project.get("client_name") or "N/A"),
            ("Location", project.get("location_name") or "N/A"),
            ("Contractor", project.get("contractor_name") or "N/A"),
            ("Engineer", engineer.get("name") or "N/A"),
            ("Start Date", project.get("start_date") or "TBD"),
            ("End Date", project.get("end_date") or "TBD"),
            ("Currency", currency),
        ]
        c.setFont("Helvetica-Bold", 11)
        c.setFillColorRGB(0.08, 0.08, 0.12)
        c.drawString(1.5*cm, y, "PROJECT DETAILS")
        y -= 0.5*cm
        c.setFont("Helvetica", 9)
        for label, value in details:
            c.setFillColorRGB(0.4, 0.4, 0.4)
            c.drawString(1.5*cm, y, f"{label}:")
            c.setFillColorRGB(0.1, 0.1, 0.1)
            c.drawString(4.5*cm, y, _clip(value, 70))
            y -= 0.45*cm
        if project.get("description"):
            c.setFillColorRGB(0.3, 0.3, 0.3)
            c.drawString(1.5*cm, y, _clip(project["description"], 110))
            y -= 0.45*cm
        return y

    def _summary_block(self, c, y: float, summary: Dict[str, Any], qtype: str, currency: str,
                       task_count: int) -> float:
        y = self._ensure_space(c, y, 3*cm)
        c.setFont("Helvetica-Bold", 11)
        c.setFillColorRGB(0.08, 0.08, 0.12)
        c.drawString(1.5*cm, y, "BUDGET SUMMARY")
        y -= 0.4*cm
        c.setStrokeColorRGB(0.85, 0.6, 0.2)
        c.line(1.5*cm, y, self._page_w - 1.5*cm, y)
        y -= 0.5*cm

        if qtype == "both":
            rows = [
                ("Total Budgeted", _amount(currency, summary.get("totalBudgeted"))),
                ("Total Actual", _amount(currency, summary.get("totalActual"))),
                ("Variance", f"{_amount(currency, summary.get('totalVariance'))} "
                             f"({summary.get('totalVariancePercentage', 0)}%)"),
            ]
        else:
            total = summary.get("totalBudgeted") if qtype == "budgeted" else summary.get("totalActual")
            rows = [
                ("Budgeted Cost" if qtype == "budgeted" else "Actual Cost", _amount(currency, total)),
                ("Tasks", str(task_count)),
            ]
        c.setFont("Helvetica", 10)
        for label, value in rows:
            c.setFillColorRGB(0.2, 0.2, 0.2)
            c.drawString(1.5*cm, y, label)
            c.setFillColorRGB(0.08, 0.08, 0.12)
            c.setFont("Helvetica-Bold", 10)
            c.drawRightString(self._page_w - 1.5*cm, y, value)
            c.setFont("Helvetica", 10)
            y -= 0.55*cm
        return y

    def _table(self, c, y: float, title: str, headers: Sequence[str], rows: List[List[str]]) -> float:
        y = self._ensure_space(c, y, 2*cm)
        usable = self._page_w - 3*cm
        first_col = usable * (0.4 if len(headers) > 2 else 0.7)
        other = (usable - first_col) / max(len(headers) - 1, 1)
        col_x = [1.5*cm] + [1.5*cm + first_col + other * (i + 1) for i in range(len(headers) - 1)]

        def header_row(y_pos: float) -> float:
            c.setFillColorRGB(*HEADER_RGB)
            c.rect(1.5*cm, y_pos - 0.15*cm, usable, 0.55*cm, fill=1, stroke=0)
            c.setFillColorRGB(1, 1, 1)
            c.setFont("Helvetica-Bold", 8)
            c.drawString(col_x[0] + 0.1*cm, y_pos, headers[0])
            for x, h in zip(col_x[1:], headers[1:]):
                c.drawRightString(x - 0.1*cm, y_pos, h)
            return y_pos - 0.55*cm

        c.setFont("Helvetica-Bold", 11)
        c.setFillColorRGB(0.08, 0.08, 0.12)
        c.drawString(1.5*cm, y, title)
        y = header_row(y - 0.6*cm)

        if not rows:
            c.setFont("Helvetica-Oblique", 8)
            c.setFillColorRGB(0.4, 0.4, 0.4)
            c.drawString(col_x[0] + 0.1*cm, y, "No budget entries")
            return y - 0.45*cm

        c.setFont("Helvetica", 8)
        for i, row in enumerate(rows):
            if y < BOTTOM_MARGIN:
                self._new_page(c)
                y = header_row(self._page_h - TOP_MARGIN)
                c.setFont("Helvetica", 8)
            if i % 2:
                c.setFillColorRGB(0.95, 0.95, 0.97)
                c.rect(1.5*cm, y - 0.15*cm, usable, 0.45*cm, fill=1, stroke=0)
            c.setFillColorRGB(0.15, 0.15, 0.15)
            c.drawString(col_x[0] + 0.1*cm, y, row[0])
            for x, cell in zip(col_x[1:], row[1:]):
                c.drawRightString(x - 0.1*cm, y, cell)
            y -= 0.45*cm
        return y


def render_quotation_pdf(quotation: Dict[str, Any], settings: Optional[Any] = None) -> bytes:
    return QuotationPdfRenderer(settings).render(quotation)
