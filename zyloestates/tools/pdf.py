from io import BytesIO
from textwrap import wrap
from typing import Any, Dict, List, Optional, Sequence

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from .. import schemas


MARGIN = 40
LINE_CHARS = 95


def format_inr(amount: Optional[float]) -> str:
    if amount is None:
        return "-"
    if amount >= 10_000_000:
        return f"Rs. {amount / 10_000_000:.2f} Cr"
    if amount >= 100_000:
        return f"Rs. {amount / 100_000:.2f} L"
    return f"Rs. {amount:,.0f}"


def render_sections(title: str, sections: Sequence[Dict[str, Any]]) -> bytes:
    """Draw a titled list of {heading, lines} sections, paging as needed."""
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    _, height = A4
    y = height - 50

    def newline(step: float) -> None:
        nonlocal y
        y -= step
        if y < 80:
            c.showPage()
            c.setFont("Helvetica", 10)
            y = height - 50

    c.setFont("Helvetica-Bold", 16)
    c.drawString(MARGIN, y, title)
    newline(30)
    for sec in sections:
        c.setFont("Helvetica-Bold", 12)
        c.drawString(MARGIN, y, sec.get("heading", "Section"))
        newline(18)
        c.setFont("Helvetica", 10)
        for line in sec.get("lines", []):
            for chunk in wrap(str(line), LINE_CHARS) or [""]:
                c.drawString(MARGIN + 10, y, chunk)
                newline(14)
        newline(8)
    c.showPage()
    c.save()
    return buf.getvalue()


def generate_project_report(
    project: schemas.Project,
    builder: Optional[schemas.Builder] = None,
    units: Sequence[schemas.Unit] = (),
) -> bytes:
    band = project.price_band
    overview = [
        f"Location: {project.locality}, {project.city}" + (f" ({project.state})" if project.state else ""),
        f"Status: {project.status.replace('_', ' ')}",
        f"Price band: {format_inr(band.min)} - {format_inr(band.max)}",
        f"RERA: {project.rera_id or 'not registered'}",
        f"Credibility score: {project.credibility_score}/100",
    ]
    if project.possession_date:
        overview.append(f"Possession: {project.possession_date:%b %Y}")
    if project.description:
        overview.append(project.description)

    sections: List[Dict[str, Any]] = [{"heading": "Overview", "lines": overview}]
    if builder is not None:
        sections.append({
            "heading": "Builder",
            "lines": [
                f"{builder.name} ({'verified' if builder.verified else 'unverified'})",
                f"Rating: {builder.rating:.1f} | Projects: {builder.project_count}",
                f"Typical response time: {builder.sla_response_minutes} min",
            ],
        })
    if project.highlights or project.amenities:
        sections.append({
            "heading": "Highlights & amenities",
            "lines": [", ".join(project.highlights), ", ".join(project.amenities)],
        })
    if units:
        lines = []
        for u in units:
            line = f"{u.unit_number or u.id} | {u.bhk} BHK | {u.carpet:,.0f} sq.ft | {format_inr(u.price)} | {u.inventory_status}"
            if u.avm is not None:
                line += f" | AVM {format_inr(u.avm.low)} - {format_inr(u.avm.high)}"
            lines.append(line)
        sections.append({"heading": "Units", "lines": lines})
    if project.sources:
        sections.append({"heading": "Sources", "lines": project.sources})
    return render_sections(f"{project.name} - Project Report", sections)
