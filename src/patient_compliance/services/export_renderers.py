"""Encoders for portability exports: JSON, XML, zipped CSV and PDF."""

import csv
import io
import json
import re
import xml.etree.ElementTree as ET
import zipfile
from typing import Any, Callable, Dict, List
from xml.sax.saxutils import escape

import defusedxml.minidom as minidom
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from patient_compliance.core.exceptions import UnsupportedFormatError
from patient_compliance.schemas.enums import ExportFormat
from patient_compliance.schemas.export import ExportBundle, RenderedExport

_INVALID_TAG_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def _export_document(bundle: ExportBundle) -> Dict[str, Any]:
    return {
        "export_metadata": {
            "export_id": bundle.export_id,
            "patient_id": str(bundle.patient_id),
            "exported_at": bundle.exported_at.isoformat(),
            "format": bundle.format,
            **bundle.metadata.model_dump(mode="json"),
        },
        **bundle.model_dump(mode="json")["sections"],
    }


def render_json(bundle: ExportBundle) -> bytes:
    """Structured document as indented JSON."""
    return json.dumps(_export_document(bundle), indent=2, ensure_ascii=False).encode(
        "utf-8"
    )


def _tag(key: Any) -> str:
    tag = _INVALID_TAG_CHARS.sub("_", str(key)) or "field"
    if not (tag[0].isalpha() or tag[0] == "_"):
        tag = f"_{tag}"
    return tag


def _dict_to_xml(data: Dict[str, Any], parent: ET.Element) -> None:
    """Convert dictionary to XML elements."""
    for key, value in data.items():
        elem = ET.SubElement(parent, _tag(key))
        if isinstance(value, dict):
            _dict_to_xml(value, elem)
        elif isinstance(value, list):
            for item in value:
                item_elem = ET.SubElement(elem, "item")
                if isinstance(item, dict):
                    _dict_to_xml(item, item_elem)
                else:
                    item_elem.text = str(item)
        else:
            elem.text = str(value) if value is not None else ""


def render_xml(bundle: ExportBundle) -> bytes:
    """Structured document as pretty-printed XML."""
    root = ET.Element("PatientDataExport")
    _dict_to_xml(_export_document(bundle), root)
    xml_str = minidom.parseString(ET.tostring(root).decode("utf-8")).toprettyxml(
        indent="  "
    )
    return xml_str.encode("utf-8")


def _flatten(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    return value


def _rows(section: Any) -> List[Dict[str, Any]]:
    if isinstance(section, dict):
        return [section]
    if isinstance(section, list):
        return [item if isinstance(item, dict) else {"value": item} for item in section]
    return [{"value": section}]


def render_csv(bundle: ExportBundle) -> bytes:
    """One CSV per section, zipped."""
    document = _export_document(bundle)
    zip_buffer = io.BytesIO()
    with zipfile.ZipFile(zip_buffer, "w", zipfile.ZIP_DEFLATED) as zip_file:
        for category, data in document.items():
            rows = _rows(data)
            if not rows:
                continue
            fieldnames: List[str] = []
            for row in rows:
                fieldnames.extend(k for k in row if k not in fieldnames)
            csv_buffer = io.StringIO()
            writer = csv.DictWriter(csv_buffer, fieldnames=fieldnames)
            writer.writeheader()
            writer.writerows({k: _flatten(v) for k, v in row.items()} for row in rows)
            zip_file.writestr(f"{category}.csv", csv_buffer.getvalue())
    return zip_buffer.getvalue()


def _draw_page_number(canvas: Any, doc: Any) -> None:
    canvas.saveState()
    canvas.setFont("Helvetica", 8)
    canvas.drawRightString(A4[0] - 2 * cm, 1.2 * cm, f"Page {doc.page}")
    canvas.restoreState()


def _pdf_lines(value: Any, styles: Any, depth: int = 0) -> List[Any]:
    indent = "\u00a0" * 4 * depth
    story: List[Any] = []
    if isinstance(value, dict):
        for key, item in value.items():
            label = escape(str(key).replace("_", " ").title())
            if isinstance(item, (dict, list)):
                story.append(Paragraph(f"{indent}<b>{label}</b>", styles["Normal"]))
                story.extend(_pdf_lines(item, styles, depth + 1))
            else:
                text = escape("" if item is None else str(item))
                story.append(Paragraph(f"{indent}<b>{label}:</b> {text}", styles["Normal"]))
    elif isinstance(value, list):
        if not value:
            story.append(Paragraph(f"{indent}<i>No records</i>", styles["Normal"]))
        for index, item in enumerate(value, start=1):
            story.append(Paragraph(f"{indent}<b>#{index}</b>", styles["Normal"]))
            story.extend(_pdf_lines(item, styles, depth + 1))
    else:
        story.append(Paragraph(f"{indent}{escape(str(value))}", styles["Normal"]))
    return story


def render_pdf(bundle: ExportBundle) -> bytes:
    """Paginated human-readable report with page numbers."""
    pdf_buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        pdf_buffer,
        pagesize=A4,
        title="Patient Data Export",
        bottomMargin=2 * cm,
    )
    styles = getSampleStyleSheet()
    story: List[Any] = [
        Paragraph("Patient Data Export Report", styles["Title"]),
        Spacer(1, 12),
    ]
    document = _export_document(bundle)
    for category, data in document.items():
        story.append(Paragraph(category.replace("_", " ").title(), styles["Heading1"]))
        story.extend(_pdf_lines(data, styles))
        story.append(Spacer(1, 12))

    doc.build(story, onFirstPage=_draw_page_number, onLaterPages=_draw_page_number)
    return pdf_buffer.getvalue()


_RENDERERS: Dict[ExportFormat, Callable[[ExportBundle], bytes]] = {
    ExportFormat.JSON: render_json,
    ExportFormat.XML: render_xml,
    ExportFormat.CSV: render_csv,
    ExportFormat.PDF: render_pdf,
}

_MEDIA_TYPES = {
    ExportFormat.JSON: ("application/json", "json"),
    ExportFormat.XML: ("application/xml", "xml"),
    ExportFormat.CSV: ("application/zip", "zip"),
    ExportFormat.PDF: ("application/pdf", "pdf"),
}


def parse_format(value: str) -> ExportFormat:
    """Parse an export format name."""
    try:
        return ExportFormat(str(value).lower())
    except ValueError as e:
        raise UnsupportedFormatError(f"Unsupported export format: {value}") from e


def render_export(bundle: ExportBundle) -> RenderedExport:
    """Encode ``bundle`` in its own format."""
    export_format = parse_format(bundle.format)
    media_type, extension = _MEDIA_TYPES[export_format]
    return RenderedExport(
        export_id=bundle.export_id,
        format=export_format.value,
        filename=f"patient_export_{bundle.patient_id}.{extension}",
        media_type=media_type,
        content=_RENDERERS[export_format](bundle),
    )
