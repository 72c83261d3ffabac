"""Page-image PDF export of a quotation, with the record embedded for re-import.

The preview HTML is laid out with PyMuPDF's Story engine at a fixed width,
rasterized at ``scale`` times that resolution and placed on a single page
whose size is the raster size divided by ``page_divisor``. The full record
travels as JSON in the PDF *subject* field.
"""

import io
import logging
from typing import Optional

import fitz  # pymupdf
from jinja2 import Environment

from presets import CompanyProfile, RenderSettings
from quotation import Quotation, QuotationRecord, RecordError, format_amount, format_quantity
from template import PREVIEW_CSS, PREVIEW_TEMPLATE

logger = logging.getLogger(__name__)

PADDING = 16
# PDF pages cannot be taller than this many points.
MAX_PAGE_HEIGHT = 14400
NO_DATA_MESSAGE = "No quotation data found in the PDF metadata"

_env = Environment(autoescape=True)
_preview = _env.from_string(PREVIEW_TEMPLATE)


class DocumentRenderError(Exception):
    """Raised when the preview cannot be laid out or rasterized."""


class QuotationImportError(ValueError):
    """Raised when an uploaded PDF does not yield a quotation."""


def document_filename(quotation: Quotation) -> str:
    return f"Quotation_{quotation.quote_number}.pdf"


def document_title(quotation: Quotation) -> str:
    return f"Quotation {quotation.quote_number}"


def render_preview_html(quotation: Quotation, company: CompanyProfile, grouping: str = "indian") -> str:
    return _preview.render(
        q=quotation,
        company=company,
        fmt=lambda value: format_amount(value, grouping),
        qty=format_quantity,
    )


def _layout(html: str, width: int, height: Optional[float] = None) -> tuple[bytes, float]:
    """Lay out ``html`` on one page of ``width`` points.

    With no ``height`` the page is as tall as needed. Returns the PDF bytes
    and the page height used.
    """
    where = fitz.Rect(PADDING, PADDING, width - PADDING, MAX_PAGE_HEIGHT - PADDING)
    if height is None:
        more, filled = fitz.Story(html=html, user_css=PREVIEW_CSS).place(where)
        if more:
            raise DocumentRenderError("Quotation is too long to fit on a single page")
        height = min(MAX_PAGE_HEIGHT, fitz.Rect(filled).y1 + PADDING)

    buffer = io.BytesIO()
    writer = fitz.DocumentWriter(buffer)
    story = fitz.Story(html=html, user_css=PREVIEW_CSS)
    mediabox = fitz.Rect(0, 0, width, height)
    device = writer.begin_page(mediabox)
    story.place(where)
    story.draw(device)
    writer.end_page()
    writer.close()
    return buffer.getvalue(), height


def rasterize_preview(html: str, settings: RenderSettings) -> fitz.Pixmap:
    """Render the preview HTML to an RGB pixmap at ``settings.scale``."""
    try:
        layout, _ = _layout(html, settings.width)
        with fitz.open("pdf", layout) as src:
            matrix = fitz.Matrix(settings.scale, settings.scale)
            return src[0].get_pixmap(matrix=matrix, alpha=False)
    except DocumentRenderError:
        raise
    except Exception as exc:
        raise DocumentRenderError(f"Failed to render quotation preview: {exc}") from exc


def render_document(
    quotation: Quotation,
    company: CompanyProfile,
    settings: Optional[RenderSettings] = None,
    grouping: str = "indian",
) -> bytes:
    """Build the downloadable PDF for ``quotation``.

    Args:
        quotation: The (validated) quotation to export
        company: Identity block printed on the page
        settings: Render width, raster scale and page divisor
        grouping: Thousands grouping used for formatted amounts

    Returns:
        PDF bytes: one page holding the rasterized preview, with title and
        subject metadata set

    Raises:
        DocumentRenderError: If layout or rasterization fails
    """
    settings = settings or RenderSettings()
    html = render_preview_html(quotation, company, grouping)
    pix = rasterize_preview(html, settings)

    page_width = pix.width / settings.page_divisor
    page_height = pix.height / settings.page_divisor
    doc = fitz.open()
    try:
        page = doc.new_page(width=page_width, height=page_height)
        page.insert_image(page.rect, stream=pix.tobytes("png"))
        doc.set_metadata({
            "title": document_title(quotation),
            "subject": quotation.dumps_record(),
            "creator": company.name,
            "producer": "quotation-desk",
        })
        data = doc.tobytes(garbage=3, deflate=True)
    finally:
        doc.close()

    logger.info(
        "Rendered quotation %s to PDF (%dx%d px, %d bytes)",
        quotation.quote_number, pix.width, pix.height, len(data),
    )
    return data


def read_record_blob(data: bytes) -> Optional[str]:
    """Return the subject metadata of a PDF, or None when it is empty."""
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            subject = (doc.metadata or {}).get("subject")
    except Exception as exc:
        raise QuotationImportError(f"Error loading PDF: {exc}") from exc
    return subject or None


def read_document(data: bytes) -> Quotation:
    """Rebuild a quotation from a previously exported PDF.

    Raises:
        QuotationImportError: If the PDF is unreadable, carries no record or
            the record is malformed
    """
    blob = read_record_blob(data)
    if not blob:
        logger.warning("Uploaded PDF has no quotation metadata")
        raise QuotationImportError(NO_DATA_MESSAGE)
    try:
        record = QuotationRecord.from_json(blob)
    except RecordError as exc:
        logger.warning("Rejected quotation metadata: %s", exc)
        raise QuotationImportError(f"Error loading PDF: {exc}") from exc
    quotation = record.materialize()
    logger.info("Loaded quotation %s with %d items", quotation.quote_number or "(none)", len(quotation.items))
    return quotation
