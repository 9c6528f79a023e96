from errors import ValidationError
from models import ContentSource, PrintRequest, ValidatedRequest, PAGE_SIZE_NAMES
from pagerange import parse_page_range


def _blank(value) -> bool:
    return value is None or not str(value).strip()


def content_source(req: PrintRequest) -> ContentSource:
    """An explicit isPdf flag or any PDF locator means PDF, everything else is HTML."""
    if req.is_pdf or not _blank(req.pdf_url) or not _blank(req.pdf_base64):
        return ContentSource.PDF
    return ContentSource.HTML


def validate_request(req: PrintRequest) -> ValidatedRequest:
    source = content_source(req)
    if source is ContentSource.PDF:
        if _blank(req.pdf_url) and _blank(req.pdf_base64):
            raise ValidationError('pdfUrl or pdfBase64 required')
    elif _blank(req.html_base64):
        raise ValidationError('htmlBase64 required')

    if req.page_size_id not in PAGE_SIZE_NAMES:
        raise ValidationError('pageSizeId must be 1(A3) or 2(A4)')

    try:
        page_range = parse_page_range(req.print_page_range)
    except ValueError:
        raise ValidationError('printPageRange invalid')

    return ValidatedRequest(request=req, source=source, page_range=page_range)
