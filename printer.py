import logging
from typing import List, Optional
import fitz  # PyMuPDF
from PIL import Image

try:
    from PIL import ImageWin
    import win32print
    import win32gui
    import win32ui
    WIN_AVAILABLE = True
except ImportError:
    WIN_AVAILABLE = False

import config
from errors import OperationalError
from models import (AgentConfig, PageRange, PaperSize, PrinterCapabilities, PrinterSettings,
                    ResolvedPrintJob, ValidatedRequest, ContentSource, PAGE_SIZE_A3, PAGE_SIZE_A4,
                    PAGE_SIZE_NAMES)

logger = logging.getLogger(__name__)

# Windows DeviceCapabilities / DEVMODE constants (wingdi.h)
DC_PAPERS = 2
DC_DUPLEX = 7
DC_PAPERNAMES = 16
DMPAPER_A3 = 8
DMPAPER_A4 = 9
DMDUP_SIMPLEX = 1
DMDUP_VERTICAL = 2
DMORIENT_PORTRAIT = 1
DMORIENT_LANDSCAPE = 2
DM_ORIENTATION = 0x00000001
DM_PAPERSIZE = 0x00000002
DM_COPIES = 0x00000100
DM_DUPLEX = 0x00001000
DM_OUT_BUFFER = 2
DM_IN_BUFFER = 8
HORZRES = 8
VERTRES = 10
LOGPIXELSX = 88
LOGPIXELSY = 90

PAPER_KINDS = {PAGE_SIZE_A3: DMPAPER_A3, PAGE_SIZE_A4: DMPAPER_A4}


def _require_win32():
    if not WIN_AVAILABLE:
        raise OperationalError('windows printing support (pywin32) is not available')


def list_printers() -> List[str]:
    _require_win32()
    flags = win32print.PRINTER_ENUM_LOCAL | win32print.PRINTER_ENUM_CONNECTIONS
    printers = win32print.EnumPrinters(flags)
    return [p[2] for p in printers]


def is_installed(printer_name: str) -> bool:
    wanted = printer_name.lower()
    return any(p.lower() == wanted for p in list_printers())


def _clean_name(name) -> str:
    if isinstance(name, bytes):
        name = name.decode('mbcs', errors='ignore')
    return str(name).replace('\x00', '').strip()


def get_capabilities(printer_name: str) -> PrinterCapabilities:
    """Duplex support and the paper sizes the driver enumerates."""
    _require_win32()
    h = win32print.OpenPrinter(printer_name)
    try:
        port = win32print.GetPrinter(h, 2).get('pPortName') or ''
    finally:
        win32print.ClosePrinter(h)

    can_duplex = win32print.DeviceCapabilities(printer_name, port, DC_DUPLEX, None) == 1
    kinds = win32print.DeviceCapabilities(printer_name, port, DC_PAPERS, None) or []
    names = win32print.DeviceCapabilities(printer_name, port, DC_PAPERNAMES, None) or []
    papers = [PaperSize(kind=int(k), name=_clean_name(n)) for k, n in zip(kinds, names)]
    return PrinterCapabilities(can_duplex=can_duplex, papers=papers)


def resolve_printer_name(validated: ValidatedRequest, cfg: AgentConfig) -> str:
    req = validated.request
    if req.printer_name and req.printer_name.strip():
        return req.printer_name.strip()
    name = cfg.printer_for_page_size(req.page_size_id)
    if not name or not name.strip():
        raise OperationalError(f'{PAGE_SIZE_NAMES[req.page_size_id]} printer not configured')
    return name.strip()


def duplex_mode(single_sided: bool) -> int:
    # Two-way mapping only: double sided always binds on the long edge.
    return DMDUP_SIMPLEX if single_sided else DMDUP_VERTICAL


def build_printer_settings(validated: ValidatedRequest, printer_name: str,
                           capabilities: PrinterCapabilities) -> PrinterSettings:
    duplex = None
    if capabilities.can_duplex:
        duplex = duplex_mode(validated.request.duplex_single_sided)
    return PrinterSettings(printer_name=printer_name, copies=1, duplex=duplex,
                           page_range=validated.page_range)


def find_paper_size(papers: List[PaperSize], page_size_id: int) -> Optional[PaperSize]:
    """Exact DMPAPER kind first, then a case-insensitive "A3"/"A4" match on custom names."""
    kind = PAPER_KINDS[page_size_id]
    for paper in papers:
        if paper.kind == kind:
            return paper
    tag = PAGE_SIZE_NAMES[page_size_id].lower()
    for paper in papers:
        if tag in paper.name.lower():
            return paper
    return None


def select_pages(page_count: int, page_range: Optional[PageRange]) -> List[int]:
    """Zero-based page indexes to print. Ranges past the end are clipped to the document."""
    if page_range is None:
        return list(range(page_count))
    pages = list(range(page_range.first - 1, min(page_range.last, page_count)))
    if not pages:
        raise OperationalError('printPageRange exceeds document pages')
    return pages


def resolve_job(validated: ValidatedRequest, printer_name: str, pdf_bytes: bytes) -> ResolvedPrintJob:
    if not is_installed(printer_name):
        raise OperationalError(f'printer not found: {printer_name}')
    capabilities = get_capabilities(printer_name)
    settings = build_printer_settings(validated, printer_name, capabilities)

    req = validated.request
    paper = find_paper_size(capabilities.papers, req.page_size_id)
    if paper is None:
        raise OperationalError(f'printer does not support {PAGE_SIZE_NAMES[req.page_size_id]}')

    return ResolvedPrintJob(job_id=req.job_id, source=validated.source, page_size_id=req.page_size_id,
                            settings=settings, paper=paper, landscape=not req.portrait,
                            pdf_bytes=pdf_bytes)


def _load_pdf(pdf_bytes: bytes):
    try:
        return fitz.open(stream=pdf_bytes, filetype='pdf')
    except (RuntimeError, ValueError) as e:
        raise OperationalError(f'pdf could not be loaded: {e}')


def _devmode(job: ResolvedPrintJob):
    h = win32print.OpenPrinter(job.settings.printer_name)
    try:
        devmode = win32print.GetPrinter(h, 2)['pDevMode']
        if devmode is None:
            raise OperationalError(f'printer has no device settings: {job.settings.printer_name}')
        devmode.PaperSize = job.paper.kind
        devmode.Orientation = DMORIENT_LANDSCAPE if job.landscape else DMORIENT_PORTRAIT
        devmode.Copies = job.settings.copies
        devmode.Fields |= DM_PAPERSIZE | DM_ORIENTATION | DM_COPIES
        if job.settings.duplex is not None:
            devmode.Duplex = job.settings.duplex
            devmode.Fields |= DM_DUPLEX
        win32print.DocumentProperties(0, h, job.settings.printer_name, devmode, devmode,
                                      DM_IN_BUFFER | DM_OUT_BUFFER)
        return devmode
    finally:
        win32print.ClosePrinter(h)


def _draw_page(dc, page):
    width, height = dc.GetDeviceCaps(HORZRES), dc.GetDeviceCaps(VERTRES)
    dpi = min(dc.GetDeviceCaps(LOGPIXELSX), dc.GetDeviceCaps(LOGPIXELSY), config.RASTER_DPI)
    zoom = dpi / 72.0
    pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
    image = Image.frombytes('RGB', (pix.width, pix.height), pix.samples)
    # fit to the printable area, keeping the aspect ratio
    ratio = min(width / pix.width, height / pix.height)
    ImageWin.Dib(image).draw(dc.GetHandleOutput(), (0, 0, int(pix.width * ratio), int(pix.height * ratio)))


def _spool(job: ResolvedPrintJob, doc, pages: List[int]):
    """Draw the pages onto a printer DC in a single, dialog-free spooler job."""
    _require_win32()
    devmode = _devmode(job)
    dc = win32ui.CreateDCFromHandle(win32gui.CreateDC('WINSPOOL', job.settings.printer_name, devmode))
    try:
        dc.StartDoc(f'LocalPrintAgent {job.job_id or ""}'.strip())
        try:
            for index in pages:
                dc.StartPage()
                _draw_page(dc, doc[index])
                dc.EndPage()
        except Exception:
            dc.AbortDoc()
            raise
        dc.EndDoc()
    finally:
        dc.DeleteDC()


def log_job(job: ResolvedPrintJob, validated: ValidatedRequest):
    req = validated.request
    logger.info('Print job: jobId=%s, printer=%s, isPdf=%s, bytes=%d, pageSizeId=%s, portrait=%s, '
                'duplexSingleSided=%s, duplex=%s, paper=%s, range=%s',
                job.job_id, job.settings.printer_name, job.source is ContentSource.PDF, len(job.pdf_bytes),
                job.page_size_id, req.portrait, req.duplex_single_sided, job.settings.duplex,
                job.paper.name, job.settings.page_range or '')


def dispatch(validated: ValidatedRequest, printer_name: str, pdf_bytes: bytes) -> ResolvedPrintJob:
    """Resolve settings for the job and submit it once to the spooler. No retry."""
    doc = _load_pdf(pdf_bytes)
    try:
        job = resolve_job(validated, printer_name, pdf_bytes)
        pages = select_pages(doc.page_count, job.settings.page_range)
        log_job(job, validated)
        _spool(job, doc, pages)
    finally:
        doc.close()
    return job
