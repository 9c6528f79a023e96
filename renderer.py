import os, re, uuid, base64, binascii, logging, subprocess, threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Tuple
import psutil

from errors import OperationalError, RenderTimeoutError, ValidationError
from models import PAGE_SIZE_A3
import config

logger = logging.getLogger(__name__)

# Seconds to wait for stderr after a timed out renderer has been killed.
STDERR_GRACE_SECONDS = 2.0

_HEAD_OPEN = re.compile(r'<head(?=[\s/>])[^>]*>', re.IGNORECASE)
_HTML_OPEN = re.compile(r'<html(?=[\s/>])[^>]*>', re.IGNORECASE)

_browser_path: Optional[str] = None
_browser_lock = threading.Lock()


def decode_html(html_base64: str) -> str:
    """Decode base64 HTML. Payloads that are not base64 are taken as literal HTML."""
    if not html_base64 or not html_base64.strip():
        return ''
    try:
        raw = base64.b64decode(''.join(html_base64.split()), validate=True)
    except (binascii.Error, ValueError):
        return html_base64
    return raw.decode('utf-8', errors='replace')


def page_size_mm(page_size_id: int, portrait: bool) -> Tuple[int, int]:
    width, height = (297, 420) if page_size_id == PAGE_SIZE_A3 else (210, 297)
    return (width, height) if portrait else (height, width)


def page_style(page_size_id: int, portrait: bool) -> str:
    width, height = page_size_mm(page_size_id, portrait)
    return f'<style>@page {{ size: {width}mm {height}mm; margin: 0; }}</style>'


def build_html_document(html: str, page_size_id: int, portrait: bool) -> str:
    """Inject the @page rule into the document, synthesising whatever wrapper is missing."""
    style = page_style(page_size_id, portrait)

    m = _HEAD_OPEN.search(html)
    if m:
        return html[:m.end()] + style + html[m.end():]

    m = _HTML_OPEN.search(html)
    if m:
        return html[:m.end()] + '<head>' + style + '</head>' + html[m.end():]

    return ('<!doctype html><html><head><meta charset="utf-8">' + style +
            '</head><body>' + html + '</body></html>')


def _browser_candidates() -> List[str]:
    candidates = []
    if config.BROWSER_PATH:
        candidates.append(config.BROWSER_PATH)
    for var, default in (('ProgramFiles(x86)', r'C:\Program Files (x86)'),
                         ('ProgramFiles', r'C:\Program Files'),
                         ('LOCALAPPDATA', None)):
        base = os.environ.get(var, default)
        if base:
            candidates.append(os.path.join(base, 'Microsoft', 'Edge', 'Application', 'msedge.exe'))
    return candidates


def find_browser() -> Optional[str]:
    """
    Locate msedge.exe once per process. A successful lookup is cached for the
    process lifetime; a failed one is retried on the next render.
    """
    global _browser_path
    with _browser_lock:
        if _browser_path is None:
            for candidate in _browser_candidates():
                if os.path.isfile(candidate):
                    _browser_path = candidate
                    logger.info('html renderer: %s', candidate)
                    break
        return _browser_path


def _try_delete(path: str):
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError as e:
        logger.warning('could not delete temp file %s: %s', path, e)


@contextmanager
def render_files(directory: str = None) -> Iterator[Tuple[str, str]]:
    """Allocate a unique (html, pdf) temp path pair. Both are deleted on exit, whatever happened."""
    directory = directory or config.TEMP_DIR
    os.makedirs(directory, exist_ok=True)
    html_path = os.path.join(directory, f'print_{uuid.uuid4().hex}.html')
    pdf_path = os.path.join(directory, f'print_{uuid.uuid4().hex}.pdf')
    try:
        yield html_path, pdf_path
    finally:
        _try_delete(html_path)
        _try_delete(pdf_path)


def _kill_tree(proc: subprocess.Popen):
    """Kill the renderer and every process it spawned."""
    try:
        children = psutil.Process(proc.pid).children(recursive=True)
    except psutil.NoSuchProcess:
        children = []
    for child in children:
        try:
            child.kill()
        except psutil.NoSuchProcess:
            pass
    proc.kill()
    psutil.wait_procs(children, timeout=STDERR_GRACE_SECONDS)


def _browser_args(browser: str, html_path: str, pdf_path: str) -> List[str]:
    return [browser, '--headless', '--disable-gpu', '--no-first-run', '--no-default-browser-check',
            '--print-to-pdf-no-header', f'--print-to-pdf={pdf_path}', Path(html_path).resolve().as_uri()]


def run_renderer(browser: str, html_path: str, pdf_path: str, timeout: float) -> str:
    """
    Run the headless browser and wait at most `timeout` seconds.
    Returns the captured stderr text. Raises RenderTimeoutError when the deadline passes.
    """
    try:
        proc = subprocess.Popen(_browser_args(browser, html_path, pdf_path),
                                stdin=subprocess.DEVNULL, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE,
                                creationflags=getattr(subprocess, 'CREATE_NO_WINDOW', 0))
    except OSError as e:
        raise OperationalError(f'failed to start msedge: {e}')
    try:
        _, err = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        _kill_tree(proc)
        try:
            _, err = proc.communicate(timeout=STDERR_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            err = b''
        proc.wait()
        diagnostics = (err or b'').decode('utf-8', errors='replace').strip()
        logger.warning('html renderer pid %s killed after %.1fs', proc.pid, timeout)
        if diagnostics:
            raise RenderTimeoutError(f'html to pdf timeout: {diagnostics}')
        raise RenderTimeoutError('html to pdf timeout')
    return (err or b'').decode('utf-8', errors='replace').strip()


def render_html_to_pdf(html_base64: str, page_size_id: int, portrait: bool, timeout: float) -> bytes:
    raw_html = decode_html(html_base64)
    if not raw_html.strip():
        raise ValidationError('htmlBase64 required')
    document = build_html_document(raw_html, page_size_id, portrait)

    browser = find_browser()
    if not browser:
        raise OperationalError('msedge not found for html printing')

    with render_files() as (html_path, pdf_path):
        with open(html_path, 'w', encoding='utf-8', newline='') as f:
            f.write(document)
        stderr = run_renderer(browser, html_path, pdf_path, timeout)
        if not os.path.exists(pdf_path):
            raise OperationalError(stderr or 'html to pdf failed')
        with open(pdf_path, 'rb') as f:
            return f.read()
