import os, base64, binascii, logging
from urllib.parse import urlparse
from urllib.request import url2pathname
import requests

from errors import OperationalError
from models import AgentConfig, ContentSource, ValidatedRequest
import config, renderer

logger = logging.getLogger(__name__)


def decode_pdf_base64(data: str) -> bytes:
    try:
        return base64.b64decode(''.join(data.split()), validate=True)
    except (binascii.Error, ValueError):
        raise OperationalError('pdfBase64 is not valid base64')


def _local_path(locator: str):
    """Return a filesystem path for file: URIs and existing paths, else None."""
    parts = urlparse(locator)
    if parts.scheme == 'file':
        path = url2pathname(parts.path)
        if parts.netloc and parts.netloc != 'localhost':
            # UNC share, file://server/share/doc.pdf
            path = '\\\\' + parts.netloc + path
        return path
    # a bare Windows drive path parses as a one letter scheme
    if len(parts.scheme) <= 1 and os.path.isfile(locator):
        return locator
    return None


def fetch_pdf(locator: str) -> bytes:
    locator = locator.strip()
    path = _local_path(locator)
    if path is not None:
        try:
            with open(path, 'rb') as f:
                return f.read()
        except OSError as e:
            raise OperationalError(f'pdfUrl not reachable: {e}')

    scheme = urlparse(locator).scheme.lower()
    if scheme in ('http', 'https'):
        try:
            r = requests.get(locator)
            r.raise_for_status()
        except requests.RequestException as e:
            raise OperationalError(f'pdfUrl fetch failed: {e}')
        return r.content

    raise OperationalError('pdfUrl not reachable')


def acquire_pdf(validated: ValidatedRequest, cfg: AgentConfig = None) -> bytes:
    """Resolve the final PDF bytes for a validated request. Nothing is cached."""
    req = validated.request
    if validated.source is ContentSource.HTML:
        return renderer.render_html_to_pdf(
            req.html_base64 or '', req.page_size_id, req.portrait,
            timeout=config.render_timeout_seconds(cfg or config.load_agent_config()))

    if req.pdf_base64 and req.pdf_base64.strip():
        return decode_pdf_base64(req.pdf_base64)
    logger.info('fetching pdf for job %s from %s', req.job_id, req.pdf_url)
    return fetch_pdf(req.pdf_url or '')
