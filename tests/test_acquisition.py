import base64
from unittest.mock import MagicMock

import pytest
import requests

import acquisition
from errors import OperationalError
from models import PrintRequest
from validation import validate_request


def validated(**fields):
    fields.setdefault("pageSizeId", 2)
    return validate_request(PrintRequest(**fields))


@pytest.fixture
def no_network(monkeypatch):
    get = MagicMock(side_effect=AssertionError("network fetch attempted"))
    monkeypatch.setattr(acquisition.requests, "get", get)
    return get


def test_inline_base64_round_trips(pdf_bytes, no_network):
    encoded = base64.b64encode(pdf_bytes).decode("ascii")

    data = acquisition.acquire_pdf(validated(isPdf=True, pdfBase64=encoded))

    assert data == pdf_bytes
    no_network.assert_not_called()


def test_inline_data_wins_over_url(pdf_bytes, no_network):
    encoded = base64.b64encode(pdf_bytes).decode("ascii")

    data = acquisition.acquire_pdf(validated(pdfBase64=encoded, pdfUrl="https://example.test/doc.pdf"))

    assert data == pdf_bytes
    no_network.assert_not_called()


def test_malformed_base64_fails():
    with pytest.raises(OperationalError, match="not valid base64"):
        acquisition.decode_pdf_base64("%%%not-base64%%%")


def test_reads_filesystem_path(tmp_path, pdf_bytes, no_network):
    path = tmp_path / "doc.pdf"
    path.write_bytes(pdf_bytes)

    assert acquisition.acquire_pdf(validated(pdfUrl=str(path))) == pdf_bytes


def test_reads_file_uri(tmp_path, pdf_bytes, no_network):
    path = tmp_path / "doc with space.pdf"
    path.write_bytes(pdf_bytes)

    assert acquisition.fetch_pdf(path.as_uri()) == pdf_bytes


def test_missing_file_uri_fails(tmp_path):
    with pytest.raises(OperationalError, match="pdfUrl not reachable"):
        acquisition.fetch_pdf((tmp_path / "missing.pdf").as_uri())


def test_fetches_http_url(monkeypatch, pdf_bytes):
    response = MagicMock(content=pdf_bytes)
    get = MagicMock(return_value=response)
    monkeypatch.setattr(acquisition.requests, "get", get)

    assert acquisition.fetch_pdf("https://example.test/doc.pdf") == pdf_bytes
    get.assert_called_once_with("https://example.test/doc.pdf")


def test_http_error_is_operational(monkeypatch):
    response = MagicMock()
    response.raise_for_status.side_effect = requests.HTTPError("404 Client Error")
    monkeypatch.setattr(acquisition.requests, "get", MagicMock(return_value=response))

    with pytest.raises(OperationalError, match="pdfUrl fetch failed"):
        acquisition.fetch_pdf("http://example.test/missing.pdf")


@pytest.mark.parametrize("locator", ["ftp://example.test/doc.pdf", "not a path", "mailto:someone@example.test"])
def test_unsupported_locator_is_unreachable(locator, no_network):
    with pytest.raises(OperationalError, match="pdfUrl not reachable"):
        acquisition.fetch_pdf(locator)


def test_html_requests_go_to_renderer(monkeypatch, write_config):
    write_config(HtmlToPdfTimeoutMs=0)
    render = MagicMock(return_value=b"%PDF-rendered")
    monkeypatch.setattr(acquisition.renderer, "render_html_to_pdf", render)

    data = acquisition.acquire_pdf(validated(htmlBase64="PGI+aGk8L2I+", pageSizeId=1, isPageOrientationPortrait=False))

    assert data == b"%PDF-rendered"
    render.assert_called_once_with("PGI+aGk8L2I+", 1, False, timeout=30.0)
