import pytest

from errors import ValidationError
from models import ContentSource, PageRange, PrintRequest
from validation import content_source, validate_request


def make_request(**fields) -> PrintRequest:
    fields.setdefault("pageSizeId", 2)
    return PrintRequest(**fields)


def test_pdf_flag_selects_pdf_source():
    assert content_source(make_request(isPdf=True, htmlBase64="PGI+")) is ContentSource.PDF


def test_pdf_locator_implies_pdf_without_flag():
    assert content_source(make_request(pdfUrl="http://host/doc.pdf")) is ContentSource.PDF
    assert content_source(make_request(pdfBase64="JVBERg==")) is ContentSource.PDF


def test_defaults_to_html():
    assert content_source(make_request(htmlBase64="PGI+")) is ContentSource.HTML
    assert content_source(make_request(pdfUrl="  ", htmlBase64="PGI+")) is ContentSource.HTML


def test_pdf_source_without_data_is_rejected():
    with pytest.raises(ValidationError, match="pdfUrl or pdfBase64 required"):
        validate_request(make_request(isPdf=True))


def test_html_source_without_data_is_rejected():
    with pytest.raises(ValidationError, match="htmlBase64 required"):
        validate_request(make_request())


@pytest.mark.parametrize("page_size_id", [0, 3, -1, 99])
def test_unknown_page_size_is_rejected(page_size_id):
    with pytest.raises(ValidationError, match="pageSizeId"):
        validate_request(make_request(pdfBase64="JVBERg==", pageSizeId=page_size_id))


def test_invalid_page_range_is_rejected():
    with pytest.raises(ValidationError, match="printPageRange invalid"):
        validate_request(make_request(pdfBase64="JVBERg==", printPageRange="7-2"))


def test_valid_request_carries_parsed_range():
    validated = validate_request(make_request(pdfBase64="JVBERg==", printPageRange="2-3", pageSizeId=1))

    assert validated.source is ContentSource.PDF
    assert validated.page_range == PageRange(first=2, last=3)


def test_blank_range_means_all_pages():
    validated = validate_request(make_request(htmlBase64="PGI+", printPageRange=" "))

    assert validated.page_range is None


def test_wire_defaults():
    req = PrintRequest(pageSizeId=2)

    assert req.portrait is True
    assert req.duplex_single_sided is True
    assert req.is_pdf is False


def test_wire_names_are_case_insensitive():
    req = PrintRequest(**{"PageSizeId": 1, "ISPDF": True, "pdfurl": "http://host/a.pdf", "isPageOrientationPortrait": False})

    assert req.page_size_id == 1
    assert req.is_pdf is True
    assert req.pdf_url == "http://host/a.pdf"
    assert req.portrait is False


def test_snake_case_names_still_accepted():
    assert PrintRequest(page_size_id=2, job_id="x").job_id == "x"
