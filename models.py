from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Any, Dict, Optional, List, Union

PAGE_SIZE_A3 = 1
PAGE_SIZE_A4 = 2
PAGE_SIZE_NAMES = {PAGE_SIZE_A3: 'A3', PAGE_SIZE_A4: 'A4'}


class ContentSource(str, Enum):
    PDF = 'pdf'
    HTML = 'html'


class PrintRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # opaque, echoed back exactly as sent
    job_id: Optional[Union[str, int]] = Field(None, alias='jobId')
    is_pdf: bool = Field(False, alias='isPdf')
    pdf_url: Optional[str] = Field(None, alias='pdfUrl')
    pdf_base64: Optional[str] = Field(None, alias='pdfBase64')
    html_base64: Optional[str] = Field(None, alias='htmlBase64')
    page_size_id: int = Field(0, alias='pageSizeId')
    portrait: bool = Field(True, alias='isPageOrientationPortrait')
    duplex_single_sided: bool = Field(True, alias='isDuplexSingleSided')
    print_page_range: Optional[str] = Field(None, alias='printPageRange')
    # accepted for compatibility, only one physical copy is ever printed
    copies: Optional[int] = Field(None, alias='copies')
    printer_name: Optional[str] = Field(None, alias='printerName')

    @model_validator(mode='before')
    @classmethod
    def match_keys_ignoring_case(cls, data: Any) -> Any:
        """Front ends send PageSizeId, pagesizeid or pageSizeId; all reach the same field."""
        if not isinstance(data, dict):
            return data
        known: Dict[str, str] = {}
        for name, field in cls.model_fields.items():
            known[name.lower()] = name
            if field.alias:
                known[field.alias.lower()] = field.alias
        return {known.get(k.lower(), k) if isinstance(k, str) else k: v for k, v in data.items()}


class PageRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    first: int = Field(..., ge=1)
    last: int = Field(..., ge=1)

    def __str__(self) -> str:
        return f'{self.first}-{self.last}'


class ValidatedRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    request: PrintRequest
    source: ContentSource
    page_range: Optional[PageRange] = None


class PaperSize(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: int
    name: str


class PrinterCapabilities(BaseModel):
    can_duplex: bool = False
    papers: List[PaperSize] = []


class PrinterSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    printer_name: str
    copies: int = 1
    duplex: Optional[int] = None  # DMDUP_* value, None when the printer cannot duplex
    page_range: Optional[PageRange] = None


class ResolvedPrintJob(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_id: Optional[Union[str, int]] = None
    source: ContentSource
    page_size_id: int
    settings: PrinterSettings
    paper: PaperSize
    landscape: bool = False
    pdf_bytes: bytes


class AgentConfig(BaseModel):
    """Operator settings owned by the tray configuration dialog. Read only here."""
    model_config = ConfigDict(populate_by_name=True)

    token: str = Field('', alias='Token')
    a3_printer_name: str = Field('', alias='A3PrinterName')
    a4_printer_name: str = Field('', alias='A4PrinterName')
    html_to_pdf_timeout_ms: int = Field(120000, alias='HtmlToPdfTimeoutMs')

    def printer_for_page_size(self, page_size_id: int) -> str:
        if page_size_id == PAGE_SIZE_A3:
            return self.a3_printer_name
        if page_size_id == PAGE_SIZE_A4:
            return self.a4_printer_name
        return ''
