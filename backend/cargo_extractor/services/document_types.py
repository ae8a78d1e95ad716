"""
Maps a caller-supplied document type tag to the prompt and response schema used for extraction.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Type

from pydantic import BaseModel

from cargo_extractor.logging_config import get_logger
from cargo_extractor.prompts import COMMERCIAL_INVOICE_PROMPT, HBL_PROMPT, MBL_PROMPT
from cargo_extractor.schemas import HouseBillExtraction, InvoiceExtraction, MasterBillExtraction

logger = get_logger(__name__)


class DocumentType(str, Enum):
    COMMERCIAL_INVOICE = "COMMERCIAL_INVOICE"
    HBL = "HBL"
    MBL = "MBL"


@dataclass(frozen=True)
class PromptSpec:
    document_type: DocumentType
    prompt: str
    response_model: Type[BaseModel]


PROMPT_SPECS = {
    DocumentType.COMMERCIAL_INVOICE: PromptSpec(DocumentType.COMMERCIAL_INVOICE, COMMERCIAL_INVOICE_PROMPT, InvoiceExtraction),
    DocumentType.HBL: PromptSpec(DocumentType.HBL, HBL_PROMPT, HouseBillExtraction),
    DocumentType.MBL: PromptSpec(DocumentType.MBL, MBL_PROMPT, MasterBillExtraction),
}

TAG_ALIASES = {
    "COMMERCIAL_INVOICE": DocumentType.COMMERCIAL_INVOICE,
    "INVOICE": DocumentType.COMMERCIAL_INVOICE,
    "HBL": DocumentType.HBL,
    "MBL": DocumentType.MBL,
}

# Unknown or absent tags are extracted as master bills of lading.
DEFAULT_DOCUMENT_TYPE = DocumentType.MBL


def select_schema(document_type: Optional[str]) -> PromptSpec:
    """
    Return the PromptSpec for a document type tag (case-insensitive).

    COMMERCIAL_INVOICE / INVOICE -> invoice, HBL -> house bill, MBL -> master bill.
    Anything else, including None, falls back to the master bill schema.
    """
    tag = (document_type or "").strip().upper()
    resolved = TAG_ALIASES.get(tag)
    if resolved is None:
        logger.info(
            "Unrecognized document type, using default schema",
            extra={"extra_fields": {"document_type": document_type, "default": DEFAULT_DOCUMENT_TYPE.value}},
        )
        resolved = DEFAULT_DOCUMENT_TYPE
    return PROMPT_SPECS[resolved]
