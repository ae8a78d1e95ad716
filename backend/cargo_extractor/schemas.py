from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# --- Pipeline data model ---

class SourceKind(str, Enum):
    PDF = "pdf"
    RASTER_IMAGE = "raster-image"


class SourceFile(BaseModel):
    """
    An input file classified by its content signature.
    """
    model_config = ConfigDict(frozen=True)

    path: str
    kind: SourceKind
    mime_type: str


class PageImage(BaseModel):
    """
    One page image ready to be sent to the model.

    PDF-derived pages point at a temporary file owned by the request's
    TempResourceManager; raster inputs point at the caller's file.
    """
    model_config = ConfigDict(frozen=True)

    source_file: str
    page_index_within_source: int
    global_page_index: int
    mime_type: str
    path: str
    is_temporary: bool = False


class Batch(BaseModel):
    batch_index: int
    pages: List[PageImage]

    @property
    def global_page_indices(self) -> List[int]:
        return [page.global_page_index for page in self.pages]


# --- Shared extraction building blocks ---

Number = Union[float, str]


class Party(BaseModel):
    name: Optional[str] = Field(None, description="Party name exactly as printed.")
    address: Optional[str] = Field(None, description="Full postal address as printed.")


class ContactParty(Party):
    phone: Optional[str] = None
    email: Optional[str] = None


class Quantity(BaseModel):
    value: Optional[Number] = None
    unit: Optional[str] = None


class Amount(BaseModel):
    value: Optional[Number] = None
    currency: Optional[str] = None


class Routing(BaseModel):
    vessel_name: Optional[str] = None
    voyage_number: Optional[str] = None
    place_of_receipt: Optional[str] = None
    port_of_loading: Optional[str] = None
    port_of_discharge: Optional[str] = None
    place_of_delivery: Optional[str] = None
    etd: Optional[str] = Field(None, description="Estimated departure date, ISO if certain, else as printed.")
    eta: Optional[str] = Field(None, description="Estimated arrival date, ISO if certain, else as printed.")


class ExtractionConfidence(BaseModel):
    overall: Optional[float] = Field(None, description="Overall confidence between 0 and 1.")
    header: Optional[float] = None
    parties: Optional[float] = None
    routing: Optional[float] = None
    financials: Optional[float] = None
    line_items: Optional[float] = None


class Container(BaseModel):
    container_number: Optional[str] = Field(None, description="Container number without the seal number.")
    seal_number: Optional[str] = None
    container_type: Optional[str] = Field(None, description="e.g. 40HC, 20GP.")
    stuffing_mode: Optional[str] = Field(None, description="e.g. FCL, LCL.")
    source_page_index: Optional[int] = Field(
        None, description="Position of the image (within this request, starting at 1) the container was read from."
    )


class ExtractionEnvelope(BaseModel):
    """
    Fields every document type returns alongside its domain data.
    """
    document_type: Optional[str] = None
    missing_fields: List[str] = Field(
        default_factory=list, description="Names of required fields not present anywhere in the images."
    )
    extraction_confidence: ExtractionConfidence = Field(default_factory=ExtractionConfidence)


# --- Commercial invoice ---

class ShipmentKeys(BaseModel):
    invoice_number: Optional[str] = None
    invoice_date: Optional[str] = None
    bl_number_raw: Optional[str] = None
    mbl_number: Optional[str] = None
    hbl_number: Optional[str] = None
    payment_terms: Optional[str] = None
    incoterm: Optional[str] = None
    mode: Optional[str] = None


class InvoiceParties(BaseModel):
    shipper: ContactParty = Field(default_factory=ContactParty)
    consignee: ContactParty = Field(default_factory=ContactParty)
    notify_party: ContactParty = Field(default_factory=ContactParty)


class InvoiceRouting(Routing):
    port_of_destination: Optional[str] = None


class Cargo(BaseModel):
    goods_description: Optional[str] = None
    shipping_marks: Optional[str] = None
    country_of_origin: Optional[str] = None
    package_count: Optional[Number] = None
    package_type: Optional[str] = None
    total_cartons: Optional[Number] = None
    gross_weight: Quantity = Field(default_factory=Quantity)
    net_weight: Quantity = Field(default_factory=Quantity)
    volume: Quantity = Field(default_factory=Quantity)


class OtherCharge(BaseModel):
    description: Optional[str] = None
    amount: Optional[Number] = None


class Financials(BaseModel):
    currency: Optional[str] = None
    invoice_total: Optional[Number] = None
    fob_value: Optional[Number] = None
    freight: Optional[Number] = None
    insurance: Optional[Number] = None
    other_charges: List[OtherCharge] = Field(default_factory=list)


class LineItem(BaseModel):
    line_no: Optional[Union[int, str]] = None
    item_code: Optional[str] = None
    reference_no: Optional[str] = None
    po_number: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    quantity: Quantity = Field(default_factory=Quantity)
    unit_price: Amount = Field(default_factory=Amount)
    line_amount: Amount = Field(default_factory=Amount)
    source_page_index: Optional[int] = Field(
        None, description="Position of the image (within this request, starting at 1) the line was read from."
    )


class InvoiceExtraction(ExtractionEnvelope):
    """
    Commercial invoice fields required for CargoWise shipment matching and costing.
    """
    shipment_keys: ShipmentKeys = Field(default_factory=ShipmentKeys)
    routing: InvoiceRouting = Field(default_factory=InvoiceRouting)
    parties: InvoiceParties = Field(default_factory=InvoiceParties)
    cargo: Cargo = Field(default_factory=Cargo)
    financials: Financials = Field(default_factory=Financials)
    line_items: List[LineItem] = Field(
        default_factory=list, description="Every line item, one per printed row, in document order."
    )


# --- Bills of lading ---

class BillParties(BaseModel):
    shipper: Party = Field(default_factory=Party)
    consignee: Party = Field(default_factory=Party)
    notify_party: Party = Field(default_factory=Party)


class CargoSummary(BaseModel):
    cargo_description: Optional[str] = None
    total_packages: Quantity = Field(default_factory=Quantity)
    gross_weight: Quantity = Field(default_factory=Quantity)
    volume: Quantity = Field(default_factory=Quantity)
    shipping_marks: Optional[str] = None
    country_of_origin: Optional[str] = None


class HouseBillExtraction(ExtractionEnvelope):
    """
    House bill of lading header, routing and container fields.
    """
    hbl_number: Optional[str] = None
    issue_date: Optional[str] = None
    bill_status: Optional[str] = Field(None, description="e.g. ORIGINAL, SEAWAY, TELEX RELEASE.")
    freight_term: Optional[str] = Field(None, description="e.g. PREPAID, COLLECT.")
    parties: BillParties = Field(default_factory=BillParties)
    routing: Routing = Field(default_factory=Routing)
    cargo_summary: CargoSummary = Field(default_factory=CargoSummary)
    containers: List[Container] = Field(default_factory=list)


class Carrier(BaseModel):
    name: Optional[str] = None


class MasterBillParties(BillParties):
    carrier: Carrier = Field(default_factory=Carrier)
    issuing_agent: Party = Field(default_factory=Party)


class ContainerSummary(BaseModel):
    total_containers: Optional[int] = None
    total_packages: Quantity = Field(default_factory=Quantity)
    gross_weight: Quantity = Field(default_factory=Quantity)
    volume: Quantity = Field(default_factory=Quantity)
    country_of_origin: Optional[str] = None


class MasterBillExtraction(ExtractionEnvelope):
    """
    Master bill of lading fields at carrier level (no commercial line items).
    """
    mbl_number: Optional[str] = None
    issue_date: Optional[str] = None
    shipped_on_board_date: Optional[str] = None
    bill_status: Optional[str] = None
    freight_term: Optional[str] = None
    parties: MasterBillParties = Field(default_factory=MasterBillParties)
    routing: Routing = Field(default_factory=Routing)
    container_summary: ContainerSummary = Field(default_factory=ContainerSummary)
    containers: List[Container] = Field(default_factory=list)


# --- API payloads ---

class ExtractRequest(BaseModel):
    """
    Body of POST /api/extract. File names refer to files previously uploaded.
    """
    model_config = ConfigDict(populate_by_name=True)

    file_paths: Optional[List[str]] = Field(None, alias="filePaths")
    file_path: Optional[str] = Field(None, alias="filePath")
    batch_size: Optional[int] = Field(None, alias="batchSize")
    document_type: Optional[str] = Field(None, alias="documentType")


class ExtractResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    data: dict[str, Any]
    files_processed: int = Field(..., alias="filesProcessed")
    document_type: str = Field(..., alias="documentType")
    pages_processed: int = Field(..., alias="pagesProcessed")
    batches_processed: int = Field(..., alias="batchesProcessed")


class UploadedFile(BaseModel):
    filename: str
    originalname: str
    path: str
    size: int


class UploadResponse(BaseModel):
    success: bool = True
    files: List[UploadedFile]
    count: int
