"""Invoice data collected through the chat and the results returned by the billing backend."""
import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class DocumentKind(str, Enum):
    """Identity document of the customer"""
    NATIONAL_ID = "DNI"
    TAX_ID = "CUIT"


class VoucherType(str, Enum):
    A = "A"
    B = "B"
    C = "C"


class Concept(str, Enum):
    PRODUCT = "producto"
    SERVICE = "servicio"
    PRODUCTS_AND_SERVICES = "productos_servicios"


class InvoiceRecord(BaseModel):
    """
    Invoice fields accumulated across chat turns.

    Every field is optional until the record is submittable; voucher type,
    concept and description are defaulted by the billing backend.
    """
    customer_name: str | None = None
    customer_id: str | None = None
    customer_id_kind: DocumentKind | None = None
    amount: Decimal | None = Field(default=None, gt=0)
    voucher_type: VoucherType | None = None
    concept: Concept | None = None
    description: str | None = None

    model_config = {"frozen": True}

    def is_submittable(self) -> bool:
        return bool(self.customer_name and self.customer_id and self.amount)

    def is_empty(self) -> bool:
        return not any(value is not None for value in self.model_dump().values())


def merge(old: InvoiceRecord, new: InvoiceRecord) -> InvoiceRecord:
    """Return ``old`` with every field present in ``new`` overwritten."""
    updates = {
        key: value
        for key, value in new.model_dump().items()
        if value is not None and value != ""
    }
    return old.model_copy(update=updates)


def format_amount(amount: Decimal) -> str:
    """Format an amount the es-AR way: ``25000`` -> ``25.000``, ``1234.56`` -> ``1.234,56``."""
    if amount == amount.to_integral_value():
        text = f"{int(amount):,}"
    else:
        text = f"{amount:,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


class CustomerInfo(BaseModel):
    name: str
    document: str
    document_kind: DocumentKind | None = None


class IssuedInvoice(BaseModel):
    """Invoice as registered (or fabricated) by the billing backend"""
    number: str
    date: datetime.date
    customer: CustomerInfo
    amount: Decimal
    voucher_type: VoucherType
    concept: Concept
    description: str
    authorization_code: str
    authorization_expiry: datetime.date


class InvoiceResult(BaseModel):
    success: bool
    invoice: IssuedInvoice | None = None
    error: str | None = None
    demo: bool = False


class HealthStatus(BaseModel):
    success: bool
    message: str | None = None
    timestamp: str | None = None
    error: str | None = None


def invoice_summary(invoice: IssuedInvoice) -> str:
    """Plain-text invoice summary, the layout users copy to the clipboard."""
    customer = invoice.customer
    document = f"{customer.document_kind.value} {customer.document}" if customer.document_kind else customer.document
    lines = [
        f"Factura {invoice.voucher_type.value}",
        f"Número: {invoice.number}",
        f"Fecha: {invoice.date.isoformat()}",
        f"Cliente: {customer.name}",
        f"Documento: {document}",
        f"Importe: ${format_amount(invoice.amount)}",
        f"CAE: {invoice.authorization_code}",
        f"Vencimiento CAE: {invoice.authorization_expiry.isoformat()}",
    ]
    return "\n".join(lines)
