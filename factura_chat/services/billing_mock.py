"""
Mock invoice issuing.

No real tax-authority integration happens here: invoice numbers and CAE codes
are fabricated so the chat flow can be exercised end to end. The same logic
backs the ``/api`` HTTP endpoints and the in-process ``LocalInvoicingService``.
"""
import random
from datetime import date, datetime, timedelta, timezone

from loguru import logger

from ..core.config import Settings, settings as default_settings
from ..core.errors import MissingInvoiceDataError
from ..models.invoice import (
    Concept,
    CustomerInfo,
    HealthStatus,
    InvoiceRecord,
    InvoiceResult,
    IssuedInvoice,
    VoucherType,
)

DEFAULT_VOUCHER_TYPE = VoucherType.C
DEFAULT_CONCEPT = Concept.SERVICE
DEFAULT_DESCRIPTION = "Servicios profesionales"

# AFIP voucher codes
VOUCHER_TYPES = [
    {"code": 1, "description": "Factura A"},
    {"code": 6, "description": "Factura B"},
    {"code": 11, "description": "Factura C"},
    {"code": 3, "description": "Nota de Crédito A"},
    {"code": 8, "description": "Nota de Crédito B"},
    {"code": 13, "description": "Nota de Crédito C"},
]


def fabricate_invoice(
    record: InvoiceRecord,
    config: Settings | None = None,
    today: date | None = None,
    rng: random.Random | None = None,
) -> IssuedInvoice:
    """
    Build a placeholder invoice for a submittable record.

    Voucher type, concept and description fall back to their defaults.

    Raises:
        MissingInvoiceDataError: when customer name, document or amount is absent
    """
    if not record.is_submittable():
        raise MissingInvoiceDataError("Faltan datos requeridos: cliente, documento e importe")

    config = config or default_settings
    today = today or date.today()
    rng = rng or random.Random()

    invoice = IssuedInvoice(
        number=f"FC-{config.point_of_sale:03d}-{rng.randrange(1_000_000):08d}",
        date=today,
        customer=CustomerInfo(
            name=record.customer_name,
            document=record.customer_id,
            document_kind=record.customer_id_kind,
        ),
        amount=record.amount,
        voucher_type=record.voucher_type or DEFAULT_VOUCHER_TYPE,
        concept=record.concept or DEFAULT_CONCEPT,
        description=record.description or DEFAULT_DESCRIPTION,
        authorization_code=f"{rng.randrange(10**14):014d}",
        authorization_expiry=today + timedelta(days=config.cae_validity_days),
    )
    logger.info(
        "Invoice fabricated",
        number=invoice.number,
        voucher_type=invoice.voucher_type.value,
        amount=str(invoice.amount),
    )
    return invoice


def afip_status(config: Settings | None = None) -> dict:
    config = config or default_settings
    return {
        "success": True,
        "status": "online",
        "services": {
            "wsfe": "authorized",
            "ws_sr_padron_a13": "authorized",
            "ws_sr_padron_a4": "authorized",
        },
        "environment": config.afip_environment,
    }


def health_status() -> HealthStatus:
    return HealthStatus(
        success=True,
        message="Servidor de facturación funcionando",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


class LocalInvoicingService:
    """In-process stand-in for the billing backend (offline demo)."""

    def __init__(self, config: Settings | None = None, rng: random.Random | None = None):
        self.config = config or default_settings
        self.rng = rng or random.Random()

    async def generate_invoice(self, record: InvoiceRecord) -> InvoiceResult:
        try:
            invoice = fabricate_invoice(record, self.config, rng=self.rng)
        except MissingInvoiceDataError as e:
            return InvoiceResult(success=False, error=str(e))
        return InvoiceResult(success=True, invoice=invoice)

    async def check_health(self) -> HealthStatus:
        return health_status()

    async def check_afip_status(self) -> dict:
        return afip_status(self.config)

    async def get_voucher_types(self) -> dict:
        return {"success": True, "voucher_types": VOUCHER_TYPES}
