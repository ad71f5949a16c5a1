"""
Mock billing backend.

Stands in for the AFIP bridge: it validates the minimum invoice data and
fabricates invoice numbers and CAE codes. Nothing is sent to the tax authority.
"""
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from loguru import logger

from ..deps import GenerateInvoiceRequest
from ...core.config import settings
from ...core.errors import MissingInvoiceDataError
from ...models.invoice import HealthStatus, InvoiceResult
from ...services.billing_mock import VOUCHER_TYPES, afip_status, fabricate_invoice, health_status

router = APIRouter(prefix="/api", tags=["billing"])


@router.post("/generate-invoice", response_model=InvoiceResult)
async def generate_invoice(req: GenerateInvoiceRequest):
    """
    Issue a (fabricated) invoice.

    Returns 400 with ``{"success": false, "error": ...}`` when customer name,
    document or amount is missing. Voucher type, concept and description
    default to C, "servicio" and "Servicios profesionales".
    """
    logger.info("Invoice data received", invoice_data=req.invoice_data.model_dump(mode="json", exclude_none=True))

    try:
        invoice = fabricate_invoice(req.invoice_data, settings)
    except MissingInvoiceDataError as e:
        return JSONResponse(status_code=400, content={"success": False, "error": str(e)})
    except Exception as e:
        logger.error(f"Invoice generation failed: {str(e)}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Error interno del servidor"})

    return InvoiceResult(success=True, invoice=invoice)


@router.get("/afip-status")
async def get_afip_status():
    """Mock AFIP service status (always online)"""
    logger.info("Checking AFIP status")
    return afip_status(settings)


@router.get("/voucher-types")
async def get_voucher_types():
    """Voucher types with their AFIP codes"""
    return {"success": True, "voucher_types": VOUCHER_TYPES}


@router.get("/health", response_model=HealthStatus)
async def billing_health():
    return health_status()
