"""
HTTP client for the billing backend (the mock AFIP bridge).

Every call converts transport failures into a ``success=False`` result so the
conversation can show the error to the user instead of crashing the turn.
"""
from typing import Any, Protocol

import httpx
from loguru import logger

from ..core.config import Settings, settings as default_settings
from ..models.invoice import HealthStatus, InvoiceRecord, InvoiceResult


class InvoicingService(Protocol):
    """What the conversation controller needs from a billing backend"""

    async def generate_invoice(self, record: InvoiceRecord) -> InvoiceResult:
        ...

    async def check_health(self) -> HealthStatus:
        ...


def _error_detail(response: httpx.Response) -> str:
    """Prefer the backend's ``error`` field over the bare status code."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP error! status: {response.status_code}"


def _describe(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


class InvoicingClient:
    def __init__(self, config: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config or default_settings
        self.base_url = self.config.billing_api_base_url.rstrip("/")
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.config.billing_timeout_seconds,
            transport=self._transport,
        )

    async def _get_json(self, path: str) -> dict[str, Any]:
        async with self._client() as client:
            r = await client.get(path)
            if r.is_error:
                raise httpx.HTTPStatusError(_error_detail(r), request=r.request, response=r)
            return r.json()

    async def generate_invoice(self, record: InvoiceRecord) -> InvoiceResult:
        payload = {"invoice_data": record.model_dump(mode="json", exclude_none=True)}
        logger.info("Sending invoice payload", path="/generate-invoice", invoice_data=payload["invoice_data"])

        try:
            async with self._client() as client:
                r = await client.post("/generate-invoice", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Invoice generation request failed: {_describe(e)}")
            return InvoiceResult(success=False, error=_describe(e))

        if r.is_error:
            detail = _error_detail(r)
            logger.warning("Billing backend rejected invoice", http_status=r.status_code, error=detail)
            return InvoiceResult(success=False, error=detail)

        try:
            result = InvoiceResult.model_validate(r.json())
        except ValueError as e:
            logger.error(f"Unexpected invoice response: {e}")
            return InvoiceResult(success=False, error="Respuesta inválida del servidor de facturación")

        logger.info("Invoice response received", success=result.success)
        return result

    async def check_health(self) -> HealthStatus:
        try:
            return HealthStatus.model_validate(await self._get_json("/health"))
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Billing backend unavailable: {_describe(e)}")
            return HealthStatus(success=False, error=_describe(e) or "Servidor no disponible")

    async def check_afip_status(self) -> dict[str, Any] | None:
        try:
            return await self._get_json("/afip-status")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Could not check AFIP status: {_describe(e)}")
            return None

    async def get_voucher_types(self) -> dict[str, Any]:
        try:
            return await self._get_json("/voucher-types")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Could not fetch voucher types: {_describe(e)}")
            return {"success": False, "error": _describe(e)}
