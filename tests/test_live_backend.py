"""
Live tests against a running billing backend.

Run with: pytest --run-live
Uses BILLING_API_BASE_URL (default http://localhost:3001/api).
"""
from decimal import Decimal

import pytest

from factura_chat.models.chat import Stage
from factura_chat.models.invoice import DocumentKind, InvoiceRecord
from factura_chat.services.billing_client import InvoicingClient
from factura_chat.services.conversation import ConversationController

pytestmark = [pytest.mark.live, pytest.mark.anyio]


async def test_backend_is_reachable():
    health = await InvoicingClient().check_health()
    assert health.success, health.error


async def test_backend_issues_invoice():
    record = InvoiceRecord(
        customer_name="Cliente Prueba",
        customer_id="12345678",
        customer_id_kind=DocumentKind.NATIONAL_ID,
        amount=Decimal("1000"),
    )

    result = await InvoicingClient().generate_invoice(record)

    assert result.success, result.error
    assert result.invoice.amount == Decimal("1000")
    print(f"\n✅ Issued {result.invoice.number} (CAE {result.invoice.authorization_code})")


async def test_conversation_end_to_end():
    controller = ConversationController(InvoicingClient())
    await controller.start()

    await controller.send("Factura B para María García DNI 30123456 por $25000")
    assert controller.stage == Stage.CONFIRMING

    await controller.send("confirmo")
    assert controller.stage == Stage.COMPLETED
    assert controller.state.last_result.success
