from pydantic import BaseModel, Field

from ..core.config import settings
from ..models.chat import ChatTurn, Stage
from ..models.invoice import InvoiceRecord, InvoiceResult
from ..services.billing_client import InvoicingClient, InvoicingService
from ..services.billing_mock import LocalInvoicingService
from ..services.conversation import ConversationController


def get_invoicing_service() -> InvoicingService:
    """Billing backend used by new chat sessions (BILLING_BACKEND=http|local)"""
    if settings.billing_backend == "local":
        return LocalInvoicingService(settings)
    return InvoicingClient(settings)


class GenerateInvoiceRequest(BaseModel):
    invoice_data: InvoiceRecord


class MessageRequest(BaseModel):
    text: str = Field(min_length=1, max_length=settings.max_message_length)


class SessionView(BaseModel):
    session_id: str
    stage: Stage
    processing: bool
    backend_online: bool | None = None
    demo_mode: bool = False
    record: InvoiceRecord
    messages: list[ChatTurn]
    last_result: InvoiceResult | None = None

    @classmethod
    def of(cls, session_id: str, controller: ConversationController) -> "SessionView":
        state = controller.state
        return cls(
            session_id=session_id,
            stage=state.stage,
            processing=state.processing,
            backend_online=state.backend_online,
            demo_mode=state.demo_mode,
            record=state.accumulated_record,
            messages=list(state.messages),
            last_result=state.last_result,
        )


class MessageResponse(BaseModel):
    turns: list[ChatTurn]
    session: SessionView
