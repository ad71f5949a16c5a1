"""
Conversation controller: drives one chat session from a free-text request
to an issued invoice.

Stages::

    initial ──► collecting ◄──┐
       │            │         │ (missing fields)
       └──────► confirming ───┘
                    │ "sí" / "confirmo" / "ok"
                    ▼
               generating ──► completed ──► initial (next message)

Every handled message appends at least one assistant turn.
"""
import itertools
import re
import uuid
from typing import Callable, Final

from loguru import logger

from ..core.config import Settings, settings as default_settings
from ..core.errors import ConversationBusyError, InvalidTransitionError
from ..models.chat import ChatTurn, ConversationState, Speaker, Stage
from ..models.invoice import HealthStatus, InvoiceRecord, format_amount, invoice_summary, merge
from .billing_client import InvoicingService
from .extractor import (
    ExtractionResult,
    apply_test_defaults,
    extract,
    generate_questions,
    is_test_request,
    missing_fields,
)

ALLOWED_TRANSITIONS: Final[dict[Stage, set[Stage]]] = {
    Stage.INITIAL: {Stage.COLLECTING, Stage.CONFIRMING},
    Stage.COLLECTING: {Stage.COLLECTING, Stage.CONFIRMING},
    Stage.CONFIRMING: {Stage.GENERATING, Stage.COLLECTING, Stage.CONFIRMING},
    Stage.GENERATING: {Stage.COMPLETED},
    Stage.COMPLETED: {Stage.INITIAL},
}

AFFIRMATIONS: Final[frozenset[str]] = frozenset({"sí", "si", "confirmo", "ok"})

OFFLINE_MESSAGE = "Estás probando sin conexión. Podés emitir una factura de prueba."
PROCESSING_MESSAGE = "Procesando..."
PROCESSING_ERROR_MESSAGE = "❌ Ocurrió un error procesando tu solicitud. Intenta nuevamente."
UNKNOWN_ERROR = "Error desconocido"
TOO_LONG_MESSAGE = "El mensaje es demasiado largo (máximo {limit} caracteres)."


def is_affirmation(text: str) -> bool:
    """True when any word of the message is an affirmation token (case-insensitive)."""
    return not AFFIRMATIONS.isdisjoint(re.findall(r"\w+", text.lower()))


def confirmation_summary(record: InvoiceRecord) -> str:
    document = (
        f"{record.customer_id_kind.value} {record.customer_id}" if record.customer_id_kind else record.customer_id
    )
    lines = [
        "Perfecto, estos son los datos:",
        "",
        f"Cliente: {record.customer_name}",
        f"Documento: {document}",
        f"Importe: ${format_amount(record.amount)}",
    ]
    if record.voucher_type:
        lines.append(f"Tipo: Factura {record.voucher_type.value}")
    lines += ["", "¿Confirmas la emisión?"]
    return "\n".join(lines)


def follow_up_message(record: InvoiceRecord) -> str:
    """Partial summary of what is known plus the first missing-field question."""
    missing = missing_fields(record)
    questions = generate_questions(missing)

    parts = []
    if record.customer_name:
        parts.append(f"Cliente: {record.customer_name}")
    if record.customer_id:
        parts.append(f"Documento: {record.customer_id}")
    if record.amount:
        parts.append(f"Importe: ${format_amount(record.amount)}")
    summary = "\n" + "\n".join(parts) + "\n" if parts else ""

    need = "algunos datos más" if len(missing) > 1 else "un dato más"
    return f"Necesito {need}.{summary}\n{questions[0]}"


class ConversationController:
    """
    Holds the state of a single chat session.

    Turns are strictly serialized: while a message is being processed
    ``send`` and ``clear`` raise ``ConversationBusyError``.
    """

    def __init__(
        self,
        service: InvoicingService,
        config: Settings | None = None,
        extractor: Callable[[str], ExtractionResult] = extract,
    ):
        self.service = service
        self.config = config or default_settings
        self._extract = extractor
        self._sequence = itertools.count(1)
        self.state = ConversationState()

    @property
    def stage(self) -> Stage:
        return self.state.stage

    async def start(self) -> list[ChatTurn]:
        """Probe the billing backend once; announce demo mode when it is offline."""
        first_new = len(self.state.messages)
        try:
            health = await self.service.check_health()
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
            health = HealthStatus(success=False, error=str(e))

        self.state.backend_online = health.success
        logger.info("Billing backend probed", online=health.success)
        if not health.success:
            self._say(OFFLINE_MESSAGE)
        return self.state.messages[first_new:]

    async def send(self, text: str) -> list[ChatTurn]:
        """
        Handle one user message and return the turns it appended.

        Raises:
            ConversationBusyError: if the previous message is still being processed
        """
        if self.state.processing:
            raise ConversationBusyError("Still processing the previous message")

        message = text.strip()
        if not message:
            return []

        first_new = len(self.state.messages)

        limit = self.config.max_message_length
        if len(message) > limit:
            logger.warning("Message rejected", length=len(message), limit=limit)
            self._say(TOO_LONG_MESSAGE.format(limit=limit))
            return self.state.messages[first_new:]

        self._append(Speaker.USER, message)

        if self.state.stage == Stage.CONFIRMING and is_affirmation(message):
            await self._submit()
        else:
            if self.state.stage == Stage.COMPLETED:
                self._transition(Stage.INITIAL)
                self.state.accumulated_record = InvoiceRecord()
                self.state.last_result = None
            self._process(message)

        return self.state.messages[first_new:]

    def clear(self) -> None:
        """Start over: drop messages, record and result. The health probe result is kept."""
        if self.state.processing:
            raise ConversationBusyError("Cannot clear while processing")
        self.state = ConversationState(backend_online=self.state.backend_online)
        logger.info("Conversation cleared")

    def _process(self, message: str) -> None:
        # Only the collecting stage builds on previous turns; any other stage
        # (including confirming without an affirmation) starts a new request.
        base = self.state.accumulated_record if self.state.stage == Stage.COLLECTING else InvoiceRecord()

        self.state.processing = True
        try:
            result = self._extract(message)
            record = merge(base, result.record)
            if self.config.test_mode_autofill and is_test_request(message):
                record = apply_test_defaults(record)
        except Exception:
            logger.exception("Error processing message", stage=self.state.stage.value)
            self._say(PROCESSING_ERROR_MESSAGE)
            return
        finally:
            self.state.processing = False

        self.state.accumulated_record = record
        if record.is_submittable():
            self._transition(Stage.CONFIRMING)
            self._say(confirmation_summary(record), record=record)
        else:
            self._transition(Stage.COLLECTING)
            self._say(follow_up_message(record))

    async def _submit(self) -> None:
        self._transition(Stage.GENERATING)
        self.state.processing = True
        self._say(PROCESSING_MESSAGE)

        try:
            result = await self.service.generate_invoice(self.state.accumulated_record)
            if result.success and result.invoice:
                if self.state.demo_mode:
                    result = result.model_copy(update={"demo": True})
                demo_tag = " (Demo)" if result.demo else ""
                self._say(f"¡Factura emitida!{demo_tag}\n\n{invoice_summary(result.invoice)}")
            else:
                self._say(f"No se pudo emitir la factura: {result.error or UNKNOWN_ERROR}")
            self.state.last_result = result
        except Exception as e:
            logger.exception("Error confirming invoice")
            self._say(f"Error inesperado: {str(e) or UNKNOWN_ERROR}")
        finally:
            # Success or failure, the collected data is discarded
            self._transition(Stage.COMPLETED)
            self.state.accumulated_record = InvoiceRecord()
            self.state.processing = False

    def _transition(self, to_stage: Stage) -> None:
        from_stage = self.state.stage
        if to_stage not in ALLOWED_TRANSITIONS[from_stage]:
            raise InvalidTransitionError(f"Invalid transition: {from_stage.value} -> {to_stage.value}")
        self.state.stage = to_stage
        logger.debug("Conversation stage changed", from_stage=from_stage.value, to_stage=to_stage.value)

    def _append(self, speaker: Speaker, text: str, record: InvoiceRecord | None = None) -> ChatTurn:
        turn = ChatTurn(
            id=f"{next(self._sequence):06d}-{uuid.uuid4().hex[:8]}",
            speaker=speaker,
            text=text,
            record=record,
        )
        self.state.messages.append(turn)
        return turn

    def _say(self, text: str, record: InvoiceRecord | None = None) -> ChatTurn:
        return self._append(Speaker.ASSISTANT, text, record)
