"""Chat turns and per-session conversation state."""
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from .invoice import InvoiceRecord, InvoiceResult


class Speaker(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Stage(str, Enum):
    INITIAL = "initial"
    COLLECTING = "collecting"
    CONFIRMING = "confirming"
    GENERATING = "generating"
    COMPLETED = "completed"


class ChatTurn(BaseModel):
    """A single message in the conversation. Immutable once appended."""
    id: str
    speaker: Speaker
    text: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    record: InvoiceRecord | None = None  # snapshot shown next to confirmation prompts

    model_config = {"frozen": True}


class ConversationState(BaseModel):
    messages: list[ChatTurn] = Field(default_factory=list)
    accumulated_record: InvoiceRecord = Field(default_factory=InvoiceRecord)
    stage: Stage = Stage.INITIAL
    processing: bool = False
    last_result: InvoiceResult | None = None
    backend_online: bool | None = None  # None until the health probe ran

    @property
    def demo_mode(self) -> bool:
        return self.backend_online is False
