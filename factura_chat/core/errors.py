"""
Exceptions shared across the conversation, the billing client and the mock backend.

None of them is fatal: every one is recovered per turn or mapped to an
HTTP status by the API layer.
"""


class ExtractionError(Exception):
    """Unexpected failure while matching an utterance against the field patterns"""


class MissingInvoiceDataError(ValueError):
    """The record lacks customer name, document or amount and cannot be invoiced"""


class ConversationBusyError(RuntimeError):
    """A message (or clear) arrived while the previous turn is still processing"""


class InvalidTransitionError(ValueError):
    """A conversation stage change that the transition table does not allow"""


class SessionNotFoundError(KeyError):
    """No conversation session with the given id"""
