"""
Rule-based extraction of invoice fields from free-text chat messages.

Each field category owns an ordered rule table; the first rule that
matches wins for that category. Categories are independent of each other,
so a failed name match never prevents an amount match.

The extractor is a best-effort heuristic for Spanish (es-AR) requests such as
"Factura B para María García DNI 30123456 por $25.000", not a semantic parser.
"""
import re
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Callable, Iterable

from loguru import logger
from pydantic import BaseModel, ValidationError

from ..core.errors import ExtractionError
from ..models.invoice import Concept, DocumentKind, InvoiceRecord, VoucherType, merge


class FieldTag(str, Enum):
    """Stable identifiers for missing fields, in the order they are asked for"""
    CUSTOMER_NAME = "customer_name"
    CUSTOMER_DOCUMENT = "customer_document"
    DOCUMENT_KIND = "document_kind"
    AMOUNT = "amount"
    VOUCHER_TYPE = "voucher_type"
    CONCEPT = "concept"


class ExtractionResult(BaseModel):
    record: InvoiceRecord
    missing_fields: list[FieldTag]
    confidence: int

    model_config = {"frozen": True}


_I = re.IGNORECASE
_NAME = r"([A-Za-zÀ-ÿ\s]{1,80}?)"

# Most specific first
NAME_PATTERNS = [
    re.compile(
        r"\b(?:facturar(?:le)?|cliente|para)\s+(?:a\s+)?" + _NAME
        + r"(?=\s+(?:(?:dni|cuit|el\s+importe|importe|por|precio|total|monto)\b|\d|\$))",
        _I,
    ),
    re.compile(
        r"\b(?:cliente|para|a)\s+(?!(?:cliente|para|a)\s)" + _NAME + r"(?=\s+(?:(?:dni|cuit|por)\b|\d))",
        _I,
    ),
    re.compile(r"\b(?:cliente|nombre)(?:\s+es)?\s*:?\s+" + _NAME + r"\s*[.,;]?\s*$", _I),
]

# A digit run that is part of a longer number, a hyphenated id or a $ amount is not a document
_NOT_INSIDE_NUMBER = r"(?<![\d$])(?<!\d[-.,])(?<!\$\s)"
_NOT_FOLLOWED_BY_NUMBER = r"(?!-?\d)(?![.,]\d)"

NATIONAL_ID_PATTERN = re.compile(
    r"(?:\bdni\s*:?\s*)?" + _NOT_INSIDE_NUMBER + r"(\d{7,8})" + _NOT_FOLLOWED_BY_NUMBER, _I
)
TAX_ID_PATTERN = re.compile(
    r"(?:\bcuit\s*:?\s*)?" + _NOT_INSIDE_NUMBER + r"(\d{2}-?\d{8}-?\d)" + _NOT_FOLLOWED_BY_NUMBER, _I
)

# Unlabelled digits in these positions belong to the amount
_AMOUNT_BEFORE = re.compile(r"\b(?:importe|por|precio|total|monto)\s*:?\s*(?:de\s+)?$", _I)
_CURRENCY_AFTER = re.compile(r"\s*(?:(?:pesos|ars)\b|\$)", _I)

# es-AR numbers: '.' groups thousands, ',' separates decimals
_NUMBER = r"(\d+(?:\.\d{3})*(?:,\d{1,2})?)"

AMOUNT_PATTERNS = [
    re.compile(r"\b(?:importe|por|precio|total|monto)\s*:?\s*(?:de\s+)?\$?\s*" + _NUMBER, _I),
    re.compile(r"\$\s*" + _NUMBER),
    re.compile(r"(?<![\d.,])" + _NUMBER + r"\s*(?:(?:pesos|ars)\b|\$)", _I),
    re.compile(r"(?<![\d.,$])(\d{1,3}(?:\.\d{3})+(?:,\d{1,2})?|\d+,\d{1,2})(?![\d.,]*\d)"),
]

# Fixed priority: A, then B, then C
VOUCHER_TYPE_PATTERNS = [
    (VoucherType.A, re.compile(r"\b(?:factura|tipo)\s*a\b", _I)),
    (VoucherType.B, re.compile(r"\b(?:factura|tipo)\s*b\b", _I)),
    (VoucherType.C, re.compile(r"\b(?:factura|tipo)\s*c\b", _I)),
]

_PRODUCT = re.compile(r"\bproductos?\b", _I)
_SERVICE = re.compile(r"\bservicios?\b|\bconsultor[ií]as?\b|\basesor[ií]as?\b", _I)
_PRODUCTS_AND_SERVICES = re.compile(
    r"\bproductos?\s+y\s+servicios?\b|\bservicios?\s+y\s+productos?\b", _I
)

# (concept, predicate) pairs, first satisfied wins. The single-concept
# predicates step aside when both are named together.
CONCEPT_RULES: list[tuple[Concept, Callable[[str], bool]]] = [
    (Concept.PRODUCT, lambda text: bool(_PRODUCT.search(text)) and not _PRODUCTS_AND_SERVICES.search(text)),
    (Concept.SERVICE, lambda text: bool(_SERVICE.search(text)) and not _PRODUCTS_AND_SERVICES.search(text)),
    (Concept.PRODUCTS_AND_SERVICES, lambda text: bool(_PRODUCTS_AND_SERVICES.search(text))),
]

DESCRIPTION_PATTERN = re.compile(
    r"\b(?:por|de)\s+(?![$\d])(.+?)"
    r"(?=\s+(?:(?:dni|cuit|importe|monto|total|precio)\b|por\s+\$?\s*\d|\d)|\s*\$|\s*$)",
    _I,
)

TEST_REQUEST_PATTERN = re.compile(r"\b(?:prueba|test)\b", _I)

TEST_DEFAULTS = InvoiceRecord(
    customer_name="Cliente Prueba",
    customer_id="12345678",
    customer_id_kind=DocumentKind.NATIONAL_ID,
    amount=Decimal("1000"),
    voucher_type=VoucherType.C,
    concept=Concept.SERVICE,
    description="Factura de prueba",
)

QUESTIONS = {
    FieldTag.CUSTOMER_NAME.value: "¿Cuál es el nombre del cliente?",
    FieldTag.CUSTOMER_DOCUMENT.value: "¿Cuál es el número de documento del cliente?",
    FieldTag.DOCUMENT_KIND.value: "¿Es DNI o CUIT?",
    FieldTag.AMOUNT.value: "¿Cuál es el importe a facturar?",
    FieldTag.VOUCHER_TYPE.value: "¿Qué tipo de factura necesitas? (A, B o C)",
    FieldTag.CONCEPT.value: "¿Es por productos, servicios o ambos?",
}

_REQUIRED_CHECKS: list[tuple[FieldTag, Callable[[InvoiceRecord], object]]] = [
    (FieldTag.CUSTOMER_NAME, lambda r: r.customer_name),
    (FieldTag.CUSTOMER_DOCUMENT, lambda r: r.customer_id),
    (FieldTag.DOCUMENT_KIND, lambda r: r.customer_id_kind),
    (FieldTag.AMOUNT, lambda r: r.amount),
    (FieldTag.VOUCHER_TYPE, lambda r: r.voucher_type),
    (FieldTag.CONCEPT, lambda r: r.concept),
]


def parse_amount(raw: str) -> Decimal:
    """Convert an es-AR formatted number (``1.234,56``) into a Decimal."""
    return Decimal(raw.replace(".", "").replace(",", "."))


def _extract_customer_name(text: str) -> dict:
    for pattern in NAME_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1).strip():
            return {"customer_name": match.group(1).strip()}
    return {}


def _is_amount_context(text: str, match: re.Match) -> bool:
    """An unlabelled digit run right after an amount keyword or right before a currency is an amount."""
    if match.start() < match.start(1):
        return False
    return bool(
        _AMOUNT_BEFORE.search(text, 0, match.start(1)) or _CURRENCY_AFTER.match(text, match.end(1))
    )


def _first_document(pattern: re.Pattern, text: str) -> re.Match | None:
    for match in pattern.finditer(text):
        if not _is_amount_context(text, match):
            return match
    return None


def _extract_document(text: str) -> dict:
    # National id first; the tax id is only tried when it does not match
    match = _first_document(NATIONAL_ID_PATTERN, text)
    if match:
        return {"customer_id": match.group(1), "customer_id_kind": DocumentKind.NATIONAL_ID}
    match = _first_document(TAX_ID_PATTERN, text)
    if match:
        return {"customer_id": match.group(1).replace("-", ""), "customer_id_kind": DocumentKind.TAX_ID}
    return {}


def _extract_amount(text: str) -> dict:
    for pattern in AMOUNT_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        amount = parse_amount(match.group(1))
        if amount > 0:
            return {"amount": amount}
    return {}


def _extract_voucher_type(text: str) -> dict:
    for voucher_type, pattern in VOUCHER_TYPE_PATTERNS:
        if pattern.search(text):
            return {"voucher_type": voucher_type}
    return {}


def _extract_concept(text: str) -> dict:
    for concept, predicate in CONCEPT_RULES:
        if predicate(text):
            return {"concept": concept}
    return {}


def _extract_description(text: str) -> dict:
    match = DESCRIPTION_PATTERN.search(text)
    if match and match.group(1).strip():
        return {"description": match.group(1).strip()}
    return {}


# (confidence weight, extractor) per field category
FIELD_EXTRACTORS: list[tuple[int, Callable[[str], dict]]] = [
    (20, _extract_customer_name),
    (15, _extract_document),
    (25, _extract_amount),
    (20, _extract_voucher_type),
    (10, _extract_concept),
    (10, _extract_description),
]


def missing_fields(record: InvoiceRecord) -> list[FieldTag]:
    """Absent fields in asking order, regardless of confidence."""
    return [tag for tag, value_of in _REQUIRED_CHECKS if not value_of(record)]


def extract(text: str) -> ExtractionResult:
    """
    Extract invoice fields from a single utterance.

    Pure function: the same text always yields the same result.

    Raises:
        ExtractionError: when the text cannot be matched or converted
    """
    try:
        fields: dict = {}
        confidence = 0
        for weight, extractor in FIELD_EXTRACTORS:
            found = extractor(text)
            if found:
                fields.update(found)
                confidence += weight
        record = InvoiceRecord(**fields)
    except (TypeError, InvalidOperation, ValidationError) as e:
        raise ExtractionError(f"Could not extract invoice fields: {e}") from e

    missing = missing_fields(record)
    logger.debug(
        "Extracted invoice fields",
        fields=sorted(fields),
        missing=[tag.value for tag in missing],
        confidence=min(confidence, 100),
    )
    return ExtractionResult(record=record, missing_fields=missing, confidence=min(confidence, 100))


def generate_questions(missing: Iterable[FieldTag | str]) -> list[str]:
    """One follow-up question per missing field, in the given order."""
    questions = []
    for tag in missing:
        key = tag.value if isinstance(tag, FieldTag) else str(tag)
        questions.append(QUESTIONS.get(key, f"¿Podrías proporcionar {key}?"))
    return questions


def is_test_request(text: str) -> bool:
    return bool(TEST_REQUEST_PATTERN.search(text))


def apply_test_defaults(record: InvoiceRecord) -> InvoiceRecord:
    """Fill every absent field with demo values; extracted values are kept."""
    return merge(TEST_DEFAULTS, record)
