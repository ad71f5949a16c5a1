"""
Unit tests for the field extractor.

Covers each field category, rule priority and the extractor's guarantees
(pure, mutually exclusive documents, capped confidence).
"""
import time
from decimal import Decimal

import pytest

from factura_chat.models.invoice import Concept, DocumentKind, InvoiceRecord, VoucherType
from factura_chat.services.extractor import (
    FieldTag,
    apply_test_defaults,
    extract,
    generate_questions,
    is_test_request,
    missing_fields,
    parse_amount,
)


def test_full_request_extracts_every_required_field():
    """A complete request yields name, document, amount and voucher type"""
    result = extract("Factura B para María García DNI 30123456 por $25000")

    record = result.record
    assert record.customer_name == "María García"
    assert record.customer_id == "30123456"
    assert record.customer_id_kind == DocumentKind.NATIONAL_ID
    assert record.amount == Decimal("25000")
    assert record.voucher_type == VoucherType.B
    assert record.is_submittable()
    assert result.missing_fields == [FieldTag.CONCEPT]
    assert result.confidence == 80


def test_test_invoice_request_has_no_customer_name():
    """'Factura' must not be read as the preposition 'a' followed by a name"""
    result = extract("Factura C de prueba por $1000")

    assert result.record.customer_name is None
    assert result.record.amount == Decimal("1000")
    assert result.record.voucher_type == VoucherType.C
    assert result.missing_fields[0] == FieldTag.CUSTOMER_NAME


@pytest.mark.parametrize(
    "text, expected",
    [
        ("facturar a Juan Pérez DNI 12345678", "Juan Pérez"),
        ("facturarle a Ana López el importe de 500", "Ana López"),
        ("cliente Roberto Díaz 20123456", "Roberto Díaz"),
        ("para Carlos Gómez por $1500", "Carlos Gómez"),
        ("Factura A para Carlos Gómez por $1500", "Carlos Gómez"),
        ("cliente: María García", "María García"),
        ("el nombre es Lucía Fernández.", "Lucía Fernández"),
    ],
)
def test_customer_name_patterns(text, expected):
    assert extract(text).record.customer_name == expected


@pytest.mark.parametrize(
    "text, amount",
    [
        ("importe $25.000", Decimal("25000")),
        ("total: 1.500,50", Decimal("1500.50")),
        ("monto de $ 300", Decimal("300")),
        ("$25.000", Decimal("25000")),
        ("son 4500 pesos", Decimal("4500")),
        ("1200 ARS", Decimal("1200")),
        ("1234,56", Decimal("1234.56")),
        ("cobrar 1.234.567", Decimal("1234567")),
    ],
)
def test_amount_formats(text, amount):
    assert extract(text).record.amount == amount


def test_parse_amount_uses_argentine_separators():
    assert parse_amount("25.000") == Decimal("25000")
    assert parse_amount("1234,56") == Decimal("1234.56")
    assert parse_amount("1.234,5") == Decimal("1234.5")


def test_zero_amount_is_discarded():
    """Non-positive amounts are not extracted"""
    assert extract("importe $0").record.amount is None


def test_plain_number_without_format_is_not_an_amount():
    """A bare integer without currency marker or es-AR separators is ambiguous"""
    assert extract("tengo 3 facturas").record.amount is None


def test_national_id_with_and_without_label():
    assert extract("DNI 30123456").record.customer_id == "30123456"
    assert extract("DNI: 1234567").record.customer_id == "1234567"
    assert extract("documento 30123456").record.customer_id_kind == DocumentKind.NATIONAL_ID


def test_hyphenated_tax_id_is_normalized():
    """CUIT hyphens are stripped and the national id does not claim its middle digits"""
    record = extract("CUIT 20-12345678-9").record

    assert record.customer_id == "20123456789"
    assert record.customer_id_kind == DocumentKind.TAX_ID


def test_unhyphenated_tax_id():
    record = extract("cuit 20123456789 por $100").record

    assert record.customer_id == "20123456789"
    assert record.customer_id_kind == DocumentKind.TAX_ID


def test_amount_is_not_read_as_document():
    """Digits of a $ amount never count as a national id"""
    record = extract("por $12.345.678").record

    assert record.customer_id is None
    assert record.amount == Decimal("12345678")


def test_documents_are_mutually_exclusive():
    """When both kinds are present only the national id is kept"""
    record = extract("DNI 30123456 CUIT 20-12345678-9").record

    assert record.customer_id == "30123456"
    assert record.customer_id_kind == DocumentKind.NATIONAL_ID


@pytest.mark.parametrize(
    "text, voucher_type",
    [
        ("factura a", VoucherType.A),
        ("FACTURA B", VoucherType.B),
        ("facturac por $10", VoucherType.C),
        ("tipo c", VoucherType.C),
        ("necesito una factura", None),
    ],
)
def test_voucher_type(text, voucher_type):
    assert extract(text).record.voucher_type == voucher_type


def test_voucher_type_priority():
    """A wins over B and C when several are mentioned"""
    assert extract("factura c o factura a").record.voucher_type == VoucherType.A
    assert extract("factura c o tipo b").record.voucher_type == VoucherType.B


@pytest.mark.parametrize(
    "text, concept",
    [
        ("venta de productos", Concept.PRODUCT),
        ("servicios de diseño", Concept.SERVICE),
        ("consultoría mensual", Concept.SERVICE),
        ("asesoria contable", Concept.SERVICE),
        ("productos y servicios", Concept.PRODUCTS_AND_SERVICES),
        ("servicios y productos", Concept.PRODUCTS_AND_SERVICES),
        ("hola", None),
    ],
)
def test_concept(text, concept):
    assert extract(text).record.concept == concept


def test_description_stops_before_keywords():
    record = extract("factura por diseño web DNI 30123456").record
    assert record.description == "diseño web"


def test_description_never_starts_with_amount():
    record = extract("factura b por $500").record
    assert record.description is None


def test_extract_is_idempotent():
    text = "Factura A para Juan Pérez CUIT 20-12345678-9 por $1.500 de servicios"
    assert extract(text) == extract(text)


def test_confidence_is_capped():
    result = extract("Factura A para Juan Pérez DNI 12345678 por $1.500 de servicios")
    assert result.confidence == 100


def test_confidence_grows_with_fields():
    partial = extract("por $1500")
    fuller = extract("Factura A para Juan Pérez por $1500")
    assert 0 < partial.confidence < fuller.confidence <= 100


def test_empty_text_extracts_nothing():
    result = extract("")
    assert result.record.is_empty()
    assert result.confidence == 0
    assert result.missing_fields == list(FieldTag)


def test_missing_fields_order():
    record = InvoiceRecord(customer_name="Juan", amount=Decimal("10"))
    assert missing_fields(record) == [
        FieldTag.CUSTOMER_DOCUMENT,
        FieldTag.DOCUMENT_KIND,
        FieldTag.VOUCHER_TYPE,
        FieldTag.CONCEPT,
    ]


def test_generate_questions():
    questions = generate_questions([FieldTag.CUSTOMER_NAME, FieldTag.AMOUNT, "email"])
    assert questions == [
        "¿Cuál es el nombre del cliente?",
        "¿Cuál es el importe a facturar?",
        "¿Podrías proporcionar email?",
    ]


def test_test_request_defaults_keep_extracted_values():
    assert is_test_request("Factura C de prueba por $1000")
    assert not is_test_request("Factura C para Ana por $1000")

    record = apply_test_defaults(extract("Factura C de prueba por $2000").record)

    assert record.customer_name == "Cliente Prueba"
    assert record.customer_id == "12345678"
    assert record.amount == Decimal("2000")
    assert record.is_submittable()


@pytest.mark.parametrize(
    "text, amount",
    [
        ("Factura B para Ana López por 2500000 pesos", Decimal("2500000")),
        ("total 12345678", Decimal("12345678")),
        ("importe de 1500000", Decimal("1500000")),
        ("cobrar 12345678 ARS", Decimal("12345678")),
    ],
)
def test_unlabelled_amount_digits_are_not_a_document(text, amount):
    """Plain digits after an amount keyword or before a currency are the amount, not a DNI"""
    record = extract(text).record

    assert record.amount == amount
    assert record.customer_id is None
    assert record.customer_id_kind is None


def test_labelled_document_after_plain_amount():
    record = extract("por 2500000 pesos DNI 30123456").record

    assert record.customer_id == "30123456"
    assert record.amount == Decimal("2500000")


def test_name_stops_before_plain_number_amount():
    """The name never runs into the amount keyword, whatever the amount format"""
    record = extract("Factura B para María García por 25.000 pesos DNI 30123456").record

    assert record.customer_name == "María García"
    assert record.customer_id == "30123456"
    assert record.amount == Decimal("25000")
    assert extract("Factura B para Ana López por 2500000 pesos").record.customer_name == "Ana López"


def test_long_text_is_matched_in_linear_time():
    text = "a b " * 8000

    started = time.perf_counter()
    result = extract(text)
    elapsed = time.perf_counter() - started

    assert result.record.customer_name is None
    assert elapsed < 2.0
