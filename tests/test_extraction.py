"""Golden tests for label-based field extraction."""

from decimal import Decimal

import pytest

from salestracker.domain.extraction import (
    FIELD_RULES,
    extract_fields,
    has_label,
    normalize_currency,
)
from salestracker.domain.sales import Currency

from .helpers import SALE_REPORT


class TestExtractFieldsComplete:
    def test_full_report_extracts_every_field(self):
        fields = extract_fields(SALE_REPORT)

        assert fields.name == "Juan Pérez"
        assert fields.email == "juan@example.com"
        assert fields.phone == "+54 9 351 555 1234"
        assert fields.amount == Decimal("1500")
        assert fields.amount_text == "1500"
        assert fields.currency == Currency.USD
        assert fields.product == "Mentoría Gold"
        assert fields.funnel == "VSL"
        assert fields.payment_method == "Stripe"
        assert fields.payment_type == "Completo"
        assert fields.extras == "Bonus call"

    def test_empty_text_yields_nothing(self):
        fields = extract_fields("")

        assert fields.name is None
        assert fields.amount is None
        assert fields.currency is None
        assert fields.product is None

    def test_values_stop_at_end_of_line(self):
        fields = extract_fields("Nombre: Ana\nMonto: 10")

        assert fields.name == "Ana"
        assert fields.amount == Decimal("10")


class TestLabelVariants:
    @pytest.mark.parametrize(
        "text",
        ["Nombre: Ana", "NOMBRE: Ana", "nombre : Ana", "Nombre:Ana"],
    )
    def test_name_label_case_and_spacing(self, text):
        assert extract_fields(text).name.strip() == "Ana"

    @pytest.mark.parametrize("label", ["Email", "Correo", "CORREO", "email"])
    def test_email_synonyms(self, label):
        assert extract_fields(f"{label}: ana@example.com").email == "ana@example.com"

    @pytest.mark.parametrize("label", ["Teléfono", "Telefono", "TELÉFONO"])
    def test_phone_with_and_without_accent(self, label):
        assert extract_fields(f"{label}: 351 555").phone == "351 555"

    @pytest.mark.parametrize("text", ["Producto Silver", "Producto: Silver", "PRODUCTO Silver"])
    def test_product_colon_is_optional(self, text):
        assert extract_fields(text).product == "Silver"

    @pytest.mark.parametrize(
        "text",
        ["Producto:\nFunnel: VSL", "Producto :\nFunnel: VSL", "Producto:   \nFunnel: VSL", "Producto  :"],
    )
    def test_empty_product_value_is_absent(self, text):
        fields = extract_fields(text)
        assert fields.product is None

    def test_empty_product_does_not_swallow_next_line(self):
        assert extract_fields("Producto:\nFunnel: VSL").funnel == "VSL"

    def test_funnel_requires_colon(self):
        assert extract_fields("Funnel VSL").funnel is None

    @pytest.mark.parametrize(
        "text",
        ["Tipo: Completo", "Tipo de pago: Completo", "Tipo de Unico: Completo", "TIPO DE PAGO : Completo"],
    )
    def test_generic_tipo_pattern(self, text):
        assert extract_fields(text).payment_type == "Completo"

    def test_payment_method(self):
        assert extract_fields("MEDIO DE PAGO: Transferencia").payment_method == "Transferencia"

    def test_label_inside_other_word_is_ignored(self):
        assert extract_fields("Sobrenombre: Pepe").name is None

    def test_empty_line_does_not_swallow_next_label(self):
        fields = extract_fields("Nombre:\nEmail: ana@example.com")

        assert fields.name is None or fields.name.strip() == ""
        assert fields.email == "ana@example.com"


class TestAmountAndCurrency:
    def test_comma_decimal_and_euros(self):
        fields = extract_fields("Monto: 100,50 EUROS")

        assert fields.amount == Decimal("100.50")
        assert fields.currency == Currency.EUR

    def test_pesos(self):
        fields = extract_fields("Monto: 5000 pesos")

        assert fields.amount == Decimal("5000")
        assert fields.currency == Currency.ARS

    def test_no_unit_defaults_to_usd(self):
        fields = extract_fields("Monto: 250")

        assert fields.amount == Decimal("250")
        assert fields.currency == Currency.USD

    def test_unit_glued_to_number(self):
        fields = extract_fields("Monto: 100usd")

        assert fields.amount == Decimal("100")
        assert fields.currency == Currency.USD

    def test_dot_decimal(self):
        assert extract_fields("Monto: 99.90 ars").amount == Decimal("99.90")

    def test_parenthesized_hint(self):
        fields = extract_fields("Monto (ARS): 150000")

        assert fields.amount == Decimal("150000")
        assert fields.currency == Currency.ARS

    def test_hint_checked_before_trailing_word(self):
        fields = extract_fields("Monto(pesos): 100 USD")

        assert fields.currency == Currency.ARS

    def test_hint_and_word_agreeing(self):
        fields = extract_fields("Monto(usd): 100 USD")

        assert fields.amount == Decimal("100")
        assert fields.currency == Currency.USD

    def test_amount_without_number_does_not_match(self):
        fields = extract_fields("Monto: a confirmar")

        assert fields.amount is None
        assert not has_label("amount", "Monto: a confirmar")


class TestNormalizeCurrency:
    @pytest.mark.parametrize(
        "token,expected",
        [
            (None, Currency.USD),
            ("", Currency.USD),
            ("usd", Currency.USD),
            ("dolares", Currency.USD),
            ("ARS", Currency.ARS),
            ("ars", Currency.ARS),
            ("peso", Currency.ARS),
            ("Pesos", Currency.ARS),
            ("euro", Currency.EUR),
            ("EUROS", Currency.EUR),
            ("EUR", Currency.EUR),
        ],
    )
    def test_mapping(self, token, expected):
        assert normalize_currency(token) == expected


def test_every_rule_has_a_compiled_pattern():
    for rule in FIELD_RULES:
        assert has_label(rule.name, "") is False
