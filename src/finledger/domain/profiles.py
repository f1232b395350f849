"""Static classification catalogs and extraction profiles.

New banks and layouts are supported by appending records here. Nothing in
this module is mutated at runtime.
"""

from dataclasses import dataclass, field
from enum import Enum
import re
from typing import Optional, Pattern

from finledger.utils.amount_parser import NumericLocale, ARGENTINE_LOCALE
from finledger.utils.date_parser import DEFAULT_DATE_FORMATS

CATALOG_VERSION = "2024.1"


@dataclass(frozen=True)
class DocumentTypePatterns:
    """Detection patterns for one document type."""

    type_id: str
    name: str
    priority: int
    patterns: tuple[Pattern[str], ...]


@dataclass(frozen=True)
class BankIdentity:
    """Bank identified by lowercase keywords found anywhere in the text."""

    bank_id: str
    name: str
    keywords: tuple[str, ...]


def _compile(*sources: str, flags: int = re.IGNORECASE) -> tuple[Pattern[str], ...]:
    return tuple(re.compile(source, flags) for source in sources)


DOCUMENT_TYPES: tuple[DocumentTypePatterns, ...] = (
    DocumentTypePatterns(
        type_id="vep",
        name="Volante Electrónico de Pago",
        priority=100,
        patterns=_compile(
            r"volante\s+electr[oó]nico\s+de\s+pago",
            r"Nro\.\s*VEP",
            r"ARCA.*VEP|VEP.*ARCA",
        )
        + _compile(r"\bVEP\b", flags=0),
    ),
    DocumentTypePatterns(
        type_id="bank_statement",
        name="Extracto de Cuenta Bancaria",
        priority=80,
        patterns=_compile(
            r"movimientos?\s+del",
            r"extracto\s+(?:de\s+)?(?:cuenta|bancario)",
            r"estado\s+de\s+cuenta",
            r"resumen\s+de\s+(?:cuenta|movimientos)",
            r"saldo\s+(?:inicial|final|en\s+\$)",
            r"CTE\s*\$\s*\*+\d+",
            r"caja\s+de\s+ahorro",
            r"cuenta\s+corriente",
        ),
    ),
    DocumentTypePatterns(
        type_id="credit_card_statement",
        name="Resumen de Tarjeta de Crédito",
        priority=85,
        patterns=_compile(
            r"resumen\s+(?:de\s+)?tarjeta",
            r"ciclo\s+de\s+facturaci[oó]n",
            r"tarjeta\s+(?:de\s+)?cr[eé]dito",
            r"vencimiento\s+(?:m[ií]nimo|total)",
            r"pago\s+m[ií]nimo",
            r"l[ií]mite\s+de\s+(?:compra|cr[eé]dito)",
        ),
    ),
    DocumentTypePatterns(
        type_id="invoice",
        name="Factura",
        priority=90,
        patterns=_compile(
            r"factura\s*(?:tipo\s*)?[abc]\b",
            r"factura\s+(?:electr[oó]nica|original)",
            r"comprobante\s+(?:tipo|original)",
            r"(?:C\.?U\.?I\.?T\.?|CUIT)\s*:?\s*\d{2}-?\d{8}-?\d",
            r"(?:punto\s+de\s+venta|pto\.\s*vta)",
            r"n[uú]mero\s+de\s+comprobante",
            r"importe\s+(?:neto|total|iva)",
            r"I\.?V\.?A\.?\s+(?:\d+(?:[.,]\d+)?%|\(\d+(?:[.,]\d+)?%\))",
        ),
    ),
    DocumentTypePatterns(
        type_id="receipt",
        name="Recibo de Pago",
        priority=70,
        patterns=_compile(
            r"recibo\s+(?:de\s+)?(?:pago|cobro)",
            r"comprobante\s+de\s+pago",
            r"recib[ií]\s+de\s+conformidad",
            r"pago\s+recibido",
        ),
    ),
    DocumentTypePatterns(
        type_id="payment_voucher",
        name="Comprobante de Transferencia",
        priority=75,
        patterns=_compile(
            r"comprobante\s+de\s+transferencia",
            r"transferencia\s+(?:exitosa|realizada)",
            r"operaci[oó]n\s+(?:exitosa|n[uú]mero)",
            r"n[uú]mero\s+de\s+operaci[oó]n",
            r"CVU|CBU",
        ),
    ),
    DocumentTypePatterns(
        type_id="subscription",
        name="Factura de Suscripción",
        priority=65,
        patterns=_compile(
            r"suscripci[oó]n",
            r"per[ií]odo\s+(?:de\s+)?facturaci[oó]n",
            r"servicio\s+(?:mensual|anual)",
            r"renovaci[oó]n\s+autom[aá]tica",
            r"plan\s+(?:b[aá]sico|premium|pro)",
        ),
    ),
    DocumentTypePatterns(
        type_id="utility_bill",
        name="Factura de Servicios",
        priority=60,
        patterns=_compile(
            r"edenor|edesur|metrogas|aysa|telecom|movistar|personal|claro",
            r"consumo\s+(?:del\s+)?per[ií]odo",
            r"lectura\s+(?:anterior|actual)",
            r"kwh|m[³3]|minutos",
        ),
    ),
)

UNKNOWN_TYPE_NAME = "Documento sin clasificar"
UNKNOWN_BANK_NAME = "Desconocido"

BANK_IDENTITIES: tuple[BankIdentity, ...] = (
    BankIdentity("hipotecario", "Banco Hipotecario", ("hipotecario",)),
    BankIdentity("santander", "Banco Santander", ("santander",)),
    BankIdentity("galicia", "Banco Galicia", ("galicia",)),
    BankIdentity("bbva", "BBVA", ("bbva", "frances")),
    BankIdentity("macro", "Banco Macro", ("banco macro", "macro")),
    BankIdentity("nacion", "Banco Nación", ("nacion", "banco nación", "banco de la nación")),
    BankIdentity("provincia", "Banco Provincia", ("provincia",)),
    BankIdentity("ciudad", "Banco Ciudad", ("ciudad",)),
    BankIdentity("brubank", "Brubank", ("brubank", "bru bank")),
    BankIdentity("mercadopago", "Mercado Pago", ("mercado pago", "mercadopago")),
    BankIdentity("uala", "Ualá", ("uala", "ualá")),
    BankIdentity("naranja", "Naranja X", ("naranja",)),
    BankIdentity("icbc", "ICBC", ("icbc", "industrial and commercial")),
    BankIdentity("hsbc", "HSBC", ("hsbc",)),
    BankIdentity("credicoop", "Credicoop", ("credicoop",)),
    BankIdentity("supervielle", "Supervielle", ("supervielle",)),
    BankIdentity("patagonia", "Banco Patagonia", ("patagonia",)),
    BankIdentity("comafi", "Banco Comafi", ("comafi",)),
    BankIdentity("itau", "Itaú", ("itau", "itaú")),
)


# Header keywords used to locate the real header row of a spreadsheet
HEADER_KEYWORDS: tuple[str, ...] = (
    "fecha",
    "date",
    "importe",
    "monto",
    "amount",
    "saldo",
    "balance",
    "descripcion",
    "descripción",
    "description",
    "concepto",
    "detalle",
    "debito",
    "débito",
    "credito",
    "crédito",
    "referencia",
)


@dataclass(frozen=True)
class LinePattern:
    """Regular expression that turns one text line into a candidate.

    Named groups: ``date``, ``description``, ``amount`` and optionally
    ``reference``.
    """

    regex: Pattern[str]
    skip_keywords: tuple[str, ...] = ()
    min_description_length: int = 3


class SignPolicy(str, Enum):
    """How printed amounts map to the negative=debit convention."""

    AS_PRINTED = "as_printed"
    # Card layouts print charges unsigned and refunds negative or marked
    CHARGES = "charges"


@dataclass(frozen=True)
class ExtractionProfile:
    """Named, versioned rule set for one bank or layout."""

    profile_id: str
    version: str
    bank_name: Optional[str]
    confidence: int
    column_synonyms: dict[str, tuple[str, ...]] = field(default_factory=dict)
    required_columns: tuple[tuple[str, ...], ...] = ()
    line_patterns: tuple[LinePattern, ...] = ()
    statement_date_pattern: Optional[Pattern[str]] = None
    numeric_locale: Optional[NumericLocale] = None
    sign_policy: SignPolicy = SignPolicy.AS_PRINTED
    reversal_markers: tuple[str, ...] = ()
    date_formats: tuple[str, ...] = DEFAULT_DATE_FORMATS
    min_line_length: int = 10


# Tabular profiles. ``required_columns`` is a signature: every inner tuple
# needs at least one header containing one of its fragments.
DEBIT_CREDIT_PROFILE = ExtractionProfile(
    profile_id="debit_credit",
    version=CATALOG_VERSION,
    bank_name="Banco Hipotecario",
    confidence=90,
    numeric_locale=ARGENTINE_LOCALE,
    required_columns=(("DEBITO EN",), ("CREDITO EN",)),
    column_synonyms={
        "date": ("FECHA",),
        "description": ("DESCRIPCION", "DESCRIPCIÓN"),
        "reference": ("REFERENCIA",),
        "debit": ("DEBITO EN",),
        "credit": ("CREDITO EN",),
        "balance": ("SALDO",),
    },
)

SIGNED_AMOUNT_BALANCE_PROFILE = ExtractionProfile(
    profile_id="signed_amount_balance",
    version=CATALOG_VERSION,
    bank_name="Banco Santander",
    confidence=90,
    numeric_locale=ARGENTINE_LOCALE,
    required_columns=(("IMPORTE",), ("SALDO",), ("CONCEPTO", "COD. OPERATIVO", "COD OPERATIVO")),
    column_synonyms={
        "date": ("FECHA",),
        "description": ("CONCEPTO", "DESCRIPCION", "DESCRIPCIÓN"),
        "reference": ("REFERENCIA",),
        "operation_code": ("COD. OPERATIVO", "COD OPERATIVO"),
        "amount": ("IMPORTE",),
        "balance": ("SALDO",),
    },
)

GENERIC_TABULAR_PROFILE = ExtractionProfile(
    profile_id="generic_columns",
    version=CATALOG_VERSION,
    bank_name=None,
    confidence=85,
    column_synonyms={
        "date": ("fecha", "date", "transaction date", "transaction_date", "fecha de transacción"),
        "description": ("descripcion", "descripción", "description", "merchant", "comercio", "detalle", "concepto"),
        "amount": ("monto", "amount", "importe", "pesos", "valor", "total"),
        "reference": ("referencia", "reference", "ref", "#ref", "numero", "número"),
        "debit": ("debito", "débito", "debit"),
        "credit": ("credito", "crédito", "credit"),
        "balance": ("saldo", "balance"),
    },
)

TABULAR_PROFILES: tuple[ExtractionProfile, ...] = (
    DEBIT_CREDIT_PROFILE,
    SIGNED_AMOUNT_BALANCE_PROFILE,
)

# Line profiles, keyed by bank identity
_AMOUNT_TOKEN = r"-?\s*\$?\s*-?\d[\d.,]*"

BRUBANK_LINE_PROFILE = ExtractionProfile(
    profile_id="brubank_lines",
    version=CATALOG_VERSION,
    bank_name="Brubank",
    confidence=75,
    line_patterns=(
        LinePattern(
            regex=re.compile(
                r"(?P<date>\d{2}/\d{2}/\d{4})\s+(?P<reference>\d+)\s+(?P<description>.+?)\s+"
                rf"(?P<amount>{_AMOUNT_TOKEN})\s*$"
            ),
        ),
    ),
    numeric_locale=ARGENTINE_LOCALE,
    sign_policy=SignPolicy.CHARGES,
    reversal_markers=("reverso", "devoluci"),
    statement_date_pattern=re.compile(
        r"(?:Estado de Cuenta|Estado del)\s+(?:del?\s+)?(\d{2}/\d{2}/\d{4})", re.IGNORECASE
    ),
)

SANTANDER_LINE_PROFILE = ExtractionProfile(
    profile_id="santander_lines",
    version=CATALOG_VERSION,
    bank_name="Banco Santander",
    confidence=75,
    numeric_locale=ARGENTINE_LOCALE,
    line_patterns=(
        LinePattern(
            regex=re.compile(
                r"^(?P<date>\d{2}/\d{2}/\d{2,4})\s+(?P<description>.+?)\s+"
                r"(?P<amount>-?\s*\$?\s*-?(?:\d[\d.]*,\d{2}|\d[\d,]*\.\d{2}|\d[\d.]*))\s*$"
            ),
            skip_keywords=("fecha", "período", "periodo", "desde", "hasta"),
        ),
    ),
    statement_date_pattern=re.compile(
        r"(?:Resumen|Estado)\s+(?:del?\s+)?(\d{2}/\d{2}/\d{4})", re.IGNORECASE
    ),
)

GENERIC_LINE_PROFILE = ExtractionProfile(
    profile_id="generic_lines",
    version=CATALOG_VERSION,
    bank_name=None,
    confidence=75,
    min_line_length=15,
    date_formats=DEFAULT_DATE_FORMATS + ("%d-%m-%y",),
)

# Date token and currency-shaped token used by the generic line extractor
GENERIC_DATE_TOKEN = re.compile(r"\b(\d{1,2}[-/]\d{1,2}[-/]\d{2,4})\b")
GENERIC_AMOUNT_TOKEN = re.compile(r"-?\s?\$?\s?-?\d[\d.,]*[.,]\d{2}\b-?")

LINE_PROFILES: dict[str, ExtractionProfile] = {
    "brubank": BRUBANK_LINE_PROFILE,
    "santander": SANTANDER_LINE_PROFILE,
}

# Totals and disclaimer rows that appear inside exported tables
NON_TRANSACTION_MARKERS: tuple[str, ...] = ("total", "presente documento", "saldo anterior")

# Header fragments that mark a foreign-currency amount column
FOREIGN_CURRENCY_MARKERS: dict[str, tuple[str, ...]] = {
    "USD": ("U$S", "US$", "USD", "DOLAR", "DÓLAR"),
}
