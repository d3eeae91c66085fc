"""Bank statement parsing.

Turns the raw text of a statement export into normalized
``ParsedTransaction`` drafts. Two families are understood:

- delimited text (CSV) whose header names are matched against a synonym
  table, and
- OFX-style markup (OFX, QFX, QBO) where each ``<STMTTRN>`` block holds one
  transaction.

Rows or blocks that cannot be normalized are skipped and reported as
``SkippedRecord`` entries; they never abort the file.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterator, Optional, Union

from bankfeed.domain.entities import ParsedTransaction, SkippedRecord, StatementFormat
from bankfeed.domain.errors import ValidationError
from bankfeed.utils.amount_parser import parse_amount
from bankfeed.utils.date_parser import parse_compact_date, parse_date

logger = logging.getLogger(__name__)

# Draft field -> accepted header names, in order of preference
HEADER_SYNONYMS: dict[str, tuple[str, ...]] = {
    "transaction_date": ("date", "transactiondate", "transaction date", "posted"),
    "post_date": ("postdate", "post date"),
    "description": ("description", "memo", "payee", "name"),
    "amount": ("amount",),
    "debit": ("debit",),
    "credit": ("credit",),
    "transaction_type": ("type", "transaction type"),
    "check_number": ("checknumber", "check number", "check"),
    "reference_number": ("reference", "referencenumber", "reference number"),
    "bank_transaction_id": (
        "fitid",
        "transaction id",
        "transactionid",
        "bank transaction id",
        "banktransactionid",
    ),
    "merchant": ("merchant",),
    "original_category": ("category",),
}

_MARKUP_ROOT = re.compile(r"<\?OFX|<OFX>", re.IGNORECASE)
_XML_PROLOG = "<?xml"
_SIGNON_MARKER = "SIGNONMSGSRSV1"
_TRANSACTION_BLOCK = re.compile(r"<STMTTRN>(.*?)</STMTTRN>", re.IGNORECASE | re.DOTALL)
_TAG_PATTERNS = {
    tag: re.compile(rf"<{tag}>([^<\r\n]+)", re.IGNORECASE)
    for tag in ("DTPOSTED", "NAME", "MEMO", "TRNAMT", "TRNTYPE", "CHECKNUM", "REFNUM", "FITID")
}


def decode_statement(content: Union[str, bytes]) -> str:
    """Return statement text, decoding bytes as UTF-8 and dropping a BOM."""
    if isinstance(content, bytes):
        return content.decode("utf-8-sig", errors="replace")
    return content.lstrip("\ufeff")


def coerce_format(value: Union[str, StatementFormat]) -> StatementFormat:
    """Convert a user supplied format name into a StatementFormat.

    Raises:
        ValidationError: If the name is not a supported format
    """
    if isinstance(value, StatementFormat):
        return value
    try:
        return StatementFormat(value.strip().upper())
    except ValueError:
        supported = ", ".join(fmt.value for fmt in StatementFormat)
        raise ValidationError(
            f"Unsupported statement format '{value}'. Must be one of: {supported}",
            {"format": f"must be one of: {supported}"},
        )


def detect_format(
    text: str, hint: Optional[Union[str, StatementFormat]] = None
) -> StatementFormat:
    """Classify statement text.

    A caller supplied hint always wins. Otherwise markup with an XML prolog
    and a sign-on section is QFX, other markup is OFX, and anything else is
    delimited text. QBO is only reachable through the hint.
    """
    if hint:
        return coerce_format(hint)

    is_xml_signon = _XML_PROLOG in text and _SIGNON_MARKER in text.upper()
    if _MARKUP_ROOT.search(text) or is_xml_signon:
        return StatementFormat.QFX if is_xml_signon else StatementFormat.OFX
    return StatementFormat.CSV


def split_delimited_line(line: str, delimiter: str = ",") -> list[str]:
    """Split one delimited line into fields.

    Quote characters toggle the quoted state and are dropped; delimiters
    inside quotes are kept as text.
    """
    fields = []
    current = []
    in_quotes = False
    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
    fields.append("".join(current))
    return fields


def resolve_columns(headers: list[str]) -> dict[str, int]:
    """Map draft fields to column indexes using HEADER_SYNONYMS."""
    normalized = [header.strip().lower() for header in headers]
    columns = {}
    for field_name, synonyms in HEADER_SYNONYMS.items():
        for synonym in synonyms:
            if synonym in normalized:
                columns[field_name] = normalized.index(synonym)
                break
    return columns


def _tag_value(block: str, tag: str) -> str:
    match = _TAG_PATTERNS[tag].search(block)
    return match.group(1).strip() if match else ""


def _signed_amount(row: dict[str, str]) -> Decimal:
    """Resolve the signed amount of a delimited row.

    An explicit amount column wins. Otherwise a credit value is money in and a
    debit value is money out; credit is read last so it wins when both are
    filled.
    """
    if row.get("amount"):
        return parse_amount(row["amount"])
    amount = Decimal("0")
    if row.get("debit"):
        amount = -abs(parse_amount(row["debit"]))
    if row.get("credit"):
        amount = abs(parse_amount(row["credit"]))
    return amount


@dataclass(frozen=True)
class ParseResult:
    """Materialized output of one pass over a statement."""

    statement_format: StatementFormat
    transactions: list[ParsedTransaction]
    skipped: list[SkippedRecord]


class ParsedStatement:
    """Lazy, restartable sequence of transaction drafts.

    The statement text is retained and re-parsed on every iteration, so two
    passes always produce the same drafts in the same order.
    """

    def __init__(self, text: str, statement_format: StatementFormat):
        self.text = text
        self.statement_format = statement_format

    def __iter__(self) -> Iterator[ParsedTransaction]:
        for record in self.records():
            if isinstance(record, ParsedTransaction):
                yield record

    def records(self) -> Iterator[Union[ParsedTransaction, SkippedRecord]]:
        """Yield drafts and skipped records in file order."""
        if self.statement_format == StatementFormat.CSV:
            return self._delimited_records()
        return self._markup_records()

    def collect(self) -> ParseResult:
        """Run one full pass, separating drafts from skipped records."""
        transactions = []
        skipped = []
        for record in self.records():
            if isinstance(record, SkippedRecord):
                logger.debug("Skipped %s: %s", record.location, record.reason)
                skipped.append(record)
            else:
                transactions.append(record)
        logger.info(
            "Parsed %s statement: %d transactions, %d skipped",
            self.statement_format.value,
            len(transactions),
            len(skipped),
        )
        return ParseResult(self.statement_format, transactions, skipped)

    def _delimited_records(self) -> Iterator[Union[ParsedTransaction, SkippedRecord]]:
        lines = self.text.strip().splitlines()
        if not lines:
            return

        columns = resolve_columns(split_delimited_line(lines[0]))

        for line_number, line in enumerate(lines[1:], start=2):
            location = f"line {line_number}"
            if not line.strip():
                continue
            values = split_delimited_line(line)
            if len(values) < 2:
                yield SkippedRecord(location, "Too few fields")
                continue

            row = {
                field_name: values[index].strip() if index < len(values) else ""
                for field_name, index in columns.items()
            }

            if not row.get("transaction_date") or not row.get("description"):
                yield SkippedRecord(location, "Missing transaction date or description")
                continue

            try:
                yield ParsedTransaction(
                    transaction_date=parse_date(row["transaction_date"]),
                    description=row["description"],
                    amount=_signed_amount(row),
                    post_date=parse_date(row["post_date"]) if row.get("post_date") else None,
                    transaction_type=row.get("transaction_type") or None,
                    check_number=row.get("check_number") or None,
                    reference_number=row.get("reference_number") or None,
                    bank_transaction_id=row.get("bank_transaction_id") or None,
                    merchant=row.get("merchant") or None,
                    original_category=row.get("original_category") or None,
                )
            except ValueError as e:
                yield SkippedRecord(location, str(e))

    def _markup_records(self) -> Iterator[Union[ParsedTransaction, SkippedRecord]]:
        for block_number, match in enumerate(_TRANSACTION_BLOCK.finditer(self.text), start=1):
            location = f"transaction block {block_number}"
            block = match.group(1)

            posted = _tag_value(block, "DTPOSTED")
            description = _tag_value(block, "NAME") or _tag_value(block, "MEMO")
            if not posted or not description:
                yield SkippedRecord(location, "Missing transaction date or description")
                continue

            try:
                amount_text = _tag_value(block, "TRNAMT")
                yield ParsedTransaction(
                    transaction_date=parse_compact_date(posted),
                    description=description,
                    amount=parse_amount(amount_text) if amount_text else Decimal("0"),
                    transaction_type=_tag_value(block, "TRNTYPE") or None,
                    check_number=_tag_value(block, "CHECKNUM") or None,
                    reference_number=_tag_value(block, "REFNUM") or None,
                    bank_transaction_id=_tag_value(block, "FITID") or None,
                )
            except ValueError as e:
                yield SkippedRecord(location, str(e))


def parse_statement(
    content: Union[str, bytes], format_hint: Optional[Union[str, StatementFormat]] = None
) -> ParsedStatement:
    """Detect the statement format and return its lazy draft sequence.

    Args:
        content: Raw statement text or bytes
        format_hint: Optional format that overrides content sniffing

    Returns:
        ParsedStatement over the decoded text

    Raises:
        ValidationError: If format_hint names an unsupported format
    """
    text = decode_statement(content)
    statement_format = detect_format(text, format_hint)
    return ParsedStatement(text, statement_format)
