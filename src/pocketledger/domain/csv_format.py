"""CSV layout detection and parsing.

A bank export is read into rows with the standard ``csv`` module, its
header is matched against the known bank layouts, and every data row is
handed to the row normalizer. Unknown layouts fall back to a best-effort
mapping by header name. Only structural problems raise; row problems end
up in the parse result.
"""

import csv
import io
import logging
import re
from dataclasses import dataclass, replace
from typing import Optional, Sequence

from pocketledger.domain.entities import CSVParseResult, ParsedTransaction
from pocketledger.domain.errors import CSVStructureError
from pocketledger.domain.normalizer import CANONICAL_FIELDS, ColumnMap, normalize_row
from pocketledger.utils.amount_parser import detect_decimal_mark

logger = logging.getLogger(__name__)

CANDIDATE_DELIMITERS = ",;\t|"
SNIFF_SAMPLE_SIZE = 4096
GENERIC_LAYOUT = "generic"

_NUMERIC_DATE = re.compile(r"^\s*(\d{1,2})[./-](\d{1,2})[./-](\d{2,4})")
_LETTER = re.compile(r"[^\W\d_]")

# Fields that tell two bookings with the same date and amount apart
DESCRIPTIVE_FIELDS = ("description", "reference", "counterparty", "transaction_type")


@dataclass(frozen=True)
class CSVLayout:
    """A known bank export: the headers that identify it and what they mean.

    ``dayfirst`` and ``decimal_mark`` of None mean they are detected from
    the data.
    """

    name: str
    required_headers: frozenset[str]
    column_map: ColumnMap
    dayfirst: Optional[bool] = None
    decimal_mark: Optional[str] = None

    def matches(self, headers: Sequence[str]) -> bool:
        present = {h.strip().lower() for h in headers}
        return {h.lower() for h in self.required_headers} <= present


KNOWN_LAYOUTS: tuple[CSVLayout, ...] = (
    CSVLayout(
        name="n26",
        required_headers=frozenset({"Booking Date", "Partner Name", "Type", "Amount (EUR)"}),
        column_map=ColumnMap(
            date="Booking Date",
            amount="Amount (EUR)",
            reference="Payment Reference",
            counterparty="Partner Name",
            transaction_type="Type",
        ),
        dayfirst=False,
        decimal_mark=".",
    ),
    CSVLayout(
        name="revolut",
        required_headers=frozenset({"Type", "Started Date", "Completed Date", "Description", "Amount"}),
        column_map=ColumnMap(
            date="Completed Date",
            amount="Amount",
            description="Description",
            counterparty="Description",
            transaction_type="Type",
        ),
        dayfirst=False,
        decimal_mark=".",
    ),
    CSVLayout(
        name="canonical",
        required_headers=frozenset({"date", "amount", "description"}),
        column_map=ColumnMap(
            date="date",
            amount="amount",
            description="description",
            reference="reference",
            counterparty="counterparty",
            transaction_type="type",
            category="category",
        ),
    ),
)

# Header patterns for the generic fallback, tried in CANONICAL_FIELDS order.
GENERIC_HEADER_PATTERNS: dict[str, re.Pattern[str]] = {
    "date": re.compile(r"date|fecha|datum|booked", re.IGNORECASE),
    "amount": re.compile(r"amount|importe|betrag|monto|cantidad|^value$|^sum$", re.IGNORECASE),
    "description": re.compile(
        r"description|descripci[oó]n|beschreibung|bezeichnung|omschrijving|libell[eé]|descrizione"
        r"|concept|details|particulars|memo|narrative|narration|purpose|verwendungszweck",
        re.IGNORECASE,
    ),
    "reference": re.compile(r"reference|referencia|^ref\b", re.IGNORECASE),
    "counterparty": re.compile(
        r"partner\s*name|counterparty|payee|beneficiar|merchant|comercio|recipient"
        r"|empf[aä]nger|^partner$|^name$",
        re.IGNORECASE,
    ),
    "transaction_type": re.compile(r"^type$|transaction\s*type|^tipo|buchungstext", re.IGNORECASE),
    "category": re.compile(r"^category$|categor[ií]a|kategorie", re.IGNORECASE),
}


def decode_content(data: bytes) -> str:
    """Decode an uploaded CSV file.

    Tries UTF-8 (with or without BOM), then Windows-1252, which older bank
    exports still use.

    Raises:
        CSVStructureError: If the bytes are not text in either encoding
    """
    for encoding in ("utf-8-sig", "cp1252"):
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise CSVStructureError("CSV content is not readable as UTF-8 or Windows-1252 text")


def detect_delimiter(content: str) -> str:
    """Guess the field separator from the start of the document."""
    sample = content[:SNIFF_SAMPLE_SIZE]
    first_line = next((line for line in sample.splitlines() if line.strip()), "")
    try:
        delimiter = csv.Sniffer().sniff(sample, delimiters=CANDIDATE_DELIMITERS).delimiter
        if delimiter in first_line:
            return delimiter
    except csv.Error:
        pass

    # Header lines are rarely quoted, so the most frequent candidate wins
    counts = {d: first_line.count(d) for d in CANDIDATE_DELIMITERS}
    best = max(counts, key=lambda d: counts[d])
    return best if counts[best] > 0 else ","


def detect_dayfirst(values: Sequence[str]) -> Optional[bool]:
    """Decide day/month order from numeric dates such as 06/08/2025.

    Returns None when every value is ambiguous or not numeric.
    """
    for value in values:
        match = _NUMERIC_DATE.match(value or "")
        if not match:
            continue
        first, second = int(match.group(1)), int(match.group(2))
        if first > 12 >= second:
            return True
        if second > 12 >= first:
            return False
    return None


class CSVParser:
    """Parser selecting a column layout and normalizing every row."""

    def __init__(self, currency: str = "EUR", layouts: Optional[Sequence[CSVLayout]] = None):
        """Initialize CSV parser.

        Args:
            currency: ISO code attached to every parsed amount
            layouts: Known layouts to try, in order (defaults to KNOWN_LAYOUTS)
        """
        self.currency = currency.upper()
        self.layouts = tuple(layouts) if layouts is not None else KNOWN_LAYOUTS

    def parse(self, csv_content: str) -> CSVParseResult:
        """Parse CSV text into canonical transactions plus diagnostics.

        Args:
            csv_content: Whole CSV document as text

        Returns:
            CSVParseResult; rejected rows are reported, never raised

        Raises:
            CSVStructureError: If the content is empty or not tabular
        """
        if not csv_content or not csv_content.strip():
            raise CSVStructureError("CSV content is empty")

        content = csv_content.lstrip("\ufeff")
        delimiter = detect_delimiter(content)

        records = _read_records(content, delimiter)

        # Skip leading blank lines before the header
        start = 0
        while start < len(records) and _is_blank(records[start][1]):
            start += 1
        if start == len(records):
            raise CSVStructureError("CSV content has no header row")

        result = CSVParseResult(delimiter=delimiter)
        headers = self._clean_headers(records[start][1], result.warnings)
        data_rows = [(line, cells) for line, cells in records[start + 1 :] if not _is_blank(cells)]

        layout_name, column_map = self.select_layout(headers, result.warnings, data_rows)
        result.layout = layout_name
        column_map = self._resolve_dayfirst(column_map, data_rows, headers, result.warnings)
        column_map = self._resolve_decimal_mark(column_map, data_rows, headers, result.warnings)
        logger.debug(
            "Parsing %d rows with layout '%s' (delimiter %r)", len(data_rows), layout_name, delimiter
        )

        for row_number, cells in data_rows:
            raw_row = self._row_to_mapping(headers, cells, row_number, result.warnings)
            parsed = normalize_row(raw_row, column_map, self.currency, row_number=row_number)
            if isinstance(parsed, ParsedTransaction):
                result.transactions.append(parsed)
            else:
                result.rejected_rows.append(parsed)

        if result.rejected_rows:
            logger.info("Rejected %d of %d CSV rows", result.skipped_rows, len(data_rows))
        return result

    def select_layout(
        self,
        headers: Sequence[str],
        warnings: list[str],
        data_rows: Sequence[tuple[int, list[str]]] = (),
    ) -> tuple[str, ColumnMap]:
        """Pick the column mapping for a header row.

        Returns the layout name and a ColumnMap pointing at the actual
        header spellings in the file. ``data_rows`` lets the generic
        fallback find a text column when no header names a description.
        """
        by_lower = {h.strip().lower(): h for h in headers}

        for layout in self.layouts:
            if not layout.matches(headers):
                continue
            resolved: dict[str, Optional[str]] = {}
            for name in CANONICAL_FIELDS:
                column = layout.column_map.column_for(name)
                resolved[name] = by_lower.get(column.lower()) if column else None
            return layout.name, ColumnMap(
                **resolved, dayfirst=layout.dayfirst, decimal_mark=layout.decimal_mark
            )

        warnings.append("No known bank layout matched the header; using best-effort column mapping")
        return GENERIC_LAYOUT, self._generic_mapping(headers, warnings, data_rows)

    def _generic_mapping(
        self,
        headers: Sequence[str],
        warnings: list[str],
        data_rows: Sequence[tuple[int, list[str]]],
    ) -> ColumnMap:
        used: set[str] = set()
        resolved: dict[str, Optional[str]] = {}

        for name in CANONICAL_FIELDS:
            pattern = GENERIC_HEADER_PATTERNS[name]
            candidates = [h for h in headers if h not in used and pattern.search(h.strip())]
            if not candidates:
                resolved[name] = None
                continue
            chosen = candidates[0]
            used.add(chosen)
            resolved[name] = chosen
            if len(candidates) > 1:
                others = ", ".join(f"'{c}'" for c in candidates[1:])
                warnings.append(
                    f"Columns '{chosen}' and {others} all look like {name}; using '{chosen}'"
                )

        column_map = ColumnMap(**resolved)
        for name in column_map.missing_required():
            warnings.append(f"No column found for {name}; rows without it will be skipped")

        if not any(column_map.column_for(name) for name in DESCRIPTIVE_FIELDS):
            fallback = _first_text_column(headers, used, data_rows)
            if fallback is None:
                warnings.append(
                    "No description column found; rows with the same date and amount "
                    "will be treated as duplicates"
                )
            else:
                warnings.append(f"No description column found; using '{fallback}' as description")
                column_map = replace(column_map, description=fallback)
        return column_map

    @staticmethod
    def _resolve_dayfirst(
        column_map: ColumnMap,
        data_rows: list[tuple[int, list[str]]],
        headers: Sequence[str],
        warnings: list[str],
    ) -> ColumnMap:
        if column_map.dayfirst is not None or column_map.date is None:
            return column_map

        index = list(headers).index(column_map.date)
        values = [cells[index] for _, cells in data_rows if index < len(cells)]
        dayfirst = detect_dayfirst(values)
        if dayfirst is None:
            if any(_NUMERIC_DATE.match(v) for v in values):
                warnings.append(
                    f"Dates in '{column_map.date}' are ambiguous; reading them as day/month/year"
                )
            dayfirst = True
        return replace(column_map, dayfirst=dayfirst)

    @staticmethod
    def _resolve_decimal_mark(
        column_map: ColumnMap,
        data_rows: list[tuple[int, list[str]]],
        headers: Sequence[str],
        warnings: list[str],
    ) -> ColumnMap:
        if column_map.decimal_mark is not None or column_map.amount is None:
            return column_map

        index = list(headers).index(column_map.amount)
        values = [cells[index] for _, cells in data_rows if index < len(cells)]
        decimal_mark = detect_decimal_mark(values)
        if decimal_mark is None:
            if any("." in v or "," in v for v in values):
                warnings.append(
                    f"Decimal mark in '{column_map.amount}' is ambiguous; "
                    "reading each amount on its own"
                )
            return column_map
        return replace(column_map, decimal_mark=decimal_mark)

    @staticmethod
    def _clean_headers(cells: Sequence[str], warnings: list[str]) -> list[str]:
        headers: list[str] = []
        seen: dict[str, int] = {}
        for position, cell in enumerate(cells, start=1):
            header = cell.strip() or f"column_{position}"
            if header in seen:
                seen[header] += 1
                renamed = f"{header}_{seen[header]}"
                warnings.append(f"Duplicate column '{header}' renamed to '{renamed}'")
                header = renamed
            else:
                seen[header] = 1
            headers.append(header)
        return headers

    @staticmethod
    def _row_to_mapping(
        headers: Sequence[str], cells: Sequence[str], row_number: int, warnings: list[str]
    ) -> dict[str, str]:
        raw_row = {header: (cells[i] if i < len(cells) else "") for i, header in enumerate(headers)}
        if len(cells) > len(headers):
            for offset, extra in enumerate(cells[len(headers) :], start=1):
                raw_row[f"_extra_{offset}"] = extra
            warnings.append(
                f"Row {row_number}: {len(cells) - len(headers)} more value(s) than header columns"
            )
        return raw_row


def _is_blank(cells: Sequence[str]) -> bool:
    return all(not cell.strip() for cell in cells)


def _read_records(content: str, delimiter: str) -> list[tuple[int, list[str]]]:
    """Read every record with the physical line it starts on."""
    reader = csv.reader(io.StringIO(content, newline=""), delimiter=delimiter)
    records: list[tuple[int, list[str]]] = []
    line = 1
    try:
        for cells in reader:
            records.append((line, cells))
            line = reader.line_num + 1
    except csv.Error as e:
        raise CSVStructureError(f"CSV content could not be read: {e}")
    return records


def _first_text_column(
    headers: Sequence[str], used: set[str], data_rows: Sequence[tuple[int, list[str]]]
) -> Optional[str]:
    """First unmapped column holding letters in any row."""
    for index, header in enumerate(headers):
        if header in used:
            continue
        if any(index < len(cells) and _LETTER.search(cells[index]) for _, cells in data_rows):
            return header
    return None
