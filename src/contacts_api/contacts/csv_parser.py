"""
CSV parsing for contact imports and CSV rendering for exports.
"""

import csv
import io
from typing import Generator, Iterable, Sequence

from contacts_api.contacts.mapper import member_from_csv_row
from contacts_api.contacts.schemas import Member
from contacts_api.shared.exceptions import CSVFormatError
from contacts_api.shared.logging import get_logger

logger = get_logger(__name__)

EXPORT_FILENAME = "sgs_contacts.csv"

# (title, member key) pairs, in column order.
EXPORT_COLUMNS: tuple[tuple[str, str], ...] = (
    ("First Name", "FNAME"),
    ("Last Name", "LNAME"),
    ("Email", "email_address"),
    ("Phone No.", "PHONE"),
    ("Address 1", "ADDR1"),
    ("Address 2", "ADDR2"),
    ("City", "CITY"),
    ("State", "STATE"),
    ("Zip Code", "ZIP"),
    ("Country", "COUNTRY"),
    ("Last Changed", "last_changed"),
)


def normalize_email(email: str | None) -> str:
    """Key used to compare addresses: trimmed and lowercased."""
    return (email or "").strip().lower()


class CSVParser:
    """Parser for contact CSV files."""

    def __init__(
        self,
        delimiter: str = ",",
        encoding: str = "utf-8-sig",
    ) -> None:
        """Initialize CSV parser.

        Args:
            delimiter: CSV field delimiter.
            encoding: File encoding. The default strips a UTF-8 BOM.
        """
        self.delimiter = delimiter
        self.encoding = encoding

    def parse(self, content: bytes) -> Generator[tuple[int, dict[str, str]], None, None]:
        """Parse CSV content into rows keyed by the literal header text.

        Args:
            content: Raw CSV file content.

        Yields:
            Tuples of (line_number, row).

        Raises:
            CSVFormatError: If the content cannot be decoded or read as CSV,
                header row included.
        """
        try:
            text = content.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise CSVFormatError(f"File encoding error: {e}") from e

        reader = csv.DictReader(io.StringIO(text), delimiter=self.delimiter)
        try:
            if reader.fieldnames is None:
                return

            logger.debug("CSV headers parsed", extra={"headers": list(reader.fieldnames)})

            for row in reader:
                cleaned = {
                    header.strip(): (value or "").strip()
                    for header, value in row.items()
                    if header is not None
                }
                yield reader.line_num, cleaned
        except csv.Error as e:
            raise CSVFormatError(f"Invalid CSV at line {reader.line_num}: {e}") from e

    def parse_members(self, content: bytes) -> list[Member]:
        """Parse content and map every row to a member, without deduplication."""
        return [member_from_csv_row(row) for _, row in self.parse(content)]


def dedupe_members(members: Iterable[Member]) -> list[Member]:
    """Drop later rows whose email was already seen, keeping order.

    Emails are compared case-insensitively. Rows with a blank email are all
    kept so the provider can report each of them.
    """
    seen: set[str] = set()
    unique: list[Member] = []
    for member in members:
        key = normalize_email(member.email_address)
        if key:
            if key in seen:
                logger.debug("Duplicate email dropped from import", extra={"email": key})
                continue
            seen.add(key)
        unique.append(member)
    return unique


def members_to_csv(members: Sequence[Member]) -> str:
    """Render members as the export CSV, header row included."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow([title for title, _ in EXPORT_COLUMNS])

    for member in members:
        merge_fields = member.merge_fields.model_dump()
        values = {
            "email_address": member.email_address,
            "last_changed": member.last_changed,
        }
        row = []
        for _, key in EXPORT_COLUMNS:
            value = values[key] if key in values else merge_fields.get(key)
            row.append("" if value is None else value)
        writer.writerow(row)

    return buffer.getvalue()
