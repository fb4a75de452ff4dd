"""Mapping template domain service."""

import re
from datetime import datetime, UTC
from pathlib import PurePath
from typing import Optional

from bankmap.database.base import Database
from bankmap.domain.entities import ColumnMapping, CSVAnalysisResult, MappingTemplate
from bankmap.domain.errors import NotFoundError, ValidationError, template_not_found
from bankmap.domain.transaction_parser import validate_mapping

# Checked in order against the lowercased file name
BANK_FILE_PATTERNS: tuple[tuple[re.Pattern, str], ...] = tuple(
    (re.compile(pattern), bank)
    for pattern, bank in (
        (r"wells.*fargo|(?<![a-z])wf(?![a-z])", "Wells Fargo"),
        (r"chase", "Chase"),
        (r"citibank|citi(?!zens)", "Citi Bank"),
        (r"bank.*of.*america|(?<![a-z])boa(?![a-z])", "Bank of America"),
        (r"us.*bank", "US Bank"),
        (r"capital.*one", "Capital One"),
        (r"american.*express|amex", "American Express"),
        (r"discover", "Discover"),
        (r"(?<![a-z])pnc(?![a-z])", "PNC"),
        (r"td.*bank", "TD Bank"),
        (r"regions", "Regions"),
        (r"suntrust", "SunTrust"),
        (r"bb&t", "BB&T"),
        (r"huntington", "Huntington"),
        (r"keybank", "KeyBank"),
        (r"m&t", "M&T Bank"),
        (r"first.*citizens", "First Citizens"),
        (r"citizens", "Citizens Bank"),
        (r"truist", "Truist"),
        (r"(?<![a-z])ally(?![a-z])", "Ally Bank"),
        (r"schwab", "Charles Schwab"),
        (r"fidelity", "Fidelity"),
        (r"vanguard", "Vanguard"),
        (r"morgan.*stanley", "Morgan Stanley"),
        (r"goldman.*sachs", "Goldman Sachs"),
    )
)

BANK_HEADER_HINTS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("wells", "fargo"), "Wells Fargo"),
    (("chase",), "Chase"),
    (("citi", "citibank"), "Citi Bank"),
)

FALLBACK_MAPPING_NAME = "Automatic Mapping"


def generate_mapping_name(analysis: CSVAnalysisResult, file_name: Optional[str] = None) -> str:
    """Name a mapping after the bank or layout it appears to come from.

    Tries a bank name in the file name, then header vocabulary, then the
    debit/credit layout, the date format and finally the column count.
    """
    if file_name:
        stem = PurePath(file_name).stem.lower()
        for pattern, bank in BANK_FILE_PATTERNS:
            if pattern.search(stem):
                return f"{bank} Style Data"

    if analysis.has_headers and analysis.columns:
        headers = [column.header_name.lower() for column in analysis.columns]
        header_text = " ".join(headers)
        if "trans" in header_text and "post" in header_text and "date" in header_text:
            return "Credit Card Statement Format"
        if "debit" in header_text and "credit" in header_text:
            return "Bank Statement Format (Debit/Credit)"
        for hints, bank in BANK_HEADER_HINTS:
            if any(hint in header for header in headers for hint in hints):
                return f"{bank} Style Data"
        if any("bank" in header and "america" in header for header in headers):
            return "Bank of America Style Data"

    if analysis.debit_column is not None and analysis.credit_column is not None:
        return "Bank Statement Format (Debit/Credit Columns)"

    if analysis.date_format:
        if "MM/DD" in analysis.date_format:
            return "US Bank Statement Format"
        if "DD/MM" in analysis.date_format or analysis.date_format.startswith("DD"):
            return "International Bank Statement Format"

    column_count = len(analysis.columns)
    if column_count == 3:
        return "Simple Transaction Format"
    if column_count >= 5:
        return "Detailed Bank Statement Format"
    return FALLBACK_MAPPING_NAME


class MappingTemplateService:
    """Service for storing and reusing confirmed column mappings."""

    def __init__(self, db: Database):
        """Initialize mapping template service.

        Args:
            db: Database instance
        """
        self.db = db

    def lookup(self, fingerprint: str) -> Optional[MappingTemplate]:
        """Find the template saved for a layout fingerprint.

        Args:
            fingerprint: Layout fingerprint from column analysis

        Returns:
            MappingTemplate or None if the layout has not been confirmed before
        """
        return self.db.lookup_template(fingerprint)

    def save(self, fingerprint: str, mapping: ColumnMapping, name: str, column_count: int) -> int:
        """Save a confirmed mapping under a fingerprint.

        A template already stored for the fingerprint is replaced.

        Args:
            fingerprint: Layout fingerprint
            mapping: Confirmed column mapping
            name: Human-readable template name
            column_count: Width of the layout

        Returns:
            Template ID

        Raises:
            ValidationError: If the name is blank or the mapping is incomplete
        """
        name = name.strip()
        if not name:
            raise ValidationError("Template name cannot be empty")
        validate_mapping(mapping, column_count)
        return self.db.save_template(
            fingerprint=fingerprint, name=name, column_count=column_count, mapping=mapping
        )

    def get_template(self, template_id: int) -> Optional[MappingTemplate]:
        return self.db.get_template(template_id)

    def list_templates(self) -> list[MappingTemplate]:
        """List all templates, ordered by name."""
        return self.db.list_templates()

    def delete_template(self, template_id: int) -> None:
        """Delete a template.

        Raises:
            NotFoundError: If the template does not exist
        """
        if self.db.get_template(template_id) is None:
            raise NotFoundError(template_not_found(template_id))
        self.db.delete_template(template_id)

    def record_usage(self, template_id: int, used_at: Optional[datetime] = None) -> None:
        """Count one more reuse of a template."""
        self.db.record_template_usage(template_id, used_at or datetime.now(UTC))
