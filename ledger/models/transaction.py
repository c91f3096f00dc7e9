"""
Core Data Models for the Shared Ledger

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce the record invariants at runtime (non-negative finite amounts,
   non-empty labels, unique ids per snapshot)
2. Provide clear validation error messages
3. Be serializable for storage, export and logging

DESIGN DECISION: Category and payer names are open vocabularies. Anything the
user types becomes valid, so they are modelled as constrained strings
(CategoryLabel, PayerName) rather than a closed enum. The closed part, the
canonical category order, lives in configuration.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)


# =============================================================================
# LABEL TYPES
# =============================================================================

CategoryLabel = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=100),
]

PayerName = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=100),
]


class PaymentStatus(str, Enum):
    """
    Settlement status of a ledger entry.

    CRITICAL: PAID is terminal. There is no transition back to UNPAID.
    """
    UNPAID = "unpaid"
    PAID = "paid"


def _blank_if_none(v: Any) -> Any:
    return "" if v is None else v


def _require_finite(v: Decimal) -> Decimal:
    if not v.is_finite():
        raise ValueError("Amount must be a finite number")
    return v


# Absent optional text is the same as empty text
OptionalText = Annotated[str, BeforeValidator(_blank_if_none)]

Amount = Annotated[Decimal, Field(ge=0), AfterValidator(_require_finite)]


# =============================================================================
# TRANSACTION RECORD
# =============================================================================

class TransactionRecord(BaseModel):
    """
    A stored ledger entry.

    Records are immutable values: an update produces a new record in the next
    snapshot rather than mutating this one.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    # Identity (assigned by storage)
    id: str = Field(
        ...,
        min_length=1,
        description="Opaque unique identifier assigned by storage"
    )

    item: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What the money was for"
    )
    category: CategoryLabel
    amount: Amount = Field(
        ...,
        description="Amount in the ledger currency (never negative)"
    )
    payer: PayerName
    note: OptionalText = Field(
        default="",
        max_length=1000,
        description="Optional free-text annotation"
    )
    unit: OptionalText = Field(
        default="",
        max_length=20,
        description="Optional unit of measurement (e.g. box, pcs)"
    )

    # Creation instant, only used to break ordering ties
    timestamp: Optional[datetime] = None

    is_paid: bool = Field(
        default=False,
        description="Settlement flag; True is terminal"
    )

    @property
    def payment_status(self) -> PaymentStatus:
        return PaymentStatus.PAID if self.is_paid else PaymentStatus.UNPAID


# =============================================================================
# INPUT MODELS
# =============================================================================

class TransactionForm(BaseModel):
    """
    Raw user input for a new or edited entry.

    Every field is the string the user typed. Nothing here is trusted;
    the validator turns a form into a TransactionDraft.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    item: str = ""
    category: str = ""
    amount: str = ""
    payer: str = ""
    note: str = ""
    unit: str = ""

    @field_validator('item', 'category', 'amount', 'payer', 'note', 'unit', mode='before')
    @classmethod
    def coerce_to_text(cls, v: Any) -> str:
        """Accept numbers and None from callers that skip the text widgets."""
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)


class TransactionDraft(BaseModel):
    """
    A validated entry ready to be written.

    Storage assigns id, timestamp and the initial unpaid status.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    item: str = Field(..., min_length=1, max_length=200)
    category: CategoryLabel
    amount: Amount
    payer: PayerName
    note: OptionalText = Field(default="", max_length=1000)
    unit: OptionalText = Field(default="", max_length=20)

    def to_fields(self) -> dict[str, Any]:
        """Field set for a full-record update."""
        return self.model_dump()


# =============================================================================
# SNAPSHOT
# =============================================================================

class LedgerSnapshot(BaseModel):
    """
    A complete view of the record set as delivered by storage.

    Each snapshot fully replaces the previous one; there is no delta merge.
    """
    model_config = ConfigDict(frozen=True)

    records: tuple[TransactionRecord, ...] = ()
    version: int = Field(
        default=0,
        ge=0,
        description="Monotonic counter assigned by the publishing store"
    )
    received_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @model_validator(mode='after')
    def validate_unique_ids(self) -> 'LedgerSnapshot':
        """Record ids are unique across the live set."""
        seen: set[str] = set()
        for record in self.records:
            if record.id in seen:
                raise ValueError(f"Duplicate transaction id in snapshot: {record.id}")
            seen.add(record.id)
        return self


# =============================================================================
# DERIVED VIEWS
# =============================================================================

class Vocabulary(BaseModel):
    """Payer and category names offered for selection."""

    payers: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)


class LedgerSummary(BaseModel):
    """
    Financial summary of a snapshot.

    payer_handled tracks money HANDLED by each person, not money owed:
    income and expense amounts both count towards it.
    """

    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    net_balance: Decimal = Decimal("0")
    payer_handled: dict[str, Decimal] = Field(default_factory=dict)

    # Sum of every amount, split by settlement status
    grand_total: Decimal = Decimal("0")
    paid_total: Decimal = Decimal("0")
    unpaid_total: Decimal = Decimal("0")
    record_count: int = Field(default=0, ge=0)


# Leading characters that make a spreadsheet treat a cell as a formula
FORMULA_PREFIXES = ("=", "+", "-", "@")


def escape_formula(text: str) -> str:
    """Prefix text with an apostrophe if a spreadsheet would evaluate it."""
    if text.startswith(FORMULA_PREFIXES):
        return "'" + text
    return text


class ExportRow(BaseModel):
    """One flat row of the tabular export."""

    date: str = ""
    item: str
    category: str
    signed_amount: Decimal
    payer: str
    note: str = ""
    status_label: str

    def to_sheets_row(self) -> list[str]:
        """
        Convert to a spreadsheet row.

        Returns columns in order:
        [Date, Item, Category, Amount, Payer, Note, Status]

        Text cells are escaped with escape_formula; Amount stays numeric.
        """
        return [
            self.date,
            escape_formula(self.item),
            escape_formula(self.category),
            str(self.signed_amount),
            escape_formula(self.payer),
            escape_formula(self.note),
            escape_formula(self.status_label),
        ]


class LedgerView(BaseModel):
    """Everything the presentation layer needs, derived from one snapshot."""

    snapshot_version: int = 0
    records: list[TransactionRecord] = Field(
        default_factory=list,
        description="Records in display order"
    )
    vocabulary: Vocabulary = Field(default_factory=Vocabulary)
    summary: LedgerSummary = Field(default_factory=LedgerSummary)

    @property
    def is_empty(self) -> bool:
        return not self.records


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of validating a TransactionForm.

    Stage 1: Schema validation (required fields, amount parsing)
    Stage 2: Semantic validation (suspicious amounts, new names)

    draft is only set when the form is valid.
    """

    validated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    draft: Optional[TransactionDraft] = None

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
