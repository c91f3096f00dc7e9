"""
Two-Stage Entry Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (item, category, amount, payer)
- Amount must parse as a finite, non-negative number
- Length limits
- Any error here blocks the write

STAGE 2 - SEMANTIC VALIDATION:
- Absurd or zero amount detection
- Payer/category names not seen before
- These are warnings and notes, never blockers

IMPORTANT: Validation NEVER silently fixes issues.
It reports them, and nothing is written until stage 1 passes.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

from ledger.config.settings import LedgerSettings, load_ledger_settings
from ledger.models.transaction import (
    TransactionDraft,
    TransactionForm,
    ValidationIssue,
    ValidationResult,
    Vocabulary,
)


REQUIRED_FIELDS = {
    "item": "Item",
    "category": "Category",
    "payer": "Payer",
}

MAX_LENGTHS = {
    "item": 200,
    "category": 100,
    "payer": 100,
    "note": 1000,
    "unit": 20,
}


class TransactionValidator:
    """
    Validates entry forms through a two-stage pipeline.

    Stage 1: Schema validation
    Stage 2: Semantic validation (only when stage 1 passes)
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = load_ledger_settings(settings)

    def _parse_amount(self, raw: str) -> tuple[Optional[Decimal], Optional[ValidationIssue]]:
        if not raw:
            return None, ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
                suggested_fix="Enter the amount as a number, e.g. 120 or 45.50",
            )
        try:
            amount = Decimal(raw)
        except InvalidOperation:
            return None, ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message=f"Amount '{raw}' is not a number",
                severity="error",
                suggested_fix="Use digits and an optional decimal point only",
            )
        if not amount.is_finite():
            return None, ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message="Amount must be a finite number",
                severity="error",
            )
        if amount < 0:
            return None, ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount cannot be negative",
                severity="error",
                suggested_fix=(
                    f"Enter the amount as a positive number and use the "
                    f"'{self._settings.income_category}' category for money coming in"
                ),
            )
        return amount, None

    def _validate_schema(
        self,
        form: TransactionForm,
    ) -> tuple[bool, list[ValidationIssue], Optional[Decimal]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues, parsed_amount)
        """
        issues = []

        for field, label in REQUIRED_FIELDS.items():
            if not getattr(form, field):
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing",
                    message=f"{label} is required",
                    severity="error",
                ))

        amount, amount_issue = self._parse_amount(form.amount)
        if amount_issue:
            issues.append(amount_issue)

        for field, limit in MAX_LENGTHS.items():
            if len(getattr(form, field)) > limit:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="too_long",
                    message=f"{field.capitalize()} must be at most {limit} characters",
                    severity="error",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues, amount

    def _validate_semantic(
        self,
        draft: TransactionDraft,
        vocabulary: Optional[Vocabulary],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        max_amount = Decimal(str(self._settings.max_amount))
        if draft.amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({draft.amount:,}) seems unusually high",
                severity="warning",
                suggested_fix="Please check for an extra zero",
            ))
        elif draft.amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Amount is zero",
                severity="warning",
            ))

        if vocabulary is not None:
            if draft.payer not in vocabulary.payers:
                issues.append(ValidationIssue(
                    field="payer",
                    issue_type="new_value",
                    message=f"'{draft.payer}' is a new payer and will be added to the list",
                    severity="info",
                ))
            if draft.category not in vocabulary.categories:
                issues.append(ValidationIssue(
                    field="category",
                    issue_type="new_value",
                    message=f"'{draft.category}' is a new category and will be listed last",
                    severity="info",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(
        self,
        form: TransactionForm,
        vocabulary: Optional[Vocabulary] = None,
    ) -> ValidationResult:
        """
        Run the full two-stage validation pipeline.

        Args:
            form: Raw user input
            vocabulary: Current vocabulary, used to flag new names

        Returns:
            ValidationResult; draft is set only when the form is valid
        """
        all_issues = []

        schema_valid, schema_issues, amount = self._validate_schema(form)
        all_issues.extend(schema_issues)

        semantic_valid = False
        draft = None
        if schema_valid:
            draft = TransactionDraft(
                item=form.item,
                category=form.category,
                amount=amount,
                payer=form.payer,
                note=form.note,
                unit=form.unit,
            )
            semantic_valid, semantic_issues = self._validate_semantic(draft, vocabulary)
            all_issues.extend(semantic_issues)

        is_valid = schema_valid and semantic_valid

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=is_valid,
            issues=all_issues,
            warnings=[issue.message for issue in all_issues if issue.severity == "warning"],
            draft=draft if is_valid else None,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """Generate a short summary of validation results for the form."""
        if result.is_valid and not result.warnings:
            return "✅ Looks good."

        lines = []

        if result.has_errors:
            lines.append("❌ Please fix the following before saving:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please double-check:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
