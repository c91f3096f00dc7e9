"""Tests for the two-stage entry validator."""

from decimal import Decimal

import pytest

from ledger.models.transaction import TransactionForm, Vocabulary
from ledger.validation import TransactionValidator


@pytest.fixture
def validator(settings):
    return TransactionValidator(settings)


def _form(**overrides) -> TransactionForm:
    fields = {"item": "Tent", "category": "Misc", "amount": "100", "payer": "Ann"}
    fields.update(overrides)
    return TransactionForm(**fields)


class TestSchemaValidation:
    """Stage 1: anything here blocks the write."""

    def test_valid_form_produces_draft(self, validator):
        result = validator.validate(_form(note="  big one ", unit="pcs"))
        assert result.is_valid
        assert result.draft.amount == Decimal("100")
        assert result.draft.note == "big one"
        assert result.draft.unit == "pcs"

    @pytest.mark.parametrize("amount", ["", "   ", "abc", "1,5", "NaN", "Infinity"])
    def test_unusable_amount_rejected(self, validator, amount):
        result = validator.validate(_form(amount=amount))
        assert not result.is_valid
        assert result.draft is None
        assert any(i.field == "amount" and i.severity == "error" for i in result.issues)

    def test_negative_amount_rejected(self, validator):
        result = validator.validate(_form(amount="-5"))
        assert not result.is_valid
        issue = next(i for i in result.issues if i.field == "amount")
        assert issue.issue_type == "invalid_value"
        assert "Income" in issue.suggested_fix

    @pytest.mark.parametrize("field", ["item", "category", "payer"])
    def test_required_fields(self, validator, field):
        result = validator.validate(_form(**{field: "  "}))
        assert not result.is_valid
        assert any(i.field == field and i.issue_type == "missing" for i in result.issues)

    def test_too_long_item(self, validator):
        result = validator.validate(_form(item="x" * 201))
        assert not result.is_valid
        assert any(i.issue_type == "too_long" for i in result.issues)

    def test_all_errors_reported_together(self, validator):
        result = validator.validate(TransactionForm())
        assert result.error_count == 4
        assert not result.schema_valid
        assert not result.semantic_valid


class TestSemanticValidation:
    """Stage 2: warnings and notes only."""

    def test_huge_amount_warns_but_passes(self, validator):
        result = validator.validate(_form(amount="5000000"))
        assert result.is_valid
        assert any("unusually high" in w for w in result.warnings)

    def test_zero_amount_warns_but_passes(self, validator):
        result = validator.validate(_form(amount="0"))
        assert result.is_valid
        assert result.warnings == ["Amount is zero"]

    def test_new_names_are_noted(self, validator):
        vocabulary = Vocabulary(payers=["Ann"], categories=["Income", "Misc"])
        result = validator.validate(_form(payer="Dan", category="Fuel"), vocabulary)
        assert result.is_valid
        notes = {i.field for i in result.issues if i.issue_type == "new_value"}
        assert notes == {"payer", "category"}
        assert result.warnings == []

    def test_known_names_not_noted(self, validator):
        vocabulary = Vocabulary(payers=["Ann"], categories=["Income", "Misc"])
        result = validator.validate(_form(), vocabulary)
        assert result.issues == []


class TestUserFriendlySummary:

    def test_clean_result(self, validator):
        assert validator.get_user_friendly_summary(validator.validate(_form())) == "✅ Looks good."

    def test_errors_listed(self, validator):
        summary = validator.get_user_friendly_summary(validator.validate(_form(amount="")))
        assert "Amount is required" in summary
        assert summary.startswith("❌")
