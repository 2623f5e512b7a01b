"""
Input Validation for Ledger Mutations

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Type checking, required fields, ranges (negative value, due day 1-31)
- Delegated to the strict input models in flowdesk.models.ledger

STAGE 2 - SEMANTIC VALIDATION:
- Checks the schema cannot express: empty entries in day_times,
  month key shape, birthdate shape, spaces in the identity email

IMPORTANT: Validation NEVER silently fixes caller input.
It reports every issue at once, as one ValidationError.
"""

from typing import Any, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from flowdesk.errors import ValidationError
from flowdesk.models.ledger import (
    Client,
    ClientCreate,
    ClientUpdate,
    ExpenseCreate,
    ProfileUpdate,
    ValidationIssue,
)
from flowdesk.utils.dates import is_month_key, normalize_birthdate


ModelT = TypeVar("ModelT", bound=BaseModel)

# pydantic error type -> our issue type
_ISSUE_TYPES = {
    "missing": "missing",
    "greater_than_equal": "out_of_range",
    "less_than_equal": "out_of_range",
    "string_too_short": "missing",
    "string_too_long": "too_long",
}


def issues_from_schema_error(error: SchemaError) -> list[ValidationIssue]:
    """Translate a pydantic ValidationError into ValidationIssues."""
    issues = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail.get("loc", ())) or "__root__"
        issues.append(ValidationIssue(
            field=location,
            issue_type=_ISSUE_TYPES.get(detail["type"], "invalid_format"),
            message=detail.get("msg", "Invalid value"),
        ))
    return issues


class LedgerValidator:
    """
    Validates caller input for ledger mutations.

    Each `check_*` method returns the parsed input model or raises
    ValidationError carrying every issue found.
    """

    def _parse(self, model: type[ModelT], data: Union[ModelT, dict[str, Any]]) -> ModelT:
        if isinstance(data, model):
            return data
        if isinstance(data, BaseModel):
            data = data.model_dump(exclude_unset=True)
        try:
            return model.model_validate(data)
        except SchemaError as e:
            issues = issues_from_schema_error(e)
            raise ValidationError(
                f"Invalid {model.__name__}: {', '.join(i.field for i in issues)}",
                issues,
            ) from e

    def _raise_if_any(self, issues: list[ValidationIssue], what: str) -> None:
        if issues:
            raise ValidationError(
                f"Invalid {what}: {', '.join(i.field for i in issues)}",
                issues,
            )

    def check_client_create(self, data: Union[ClientCreate, dict[str, Any]]) -> ClientCreate:
        parsed = self._parse(ClientCreate, data)
        self._raise_if_any(self._day_time_issues(parsed.day_times), "client")
        return parsed

    def check_client_update(self, data: Union[ClientUpdate, dict[str, Any]]) -> ClientUpdate:
        # id, payments and valueFormatted are not updatable; drop them before parsing
        if isinstance(data, dict):
            data = {
                k: v for k, v in data.items()
                if k not in {"id", "payments", "valueFormatted", "value_formatted"}
            }
        return self._parse(ClientUpdate, data)

    def check_client_merge(self, merged: dict[str, Any]) -> Client:
        """Revalidate a stored client after an update has been merged into it."""
        # Checked before parsing: stored-client normalization drops blank times
        self._raise_if_any(self._day_time_issues(merged.get("day_times") or {}), "client")
        return self._parse(Client, merged)

    def check_expense_create(self, data: Union[ExpenseCreate, dict[str, Any]]) -> ExpenseCreate:
        return self._parse(ExpenseCreate, data)

    def check_profile_update(self, data: Union[ProfileUpdate, dict[str, Any]]) -> ProfileUpdate:
        parsed = self._parse(ProfileUpdate, data)
        issues = []
        if parsed.birthdate and not normalize_birthdate(parsed.birthdate):
            issues.append(ValidationIssue(
                field="birthdate",
                issue_type="invalid_format",
                message="Birthdate must be YYYY-MM-DD",
            ))
        if parsed.email and " " in parsed.email:
            issues.append(ValidationIssue(
                field="email",
                issue_type="invalid_format",
                message="Email must not contain spaces",
            ))
        self._raise_if_any(issues, "profile")
        return parsed

    def check_month_key(self, month_key: Any) -> str:
        """Shape check only: any YYYY-MM string is a valid partition key."""
        if not is_month_key(month_key):
            raise ValidationError(
                f"Invalid month key: {month_key!r}",
                [ValidationIssue(
                    field="month_key",
                    issue_type="invalid_format",
                    message="Month key must look like YYYY-MM",
                )],
            )
        return month_key

    @staticmethod
    def _day_time_issues(day_times: dict[str, str]) -> list[ValidationIssue]:
        issues = []
        for day, time in day_times.items():
            if not str(day).strip() or not str(time).strip():
                issues.append(ValidationIssue(
                    field=f"day_times.{day}",
                    issue_type="missing",
                    message=f"Day and time are both required (got {day!r}: {time!r})",
                ))
        return issues
