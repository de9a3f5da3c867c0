"""
Form validation helpers.

`validate_field` checks one value against a `ValidationRule`; `validate_form`
and `is_form_valid` apply it to a whole form. `FormValidation` keeps the
per-field error lists for a mutable form-data mapping between checks.
"""
import re
from typing import Any, Callable, Dict, List, Mapping, MutableMapping, Optional, Union

from pydantic import BaseModel, ConfigDict

REQUIRED_MESSAGE = "This field is required"
MIN_LENGTH_MESSAGE = "Must be at least {} characters"
MAX_LENGTH_MESSAGE = "Must be at most {} characters"
PATTERN_MESSAGE = "Invalid format"
CUSTOM_MESSAGE = "Validation failed"

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ValidationRule(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    required: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[re.Pattern] = None
    # Returns True when the value passes, or an error message
    custom: Optional[Callable[[Any], Union[bool, str]]] = None


class ValidationResult(BaseModel):
    is_valid: bool
    errors: List[str]


def is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_field(value: Any, rule: ValidationRule) -> ValidationResult:
    """Check a value against a rule.

    A required but empty value fails with a single error and no other check
    runs. An empty optional value always passes. Otherwise every check runs
    and each failing one adds its message.
    """
    if rule.required and is_empty(value):
        return ValidationResult(is_valid=False, errors=[REQUIRED_MESSAGE])

    if is_empty(value):
        return ValidationResult(is_valid=True, errors=[])

    errors: List[str] = []
    # Length limits only apply to sized values such as strings and lists
    length = len(value) if hasattr(value, "__len__") else None

    if rule.min_length is not None and length is not None and length < rule.min_length:
        errors.append(MIN_LENGTH_MESSAGE.format(rule.min_length))

    if rule.max_length is not None and length is not None and length > rule.max_length:
        errors.append(MAX_LENGTH_MESSAGE.format(rule.max_length))

    if rule.pattern is not None and not rule.pattern.search(str(value)):
        errors.append(PATTERN_MESSAGE)

    if rule.custom is not None:
        outcome = rule.custom(value)
        if outcome is not True:
            errors.append(outcome if isinstance(outcome, str) else CUSTOM_MESSAGE)

    return ValidationResult(is_valid=not errors, errors=errors)


def validate_form(data: Mapping[str, Any],
                  rules: Mapping[str, ValidationRule]) -> Dict[str, ValidationResult]:
    """Validate every field that has a rule; fields missing from data read as None."""
    return {field: validate_field(data.get(field), rule) for field, rule in rules.items()}


def is_form_valid(results: Mapping[str, ValidationResult]) -> bool:
    return all(result.is_valid for result in results.values())


def _email(value: str) -> Union[bool, str]:
    return bool(EMAIL_PATTERN.match(value)) or "Please enter a valid email address"


def _password(value: str) -> Union[bool, str]:
    if len(value) < 6:
        return "Password must be at least 6 characters"
    return True


def _todo_title(value: str) -> Union[bool, str]:
    if not value.strip():
        return "Please enter a title"
    if len(value.strip()) > 200:
        return "Title cannot exceed 200 characters"
    return True


def _category_name(value: str) -> Union[bool, str]:
    if not value.strip():
        return "Please enter a category name"
    if len(value.strip()) > 50:
        return "Category name cannot exceed 50 characters"
    return True


COMMON_RULES: Dict[str, ValidationRule] = {
    "email": ValidationRule(custom=_email),
    "password": ValidationRule(custom=_password),
    "required": ValidationRule(required=True),
    "todo_title": ValidationRule(required=True, max_length=200, custom=_todo_title),
    "todo_description": ValidationRule(max_length=1000),
    "category_name": ValidationRule(required=True, max_length=50, custom=_category_name),
}


class FormValidation:
    """Tracks validation errors for a form whose data is edited in place."""

    def __init__(self, form_data: MutableMapping[str, Any], rules: Mapping[str, ValidationRule]):
        self.form_data = form_data
        self.rules = dict(rules)
        self.errors: Dict[str, List[str]] = {}
        self.is_valid = True

    def validate(self) -> bool:
        results = validate_form(self.form_data, self.rules)
        self.errors = {field: result.errors for field, result in results.items()}
        self.is_valid = is_form_valid(results)
        return self.is_valid

    def validate_field(self, field: str) -> bool:
        """Re-check one field.

        Overall validity is recomputed from the fields checked so far; fields
        never validated count as passing.
        """
        result = validate_field(self.form_data.get(field), self.rules[field])
        self.errors[field] = result.errors
        self.is_valid = all(not errors for errors in self.errors.values())
        return result.is_valid

    def clear_errors(self) -> None:
        self.errors = {}
        self.is_valid = True

    def get_field_error(self, field: str) -> Optional[str]:
        errors = self.errors.get(field)
        return errors[0] if errors else None

    def has_field_error(self, field: str) -> bool:
        return bool(self.errors.get(field))
