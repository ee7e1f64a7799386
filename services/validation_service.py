"""
Validation Service - Annotate mapped rows with validation errors.

Built-in checks cover the target schema (ClientID, PriorityLevel,
AttributesJSON). User-defined rules are simple string comparisons against
any column and run after the built-in checks.
"""

import json
import logging
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from services.mapping_service import DIRTY_KEY, ERRORS_KEY, stringify

logger = logging.getLogger(__name__)

CONDITIONS = ('equals', 'not equals', 'contains', 'not contains')
DEFAULT_RULE_MESSAGE = 'Custom validation failed.'

MISSING_CLIENT_ID = 'Missing ClientID'
DUPLICATE_CLIENT_ID = 'Duplicate ClientID'
PRIORITY_OUT_OF_RANGE = 'PriorityLevel 1-5'
BAD_JSON = 'Bad JSON'

PRIORITY_MIN = 1
PRIORITY_MAX = 5


@dataclass
class Rule:
    """User-defined validation rule."""

    field: str
    condition: str
    value: str
    message: str = DEFAULT_RULE_MESSAGE

    def failure_message(self) -> str:
        return self.message or f"Rule failed on {self.field}"

    def fails(self, row: Mapping[str, Any]) -> bool:
        """Check the rule against a row. True means the row violates it."""
        field_value = stringify(row.get(self.field))

        if self.condition == 'equals':
            return field_value != self.value
        if self.condition == 'not equals':
            return field_value == self.value
        if self.condition == 'contains':
            return self.value not in field_value
        if self.condition == 'not contains':
            return self.value in field_value

        raise ValueError(f"Unsupported rule condition: {self.condition}")

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def apply_rules(row: Mapping[str, Any], rules: Sequence[Rule]) -> List[str]:
    """Evaluate custom rules in order, returning the failure messages."""
    return [rule.failure_message() for rule in rules if rule.fails(row)]


def is_valid_priority(value: Any) -> bool:
    """True for whole numbers 1-5 (numeric or numeric text)."""
    if isinstance(value, bool):
        return False
    try:
        number = float(stringify(value).strip())
    except ValueError:
        return False
    return number.is_integer() and PRIORITY_MIN <= number <= PRIORITY_MAX


def _reject_constant(name: str):
    raise ValueError(f"Invalid JSON constant: {name}")


def is_valid_json(text: str) -> bool:
    """Strict JSON check; NaN and Infinity are rejected."""
    try:
        json.loads(text, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return False
    return True


class ValidationService:
    """
    Framework-agnostic row validator.

    Holds the custom rules of one upload session and re-validates whole
    tables; duplicate detection needs to see every row at once.
    """

    def __init__(
        self,
        rules: Optional[Sequence[Rule]] = None,
        progress_callback: Optional[Callable[[str, float, str], None]] = None
    ):
        """
        Initialize validation service.

        Args:
            rules: Custom rules applied after the built-in checks
            progress_callback: Optional callback for progress updates
                              Signature: callback(stage: str, percent: float, message: str)
        """
        self.rules = list(rules or [])
        self.progress_callback = progress_callback or (lambda *args: None)

    def _emit_progress(self, stage: str, percent: float, message: str):
        self.progress_callback(stage, percent, message)
        logger.debug(f"Validation progress: {stage} ({percent:.1f}%) - {message}")

    def builtin_errors(self, row: Mapping[str, Any], seen_ids: set) -> List[str]:
        """
        Run the target schema checks for one row.

        seen_ids collects trimmed ClientIDs across the table; the first
        occurrence of an id is valid, later ones are duplicates.
        """
        errors = []

        client_id = stringify(row.get('ClientID')).strip()
        if not client_id:
            errors.append(MISSING_CLIENT_ID)
        elif client_id in seen_ids:
            errors.append(DUPLICATE_CLIENT_ID)
        else:
            seen_ids.add(client_id)

        if not is_valid_priority(row.get('PriorityLevel')):
            errors.append(PRIORITY_OUT_OF_RANGE)

        attributes = stringify(row.get('AttributesJSON'))
        if attributes and not is_valid_json(attributes):
            errors.append(BAD_JSON)

        return errors

    def validate_rows(self, rows: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """
        Validate a whole table.

        Returns:
            New row dicts with the error list stored under the errors key
        """
        total = len(rows)
        self._emit_progress('validating', 0, f"Validating {total} rows...")

        seen_ids: set = set()
        validated = []
        for idx, row in enumerate(rows):
            if idx and idx % 500 == 0:
                self._emit_progress('validating', 100 * idx / total, f"Validated {idx}/{total} rows")

            errors = self.builtin_errors(row, seen_ids) + apply_rules(row, self.rules)
            validated.append({**row, ERRORS_KEY: errors})

        invalid = sum(1 for row in validated if row[ERRORS_KEY])
        self._emit_progress('complete', 100, 'Validation complete')
        logger.info(f"Validated {total} rows: {total - invalid} valid, {invalid} invalid")

        return validated


def row_errors(row: Mapping[str, Any]) -> List[str]:
    return list(row.get(ERRORS_KEY) or [])


def is_row_valid(row: Mapping[str, Any]) -> bool:
    return not row.get(ERRORS_KEY)


def is_row_dirty(row: Mapping[str, Any]) -> bool:
    return bool(row.get(DIRTY_KEY))


def summarize(rows: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Get validation counts for a table.

    Returns:
        {
            'total': int,
            'valid': int,
            'invalid': int,
            'dirty': int,
            'error_counts': {message: occurrences}
        }
    """
    error_counts: Counter = Counter()
    for row in rows:
        error_counts.update(row_errors(row))

    valid = sum(1 for row in rows if is_row_valid(row))

    return {
        'total': len(rows),
        'valid': valid,
        'invalid': len(rows) - valid,
        'dirty': sum(1 for row in rows if is_row_dirty(row)),
        'error_counts': dict(error_counts)
    }
