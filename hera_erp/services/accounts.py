"""
Chart of accounts rules.

Account codes are seven digits; the leading digit selects the account class.
"""

import re
from typing import Optional

from hera_erp.services.errors import ValidationRuleError

ACCOUNT_CODE_PATTERN = re.compile(r"^[1-9]\d{6}$")

ACCOUNT_TYPES = ("ASSET", "LIABILITY", "EQUITY", "REVENUE", "COST_OF_SALES", "EXPENSE")

_TYPE_BY_DIGIT = {
    "1": "ASSET",
    "2": "LIABILITY",
    "3": "EQUITY",
    "4": "REVENUE",
    "5": "COST_OF_SALES",
}

# Default account used when a single-line entry references an unknown account
DEFAULT_ACCOUNT_BY_TRANSACTION_TYPE = {
    "SALES_ORDER": "4001000",
    "PURCHASE_ORDER": "5001000",
}
FALLBACK_DEFAULT_ACCOUNT = "5001000"


def validate_account_code(code: str) -> str:
    code = (code or "").strip()
    if not ACCOUNT_CODE_PATTERN.match(code):
        raise ValidationRuleError(f"Account code must be 7 digits not starting with 0, got '{code}'")
    return code


def infer_account_type(code: str) -> str:
    """Account class from the first digit of a valid code (6-9 are expenses)."""
    code = validate_account_code(code)
    return _TYPE_BY_DIGIT.get(code[0], "EXPENSE")


def resolve_account_type(code: str, account_type: Optional[str]) -> str:
    if account_type is None:
        return infer_account_type(code)
    normalized = account_type.strip().upper()
    if normalized not in ACCOUNT_TYPES:
        raise ValidationRuleError(
            f"Unknown account type '{account_type}'. Expected one of: {', '.join(ACCOUNT_TYPES)}"
        )
    return normalized


def default_account_for(transaction_type: Optional[str]) -> str:
    return DEFAULT_ACCOUNT_BY_TRANSACTION_TYPE.get(
        (transaction_type or "").upper(), FALLBACK_DEFAULT_ACCOUNT
    )
