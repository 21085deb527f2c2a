"""
GL posting.

Moves validated transactions into the general ledger. A transaction posts
only when every entry names a chart account, carries an amount, and the
entries balance within a cent.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from hera_erp.services.universal import to_float

POSTING_BALANCE_TOLERANCE = 0.01

READY_STATUSES = ("ready", "validated")
PENDING_STATUSES = ("pending", "draft")

# Queue filter -> posting_status values; None stands for a missing status
STATUS_FILTERS = {
    "ready": READY_STATUSES,
    "posted": ("posted",),
    "pending": (None,) + PENDING_STATUSES,
    "failed": ("error",),
}


@dataclass
class EntryCheck:
    """Account mappings and problems found in a transaction's entries."""
    mappings: list[dict] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    total_debit: float = 0.0
    total_credit: float = 0.0

    @property
    def balance_difference(self) -> float:
        return round(abs(self.total_debit - self.total_credit), 2)

    @property
    def is_balanced(self) -> bool:
        return abs(self.total_debit - self.total_credit) <= POSTING_BALANCE_TOLERANCE

    @property
    def accounts_affected(self) -> list[str]:
        return sorted({m["account_code"] for m in self.mappings})


def check_entries(entries: list[dict], account_names: dict[str, str]) -> EntryCheck:
    """
    Map entries onto the chart of accounts.

    Args:
        entries: GL lines with account_code, debit and credit
        account_names: active chart codes mapped to their names

    Returns:
        EntryCheck; lines with problems are left out of the mappings and totals
    """
    check = EntryCheck()
    if not entries:
        check.errors.append("Transaction has no GL entries")
        return check

    for entry in entries:
        code = str(entry.get("account_code") or "")
        if not code:
            check.errors.append("Missing GL account code")
            continue
        if code not in account_names:
            check.errors.append(f"Invalid GL account: {code}")
            continue

        debit = to_float(entry.get("debit"))
        credit = to_float(entry.get("credit"))
        if debit == 0 and credit == 0:
            check.errors.append(f"Entry for account {code} has no debit or credit amount")
            continue

        check.total_debit += debit
        check.total_credit += credit
        check.mappings.append({
            "account_code": code,
            "account_name": account_names[code],
            "debit_amount": debit,
            "credit_amount": credit,
        })

    if not check.is_balanced:
        check.errors.append(f"Transaction is out of balance by {check.balance_difference:.2f}")
    return check


def queue_item(transaction: dict, account_names: dict[str, str], include_details: bool = False) -> dict:
    """Posting readiness of one transaction."""
    entries = transaction.get("entries") or []
    coded = [e for e in entries if e.get("account_code")]

    total_debit = sum(to_float(e.get("debit")) for e in coded)
    total_credit = sum(to_float(e.get("credit")) for e in coded)
    is_balanced = abs(total_debit - total_credit) < POSTING_BALANCE_TOLERANCE
    has_valid_accounts = all(str(e["account_code"]) in account_names for e in coded)
    accounts_used = len(coded)
    confidence = (0.4 if is_balanced else 0) + (0.4 if has_valid_accounts else 0) + (0.2 if accounts_used else 0)

    item = {
        "transaction_id": str(transaction.get("id")),
        "transaction_number": transaction.get("transaction_number"),
        "transaction_type": transaction.get("transaction_type"),
        "amount": transaction.get("total_amount"),
        "date": transaction.get("transaction_date"),
        "posting_status": transaction.get("posting_status") or "pending",
        "posted_at": transaction.get("posted_at"),
        "ready_for_posting": is_balanced and has_valid_accounts and accounts_used > 0,
        "validation_summary": {
            "is_balanced": is_balanced,
            "has_valid_accounts": has_valid_accounts,
            "accounts_used": accounts_used,
            "confidence": round(confidence, 2),
        },
        "business_metrics": {
            "total_debit": round(total_debit, 2),
            "total_credit": round(total_credit, 2),
            "balance_difference": round(abs(total_debit - total_credit), 2),
            "accounts_affected": accounts_used,
        },
        "account_codes": sorted({str(e["account_code"]) for e in coded}),
    }
    if include_details:
        item["gl_account_mappings"] = [
            {
                "account_code": str(e["account_code"]),
                "account_name": account_names.get(str(e["account_code"]), "Unknown Account"),
                "debit_amount": to_float(e.get("debit")),
                "credit_amount": to_float(e.get("credit")),
            }
            for e in coded
        ]
    return item


def summarize_queue(items: list[dict]) -> dict:
    posted = [i for i in items if i["posting_status"] == "posted"]
    return {
        "total_transactions": len(items),
        "ready_for_posting": sum(1 for i in items if i["ready_for_posting"] and i["posting_status"] != "posted"),
        "already_posted": len(posted),
        "pending_validation": sum(
            1 for i in items if not i["ready_for_posting"] and i["posting_status"] != "posted"
        ),
        "failed_posting": sum(1 for i in items if i["posting_status"] == "error"),
        "total_amount": round(sum(to_float(i["amount"]) for i in items), 2),
        "unique_accounts": len({code for i in items for code in i["account_codes"]}),
    }


def posting_result(
    transaction: dict,
    check: EntryCheck,
    status: str,
    batch_id: str,
    posting_date: str,
    journal_entry_id: Optional[str] = None,
    audit_trail: Optional[list[str]] = None,
) -> dict:
    posted = status == "posted"
    return {
        "transaction_id": str(transaction.get("id")),
        "transaction_number": transaction.get("transaction_number"),
        "posting_status": status,
        "posting_date": posting_date,
        "journal_entry_id": journal_entry_id,
        "gl_account_mappings": check.mappings,
        "validation_results": {
            "passed": not check.errors,
            "errors": list(check.errors),
        },
        "posting_metadata": {
            "posting_batch_id": batch_id,
            "audit_trail": audit_trail or [],
        },
        "business_impact": {
            "accounts_affected": len(check.mappings) if posted else 0,
            "total_debit_amount": round(check.total_debit, 2) if posted else 0.0,
            "total_credit_amount": round(check.total_credit, 2) if posted else 0.0,
        },
    }


def summarize_batch(results: list[dict], **extra: Any) -> dict:
    """Totals over a posting batch; extra keys are copied into the summary."""
    posted = [r for r in results if r["posting_status"] == "posted"]
    failures = sum(1 for r in results if r["posting_status"] == "failed")
    return {
        **extra,
        "total_transactions": len(results),
        "successful_posts": len(posted),
        "failed_posts": failures,
        "skipped_posts": sum(1 for r in results if r["posting_status"] == "skipped"),
        "total_debit_amount": round(sum(r["business_impact"]["total_debit_amount"] for r in posted), 2),
        "total_credit_amount": round(sum(r["business_impact"]["total_credit_amount"] for r in posted), 2),
        "accounts_affected": sorted(
            {m["account_code"] for r in posted for m in r["gl_account_mappings"]}
        ),
        "risk_level": "low" if failures == 0 else "medium" if failures < 3 else "high",
    }
