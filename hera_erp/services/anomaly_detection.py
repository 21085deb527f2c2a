"""
Statistical anomaly detection for GL accounts.

A model per account is learned from historical journal lines (population mean
and standard deviation of line amounts, percentiles, and the hours/weekdays
the account is normally used). Recent lines are then flagged when their
amount z-score or their timing falls outside the learned profile.

Weekdays follow the Sunday=0 convention used in stored analytics.
"""

import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from hera_erp.services.errors import InsufficientHistoryError
from hera_erp.services.universal import as_utc, to_float

HISTORY_TRANSACTION_TYPES = ("journal_entry", "ai_journal_entry", "purchase_order")

AMOUNT_Z_THRESHOLD = 2.5
TIMING_THRESHOLD = 0.1
VELOCITY_THRESHOLD = 5
PERCENTILES = (25, 50, 75, 90, 95, 99)

SENSITIVITY_THRESHOLDS = {
    "low": 3.5,
    "medium": 2.5,
    "high": 2.0,
    "ultra": 1.5,
}

_DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def is_history_type(transaction_type: Optional[str]) -> bool:
    return (transaction_type or "").lower() in HISTORY_TRANSACTION_TYPES


def weekday_index(moment: datetime) -> int:
    """Sunday=0 ... Saturday=6."""
    return (moment.weekday() + 1) % 7


def line_amount(entry: dict) -> float:
    return to_float(entry.get("debit")) + to_float(entry.get("credit"))


def _account_entry(transaction: dict, account_code: str) -> Optional[dict]:
    for entry in transaction.get("entries") or []:
        if entry.get("account_code") == account_code:
            return entry
    return None


def mean_and_std(values: list[float]) -> tuple[float, float]:
    """Population mean and standard deviation."""
    mean = sum(values) / len(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return mean, math.sqrt(variance)


def percentile_table(values: list[float]) -> dict[str, float]:
    ordered = sorted(values)
    n = len(ordered)
    return {str(p): ordered[math.floor(n * p / 100)] for p in PERCENTILES}


@dataclass
class AnomalyModel:
    account_code: str
    data_points: int
    mean_amount: float
    std_deviation: float
    median_amount: float
    percentiles: dict[str, float]
    typical_hours: list[int]
    typical_days_of_week: list[int]
    hour_counts: dict[int, int]
    frequency_profile: dict[str, int]
    related_accounts: list[str]
    frequency_threshold: float
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    amount_z_threshold: float = AMOUNT_Z_THRESHOLD
    timing_threshold: float = TIMING_THRESHOLD

    def to_dict(self) -> dict:
        return {
            "account_code": self.account_code,
            "statistics": {
                "mean_amount": self.mean_amount,
                "std_deviation": self.std_deviation,
                "median_amount": self.median_amount,
                "percentiles": self.percentiles,
                "typical_hours": self.typical_hours,
                "typical_days_of_week": self.typical_days_of_week,
            },
            "patterns": {
                "frequency_profile": self.frequency_profile,
                "relationship_profile": {self.account_code: self.related_accounts},
                "temporal_profile": {str(h): c for h, c in sorted(self.hour_counts.items())},
            },
            "thresholds": {
                "amount_z": self.amount_z_threshold,
                "frequency_threshold": self.frequency_threshold,
                "velocity_threshold": VELOCITY_THRESHOLD,
                "timing_threshold": self.timing_threshold,
            },
            "learning_metrics": {
                "data_points": self.data_points,
                "last_updated": self.last_updated.isoformat(),
            },
        }


def build_model(
    account_code: str,
    transactions: Iterable[dict],
    min_history: int = 10,
) -> Optional[AnomalyModel]:
    """
    Learn the profile of one account.

    Args:
        account_code: Account to model
        transactions: dicts with created_at and entries
        min_history: minimum number of transactions touching the account

    Returns:
        AnomalyModel, or None when there is not enough history
    """
    amounts: list[float] = []
    hours: list[int] = []
    days: list[int] = []
    daily: Counter = Counter()
    related: set[str] = set()

    for transaction in transactions:
        entry = _account_entry(transaction, account_code)
        if entry is None:
            continue
        moment = as_utc(transaction["created_at"])
        amounts.append(line_amount(entry))
        hours.append(moment.hour)
        days.append(weekday_index(moment))
        daily[moment.date().isoformat()] += 1
        for other in transaction.get("entries") or []:
            other_code = other.get("account_code")
            if other_code and other_code != account_code:
                related.add(other_code)

    n = len(amounts)
    if n < min_history or n == 0:
        return None

    mean, std = mean_and_std(amounts)
    percentiles = percentile_table(amounts)
    hour_counts = Counter(hours)
    day_counts = Counter(days)

    return AnomalyModel(
        account_code=account_code,
        data_points=n,
        mean_amount=mean,
        std_deviation=std,
        median_amount=percentiles["50"],
        percentiles=percentiles,
        typical_hours=sorted(h for h, c in hour_counts.items() if c >= max(2, n * 0.1)),
        typical_days_of_week=sorted(d for d, c in day_counts.items() if c >= max(1, n * 0.1)),
        hour_counts=dict(hour_counts),
        frequency_profile=dict(sorted(daily.items())),
        related_accounts=sorted(related),
        frequency_threshold=max(3.0, sum(daily.values()) / len(daily) * 2),
    )


def _amount_anomaly(transaction_id: str, amount: float, model: AnomalyModel) -> Optional[dict]:
    z = abs(amount - model.mean_amount) / (model.std_deviation or 1)
    if z <= model.amount_z_threshold:
        return None

    p = model.percentiles
    if amount > p["99"]:
        percentile = 99.5
    elif amount > p["95"]:
        percentile = 97.5
    elif amount > p["90"]:
        percentile = 92.5
    else:
        percentile = 85

    return {
        "transaction_id": transaction_id,
        "account_code": model.account_code,
        "anomaly_type": "amount",
        "severity": "critical" if z > 4 else "high" if z > 3 else "medium",
        "anomaly_score": min(z / 5, 1.0),
        "description": (
            f"Transaction amount ${amount:.2f} is {z:.1f} standard deviations from normal"
        ),
        "detected_pattern": {
            "normal": {
                "mean": model.mean_amount,
                "std_dev": model.std_deviation,
                "typical_range": f"${p['25']:.2f} - ${p['75']:.2f}",
            },
            "observed": {"amount": amount, "percentile": percentile},
            "deviation": z,
        },
        "risk_assessment": {
            "fraud_risk": 0.8 if z > 4 else 0.6 if z > 3 else 0.3,
            "error_risk": 0.7 if z > 3 else 0.4,
            "business_risk": 0.9 if z > 4 else 0.5,
        },
        "recommendations": [
            "Review transaction for accuracy",
            "Verify authorization for unusual amount",
            "Check supporting documentation",
        ],
        "algorithm": "statistical_z_score",
    }


def _timing_anomaly(transaction_id: str, moment: datetime, model: AnomalyModel) -> Optional[dict]:
    hour = moment.hour
    day = weekday_index(moment)
    if hour in model.typical_hours and day in model.typical_days_of_week:
        return None

    probability = model.hour_counts.get(hour, 0) / model.data_points
    if probability >= model.timing_threshold:
        return None

    return {
        "transaction_id": transaction_id,
        "account_code": model.account_code,
        "anomaly_type": "timing",
        "severity": "high" if probability < 0.01 else "medium",
        "anomaly_score": 1 - probability,
        "description": (
            f"Transaction at {hour}:00 on {_DAY_NAMES[day]} is unusual for this account"
        ),
        "detected_pattern": {
            "normal": {
                "typical_hours": model.typical_hours,
                "typical_days": model.typical_days_of_week,
            },
            "observed": {"hour": hour, "day_of_week": day, "timestamp": moment.isoformat()},
            "deviation": 1 - probability,
        },
        "risk_assessment": {
            "fraud_risk": 0.7 if probability < 0.01 else 0.3,
            "error_risk": 0.2,
            "business_risk": 0.3,
        },
        "recommendations": [
            "Verify transaction was authorized during off-hours",
            "Check if timing aligns with business operations",
        ],
        "algorithm": "temporal_pattern_analysis",
    }


def detect_anomalies(
    transactions: Iterable[dict],
    models: dict[str, AnomalyModel],
    severity: Optional[str] = None,
) -> list[dict]:
    """Flag amount and timing anomalies on every line that has a model."""
    anomalies: list[dict] = []
    for transaction in transactions:
        transaction_id = str(transaction["id"])
        moment = as_utc(transaction["created_at"])
        for entry in transaction.get("entries") or []:
            model = models.get(entry.get("account_code"))
            if model is None:
                continue
            for found in (
                _amount_anomaly(transaction_id, line_amount(entry), model),
                _timing_anomaly(transaction_id, moment, model),
            ):
                if found is not None:
                    anomalies.append(found)

    if severity:
        anomalies = [a for a in anomalies if a["severity"] == severity]
    return anomalies


def summarize(total_transactions: int, anomalies: list[dict]) -> dict:
    return {
        "total_transactions": total_transactions,
        "anomalous_transactions": len(anomalies),
        "anomaly_rate": len(anomalies) / max(total_transactions, 1),
        "high_risk_anomalies": sum(1 for a in anomalies if a["severity"] in ("critical", "high")),
    }


def score_realtime(
    transaction_id: str,
    account_code: str,
    amount: float,
    history_amounts: list[float],
    sensitivity: str = "medium",
    min_history: int = 5,
) -> dict[str, Any]:
    """
    Score one prospective transaction line against the account history.

    Raises:
        InsufficientHistoryError: fewer than min_history data points
    """
    if len(history_amounts) < min_history:
        raise InsufficientHistoryError(len(history_amounts), min_history)

    threshold = SENSITIVITY_THRESHOLDS.get(sensitivity, SENSITIVITY_THRESHOLDS["medium"])
    mean, std = mean_and_std(history_amounts)
    z = abs(amount - mean) / (std or 1)

    anomalies = []
    if z > threshold:
        anomalies.append(
            {
                "transaction_id": transaction_id,
                "account_code": account_code,
                "anomaly_type": "amount",
                "severity": "critical" if z > threshold * 2 else "high" if z > threshold * 1.5 else "medium",
                "anomaly_score": min(z / 5, 1.0),
                "description": f"Real-time detection: Amount ${amount:.2f} deviates {z:.1f} sigma from normal",
                "detected_pattern": {
                    "normal": {"mean": mean, "std_dev": std},
                    "observed": {"amount": amount},
                    "deviation": z,
                },
                "risk_assessment": {
                    "fraud_risk": 0.8 if z > threshold * 2 else 0.4,
                    "error_risk": 0.6,
                    "business_risk": 0.5,
                },
                "recommendations": ["Hold transaction for review", "Require additional approval"],
                "algorithm": "real_time_z_score",
            }
        )

    return {
        "anomalies": anomalies,
        "real_time_analysis": {
            "status": "completed",
            "transaction_id": transaction_id,
            "account_code": account_code,
            "sensitivity": sensitivity,
            "threshold": threshold,
            "data_points": len(history_amounts),
            "risk_score": anomalies[0]["anomaly_score"] if anomalies else 0,
            "recommendation": "review_required" if anomalies else "approved",
        },
    }


def history_amounts_for(account_code: str, transactions: Iterable[dict]) -> list[float]:
    """Line amounts of the account across transactions (first matching line each)."""
    amounts = []
    for transaction in transactions:
        entry = _account_entry(transaction, account_code)
        if entry is not None:
            amounts.append(line_amount(entry))
    return amounts
