"""
Goods receiving analytics.

Pure functions over a receipt payload (the dict produced by the request
schema) and over stored supplier history. Nothing here touches the database.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from hera_erp.services.universal import to_float

QUALITY_WEIGHTS = {"overall": 0.4, "delivery": 0.3, "packaging": 0.3}
STOCK_INCREASE_STATUSES = ("accepted", "partial")
ON_TIME_RATING = 4


def receipt_total(items: Iterable[dict]) -> float:
    return sum(to_float(i.get("received_quantity")) * to_float(i.get("unit_price")) for i in items)


def variance_rate(items: list[dict]) -> float:
    """|expected - received| / expected over the whole receipt."""
    expected = sum(to_float(i.get("expected_quantity")) for i in items)
    received = sum(to_float(i.get("received_quantity")) for i in items)
    if expected == 0:
        return 0.0
    return abs(expected - received) / expected


def quality_score(overall: float, delivery: float, packaging: float) -> float:
    weighted = (
        overall * QUALITY_WEIGHTS["overall"]
        + delivery * QUALITY_WEIGHTS["delivery"]
        + packaging * QUALITY_WEIGHTS["packaging"]
    )
    return round(weighted / sum(QUALITY_WEIGHTS.values()), 4)


def quality_trend(overall: float, delivery: float, packaging: float) -> str:
    average = (overall + delivery + packaging) / 3
    if average >= 4.5:
        return "excellent"
    if average >= 4.0:
        return "good"
    if average >= 3.0:
        return "average"
    return "needs_improvement"


def recommendations(receipt: dict) -> list[str]:
    found = []
    if receipt["overall_quality_rating"] < 3:
        found.append("Consider discussing quality standards with supplier")
    if receipt["delivery_rating"] < 3:
        found.append("Schedule delivery time discussion with supplier")
    if variance_rate(receipt["items"]) > 0.1:
        found.append("High variance detected - review order accuracy with supplier")
    if receipt.get("temperature_compliant") is False:
        found.append("CRITICAL: Temperature compliance failed - implement cold chain monitoring")
    return found


def quality_alerts(items: Iterable[dict]) -> list[dict]:
    alerts = []
    for item in items:
        if item["quality_status"] == "rejected":
            alerts.append({
                "type": "quality_rejection",
                "severity": "high",
                "message": f"{item['item_name']} rejected - quality issue",
                "item_id": item["item_id"],
            })
        elif item["quality_status"] == "damaged":
            alerts.append({
                "type": "damage_detected",
                "severity": "medium",
                "message": f"{item['item_name']} received damaged",
                "item_id": item["item_id"],
            })
    return alerts


def supplier_improvements(receipt: dict) -> list[str]:
    improvements = []
    if receipt["packaging_rating"] < 4:
        improvements.append("Improve packaging standards")
    if receipt["delivery_rating"] < 4:
        improvements.append("Enhance delivery scheduling accuracy")
    return improvements


def storage_optimization(items: Iterable[dict]) -> dict:
    distribution: dict[str, int] = {}
    for item in items:
        location = item.get("storage_location") or "unassigned"
        distribution[location] = distribution.get(location, 0) + 1
    return {
        "location_distribution": distribution,
        "optimization_score": 0.9 if len(distribution) <= 3 else 0.6,
    }


def item_performance(items: list[dict]) -> dict:
    def count(status: str) -> int:
        return sum(1 for i in items if i["quality_status"] == status)

    return {
        "total_items": len(items),
        "accepted_items": count("accepted"),
        "rejected_items": count("rejected"),
        "partial_items": count("partial"),
        "damaged_items": count("damaged"),
    }


def build_intelligence(receipt: dict, today: Optional[date] = None) -> dict:
    """Predictions, recommendations and alerts stored with a new receipt."""
    today = today or datetime.now(timezone.utc).date()
    items = receipt["items"]
    overall = receipt["overall_quality_rating"]
    delivery = receipt["delivery_rating"]
    packaging = receipt["packaging_rating"]

    return {
        "predictions": {
            "predicted_next_delivery": (today + timedelta(days=7)).isoformat(),
            "quality_trend": quality_trend(overall, delivery, packaging),
        },
        "recommendations": recommendations(receipt),
        "alerts": quality_alerts(items),
        "supplier_insights": {
            "consistency_rating": overall / 5,
            "improvement_suggestions": supplier_improvements(receipt),
        },
        "inventory_impact": {
            "stock_level_change": sum(to_float(i.get("received_quantity")) for i in items),
            "value_added": receipt_total(items),
            "storage_optimization": storage_optimization(items),
        },
    }


def procurement_metadata(receipt: dict, variance: float, score: float) -> dict:
    """JSON stored on the goods_receipt transaction."""
    metadata = {
        key: receipt.get(key)
        for key in (
            "supplier_id",
            "supplier_name",
            "purchase_order_id",
            "delivery_date",
            "received_by",
            "overall_quality_rating",
            "delivery_rating",
            "packaging_rating",
            "temperature_compliant",
            "delivery_notes",
            "quality_inspection_notes",
            "receiving_location",
        )
    }
    metadata.update(
        items=receipt["items"],
        image_urls=receipt.get("image_urls") or [],
        variance_rate=variance,
        quality_score=score,
        created_via="receiving_api",
    )
    return metadata


def stock_adjustment(item: dict, receipt_id: str) -> dict:
    return {
        "item_id": item["item_id"],
        "item_name": item["item_name"],
        "quantity_added": item["received_quantity"],
        "unit": item.get("unit"),
        "unit_price": item["unit_price"],
        "receipt_id": receipt_id,
        "quality_status": item["quality_status"],
        "expiry_date": item.get("expiry_date"),
        "batch_number": item.get("batch_number"),
        "storage_location": item.get("storage_location"),
    }


def delivery_performance(receipt: dict) -> dict:
    return {
        "delivery_date": receipt["delivery_date"],
        "quality_score": receipt["overall_quality_rating"],
        "delivery_rating": receipt["delivery_rating"],
        "packaging_rating": receipt["packaging_rating"],
        "variance_rate": variance_rate(receipt["items"]),
        "total_items": len(receipt["items"]),
        "total_value": receipt_total(receipt["items"]),
        "temperature_compliant": receipt.get("temperature_compliant"),
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }


def learning_record(receipt: dict, receipt_id: str, receipt_number: str, intelligence: dict) -> dict:
    return {
        "receipt_id": receipt_id,
        "receipt_number": receipt_number,
        "predictions": intelligence["predictions"],
        "recommendations": intelligence["recommendations"],
        "alerts": intelligence["alerts"],
        "supplier_insights": intelligence["supplier_insights"],
        "learning_data": {
            "quality_patterns": [
                {
                    "item_type": item["item_name"],
                    "quality_status": item["quality_status"],
                    "variance": to_float(item.get("expected_quantity")) - to_float(item.get("received_quantity")),
                }
                for item in receipt["items"]
            ],
            "delivery_patterns": {
                "on_time": receipt["delivery_rating"] >= ON_TIME_RATING,
                "quality_consistent": receipt["overall_quality_rating"] >= 4,
                "packaging_adequate": receipt["packaging_rating"] >= 4,
            },
        },
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }


def supplier_trends(current: dict, history: list[dict]) -> dict:
    """
    Compare a receipt's ratings with earlier receipts of the same supplier.

    Args:
        current: procurement_metadata of the receipt
        history: procurement_metadata of earlier receipts (most recent first)
    """
    quality = to_float(current.get("overall_quality_rating"))
    delivery = to_float(current.get("delivery_rating"))

    if not history:
        return {
            "supplier_trends": {
                "quality_trend": "insufficient_history",
                "delivery_trend": "insufficient_history",
                "historical_average_quality": None,
                "historical_average_delivery": None,
            },
            "performance_vs_historical": None,
            "predictive_insights": {
                "reliability_score": None,
                "recommended_order_frequency": "bi-weekly",
            },
        }

    avg_quality = sum(to_float(h.get("overall_quality_rating")) for h in history) / len(history)
    avg_delivery = sum(to_float(h.get("delivery_rating")) for h in history) / len(history)

    return {
        "supplier_trends": {
            "quality_trend": "improving" if quality > avg_quality else "declining",
            "delivery_trend": "improving" if delivery > avg_delivery else "declining",
            "historical_average_quality": round(avg_quality, 4),
            "historical_average_delivery": round(avg_delivery, 4),
        },
        "performance_vs_historical": {
            "quality_change": round(quality - avg_quality, 4),
            "delivery_change": round(delivery - avg_delivery, 4),
        },
        "predictive_insights": {
            "reliability_score": round(avg_delivery / 5, 4),
            "recommended_order_frequency": "weekly" if len(history) > 5 else "bi-weekly",
        },
    }


def supplier_performance(records: list[dict]) -> dict[str, Any]:
    """
    Aggregate delivery_performance snapshots of one supplier.

    Args:
        records: metadata_value dicts, any order
    """
    total = len(records)
    if total == 0:
        return {
            "total_deliveries": 0,
            "on_time_deliveries": 0,
            "on_time_rate": 0.0,
            "quality_score": 0.0,
            "variance_rate": 0.0,
            "last_delivery_date": None,
            "recommendations": ["No deliveries recorded yet for this supplier"],
        }

    on_time = sum(1 for r in records if to_float(r.get("delivery_rating")) >= ON_TIME_RATING)
    avg_quality = sum(to_float(r.get("quality_score")) for r in records) / total
    avg_variance = sum(to_float(r.get("variance_rate")) for r in records) / total
    dates = [str(r["delivery_date"]) for r in records if r.get("delivery_date")]

    advice = []
    if on_time / total < 0.8:
        advice.append("On-time delivery below 80% - review delivery schedule with supplier")
    if avg_quality < 3.5:
        advice.append("Average quality below target - review quality standards")
    if avg_variance > 0.1:
        advice.append("Quantity variance above 10% - review order accuracy")
    if not advice:
        advice.append("Supplier performance within targets")

    return {
        "total_deliveries": total,
        "on_time_deliveries": on_time,
        "on_time_rate": round(on_time / total, 4),
        "quality_score": round(avg_quality, 4),
        "variance_rate": round(avg_variance, 4),
        "last_delivery_date": max(dates) if dates else None,
        "recommendations": advice,
    }
