"""
Anomaly detection API routes.

GET builds per-account models from recent history and scans recent
transactions; POST /score checks one prospective transaction line in real time.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hera_erp.api.gl_accounts import chart_codes
from hera_erp.config.settings import get_settings
from hera_erp.database import get_db
from hera_erp.middleware.auth import TenantContext, require_permissions
from hera_erp.models import UniversalTransaction
from hera_erp.services import anomaly_detection
from hera_erp.services.errors import InsufficientHistoryError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/organizations/{organization_id}/gl", tags=["anomaly-detection"])


class TransactionToScore(BaseModel):
    """A prospective journal line."""
    transaction_id: str = Field(..., min_length=1)
    account_code: str = Field(..., min_length=1)
    amount: float
    timestamp: Optional[datetime] = None


class ScoreRequest(BaseModel):
    """Schema for real-time scoring."""
    transaction: Optional[TransactionToScore] = None
    sensitivity: str = Field(default="medium", pattern="^(low|medium|high|ultra)$")
    lookback_days: Optional[int] = Field(None, ge=1, le=3650)


def _snapshot(transaction: UniversalTransaction) -> dict:
    return {
        "id": transaction.id,
        "created_at": transaction.created_at,
        "entries": transaction.entries,
    }


async def _history(db: AsyncSession, organization_id: UUID, days: int) -> list[dict]:
    since = datetime.now(timezone.utc) - timedelta(days=days)
    result = await db.execute(
        select(UniversalTransaction)
        .where(
            UniversalTransaction.organization_id == organization_id,
            UniversalTransaction.created_at >= since,
            func.lower(UniversalTransaction.transaction_type).in_(
                anomaly_detection.HISTORY_TRANSACTION_TYPES
            ),
        )
        .order_by(UniversalTransaction.created_at.desc())
    )
    return [_snapshot(t) for t in result.scalars().all()]


@router.get("/anomalies")
async def get_anomalies(
    organization_id: UUID,
    analysis_type: str = Query("comprehensive", pattern="^(models|recent_anomalies|comprehensive)$"),
    account_code: Optional[str] = None,
    timeframe: int = Query(30, ge=1, le=365),
    severity: Optional[str] = Query(None, pattern="^(low|medium|high|critical)$"),
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("anomalies:read")),
):
    """
    Run anomaly analysis for the organization.

    Models are learned from at least 90 days of history; anomalies are
    reported for transactions created within the timeframe.
    """
    settings = get_settings()
    logger.info(f"Running anomaly detection ({analysis_type}) for organization {organization_id}")

    accounts = await chart_codes(db, organization_id)
    if account_code:
        accounts = {code for code in accounts if code == account_code}

    history = await _history(
        db, organization_id, max(timeframe, settings.anomaly_default_lookback_days)
    )

    models = {}
    for code in sorted(accounts):
        model = anomaly_detection.build_model(code, history, settings.anomaly_min_history)
        if model is not None:
            models[code] = model

    since = datetime.now(timezone.utc) - timedelta(days=timeframe)
    result = await db.execute(
        select(UniversalTransaction)
        .where(
            UniversalTransaction.organization_id == organization_id,
            UniversalTransaction.created_at >= since,
        )
        .order_by(UniversalTransaction.created_at.desc())
    )
    recent = [_snapshot(t) for t in result.scalars().all()]

    anomalies = anomaly_detection.detect_anomalies(recent, models, severity)
    summary = anomaly_detection.summarize(len(recent), anomalies)

    logger.info(
        f"Anomaly detection completed: {len(models)} models, "
        f"{summary['anomalous_transactions']} anomalies in {summary['total_transactions']} transactions"
    )

    data = {"summary": summary}
    if analysis_type in ("models", "comprehensive"):
        data["models"] = [m.to_dict() for m in models.values()]
    if analysis_type in ("recent_anomalies", "comprehensive"):
        data["anomalies"] = anomalies

    return {
        "data": data,
        "metadata": {
            "organization_id": str(organization_id),
            "analysis_type": analysis_type,
            "account_code": account_code,
            "timeframe": timeframe,
            "severity": severity,
            "generated_at": datetime.now(timezone.utc).isoformat(),
        },
    }


@router.post("/anomalies/score")
async def score_transaction(
    organization_id: UUID,
    request: ScoreRequest,
    db: AsyncSession = Depends(get_db),
    tenant: TenantContext = Depends(require_permissions("anomalies:read")),
):
    """
    Score one prospective transaction line against the account's history.

    Raises:
        HTTPException: 400 when no transaction is supplied
    """
    if request.transaction is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Transaction data required for real-time analysis",
        )

    settings = get_settings()
    candidate = request.transaction
    history = await _history(
        db, organization_id, request.lookback_days or settings.anomaly_default_lookback_days
    )
    amounts = anomaly_detection.history_amounts_for(candidate.account_code, history)

    try:
        data = anomaly_detection.score_realtime(
            candidate.transaction_id,
            candidate.account_code,
            candidate.amount,
            amounts,
            sensitivity=request.sensitivity,
            min_history=settings.anomaly_realtime_min_history,
        )
    except InsufficientHistoryError as e:
        logger.info(f"Real-time scoring skipped for account {candidate.account_code}: {e}")
        return {
            "data": {
                "anomalies": [],
                "real_time_analysis": {
                    "status": "insufficient_data",
                    "message": "Need more historical data for reliable anomaly detection",
                    "data_points": e.data_points,
                    "minimum_required": e.minimum,
                },
            }
        }

    if data["anomalies"]:
        logger.warning(
            f"Transaction {candidate.transaction_id} flagged for review "
            f"(account {candidate.account_code}, amount {candidate.amount})"
        )
    return {"data": data}
