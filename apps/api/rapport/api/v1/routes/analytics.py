from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from rapport.api.v1.deps import get_current_user_id, get_db
from rapport.api.v1.schemas import (
    AnalyticsRunIn,
    AnalyticsSnapshotOut,
    ChannelInsightsResponse,
    EngagementQualityResponse,
    FollowUpEffectivenessResponse,
    GrowthTrendsResponse,
    InsightOut,
    InsightsResponse,
)
from rapport.core.clock import utcnow
from rapport.core.errors import AnalyticsStoreError
from rapport.services.analytics.breakdowns import (
    get_channel_insights,
    get_engagement_quality,
    get_follow_up_effectiveness,
)
from rapport.services.analytics.daily import (
    generate_daily_analytics,
    get_growth_trends,
    get_latest_snapshot,
    snapshot_to_dict,
)
from rapport.services.insights.generator import generate_insights
from rapport.services.scoring.networking_score import compute_user_networking_score

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.post("/daily", response_model=AnalyticsSnapshotOut)
def run_daily_analytics(
    payload: AnalyticsRunIn | None = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> AnalyticsSnapshotOut:
    day = payload.day if payload and payload.day else utcnow().date()
    try:
        snapshot = generate_daily_analytics(db, user_id, day)
    except AnalyticsStoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return AnalyticsSnapshotOut(**snapshot_to_dict(snapshot))


@router.get("/latest", response_model=AnalyticsSnapshotOut)
def latest_analytics(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> AnalyticsSnapshotOut:
    snapshot = get_latest_snapshot(db, user_id)
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No analytics snapshot yet")
    return AnalyticsSnapshotOut(**snapshot_to_dict(snapshot))


@router.get("/trends", response_model=GrowthTrendsResponse)
def growth_trends(
    period_days: int = Query(default=30, ge=1, le=366),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> GrowthTrendsResponse:
    return GrowthTrendsResponse(**get_growth_trends(db, user_id, period_days=period_days))


@router.get("/insights", response_model=InsightsResponse)
def network_insights(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> InsightsResponse:
    score = compute_user_networking_score(db, user_id)
    snapshot = get_latest_snapshot(db, user_id)
    insights = generate_insights(score, snapshot)
    return InsightsResponse(
        overall_score=score.overall,
        category=score.category,
        snapshot_day=snapshot.day if snapshot is not None else None,
        insights=[InsightOut(**insight.to_dict()) for insight in insights],
    )


@router.get("/follow_ups", response_model=FollowUpEffectivenessResponse)
def follow_up_effectiveness(
    period_days: int = Query(default=30, ge=1, le=366),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> FollowUpEffectivenessResponse:
    return FollowUpEffectivenessResponse(**get_follow_up_effectiveness(db, user_id, period_days=period_days))


@router.get("/channels", response_model=ChannelInsightsResponse)
def channel_insights(
    period_days: int = Query(default=30, ge=1, le=366),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> ChannelInsightsResponse:
    return ChannelInsightsResponse(**get_channel_insights(db, user_id, period_days=period_days))


@router.get("/engagement_quality", response_model=EngagementQualityResponse)
def engagement_quality(
    period_days: int = Query(default=30, ge=1, le=366),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> EngagementQualityResponse:
    return EngagementQualityResponse(**get_engagement_quality(db, user_id, period_days=period_days))
