from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


MessageType = Literal["Email", "LinkedIn", "SMS", "Other"]
MessagePriority = Literal["Low", "Medium", "High", "Urgent"]
MessageStatus = Literal["pending", "responded", "no_response"]
InteractionType = Literal["Email", "Call", "Message", "Meeting", "Coffee", "Lunch", "Conference", "Referral", "Other"]
InteractionOutcome = Literal["Positive", "Neutral", "Negative", "Follow-up needed", "Action required"]
RelationshipStrength = Literal["Weak", "Medium", "Strong", "At-Risk"]


class MessageIn(BaseModel):
    contact_id: str
    content: str = Field(min_length=1, max_length=5000)
    subject: str | None = Field(default=None, max_length=200)
    type: MessageType = "Email"
    priority: MessagePriority = "Medium"


class MessageStatusUpdateIn(BaseModel):
    status: MessageStatus
    reply_content: str | None = Field(default=None, max_length=1000)


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    message_id: str
    contact_id: str
    owner_user_id: str
    content: str
    subject: str | None = None
    type: str
    priority: str
    status: MessageStatus
    reply_content: str | None = None
    replied_at: datetime | None = None
    fire_at: datetime | None = None
    created_at: datetime


class ScheduleResponse(BaseModel):
    message_id: str
    scheduled: bool
    fire_at: datetime | None = None


class CancelResponse(BaseModel):
    message_id: str
    cancelled: bool


class MessageStatsResponse(BaseModel):
    total_messages: int
    pending_messages: int
    responded_messages: int
    no_response_messages: int
    response_rate: int
    pending_follow_ups: int
    average_response_time_hours: int


class InteractionIn(BaseModel):
    type: InteractionType
    outcome: InteractionOutcome = "Neutral"
    content: str | None = Field(default=None, max_length=5000)
    duration_minutes: int | None = Field(default=None, ge=0)
    follow_up_required: bool = False
    follow_up_date: datetime | None = None
    follow_up_notes: str | None = Field(default=None, max_length=2000)
    occurred_at: datetime | None = None


class InteractionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    interaction_id: str
    contact_id: str
    type: str
    outcome: str
    occurred_at: datetime
    duration_minutes: int | None = None
    follow_up_required: bool
    follow_up_date: datetime | None = None
    follow_up_notes: str | None = None


class AnalyticsRunIn(BaseModel):
    day: date | None = None


class Recommendation(BaseModel):
    type: str
    priority: str
    description: str
    impact: str


class RiskFactor(BaseModel):
    factor: str
    severity: str
    mitigation: str


class AIInsights(BaseModel):
    network_health_score: float
    recommendations: list[Recommendation] = Field(default_factory=list)
    risk_factors: list[RiskFactor] = Field(default_factory=list)


class AnalyticsSnapshotOut(BaseModel):
    user_id: str
    day: date
    contact_growth: dict[str, int]
    interaction_metrics: dict[str, Any]
    relationship_distribution: dict[str, int]
    engagement_metrics: dict[str, float]
    growth_trends: dict[str, float]
    follow_up_metrics: dict[str, int]
    ai_insights: AIInsights
    processed_at: datetime


class GrowthTrendsSummary(BaseModel):
    snapshot_count: int
    total_contacts: int
    new_interactions: int
    average_engagement_rate: float
    average_network_health: float


class GrowthTrendsResponse(BaseModel):
    period_days: int
    start_day: date
    end_day: date
    snapshots: list[AnalyticsSnapshotOut] = Field(default_factory=list)
    summary: GrowthTrendsSummary


class InsightOut(BaseModel):
    type: str
    title: str
    message: str
    recommendation: str | None = None
    impact: str


class InsightsResponse(BaseModel):
    overall_score: int
    category: str
    snapshot_day: date | None = None
    insights: list[InsightOut] = Field(default_factory=list)


class FollowUpMetrics(BaseModel):
    total: int
    completed: int
    effective: int
    overdue: int
    completion_rate: int
    effectiveness_rate: int


class FollowUpEffectivenessResponse(BaseModel):
    period_days: int
    start: datetime
    end: datetime
    metrics: FollowUpMetrics
    insights: list[InsightOut] = Field(default_factory=list)


class ChannelInsightsResponse(BaseModel):
    period_days: int
    start: datetime
    end: datetime
    total_interactions: int
    breakdown: dict[str, int]
    percentages: dict[str, int]
    primary_channel: str | None = None
    insights: list[InsightOut] = Field(default_factory=list)


class QualityPoint(BaseModel):
    day: date
    strong: int
    medium: int
    weak: int
    at_risk: int
    total: int
    engagement_rate: float
    strong_percentage: float


class QualitySummary(BaseModel):
    total_contacts: int
    strong: int
    medium: int
    weak: int
    at_risk: int
    average_engagement_rate: float
    quality_trend: Literal["improving", "declining", "stable"]


class EngagementQualityResponse(BaseModel):
    period_days: int
    start_day: date
    end_day: date
    summary: QualitySummary
    daily: list[QualityPoint] = Field(default_factory=list)
    weekly: list[QualityPoint] = Field(default_factory=list)
    insights: list[InsightOut] = Field(default_factory=list)


class ScoreComponentOut(BaseModel):
    name: str
    score: int
    raw_score: float
    max_score: int
    description: str
    details: str


class NetworkingScoreResponse(BaseModel):
    overall_score: int
    max_score: int = 100
    category: str
    components: list[ScoreComponentOut] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    calculated_at: datetime


class SuggestedActionOut(BaseModel):
    action: str
    priority: str
    reason: str


class ContactScoreItem(BaseModel):
    contact_id: str
    full_name: str
    company: str | None = None
    relationship_strength: RelationshipStrength
    last_contacted: datetime | None = None
    days_since_contact: int | None = None
    interaction_count: int
    risk_factor: int
    priority: int


class ContactScoreDetailResponse(ContactScoreItem):
    suggested_actions: list[SuggestedActionOut] = Field(default_factory=list)
    priority_actions: list[str] = Field(default_factory=list)
    explanation: str


class BackfillAnalyticsIn(BaseModel):
    user_id: str | None = None
    days: int | None = Field(default=None, ge=1, le=366)
    end_day: date | None = None


class SweepUnansweredIn(BaseModel):
    user_id: str | None = None
    older_than_days: int | None = Field(default=None, ge=1, le=365)


class RefreshStrengthsIn(BaseModel):
    user_id: str


class JobEnqueuedResponse(BaseModel):
    job_id: str
    status: str
