"""Rule-based insights over a networking score and the latest analytics snapshot.

Everything here is a pure function of its inputs: the same score and snapshot always
produce the same insights in the same order.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from rapport.db.pg.models import STRENGTH_WEAK, AnalyticsSnapshot
from rapport.services.scoring.networking_score import NetworkingScore
from rapport.services.scoring.priority_score import ContactScore

LOW_ENGAGEMENT_RATE = 30.0
HIGH_ENGAGEMENT_RATE = 70.0
SMALL_NETWORK_SIZE = 50
GROWTH_RATE_HIGH = 10.0
GROWTH_RATE_DECLINE = -5.0
EXCELLENT_STRONG_SHARE = 60.0
GOOD_STRONG_SHARE = 40.0

CATCH_UP_AFTER_DAYS = 30
URGENT_OUTREACH_AFTER_DAYS = 45

# (component, threshold on the rounded score, recommendation)
COMPONENT_RECOMMENDATIONS = (
    ("network_size", 15, "Expand your network by attending events and reaching out to new contacts"),
    ("relationship_quality", 20, "Focus on building deeper relationships with existing contacts"),
    ("activity_level", 15, "Increase your interaction frequency to maintain relationships"),
    ("consistency", 10, "Maintain regular contact patterns throughout the year"),
    ("channel_diversity", 7, "Diversify your communication channels (calls, meetings, etc.)"),
    ("follow_up_effectiveness", 7, "Improve your follow-up completion rate"),
)

CATEGORY_SUMMARIES = {
    "Excellent": ("success", "Your networking habits are excellent. Keep investing in your strongest relationships."),
    "Good": ("info", "Your networking is in good shape. A few targeted improvements will lift it further."),
    "Fair": ("warning", "Your networking is fair. Focus on the lowest scoring areas first."),
    "Poor": ("warning", "Your networking needs attention. Start with regular outreach to existing contacts."),
}


@dataclass(frozen=True)
class Insight:
    type: str
    title: str
    message: str
    recommendation: str | None = None
    impact: str = "medium"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SuggestedAction:
    action: str
    priority: str
    reason: str


@dataclass(frozen=True)
class ContactActions:
    contact_id: str
    suggested_actions: list[SuggestedAction] = field(default_factory=list)
    priority_actions: list[str] = field(default_factory=list)
    explanation: str = ""


def _snapshot_insights(snapshot: AnalyticsSnapshot) -> list[Insight]:
    insights: list[Insight] = []
    engagement_rate = float(snapshot.engagement_metrics_json.get("engagement_rate", 0.0))
    total_contacts = int(snapshot.contact_growth_json.get("total", 0))
    growth_rate = float(snapshot.growth_trends_json.get("contact_growth_rate", 0.0))

    if engagement_rate < LOW_ENGAGEMENT_RATE:
        insights.append(
            Insight(
                type="warning",
                title="Low Engagement Rate",
                message=f"Your engagement rate is {engagement_rate:.1f}%, which is below the recommended 30%.",
                recommendation="Increase regular communication with your contacts to improve relationship quality.",
                impact="medium",
            )
        )
    elif engagement_rate > HIGH_ENGAGEMENT_RATE:
        insights.append(
            Insight(
                type="success",
                title="High Engagement Rate",
                message=f"Excellent! Your engagement rate is {engagement_rate:.1f}%.",
                impact="high",
            )
        )

    if total_contacts < SMALL_NETWORK_SIZE:
        insights.append(
            Insight(
                type="info",
                title="Small Network",
                message=f"You have {total_contacts} contacts. Consider expanding your network for better opportunities.",
                impact="medium",
            )
        )

    if growth_rate > GROWTH_RATE_HIGH:
        insights.append(
            Insight(
                type="success",
                title="Growing Network",
                message=f"Your network grew by {growth_rate:.1f}% since the previous day.",
                impact="high",
            )
        )
    elif growth_rate < GROWTH_RATE_DECLINE:
        insights.append(
            Insight(
                type="warning",
                title="Network Decline",
                message=f"Your network shrank by {abs(growth_rate):.1f}% since the previous day.",
                impact="high",
            )
        )

    distribution = snapshot.relationship_distribution_json
    if total_contacts > 0:
        strong_share = int(distribution.get("strong", 0)) / total_contacts * 100
        if strong_share > EXCELLENT_STRONG_SHARE:
            insights.append(
                Insight(
                    type="excellent",
                    title="Excellent Network Quality",
                    message=f"{strong_share:.1f}% of your contacts are strong relationships. You have a high-quality network!",
                    recommendation="Continue nurturing these relationships and consider expanding your network.",
                    impact="high",
                )
            )
        elif strong_share > GOOD_STRONG_SHARE:
            insights.append(
                Insight(
                    type="good",
                    title="Good Network Quality",
                    message=f"{strong_share:.1f}% of your contacts are strong relationships.",
                    recommendation="Focus on strengthening moderate relationships to improve overall network quality.",
                    impact="medium",
                )
            )
        else:
            insights.append(
                Insight(
                    type="needs-improvement",
                    title="Network Quality Needs Improvement",
                    message=f"Only {strong_share:.1f}% of your contacts are strong relationships.",
                    recommendation="Prioritize building deeper connections with existing contacts before adding new ones.",
                    impact="high",
                )
            )

    at_risk = int(distribution.get("at_risk", 0))
    if at_risk > 0:
        insights.append(
            Insight(
                type="warning",
                title="At-Risk Relationships",
                message=f"{at_risk} relationships have gone more than six weeks without contact.",
                recommendation="Reach out to at-risk contacts before the connection is lost.",
                impact="high",
            )
        )
    return insights


def _score_insights(score: NetworkingScore) -> list[Insight]:
    kind, summary = CATEGORY_SUMMARIES[score.category]
    insights = [
        Insight(
            type=kind,
            title=f"Networking Score: {score.category}",
            message=f"Your networking score is {score.overall}/100. {summary}",
            impact="high" if score.category in ("Fair", "Poor") else "medium",
        )
    ]
    for name, threshold, recommendation in COMPONENT_RECOMMENDATIONS:
        component = score.component(name)
        if component.rounded < threshold:
            insights.append(
                Insight(
                    type="recommendation",
                    title=component.description,
                    message=f"{component.description} scores {component.rounded}/{int(component.max_score)} ({component.details}).",
                    recommendation=recommendation,
                    impact="medium",
                )
            )
    return insights


def generate_insights(score: NetworkingScore, snapshot: AnalyticsSnapshot | None = None) -> list[Insight]:
    insights: list[Insight] = []
    if snapshot is not None:
        insights.extend(_snapshot_insights(snapshot))
    insights.extend(_score_insights(score))
    return insights


def suggest_contact_actions(contact: ContactScore) -> ContactActions:
    days = contact.days_since_contact
    no_interactions = contact.interaction_count <= 0
    weak = contact.relationship_strength == STRENGTH_WEAK

    suggested: list[SuggestedAction] = []
    if days and days > CATCH_UP_AFTER_DAYS:
        suggested.append(SuggestedAction("Send a catch-up email", "High", "Been too long since last contact"))
    if weak:
        suggested.append(SuggestedAction("Schedule a coffee meeting", "Medium", "Strengthen weak relationship"))
    if no_interactions:
        suggested.append(SuggestedAction("Send initial outreach", "High", "No previous interactions"))

    priority_actions: list[str] = []
    explanation: list[str] = []
    if days and days > URGENT_OUTREACH_AFTER_DAYS:
        priority_actions.append("Immediate outreach needed")
        explanation.append("High priority due to extended period without contact.")
    if weak:
        priority_actions.append("Strengthen relationship")
        explanation.append("Weak relationship requires attention to prevent loss of connection.")
    if no_interactions:
        priority_actions.append("Initial contact required")
        explanation.append("No previous interactions indicate this contact needs initial outreach.")

    return ContactActions(
        contact_id=contact.contact_id,
        suggested_actions=suggested,
        priority_actions=priority_actions,
        explanation=" ".join(explanation) or "Regular follow-up recommended to maintain relationship.",
    )
