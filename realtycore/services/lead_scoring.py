"""
Lead scoring - four components of up to 25 points each.
Every component starts at a base of 15 and earns bonuses from the inquiry.
"""
from typing import Optional

BASE_COMPONENT_SCORE = 15
MAX_TOTAL_SCORE = 100

DETAILED_MESSAGE_LENGTH = 50
VIEWING_KEYWORDS = ("viewing", "tour")
URGENCY_KEYWORDS = ("urgent", "immediately", "asap", "quick", "soon")

ENTRY_PRICE_THRESHOLD = 300_000
LUXURY_PRICE_THRESHOLD = 1_000_000


def calculate_lead_score(
    message: Optional[str] = None,
    phone: Optional[str] = None,
    property_price: Optional[float] = None,
) -> dict:
    """
    Score an inquiry.

    Returns:
        {property_interest, budget_alignment, timeline_urgency,
         contact_preference, total}
    """
    text = (message or "").lower()

    property_interest = BASE_COMPONENT_SCORE
    if len(message or "") > DETAILED_MESSAGE_LENGTH:
        property_interest += 5
    if any(k in text for k in VIEWING_KEYWORDS):
        property_interest += 5

    budget_alignment = BASE_COMPONENT_SCORE
    if property_price:
        if property_price < ENTRY_PRICE_THRESHOLD:
            budget_alignment += 5
        if property_price > LUXURY_PRICE_THRESHOLD:
            budget_alignment += 3

    timeline_urgency = BASE_COMPONENT_SCORE
    if any(k in text for k in URGENCY_KEYWORDS):
        timeline_urgency += 10

    contact_preference = BASE_COMPONENT_SCORE
    if phone:
        contact_preference += 10

    total = min(
        property_interest + budget_alignment + timeline_urgency + contact_preference,
        MAX_TOTAL_SCORE,
    )
    return {
        "property_interest": property_interest,
        "budget_alignment": budget_alignment,
        "timeline_urgency": timeline_urgency,
        "contact_preference": contact_preference,
        "total": total,
    }


def priority_for_score(total: int) -> str:
    if total >= 80:
        return "urgent"
    if total >= 60:
        return "high"
    if total >= 40:
        return "medium"
    return "low"
