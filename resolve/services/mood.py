"""Case mood tracking: derived score and summary."""
from typing import Optional

from resolve.models.database_models import Case, StressLevel, UrgencyFeeling
from resolve.models.schemas import MoodResponse, MoodUpdateRequest
from resolve.utils.helpers import utcnow

STRESS_PENALTY = {
    StressLevel.CRITICAL.value: 3,
    StressLevel.HIGH.value: 2,
    StressLevel.MEDIUM.value: 1,
}
URGENCY_PENALTY = {
    UrgencyFeeling.PANIC.value: 2,
    UrgencyFeeling.URGENT.value: 1,
}


def overall_mood_score(mood_score: int, stress_level: Optional[str], urgency_feeling: Optional[str]) -> int:
    """Mood minus stress and urgency penalties, clamped to 1-10."""
    score = mood_score - STRESS_PENALTY.get(stress_level or "", 0) - URGENCY_PENALTY.get(urgency_feeling or "", 0)
    return max(1, min(10, score))


def mood_summary(mood_score: int, stress_level: Optional[str], urgency_feeling: Optional[str]) -> str:
    if (
        mood_score <= 3
        or stress_level == StressLevel.CRITICAL.value
        or urgency_feeling == UrgencyFeeling.PANIC.value
    ):
        return "Case requires immediate attention"
    if (
        mood_score <= 5
        or stress_level == StressLevel.HIGH.value
        or urgency_feeling == UrgencyFeeling.URGENT.value
    ):
        return "Case needs close monitoring"
    if mood_score <= 7 or stress_level == StressLevel.MEDIUM.value:
        return "Case progressing normally"
    return "Case going very well"


def apply_mood_update(case: Case, update: MoodUpdateRequest) -> None:
    """Copy the provided fields onto *case* and stamp ``last_mood_update``."""
    for field, value in update.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(case, field, value.value if hasattr(value, "value") else value)
    case.last_mood_update = utcnow()


def mood_response(case: Case) -> MoodResponse:
    return MoodResponse(
        mood_score=case.mood_score,
        stress_level=case.stress_level,
        urgency_feeling=case.urgency_feeling,
        confidence_level=case.confidence_level,
        client_satisfaction=case.client_satisfaction,
        mood_notes=case.mood_notes,
        last_mood_update=case.last_mood_update,
        overall_score=overall_mood_score(case.mood_score, case.stress_level, case.urgency_feeling),
        mood_summary=mood_summary(case.mood_score, case.stress_level, case.urgency_feeling),
    )
