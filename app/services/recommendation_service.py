"""Profile recommendations for the search page."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.user import Profile

SAME_CITY_POINTS = 3
SHARED_INTEREST_POINTS = 2
ONLINE_POINTS = 1


def score_profile(viewer: Profile | None, candidate: Profile) -> int:
    """Relevance of ``candidate`` to ``viewer``.

    +3 for the same city (case-insensitive), +2 per shared interest and +1 if
    the candidate is online.
    """
    score = 0
    if viewer is not None:
        if viewer.city and candidate.city and viewer.city.lower() == candidate.city.lower():
            score += SAME_CITY_POINTS
        if viewer.interests and candidate.interests:
            shared = [i for i in viewer.interests if i in candidate.interests]
            score += len(shared) * SHARED_INTEREST_POINTS
    if candidate.is_online:
        score += ONLINE_POINTS
    return score


def rank_profiles(viewer: Profile | None, candidates: list[Profile]) -> list[tuple[Profile, int]]:
    """Sort candidates by score, highest first. Ties keep their input order."""
    scored = [(candidate, score_profile(viewer, candidate)) for candidate in candidates]
    # sorted() is stable
    return sorted(scored, key=lambda pair: pair[1], reverse=True)


class RecommendationService:
    """Scores active profiles against the viewer's own profile."""

    async def recommend(self, db: AsyncSession, viewer_id: UUID) -> list[tuple[Profile, int]]:
        viewer = await db.get(Profile, viewer_id)
        result = await db.execute(
            select(Profile)
            .where(Profile.user_id != viewer_id, Profile.is_active.is_(True))
            .order_by(Profile.created_at.desc())
            .limit(settings.recommendation_candidate_limit)
        )
        return rank_profiles(viewer, list(result.scalars().all()))


recommendation_service = RecommendationService()
