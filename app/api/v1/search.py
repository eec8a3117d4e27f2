"""Search endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_actor, get_db
from app.core.permissions import ActorContext
from app.schemas.user import ProfilePublicResponse, RecommendedProfile
from app.services.recommendation_service import recommendation_service

router = APIRouter()


@router.get("/recommended", response_model=list[RecommendedProfile])
async def get_recommended_profiles(
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[RecommendedProfile]:
    """Profiles ranked by shared city, shared interests and online status."""
    ranked = await recommendation_service.recommend(db, actor.user_id)
    return [
        RecommendedProfile(**ProfilePublicResponse.model_validate(profile).model_dump(), score=score)
        for profile, score in ranked
    ]
