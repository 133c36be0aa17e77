"""
Suggestion endpoints:
  POST /suggestions/               — ranked "people you may know" for the caller
  POST /suggestions/interactions   — log that a suggestion was shown/followed/dismissed

Both require a bearer token resolvable by the auth provider.
"""
import json
import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Request, status
from opentelemetry import trace
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.auth import get_current_user_id
from app.database import get_db, get_session_factory
from app.errors import InternalError, InvalidRequest, SuggestServiceError, UpstreamQueryFailure
from app.models import Profile, SuggestionInteraction
from app.schemas import (
    InteractionCreate,
    InteractionResponse,
    SuggestedUser,
    SuggestionRequest,
    SuggestionsResponse,
)
from app.suggestions.scorer import ScoredCandidate, SuggestionScorer
from app.telemetry import SUGGESTION_LATENCY, SUGGESTIONS_RETURNED_TOTAL

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def get_scorer(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> SuggestionScorer:
    return SuggestionScorer.from_settings(session_factory)


async def _read_suggestion_request(request: Request) -> SuggestionRequest:
    """
    The body is optional: an empty or unparsable body means "use the default
    limit". A body that parses but carries a bad limit is rejected.
    """
    raw = await request.body()
    try:
        payload = json.loads(raw) if raw else {}
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    try:
        return SuggestionRequest.model_validate(payload)
    except ValidationError:
        raise InvalidRequest("limit must be a positive integer")


def _to_suggested_user(candidate: ScoredCandidate) -> SuggestedUser:
    p = candidate.profile
    return SuggestedUser(
        id=p.id,
        user_name=p.user_name,
        user_handle=p.user_handle,
        avatar_url=p.avatar_url,
        bio=p.bio,
        location=p.location,
        is_verified=bool(p.is_verified),
        score=candidate.score,
        mutualConnections=candidate.mutual_connections,
    )


@router.post("/", response_model=SuggestionsResponse)
async def suggest_users(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    scorer: SuggestionScorer = Depends(get_scorer),
):
    """
    Rank users the caller does not follow yet.

    Request body (optional): { "limit": 10 }
    Response: { "suggestions": [{ id, user_name, …, score, mutualConnections }] }
    """
    start_time = time.perf_counter()

    with tracer.start_as_current_span("suggest_users") as span:
        span.set_attribute("user.id", user_id)
        body = await _read_suggestion_request(request)

        try:
            ranked = await scorer.suggest(user_id, limit=body.limit)
        except UpstreamQueryFailure:
            logger.exception("Store read failed while ranking suggestions for %s", user_id)
            raise InternalError("Failed to load suggestions") from None
        except SuggestServiceError:
            raise
        except Exception as exc:
            logger.exception("Error generating suggestions for %s", user_id)
            raise InternalError(str(exc) or "Unknown error") from exc

        suggestions = [_to_suggested_user(c) for c in ranked]

        latency = time.perf_counter() - start_time
        SUGGESTION_LATENCY.observe(latency)
        SUGGESTIONS_RETURNED_TOTAL.inc(len(suggestions))
        span.set_attribute("suggestions.returned", len(suggestions))
        span.set_attribute("suggestions.latency_ms", round(latency * 1000, 2))

        logger.info("Generated %d suggestions for %s", len(suggestions), user_id)
        return SuggestionsResponse(suggestions=suggestions)


@router.post(
    "/interactions",
    response_model=InteractionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_interaction(
    body: InteractionCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Append one entry to the suggestion interaction log.

    'dismissed' entries hide the candidate from later suggestions;
    'followed' entries feed the learned-preference bonus.
    """
    with tracer.start_as_current_span("record_suggestion_interaction"):
        if body.suggested_user_id == user_id:
            raise InvalidRequest("Cannot record an interaction with yourself")
        if not await db.get(Profile, body.suggested_user_id):
            raise HTTPException(status_code=404, detail="User not found")

        interaction = SuggestionInteraction(
            user_id=user_id,
            suggested_user_id=body.suggested_user_id,
            interaction_type=body.interaction_type,
        )
        db.add(interaction)
        await db.flush()
        logger.info(
            "%s %s suggestion %s", user_id, body.interaction_type, body.suggested_user_id
        )
        return interaction
