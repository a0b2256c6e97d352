# engagement.py
# Bookmark and rating endpoints

# GET    /api/bookmarks               - caller's bookmarks
# POST   /api/bookmarks               - add (idempotent)
# DELETE /api/bookmarks/{id}          - remove own bookmark
# GET    /api/notes/{id}/ratings      - ratings of a note
# POST   /api/notes/{id}/ratings      - rate 1-5 (replaces earlier rating)

# @see: engagement.py - EngagementService

from fastapi import APIRouter, Depends, status

from api.auth import get_current_user
from api.engagement import EngagementService
from api.errors import SemNotesError, to_http_exception
from api.models import BookmarkInput, CurrentUser, RatingInput

router = APIRouter(prefix="/api", tags=["engagement"])


def get_engagement_service() -> EngagementService:
    return EngagementService()


@router.get("/bookmarks")
async def list_bookmarks(
    user: CurrentUser = Depends(get_current_user),
    service: EngagementService = Depends(get_engagement_service),
):
    return service.list_bookmarks(user.uid)


@router.post("/bookmarks", status_code=status.HTTP_201_CREATED)
async def add_bookmark(
    payload: BookmarkInput,
    user: CurrentUser = Depends(get_current_user),
    service: EngagementService = Depends(get_engagement_service),
):
    try:
        return service.add_bookmark(user.uid, payload.subject_id, payload.note_id)
    except SemNotesError as exc:
        raise to_http_exception(exc)


@router.delete("/bookmarks/{bookmark_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_bookmark(
    bookmark_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: EngagementService = Depends(get_engagement_service),
):
    try:
        service.remove_bookmark(user.uid, bookmark_id)
    except SemNotesError as exc:
        raise to_http_exception(exc)


@router.get("/notes/{note_id}/ratings")
async def list_ratings(
    note_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: EngagementService = Depends(get_engagement_service),
):
    return {"ratings": service.list_ratings(note_id), "average_rating": service.average_rating(note_id)}


@router.post("/notes/{note_id}/ratings")
async def rate_note(
    note_id: str,
    payload: RatingInput,
    user: CurrentUser = Depends(get_current_user),
    service: EngagementService = Depends(get_engagement_service),
):
    try:
        return service.rate_note(user.uid, note_id, payload.rating, payload.comment)
    except SemNotesError as exc:
        raise to_http_exception(exc)
