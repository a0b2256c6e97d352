# __init__.py
# Routers package for the SemNotes API

# Re-exports router instances for registration in main.py.

# @see: api/routers/profile.py - Current user, onboarding and profile
# @see: api/routers/subjects.py - Subject catalogue and units
# @see: api/routers/notes.py - Upload, viewing and PDF retrieval
# @see: api/routers/engagement.py - Bookmarks and ratings
# @see: api/routers/admin.py - Dashboard, moderation and multi-upload
# @see: api/main.py - Router registration

from api.routers.admin import router as admin_router
from api.routers.engagement import router as engagement_router
from api.routers.notes import router as notes_router
from api.routers.profile import router as profile_router
from api.routers.subjects import router as subjects_router

__all__ = ["admin_router", "engagement_router", "notes_router", "profile_router", "subjects_router"]
