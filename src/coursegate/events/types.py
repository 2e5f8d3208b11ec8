"""Event type constants.

Learn: Centralizing event types as constants prevents typos and
makes it easy to discover every audited state change.
"""

# ─── Accounts ────────────────────────────────────────────

USER_REGISTERED = "user.registered"
USER_APPROVED = "user.approved"
USER_REJECTED = "user.rejected"
ADMIN_CREATED = "user.admin_created"
PASSWORD_RESET_REQUESTED = "password_reset.requested"
PASSWORD_RESET_COMPLETED = "password_reset.completed"

# ─── Course content ──────────────────────────────────────

CHAPTER_CREATED = "chapter.created"
CHAPTER_MOVED = "chapter.moved"
VIDEO_CREATED = "video.created"
VIDEO_STATUS_CHANGED = "video.status_changed"

# ─── Quiz ────────────────────────────────────────────────

QUIZ_BLUEPRINT_CREATED = "quiz.blueprint_created"
QUIZ_SESSION_FINISHED = "quiz.session_finished"
QUIZ_RESET = "quiz.reset"

# ─── Documents ───────────────────────────────────────────

PROCESSED_DOCUMENT_CREATED = "document.processed_created"
