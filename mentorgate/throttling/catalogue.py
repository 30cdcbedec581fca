"""Throttle bindings for the mentoring platform's backend routes.

Route ids are ``"<METHOD> /<controller>/<path>"``. AI-backed generation routes
get the ``ai_endpoint`` preset with a premium-tier override; credential routes
get ``auth``; file uploads get ``upload``. Routes not listed here are
unthrottled.
"""

from __future__ import annotations

from typing import Any

from mentorgate.throttling.policies import AI_ENDPOINT, AUTH, DEFAULT, PREMIUM, UPLOAD

_AI = {"policy": AI_ENDPOINT, "tiers": {"premium": PREMIUM}}

ROUTE_POLICIES: dict[str, Any] = {
    # auth
    "POST /auth/register": AUTH,
    "POST /auth/login": AUTH,
    "POST /auth/refresh": AUTH,
    "POST /auth/2fa/verify": AUTH,
    "POST /auth/2fa/verify-setup": AUTH,
    "GET /auth/me": DEFAULT,
    "PUT /auth/profile": DEFAULT,
    # learning
    "POST /learning/roadmap": _AI,
    "POST /learning/explain": _AI,
    "POST /learning/news": _AI,
    "PUT /learning/progress/{milestone_id}": DEFAULT,
    # projects
    "POST /projects/ideas": _AI,
    "POST /projects/architecture": _AI,
    "POST /projects/code": _AI,
    "POST /projects/export/github": {"policy": DEFAULT, "tiers": {"premium": PREMIUM}},
    # interview
    "POST /interview/session": _AI,
    "POST /interview/session/{id}/answer": _AI,
    "POST /interview/voice/transcribe": {"policy": UPLOAD, "tiers": {"premium": PREMIUM}},
    "POST /interview/voice/synthesize": _AI,
    # jobs
    "POST /jobs/resume/upload": UPLOAD,
    "POST /jobs/resume/{id}/score": _AI,
    "POST /jobs/resume/{id}/optimize": _AI,
    "POST /jobs/match": _AI,
    # productivity
    "POST /productivity/notes/{id}/summarize": _AI,
    "POST /productivity/tasks": DEFAULT,
    "POST /productivity/reminders": DEFAULT,
    # subscription
    "POST /subscription/upgrade": AUTH,
    # sync
    "POST /sync/apply": DEFAULT,
}
