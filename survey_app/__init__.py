"""Survey response lifecycle service.

This package exposes a FastAPI application factory. Response status
transitions, answer merging and transactional saves live in
`survey_app/logic/`; ORM and payload models in `survey_app/models/`; route
handlers in `survey_app/routes/`.
"""

from __future__ import annotations

from survey_app.main import create_app

__all__ = ["create_app"]
