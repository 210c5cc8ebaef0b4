"""Novel Hub - a REST backend for writing, sharing and generating stories.

Readers browse and search published stories; signed-in writers publish,
like and comment, and can ask an AI provider to draft a story from a prompt.

Quick Start:
    uvicorn novelhub.api.main:app --port 5000

    # Or build an app against custom settings and collaborators
    from novelhub.api.main import create_app
    from novelhub.core.config import Settings

    app = create_app(Settings(database_url="sqlite+aiosqlite:///./dev.db"))

Layout:
    core      - settings and credential helpers
    models    - SQLAlchemy models and the Database connection owner
    services  - account, story, media, generation and reset-delivery logic
    api       - FastAPI routers, dependencies, middleware and error envelopes
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
