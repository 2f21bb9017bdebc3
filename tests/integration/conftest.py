"""Integration test configuration - set env vars before any app imports."""

import os

# Keep module-level create_app() independent of the developer's environment.
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
