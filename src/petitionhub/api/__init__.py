"""HTTP API for PetitionHub (FastAPI application, routers and middleware)."""
