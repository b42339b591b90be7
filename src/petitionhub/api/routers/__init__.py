"""API routers for PetitionHub."""
