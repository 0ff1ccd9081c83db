"""Service layer: translation provider, cache and orchestration."""
