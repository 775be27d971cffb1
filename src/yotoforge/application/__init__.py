"""Application layer - services, cache and the job queue worker."""
