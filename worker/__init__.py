"""Background worker for scheduled jobs."""
