"""PostgreSQL connection management."""
