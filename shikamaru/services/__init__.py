"""Service implementations: logging and the orchestration engine."""
