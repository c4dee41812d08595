"""Repository implementations."""

from interview_practice.persistence.repositories.session_repo import SessionRepository

__all__ = [
    "SessionRepository",
]
