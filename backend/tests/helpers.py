"""Small helpers shared by test modules."""

from datetime import datetime

BASE_TIME = datetime(2030, 5, 1, 9, 0)


def as_user(user) -> dict:
    """Identity header for requests made on behalf of user."""
    return {"X-User-ID": str(user.id)}
