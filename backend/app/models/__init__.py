"""SQLAlchemy models for Suplient.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from app.models.subscription import Subscription
from app.models.user import User

__all__ = [
    "Subscription",
    "User",
]
