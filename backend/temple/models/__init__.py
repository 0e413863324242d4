"""SQLAlchemy ORM models.

All models are exported from this module for convenient imports:
    from temple.models import Donation

Models are organized by domain:
- base.py: Base, TimestampMixin
- donation.py: Donation
"""

from temple.models.base import Base, TimestampMixin
from temple.models.donation import Donation

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Donations
    "Donation",
]
