"""Call centers: read-only view of the admin-managed ``centers`` table."""

from src.centers.repository import CenterRepository
from src.centers.schemas import Center

__all__ = ["Center", "CenterRepository"]
