"""Schema for call center records.

Centers are created and edited through the admin portal; the alert
engine only reads them.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class Center:
    """A BPO call center with a daily sales target.

    Attributes:
        id: Center identifier.
        name: Display name used in alert messages.
        daily_sales_target: Expected submitted sales per day. Values <= 0
            mean no achievement percentage can be computed.
        region: Sales region.
        location: City or site.
        active: Whether the center takes part in alert sweeps.
    """

    id: str
    name: str
    daily_sales_target: int
    region: str = ""
    location: str = ""
    active: bool = True

    @property
    def has_target(self) -> bool:
        """True when an achievement percentage is meaningful."""
        return self.daily_sales_target > 0

    def achievement_pct(self, sales: int) -> float | None:
        """Sales as a percentage of the daily target, or None without a target."""
        if not self.has_target:
            return None
        return sales / self.daily_sales_target * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "daily_sales_target": self.daily_sales_target,
            "region": self.region,
            "location": self.location,
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Center":
        """Build a Center from a ``centers`` row or API payload.

        Accepts the portal's column names (``center_name``, ``status``)
        as well as the attribute names.
        """
        return cls(
            id=str(data["id"]),
            name=data.get("name") or data.get("center_name") or str(data["id"]),
            daily_sales_target=int(data.get("daily_sales_target") or 0),
            region=data.get("region") or "",
            location=data.get("location") or "",
            active=bool(data.get("active", data.get("status", True))),
        )
