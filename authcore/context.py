"""Client details captured for the login audit trail."""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass

from fastapi import Request

_TABLET_PATTERN = re.compile(r"iPad|Tablet|PlayBook|Silk|Kindle", re.IGNORECASE)
_ANDROID_PATTERN = re.compile(r"Android", re.IGNORECASE)
_MOBILE_PATTERN = re.compile(r"Mobile|iPhone|iPod|Android|BlackBerry|Windows Phone", re.IGNORECASE)


class DeviceClass(str, enum.Enum):
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"
    UNKNOWN = "unknown"


def classify_device(user_agent: str | None) -> DeviceClass:
    """Coarse device class from a User-Agent string."""

    if not user_agent or not user_agent.strip():
        return DeviceClass.UNKNOWN
    if _TABLET_PATTERN.search(user_agent):
        return DeviceClass.TABLET
    # Android tablets omit the "Mobile" token
    if _ANDROID_PATTERN.search(user_agent) and "mobile" not in user_agent.lower():
        return DeviceClass.TABLET
    if _MOBILE_PATTERN.search(user_agent):
        return DeviceClass.MOBILE
    return DeviceClass.DESKTOP


@dataclass(frozen=True)
class RequestContext:
    ip_address: str | None = None
    user_agent: str | None = None

    @property
    def device(self) -> DeviceClass:
        return classify_device(self.user_agent)

    @classmethod
    def from_request(cls, request: Request) -> "RequestContext":
        forwarded = request.headers.get("x-forwarded-for", "")
        ip_address = forwarded.split(",")[0].strip() if forwarded else None
        if not ip_address and request.client is not None:
            ip_address = request.client.host
        return cls(
            ip_address=ip_address or None,
            user_agent=request.headers.get("user-agent") or None,
        )
