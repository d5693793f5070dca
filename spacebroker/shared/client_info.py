"""Network identity of the calling client, recorded on consents and signatures"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request


@dataclass(frozen=True)
class ClientInfo:
    ip: Optional[str] = None
    user_agent: Optional[str] = None


def get_client_info(request: Request) -> ClientInfo:
    """FastAPI dependency resolving the caller's IP (proxy aware) and user agent"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else None
    return ClientInfo(ip=ip, user_agent=request.headers.get("User-Agent"))
