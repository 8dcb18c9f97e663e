"""Domain models (Pydantic v2).

Why Pydantic in the domain:
- Strict validation of endpoints (IP literal, port range) at the boundary.
- Services serialize to a structured record for exporters without extra code.

Note:
- These models describe *what* was scanned and found, not *how*.
"""

from __future__ import annotations

from enum import Enum
from ipaddress import IPv4Address, IPv6Address
from typing import Any

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


class Transport(str, Enum):
    """Transport class of a plugin and of a detected service."""

    TCP = "tcp"
    TLS = "tls"
    UDP = "udp"


class Target(BaseModel):
    """An endpoint to fingerprint.

    `host` is optional: when present it is sent as the TLS server name and
    shows up in logs and results.
    """

    model_config = ConfigDict(frozen=True)

    address: IPv4Address | IPv6Address = Field(
        ...,
        description="IP address of the endpoint.",
    )
    port: int = Field(
        ...,
        ge=0,
        le=65535,
        description="Port number of the endpoint.",
    )
    host: str = Field(
        default="",
        max_length=253,
        description="Hostname used for SNI and logging (empty if unknown).",
    )

    @property
    def ip(self) -> str:
        return str(self.address)

    @property
    def endpoint(self) -> str:
        """`ip:port`, with IPv6 addresses bracketed."""

        if self.address.version == 6:
            return f"[{self.address}]:{self.port}"
        return f"{self.address}:{self.port}"

    def __str__(self) -> str:
        if self.host:
            return f"{self.endpoint} ({self.host})"
        return self.endpoint


class Service(BaseModel):
    """A detected service.

    Produced by exactly one plugin for one target and never modified after.
    """

    model_config = ConfigDict(frozen=True)

    host: str = Field(
        default="",
        description="Hostname of the target, if one was given.",
    )
    ip: str = Field(
        ...,
        description="IP address the service answered on.",
    )
    port: int = Field(
        ...,
        ge=0,
        le=65535,
    )
    transport: Transport = Field(
        ...,
        description="Transport the service was identified over (tcp/tls/udp).",
    )
    protocol: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Application protocol name (e.g. 'mysql', 'rdp', 'https').",
    )
    tls: bool = Field(
        default=False,
        description="True when the service was reached through a TLS handshake.",
    )
    version: str | None = Field(
        default=None,
        description="Version or product string announced by the service, if any.",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Protocol-specific details (banners, flags, negotiated options).",
    )

    @classmethod
    def from_target(
        cls,
        target: Target,
        *,
        protocol: str,
        transport: Transport,
        version: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "Service":
        return cls(
            host=target.host,
            ip=target.ip,
            port=target.port,
            transport=transport,
            protocol=protocol,
            tls=transport is Transport.TLS,
            version=version,
            metadata=metadata or {},
        )
