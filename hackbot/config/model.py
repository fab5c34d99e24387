from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..constants import DEFAULT_RECONNECT_INTERVAL_SECONDS


def _normalize_channels(channels: Any) -> list[str]:
    """Normalize channels given as a list or a comma separated string.

    Whitespace is stripped, empty entries dropped, a missing ``#`` prefix is
    added and duplicates are removed while keeping the configured order.
    """
    if channels is None:
        return []
    if isinstance(channels, str):
        channels = channels.split(",")
    if not isinstance(channels, list):
        raise ValueError("channels must be a list or a comma separated string")
    normalized: list[str] = []
    for ch in channels:
        if not isinstance(ch, str):
            continue
        stripped = ch.strip()
        if not stripped:
            continue
        if stripped[0] not in "#&+!":
            stripped = f"#{stripped}"
        normalized.append(stripped)
    return list(dict.fromkeys(normalized))


def _check_address(address: str) -> None:
    """Raise ValueError unless ``address`` splits into a host and a valid port."""
    # local import: hackbot.irc imports this module at package load
    from ..irc.transport import split_address

    split_address(address)


class GlobalsConfig(BaseModel):
    """Identity and reconnect defaults inherited by every server entry."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    nick: str = ""
    username: str = ""
    real_name: str = ""
    password: str = ""
    ctcp_version: str = ""
    reconnect_interval_seconds: int = Field(default=0, ge=0)
    reconnect_multiplier: float = Field(default=0, ge=0)


class ProxyConfig(BaseModel):
    """A named SOCKS5 proxy that server entries may refer to."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(min_length=1)
    address: str = Field(min_length=1)
    username: str = ""
    password: str = ""
    timeout: float | None = Field(default=None, gt=0)

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        _check_address(v)
        return v


class ServerConfig(BaseModel):
    """One remote target; maps to exactly one reconnect supervisor.

    Attributes:
        name: Label used in logs.
        address: ``host[:port]`` of the IRC server.
        use_tls: Wrap the connection in TLS.
        tls_verify: Verify the server certificate when using TLS.
        proxy: Name of a proxy entry; resolved into ``proxy_config``.
        channels: Channels joined after the welcome message.
        password: Session secret sent with PASS; empty means none.
        oper_password: Operator secret sent with OPER; empty means none.
        reconnect_interval_seconds: Delay before every connection attempt.
        reconnect_multiplier: Back-off growth factor; 0 or 1 keeps it flat.
        responses: Exact message text mapped to a canned reply.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    autoconnect: bool = True
    name: str = Field(min_length=1)
    address: str = Field(min_length=1)
    use_tls: bool = False
    tls_verify: bool = True
    proxy: str | None = None
    proxy_config: ProxyConfig | None = None
    connect_timeout: float | None = Field(default=None, gt=0)

    channels: list[str] = Field(default_factory=list)
    nick: str = ""
    username: str = ""
    real_name: str = ""
    password: str = ""
    oper_password: str = ""
    ctcp_version: str = ""

    reconnect_interval_seconds: int = Field(default=0, ge=0)
    reconnect_multiplier: float = Field(default=0, ge=0)

    responses: dict[str, str] = Field(default_factory=dict)

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        _check_address(v)
        return v

    @field_validator("channels", mode="before")
    @classmethod
    def validate_channels(cls, v: Any) -> list[str]:
        return _normalize_channels(v)

    def inherit(self, globals_: GlobalsConfig, proxies: Mapping[str, ProxyConfig]) -> ServerConfig:
        """Return a copy with empty fields filled from ``globals_`` and the proxy resolved."""
        update: dict[str, Any] = {}
        for field_name in ("nick", "username", "real_name", "password", "ctcp_version"):
            if not getattr(self, field_name):
                update[field_name] = getattr(globals_, field_name)
        if not self.reconnect_interval_seconds:
            update["reconnect_interval_seconds"] = (
                globals_.reconnect_interval_seconds or DEFAULT_RECONNECT_INTERVAL_SECONDS
            )
        if not self.reconnect_multiplier:
            update["reconnect_multiplier"] = globals_.reconnect_multiplier
        if self.proxy:
            if self.proxy not in proxies:
                raise ValueError(f"server {self.name!r} refers to unknown proxy {self.proxy!r}")
            update["proxy_config"] = proxies[self.proxy]
        resolved = self.model_copy(update=update)
        if not resolved.username:
            resolved = resolved.model_copy(update={"username": resolved.nick})
        if not resolved.real_name:
            resolved = resolved.model_copy(update={"real_name": resolved.nick})
        return resolved


class BotConfig(BaseModel):
    """Whole configuration file: globals, proxies and servers.

    Validation resolves every server against the globals and the proxy list,
    so consumers only ever see complete, read-only server records.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    globals: GlobalsConfig = Field(default_factory=GlobalsConfig)
    proxies: list[ProxyConfig] = Field(default_factory=list)
    servers: list[ServerConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def resolve_servers(self) -> BotConfig:
        proxies = {p.name: p for p in self.proxies}
        if len(proxies) != len(self.proxies):
            raise ValueError("proxy names must be unique")
        resolved = [s.inherit(self.globals, proxies) for s in self.servers]
        names = [s.name for s in resolved]
        if len(set(names)) != len(names):
            raise ValueError("server names must be unique")
        for server in resolved:
            if not server.nick:
                raise ValueError(f"server {server.name!r} has no nick (set it or globals.nick)")
        # frozen model: bypass __setattr__ for the validated replacement
        object.__setattr__(self, "servers", resolved)
        return self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BotConfig:
        return cls.model_validate(dict(data))

    @property
    def autoconnect_servers(self) -> list[ServerConfig]:
        return [s for s in self.servers if s.autoconnect]
