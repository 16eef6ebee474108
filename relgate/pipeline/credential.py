from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

_MASK = "***"


@dataclass(frozen=True, slots=True)
class Credential:
    """Opaque registry token. Never rendered: repr and str are masked."""

    token: str = field(repr=False)

    def __repr__(self) -> str:
        return f"Credential({_MASK})"

    def __str__(self) -> str:
        return _MASK

    def redact(self, text: str) -> str:
        if not self.token:
            return text
        return text.replace(self.token, _MASK)

    def redact_cmd(self, cmd: list[str]) -> str:
        return " ".join(self.redact(part) for part in cmd)

    @classmethod
    def from_env(cls, env: Mapping[str, str], name: str) -> Credential | None:
        value = env.get(name, "").strip()
        if not value:
            return None
        return cls(token=value)
