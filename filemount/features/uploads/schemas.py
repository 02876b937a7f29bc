from __future__ import annotations

from pydantic import BaseModel


class VersionUrl(BaseModel):
    url: str | None = None


class UploaderJson(BaseModel):
    url: str | None = None
    versions: dict[str, VersionUrl] = {}

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {"url": self.url}
        for name, version in self.versions.items():
            payload[name] = version.model_dump()
        return payload
