"""
Service descriptors and per-service status records.

``ServiceDescriptor`` comes from configuration and never changes.
``ServiceStatus`` is the arbiter's mutable view of one service; callers only
ever receive copies made with ``snapshot()``.
"""

from dataclasses import dataclass, replace

from pydantic import (
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    TypeAdapter,
    ValidationError,
    field_validator,
)

_HTTP_URL = TypeAdapter(AnyHttpUrl)


class ServiceDescriptor(BaseModel):
    """A managed I2S service as listed in the configuration file."""

    model_config = ConfigDict(frozen=True)

    name: str
    display_name: str
    base_url: str
    priority: int = 0

    @field_validator("base_url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        # kept as a string without the trailing slash; paths are appended to it
        try:
            _HTTP_URL.validate_python(value)
        except ValidationError as exc:
            raise ValueError(f"invalid base_url {value!r}: {exc.errors()[0]['msg']}") from exc
        return value.rstrip("/")


@dataclass
class ServiceStatus:
    name: str
    display_name: str
    base_url: str
    priority: int
    online: bool = False
    locked: bool = False
    active: bool = False
    last_check: str = ""
    error: str | None = None

    @classmethod
    def from_descriptor(cls, descriptor: ServiceDescriptor) -> "ServiceStatus":
        return cls(
            name=descriptor.name,
            display_name=descriptor.display_name,
            base_url=descriptor.base_url.rstrip("/"),
            priority=descriptor.priority,
        )

    def snapshot(self) -> "ServiceStatus":
        """Return a detached copy safe to hand outside the arbiter lock."""
        return replace(self)
