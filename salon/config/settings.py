"""Configuration settings models using Pydantic."""

from dataclasses import replace
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from salon.core.colors import normalize_color
from salon.core.types import AgentColor, Personality, ProviderKind, RoomConfig


class ProviderEntry(BaseModel):
    """A named completion endpoint that roster entries refer to."""

    kind: ProviderKind
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)

    @field_validator("base_url", "api_key")
    @classmethod
    def empty_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class PersonalityOverride(BaseModel):
    """Inline personality fields. Any subset may be given."""

    name: Optional[str] = None
    color: Optional[AgentColor] = None
    tagline: Optional[str] = None
    traits: Optional[list[str]] = None
    style: Optional[list[str]] = None
    bias: Optional[str] = None
    chattiness: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    contrarianism: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    @field_validator("color", mode="before")
    @classmethod
    def normalize_agent_color(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return normalize_color(v)

    def is_complete(self) -> bool:
        """True when every field needed for a standalone personality is present."""
        return bool(
            self.name
            and self.color
            and self.tagline
            and self.traits
            and self.style
            and self.bias
            and self.chattiness is not None
            and self.contrarianism is not None
        )

    def _fields(self) -> dict:
        values = self.model_dump(exclude_none=True)
        for key in ("traits", "style"):
            if key in values:
                values[key] = tuple(values[key])
        return values

    def apply_to(self, base: Personality) -> Personality:
        """Overlay the given fields on a preset personality."""
        return replace(base, **self._fields())

    def to_personality(self) -> Personality:
        """Build a personality from a complete override."""
        return Personality(**self._fields())


class RosterEntry(BaseModel):
    """One agent in salon.yaml's roster."""

    name: str
    provider: str
    model: str
    priority: Optional[int] = None
    personality: Optional[PersonalityOverride] = None

    @field_validator("name", "model")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("cannot be empty")
        return v.strip()


def _default_providers() -> dict[str, ProviderEntry]:
    return {
        "openrouter": ProviderEntry(kind="openrouter", base_url="https://openrouter.ai/api/v1"),
    }


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="SALON_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    providers: dict[str, ProviderEntry] = Field(default_factory=_default_providers)
    room: RoomConfig = Field(default_factory=RoomConfig)
    roster: list[RosterEntry] = Field(default_factory=list)

    # Where room directories live, relative to the working directory
    rooms_dir: str = "rooms"

    def provider_names(self) -> list[str]:
        """Get the configured provider keys."""
        return list(self.providers.keys())
