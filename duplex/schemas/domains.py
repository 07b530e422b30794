"""Domain payload schemas.

The engine itself is domain-agnostic: an OrchestrationRequest carries a
plain payload dict. These models describe what a well-formed payload looks
like for each domain so providers can validate requests before dispatch.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError


class Domain(StrEnum):
    """Generative domains served by the engine."""

    AUDIO = "audio"
    CASTING = "casting"
    IMAGE = "image"


class CharacterProfile(BaseModel):
    """A character to be cast."""

    name: str = Field(min_length=1, description="Character name")
    role: Literal["protagonist", "antagonist", "supporting", "minor"] = Field(
        description="Narrative role"
    )
    age: int | str = Field(description="Age or range, e.g. 30 or '30-35'")
    gender: str | None = Field(default=None)
    ethnicity: str | None = Field(default=None)
    physical_description: str | None = Field(default=None)
    personality_traits: list[str] = Field(default_factory=list)
    background: str | None = Field(default=None)
    motivations: list[str] = Field(default_factory=list)


class CastingPayload(BaseModel):
    """Payload for a casting recommendation request."""

    character: CharacterProfile
    project_context: str = Field(default="", description="Genre, tone, budget level")
    prioritize_diversity: bool = Field(default=False)
    max_recommendations: int = Field(default=5, ge=1, le=10)
    include_alternatives: bool = Field(default=False)
    region: str = Field(default="", description="Geographic preference for actors")


class AudioPayload(BaseModel):
    """Payload for an audio generation request."""

    mode: Literal["tts", "text-to-audio", "text-to-music", "sound-effect"] = Field(
        default="text-to-audio"
    )
    text: str = Field(min_length=1, description="Prompt or script to render")
    negative_prompt: str = Field(default="")
    duration: float | None = Field(default=None, ge=0.5, le=300.0, description="Seconds")
    sample_rate: int | None = Field(default=None, gt=0, description="Hz")
    voice: str = Field(default="", description="Voice for TTS mode")
    format: Literal["audio/wav", "audio/mpeg", "audio/ogg", "audio/webm"] = Field(
        default="audio/mpeg"
    )


class ImagePayload(BaseModel):
    """Payload for an image generation request."""

    prompt: str = Field(min_length=1, description="Text prompt")
    negative_prompt: str = Field(default="")
    width: int = Field(default=1024, ge=64, le=4096)
    height: int = Field(default=1024, ge=64, le=4096)
    num_images: int = Field(default=1, ge=1, le=4)
    style: str = Field(default="")
    seed: int | None = Field(default=None)


PAYLOAD_SCHEMAS: dict[Domain, type[BaseModel]] = {
    Domain.AUDIO: AudioPayload,
    Domain.CASTING: CastingPayload,
    Domain.IMAGE: ImagePayload,
}


def parse_payload(domain: Domain, payload: dict[str, Any]) -> BaseModel:
    """Validate a raw payload dict against its domain schema.

    Raises:
        pydantic.ValidationError: If the payload is malformed.
    """
    return PAYLOAD_SCHEMAS[domain].model_validate(payload)


def payload_errors(domain: Domain, payload: dict[str, Any]) -> list[str]:
    """Return human-readable validation problems (empty when valid)."""
    try:
        parse_payload(domain, payload)
    except ValidationError as exc:
        return [
            f"{'.'.join(str(p) for p in err['loc']) or 'payload'}: {err['msg']}"
            for err in exc.errors()
        ]
    return []
