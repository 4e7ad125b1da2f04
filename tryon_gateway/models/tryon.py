"""Request and result models for a single try-on call."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TryOnRequest(BaseModel):
    """Validated inputs for one try-on inference."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    human_image: bytes = Field(min_length=1, repr=False)
    garment_image: bytes = Field(min_length=1, repr=False)
    message: str
    use_auto_mask: bool = True
    enhance_result: bool = True
    denoising_steps: int = Field(default=20, ge=20)
    seed: int = Field(default=42, ge=0)


class TryOnResult(BaseModel):
    """Images returned by the remote model."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    generated_image: str = Field(min_length=1)
    masked_image: str = Field(min_length=1)
