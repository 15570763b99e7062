"""Fashion recommendation schemas.

Responses use camelCase keys to match what the web client renders.
"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Gender(StrEnum):
    """Who the outfits are for."""

    MALE = "male"
    FEMALE = "female"
    CAT = "cat"


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ItemDescription(CamelModel):
    """Key features of the analyzed clothing item."""

    color: str = ""
    pattern: str = ""
    material: str = ""
    style: str = ""


class Outfit(CamelModel):
    """One recommended outfit built around the item."""

    name: str = ""
    pieces: list[str] = Field(default_factory=list)
    occasions: list[str] = Field(default_factory=list)
    reasoning: str = ""
    outfit_prompt: str | None = None
    # data: URL of the synthesized preview, placeholder URL, or null when skipped
    generated_image: str | None = None


class FashionResult(CamelModel):
    """Full recommendation returned by POST /api/fashion."""

    item_type: str
    item_description: ItemDescription
    outfits: list[Outfit] = Field(min_length=1)
    styling_tips: list[str] = Field(min_length=1)


class ErrorResponse(BaseModel):
    """Error body shared by all pipeline failures."""

    error: str
    status: int
