import binascii
import re
from base64 import b64decode
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_MEDIA_TYPE = "image/jpeg"

DATA_URL_PATTERN = re.compile(r"^data:([^;]+);base64,(.+)$", re.DOTALL)

ERROR_PROCESSING_TITLE = "Error Processing Image"
ERROR_PROCESSING_CONTENT = (
    "There was an error processing this image. "
    "Please try again with another image or select a different AI model."
)
ERROR_CREATING_TITLE = "Error Creating Slide"
ERROR_CREATING_CONTENT = (
    "There was an error creating this slide. Here's the raw explanation instead."
)
UNTITLED_SLIDE_TITLE = "Untitled Slide"


class ModelProvider(str, Enum):
    """Vision-language providers a slide deck can be generated with."""

    OPENAI = "openai"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"

    @classmethod
    def values(cls) -> List[str]:
        return [provider.value for provider in cls]


class InvalidImageDataError(ValueError):
    """Raised when an uploaded image is not valid base64 or a valid data URL."""


class InvalidSlideRequestError(ValueError):
    """Raised when a slide request body fails validation."""


class ImageInput(BaseModel):
    """A single uploaded image as a base64 payload plus its declared media type."""

    media_type: str = DEFAULT_MEDIA_TYPE
    data: str

    @classmethod
    def from_data(cls, value: str) -> "ImageInput":
        """Build an ImageInput from a raw base64 string or a full data URL.

        Args:
            value: Either bare base64 data or a `data:<type>;base64,<data>` URL.

        Returns:
            ImageInput: The extracted payload and media type. Bare base64 is
                assumed to be JPEG.

        Raises:
            InvalidImageDataError: If the value is empty, uses malformed
                data URL syntax or does not decode to any bytes.
        """
        if not value or not isinstance(value, str):
            raise InvalidImageDataError("Invalid image data")

        value = value.strip()
        if ";base64," not in value:
            image = cls(media_type=DEFAULT_MEDIA_TYPE, data=value)
        else:
            match = DATA_URL_PATTERN.match(value)
            if not match:
                raise InvalidImageDataError("Invalid data URL format")
            image = cls(media_type=match.group(1), data=match.group(2))

        # Fail here rather than inside a provider call
        image.raw_bytes()
        return image

    def raw_bytes(self) -> bytes:
        """Decode the base64 payload."""
        try:
            decoded = b64decode(self.data)
        except (binascii.Error, ValueError) as e:
            raise InvalidImageDataError(f"Image data is not valid base64: {str(e)}")
        if not decoded:
            raise InvalidImageDataError("Image data is empty")
        return decoded

    def to_data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.data}"


class SlideRequest(BaseModel):
    """A batch of images to turn into slides, with optional per-image annotations."""

    images: List[str] = Field(min_length=1)
    model: ModelProvider = ModelProvider.OPENAI
    messages: List[Optional[str]] = []
    captions: List[Optional[str]] = []

    @classmethod
    def from_payload(cls, payload: Any) -> "SlideRequest":
        """Validate a decoded JSON body and build a SlideRequest from it.

        Raises:
            InvalidSlideRequestError: With a user-facing message for an absent
                or empty image list, non-string images or an unknown model.
        """
        if not isinstance(payload, dict):
            raise InvalidSlideRequestError("Request body must be a JSON object")

        images = payload.get("images")
        if not images or not isinstance(images, list):
            raise InvalidSlideRequestError("No images provided")
        if not all(isinstance(image, str) for image in images):
            raise InvalidSlideRequestError(
                "Images must be base64 strings or data URLs"
            )

        model = payload.get("model", ModelProvider.OPENAI.value)
        if model not in ModelProvider.values():
            raise InvalidSlideRequestError(
                f"Invalid model selected. Choose from: {', '.join(ModelProvider.values())}"
            )

        return cls(
            images=images,
            model=ModelProvider(model),
            messages=cls._as_text_list(payload.get("messages")),
            captions=cls._as_text_list(payload.get("captions")),
        )

    @staticmethod
    def _as_text_list(value: Any) -> List[str]:
        if not isinstance(value, list):
            return []
        return [item if isinstance(item, str) else "" for item in value]

    def message_for(self, index: int) -> str:
        """Get the message for an image, padding a short list with empty strings."""
        if index < len(self.messages):
            return self.messages[index] or ""
        return ""

    def caption_for(self, index: int) -> str:
        """Get the caption for an image, padding a short list with empty strings."""
        if index < len(self.captions):
            return self.captions[index] or ""
        return ""


class Slide(BaseModel):
    """One generated slide. Serialized with the camelCase keys the client expects."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    content: str
    full_explanation: str = Field(alias="fullExplanation")
    original_message: str = Field(default="", alias="originalMessage")
    original_caption: str = Field(default="", alias="originalCaption")


class SlideResponse(BaseModel):
    """Response model for the slides endpoint."""

    slides: List[Slide]


class ImageRequest(BaseModel):
    image: str

    @classmethod
    def from_payload(cls, payload: Any) -> "ImageRequest":
        """Validate a decoded JSON body carrying a single image string."""
        if not isinstance(payload, dict):
            raise InvalidSlideRequestError("Request body must be a JSON object")

        image = payload.get("image")
        if not image or not isinstance(image, str):
            raise InvalidSlideRequestError("No image provided")
        return cls(image=image)


class ImageTagsResponse(BaseModel):
    tags: List[str]


class ImageCaptionResponse(BaseModel):
    caption: str
