import logging
from traceback import format_exc

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from app.models.slides import (
    ImageCaptionResponse,
    ImageInput,
    ImageRequest,
    ImageTagsResponse,
    InvalidImageDataError,
    InvalidSlideRequestError,
    SlideRequest,
    SlideResponse,
)
from app.services.slides.orchestrator import SlideDeckService
from app.services.vision.gemini import GeminiRouterService

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create a router for slide generation
slide_router = APIRouter()

slide_deck_service = SlideDeckService()
gemini_service = GeminiRouterService()

ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"description": "Invalid request body"},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"description": "Slide generation failed"},
}


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@slide_router.post(
    "/slides", response_model=SlideResponse, responses=ERROR_RESPONSES
)
async def create_slides(request: Request):
    """Generate one slide per uploaded image with the selected provider."""
    try:
        payload = await request.json()
    except ValueError:
        return _error_response(
            status.HTTP_400_BAD_REQUEST, "Request body must be valid JSON"
        )

    try:
        slide_request = SlideRequest.from_payload(payload)
    except InvalidSlideRequestError as e:
        logger.warning(f"Rejected slide request: {str(e)}")
        return _error_response(status.HTTP_400_BAD_REQUEST, str(e))

    try:
        return await slide_deck_service.generate_slides(slide_request)
    except Exception as e:
        logger.error(f"API error: {str(e)}\n{format_exc()}")
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            str(e) or "An error occurred processing the images",
        )


async def _read_image(request: Request) -> ImageInput:
    try:
        payload = await request.json()
    except ValueError:
        raise InvalidSlideRequestError("Request body must be valid JSON") from None

    image_request = ImageRequest.from_payload(payload)
    return ImageInput.from_data(image_request.image)


@slide_router.post(
    "/tags", response_model=ImageTagsResponse, responses=ERROR_RESPONSES
)
async def generate_image_tags(request: Request):
    """Generate keyword tags for an image with Gemini."""
    try:
        image = await _read_image(request)
    except (InvalidSlideRequestError, InvalidImageDataError) as e:
        return _error_response(status.HTTP_400_BAD_REQUEST, str(e))

    tags = await gemini_service.generate_image_tags(image)
    return ImageTagsResponse(tags=tags)


@slide_router.post(
    "/caption", response_model=ImageCaptionResponse, responses=ERROR_RESPONSES
)
async def generate_image_caption(request: Request):
    """Describe an image in one short sentence with Gemini."""
    try:
        image = await _read_image(request)
    except (InvalidSlideRequestError, InvalidImageDataError) as e:
        return _error_response(status.HTTP_400_BAD_REQUEST, str(e))

    caption = await gemini_service.quick_describe(image)
    return ImageCaptionResponse(caption=caption)
