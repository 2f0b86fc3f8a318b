"""
Models Package

This package contains the request, response and provider configuration models:
- slides.py: Image input, slide request and slide response models
- vision/: Per-provider model configurations and prompts
"""

from app.models.slides import (
    ImageInput,
    InvalidImageDataError,
    InvalidSlideRequestError,
    ModelProvider,
    Slide,
    SlideRequest,
    SlideResponse,
)

__all__ = [
    "ImageInput",
    "InvalidImageDataError",
    "InvalidSlideRequestError",
    "ModelProvider",
    "Slide",
    "SlideRequest",
    "SlideResponse",
]
