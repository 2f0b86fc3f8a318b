import argparse
import json
import logging
import mimetypes
import os
from base64 import b64encode
from datetime import datetime
from typing import List

import requests

from app.models.slides import ModelProvider
from config import OUTPUT_DIR

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")


def load_images(paths: List[str]) -> List[str]:
    """Read image files (or every image in a directory) as data URLs."""
    files = []
    for path in paths:
        if os.path.isdir(path):
            files.extend(
                os.path.join(path, name)
                for name in sorted(os.listdir(path))
                if name.lower().endswith(IMAGE_EXTENSIONS)
            )
        else:
            files.append(path)

    images = []
    for file_path in files:
        media_type = mimetypes.guess_type(file_path)[0] or "image/jpeg"
        with open(file_path, "rb") as f:
            images.append(f"data:{media_type};base64,{b64encode(f.read()).decode()}")
    return images


def get_argparser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Send local images to a running slides server and print the generated slides"
    )
    parser.add_argument(
        "images",
        nargs="+",
        help="Image files or directories containing .jpg/.png images",
    )
    parser.add_argument(
        "--url",
        type=str,
        default="http://localhost:8080/api/slides",
        help="Slides endpoint URL",
    )
    parser.add_argument(
        "--model",
        action="append",
        choices=ModelProvider.values(),
        help="Provider to test (repeatable, defaults to all providers)",
    )
    parser.add_argument(
        "--message", action="append", default=[], help="Message for each image, in order"
    )
    parser.add_argument(
        "--caption", action="append", default=[], help="Caption for each image, in order"
    )
    parser.add_argument(
        "--save", action="store_true", help="Write each response to the output directory"
    )
    return parser


def main():
    args = get_argparser().parse_args()

    try:
        images = load_images(args.images)
        if not images:
            logger.error("No images found")
            return 1
        logger.info(f"Loaded {len(images)} image(s)")

        for model in args.model or ModelProvider.values():
            logger.info(f"Testing API with {model} model...")
            response = requests.post(
                args.url,
                json={
                    "images": images,
                    "model": model,
                    "messages": args.message,
                    "captions": args.caption,
                },
                timeout=600,
            )
            data = response.json()
            logger.info(f"{model} API response ({response.status_code}):")
            for slide in data.get("slides", []):
                print(f"# {slide['title']}\n{slide['content']}\n")
            if "error" in data:
                logger.error(data["error"])

            if args.save:
                os.makedirs(OUTPUT_DIR, exist_ok=True)
                timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
                output_path = os.path.join(OUTPUT_DIR, f"slides_{model}_{timestamp}.json")
                with open(output_path, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                logger.info(f"Saved response: {output_path}")

    except Exception as e:
        logger.error(f"Error: {str(e)}", exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    exit(main())
