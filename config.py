import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Environment configuration
ENV = os.getenv("SLIDES_ENV", "p").lower()
if ENV not in ["d", "p"]:
    raise ValueError("SLIDES_ENV must be either 'd' (development) or 'p' (production)")

# API Keys
# NOTE: Each key is only required once its provider is actually invoked.
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")

# Number of images processed at once per request (1 keeps the pipeline sequential)
try:
    MAX_CONCURRENCY = int(os.getenv("SLIDES_MAX_CONCURRENCY", "1"))
except ValueError:
    raise ValueError("SLIDES_MAX_CONCURRENCY must be an integer")
if MAX_CONCURRENCY < 1:
    raise ValueError("SLIDES_MAX_CONCURRENCY must be at least 1")

# Allowed CORS origins
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "SLIDES_CORS_ORIGINS", "http://localhost:3000,http://localhost:8080"
    ).split(",")
    if origin.strip()
]

# Project root directory
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))

# Output directory for development environment
OUTPUT_DIR = os.path.join(PROJECT_ROOT, "output")
