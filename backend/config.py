"""
Configuration for the Build Auto-Fix Backend
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Configuration
# Optional: without a key, missing files get deterministic placeholders instead of AI content
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
if not OPENAI_API_KEY:
    print("[Config] Warning: OPENAI_API_KEY not set. Missing files will be filled with placeholders.")

# Paths
BASE_DIR = Path(__file__).parent

# Build tool configuration
BUILD_TOOL = os.getenv("BUILD_TOOL", "docker")
DEFAULT_BUILD_SPEC_NAME = os.getenv("DEFAULT_BUILD_SPEC_NAME", "Dockerfile")
DOCKER_USER = os.getenv("DOCKER_USER", "anonymous")

# Retry loop configuration
DEFAULT_MAX_ATTEMPTS = int(os.getenv("DEFAULT_MAX_ATTEMPTS", "3"))
if DEFAULT_MAX_ATTEMPTS < 1:
    print(f"[Config] Warning: DEFAULT_MAX_ATTEMPTS={DEFAULT_MAX_ATTEMPTS} is invalid. Defaulting to 3.")
    DEFAULT_MAX_ATTEMPTS = 3

ATTEMPT_TIMEOUT_SECONDS = float(os.getenv("ATTEMPT_TIMEOUT_SECONDS", "600"))  # 10 minutes per build

_session_timeout = os.getenv("SESSION_TIMEOUT_SECONDS")
SESSION_TIMEOUT_SECONDS = float(_session_timeout) if _session_timeout else None

# Build tool preflight checks
STATUS_CHECK_TIMEOUT_SECONDS = float(os.getenv("STATUS_CHECK_TIMEOUT_SECONDS", "8"))

# AI Configuration - content generation for missing files
CONTENT_MODEL = os.getenv("CONTENT_MODEL", "gpt-4o-mini")
CONTENT_TEMPERATURE = float(os.getenv("CONTENT_TEMPERATURE", "0.1"))
CONTENT_MAX_TOKENS = int(os.getenv("CONTENT_MAX_TOKENS", "2000"))

# Server Configuration
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
CORS_ORIGINS = [
    "http://localhost:8000",
    "http://127.0.0.1:8000",
    "http://localhost:8080",
    "http://127.0.0.1:8080",
    "*"  # Allow all origins during development
]
