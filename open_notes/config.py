"""
Configuration management for the application.

Loads environment variables and provides centralized config access.
"""

import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Application configuration"""

    # Flask settings
    FLASK_ENV: str = os.getenv("FLASK_ENV", "development")
    DEBUG: bool = FLASK_ENV == "development"
    FRONTEND_URL: Optional[str] = os.getenv("FRONTEND_URL")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Server-side settings document (model credentials, categories, prompts)
    BASE_DIR: Path = Path(os.getenv("OPEN_NOTES_HOME", str(Path.home() / ".open-notes")))
    SETTINGS_PATH: Path = Path(os.getenv("SETTINGS_PATH", str(BASE_DIR / "settings.json")))

    # Client-side local storage and server connection
    STORAGE_DIR: Path = Path(os.getenv("STORAGE_DIR", str(BASE_DIR / "storage")))
    SERVER_URL: str = os.getenv("SERVER_URL", "http://localhost:3001/api")
    HTTP_TIMEOUT: float = float(os.getenv("HTTP_TIMEOUT", "30"))

    # Editor auto-save and AI processing timers (seconds)
    AUTOSAVE_DELAY: float = float(os.getenv("AUTOSAVE_DELAY", "10"))
    PROCESSING_DELAY: float = float(os.getenv("PROCESSING_DELAY", "30"))

    @classmethod
    def validate(cls):
        """Validate required configuration"""
        errors = []

        if cls.AUTOSAVE_DELAY < 0:
            errors.append("AUTOSAVE_DELAY must not be negative")
        if cls.PROCESSING_DELAY < 0:
            errors.append("PROCESSING_DELAY must not be negative")
        if cls.HTTP_TIMEOUT <= 0:
            errors.append("HTTP_TIMEOUT must be positive")
        if not cls.SERVER_URL.startswith(("http://", "https://")):
            errors.append("SERVER_URL must be an http(s) URL")

        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

    @classmethod
    def init_directories(cls):
        """Create necessary directories if they don't exist"""
        cls.SETTINGS_PATH.parent.mkdir(parents=True, exist_ok=True)
        cls.STORAGE_DIR.mkdir(parents=True, exist_ok=True)


# Create config instance
config = Config()
