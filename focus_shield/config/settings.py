from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """Application settings with validation"""

    # Soft shield configuration
    AWAY_THRESHOLD_SECONDS: int = 15
    WARNING_THRESHOLD_SECONDS: int = 10
    TICK_INTERVAL_MS: int = 1000
    GRACE_WINDOW_SECONDS: int = 5
    WARNING_FAIL_DELAY_MS: int = 100  # Gap between the final 0s warning and the fail

    # Session durations (minutes)
    MIN_DURATION_MINUTES: int = 5
    MAX_DURATION_MINUTES: int = 120
    DURATION_STEP_MINUTES: int = 5

    # Path Configuration
    BASE_DIR: Path = Path(__file__).parent.parent.parent
    LOG_DIR: Path = BASE_DIR / "logs"

    # Development Configuration
    DEBUG: bool = False
    ENV: str = "production"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    def allowed_durations(self) -> list[int]:
        """Durations (in minutes) a session may be started with"""
        return list(range(
            self.MIN_DURATION_MINUTES,
            self.MAX_DURATION_MINUTES + 1,
            self.DURATION_STEP_MINUTES
        ))

settings = Settings()
