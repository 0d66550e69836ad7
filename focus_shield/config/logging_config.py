import logging
from pathlib import Path
from typing import Optional

from focus_shield.config.settings import settings

def setup_logging(log_dir: Optional[Path] = None, debug: Optional[bool] = None, console: bool = True):
    """Configure logging for the application"""
    log_dir = Path(log_dir or settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    debug = settings.DEBUG if debug is None else debug

    handlers = [logging.FileHandler(log_dir / "focus_shield.log")]
    if console:
        handlers.append(logging.StreamHandler())  # Also log to console

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )

    logger = logging.getLogger(__name__)
    logger.debug("Logging initialized")
