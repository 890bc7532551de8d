"""
GitHub Notification Bridge Core Library.

Ambient services shared by every package: configuration and logging.

Usage:
    # Config
    from core.config import get_settings, Settings

    # Logging
    from core.logging import get_logger, configure_logging
"""

__version__ = "1.0.0"

# Users should import directly from submodules:
#   from core.config import get_settings
#   from core.logging import get_logger
