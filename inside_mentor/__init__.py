from .app import Services, build_services, configure_logging, open_services
from .config import Settings

__all__ = ["Services", "Settings", "build_services", "configure_logging", "open_services"]
