"""Version source discovery."""

from .sources import detect_content_type, discover_data_sources

__all__ = ["detect_content_type", "discover_data_sources"]
