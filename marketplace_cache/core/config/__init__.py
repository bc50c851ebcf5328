"""
Configuration Module

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: System-wide constants and enums
- **runtime.py**: Explicit config objects handed to components at construction

Usage:
------
```python
from marketplace_cache.core.config import get_settings
from marketplace_cache.core.config.runtime import CacheClientConfig

settings = get_settings()
cache_config = CacheClientConfig.from_settings(settings.cache)
```
"""

from marketplace_cache.core.config.settings import Settings, get_settings, reload_settings

__all__ = ["Settings", "get_settings", "reload_settings"]
