"""
Data Source Factory

Selects the MarketplaceDataSource implementation from configuration.
"""

from pathlib import Path

import orjson
from pydantic import ValidationError as PydanticValidationError

from marketplace_cache.core.config.constants import DataSourceBackend
from marketplace_cache.core.config.runtime import DataSourceConfig
from marketplace_cache.core.exceptions import ConfigurationError
from marketplace_cache.core.interfaces.data_source import MarketplaceDataSource
from marketplace_cache.core.logging.logger import get_logger
from marketplace_cache.infrastructure.data_source.in_memory import InMemoryDataSource
from marketplace_cache.infrastructure.data_source.postgrest import PostgrestDataSource
from marketplace_cache.marketplace.models.listing import Listing

logger = get_logger(__name__)


def load_seed_listings(path: str) -> list[Listing]:
    """
    Read a JSON array of listing objects (the shape ``Listing`` validates).

    Raises:
        ConfigurationError: Unreadable file, invalid JSON or invalid rows
    """
    try:
        rows = orjson.loads(Path(path).read_bytes())
    except OSError as e:
        raise ConfigurationError.from_exception(e, message="Seed file could not be read", seed_file=path) from e
    except orjson.JSONDecodeError as e:
        raise ConfigurationError.from_exception(e, message="Seed file is not valid JSON", seed_file=path) from e

    if not isinstance(rows, list):
        raise ConfigurationError(
            "Seed file must contain a JSON array of listings",
            details={"seed_file": path, "payload_type": type(rows).__name__},
        )

    try:
        return [Listing.model_validate(row) for row in rows]
    except PydanticValidationError as e:
        raise ConfigurationError.from_exception(e, message="Seed file holds invalid listings", seed_file=path) from e


def create_data_source(config: DataSourceConfig) -> MarketplaceDataSource:
    """
    Build the configured data source.

    The in-memory backend is filled from ``config.seed_file`` when one is
    set, and starts empty otherwise.

    Raises:
        ConfigurationError: If the backend is not supported or the seed file is unusable
    """
    try:
        backend = DataSourceBackend(config.backend)
    except ValueError:
        raise ConfigurationError(
            f"Unknown data source backend: {config.backend}",
            details={"available": [b.value for b in DataSourceBackend]},
        )

    if backend == DataSourceBackend.POSTGREST:
        return PostgrestDataSource(config)

    if not config.seed_file:
        logger.warning("In-memory data source has no seed file and starts empty")
        return InMemoryDataSource()

    listings = load_seed_listings(config.seed_file)
    logger.info("In-memory data source seeded", seed_file=config.seed_file, listings=len(listings))
    return InMemoryDataSource(listings)
