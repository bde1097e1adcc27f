"""
Shared FastAPI dependencies — injected into route handlers.
"""

from collections.abc import Callable

from fastapi import Depends

from docloader.config import Settings, get_settings
from docloader.schemas.mapping_schema import PipelineConfig
from docloader.services.load_service import LoadService
from docloader.services.store_client import DocumentStore, MongoStore


def get_pipeline_config(settings: Settings = Depends(get_settings)) -> PipelineConfig:
    """Build the pipeline config from settings and the mapping file."""
    return settings.pipeline_config()


def get_store_factory(
    settings: Settings = Depends(get_settings),
    config: PipelineConfig = Depends(get_pipeline_config),
) -> Callable[[], DocumentStore]:
    """Provide a factory opening a fresh store connection per load."""
    return lambda: MongoStore.connect(settings, config.database, config.collection)


def get_load_service(
    config: PipelineConfig = Depends(get_pipeline_config),
    store_factory: Callable[[], DocumentStore] = Depends(get_store_factory),
) -> LoadService:
    """Provide a LoadService with its dependencies wired up."""
    return LoadService(config=config, store_factory=store_factory)
