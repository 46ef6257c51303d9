"""Domain services and collection pipeline components."""

from rankwatch.services.alert_classifier import AlertDecision, classify_position_change
from rankwatch.services.alerts import AlertNotFoundError, AlertService, AlertServiceError
from rankwatch.services.collection import (
    CollectionError,
    CollectionPipeline,
    ConfigurationMissingError,
    PipelinePlan,
    backfill_plan,
    collection_plan,
    run_scheduled_collection,
)
from rankwatch.services.config import ConfigService, ConfigServiceError, ConfigValidationError
from rankwatch.services.pipeline_config import DEFAULT_CONFIG, PipelineConfig
from rankwatch.services.tracked_url import (
    TrackedUrlNotFoundError,
    TrackedUrlService,
    TrackedUrlServiceError,
    TrackedUrlValidationError,
)

__all__ = [
    "DEFAULT_CONFIG",
    "AlertDecision",
    "AlertNotFoundError",
    "AlertService",
    "AlertServiceError",
    "CollectionError",
    "CollectionPipeline",
    "ConfigService",
    "ConfigServiceError",
    "ConfigValidationError",
    "ConfigurationMissingError",
    "PipelineConfig",
    "PipelinePlan",
    "TrackedUrlNotFoundError",
    "TrackedUrlService",
    "TrackedUrlServiceError",
    "TrackedUrlValidationError",
    "backfill_plan",
    "classify_position_change",
    "collection_plan",
    "run_scheduled_collection",
]
