"""
The runtime adapter for the Migration Bucket Accessor.

This module wires configuration, clients and the core catalog routine
together. It is responsible for:
1.  Initializing AWS Lambda Powertools (Logger and Metrics) and routing the
    package's own loggers through the Powertools structured logger.
2.  Building the S3 client and, when configured, the in-cluster config map
    publisher.
3.  Running the catalog and turning its result into a JSON-friendly summary.
4.  Exposing `handler`, the AWS Lambda entry point. The command line entry
    point lives in `cli.py` and reuses `run`.
"""

import os
from typing import Any

from aws_lambda_powertools import Logger, Metrics
from aws_lambda_powertools.logging.utils import copy_config_to_registered_loggers
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.typing import LambdaContext

from .clients import create_s3_client
from .config import AccessorConfig, get_config
from .core import CatalogResult, catalog_bucket, format_size
from .exceptions import MigrationAccessorError, get_error_context, is_retryable_error
from .k8s import ConfigMapPublisher

# --- Global & Reusable Components ---
SERVICE_NAME = os.getenv("POWERTOOLS_SERVICE_NAME", "migration-bucket-accessor")

logger = Logger(service=SERVICE_NAME)
metrics = Metrics(namespace="MigrationBucketAccessor", service=SERVICE_NAME)


def configure_logging(log_level: str) -> None:
    """Applies *log_level* and the Powertools formatter to the package loggers."""
    logger.setLevel(log_level)
    copy_config_to_registered_loggers(
        source_logger=logger, log_level=log_level, include={"bucket_accessor"}
    )


def build_publisher(config: AccessorConfig) -> ConfigMapPublisher | None:
    if not config.config_map_enabled:
        return None
    return ConfigMapPublisher.in_cluster(
        config.k8s_config_map_name, config.k8s_config_map_namespace
    )


def run(config: AccessorConfig) -> CatalogResult:
    """Catalogs the configured bucket end to end."""
    configure_logging(config.log_level)
    logger.info("Parsed configuration", extra=config.describe())

    s3_client = create_s3_client(config)
    publisher = build_publisher(config)
    return catalog_bucket(s3_client, config, publisher=publisher)


def summarize(result: CatalogResult) -> dict[str, Any]:
    return {
        "globalState": result.global_state.model_dump(by_alias=True),
        "globalStateDescriptorKey": result.global_state_descriptor_key,
        "ssTableDescriptorKeys": list(result.sstable_descriptor_keys),
        "configMapEntries": dict(result.config_map_entries),
        "configMapWritten": result.config_map_written,
        "skippedKeys": result.skipped_keys,
        "dataSizeHuman": format_size(result.global_state.data_size),
    }


@logger.inject_lambda_context()
@metrics.log_metrics(capture_cold_start_metric=True)
def handler(event: dict, context: LambdaContext) -> dict[str, Any]:
    """Lambda entry point. Configuration comes from the function's environment."""
    config = get_config()
    metrics.add_dimension("migration_id", config.migration_id)

    try:
        result = run(config)
    except MigrationAccessorError as e:
        retryable = is_retryable_error(e)
        metrics.add_metric(name="CatalogFailures", unit=MetricUnit.Count, value=1)
        if retryable:
            metrics.add_metric(
                name="RetryableCatalogFailures", unit=MetricUnit.Count, value=1
            )
        logger.error(
            f"SSTable catalog failed: {e}",
            extra={"error": get_error_context(e), "retryable": retryable},
        )
        raise

    metrics.add_metric(
        name="SSTablesCataloged",
        unit=MetricUnit.Count,
        value=result.global_state.sstable_count,
    )
    metrics.add_metric(
        name="CatalogedDataSize",
        unit=MetricUnit.Bytes,
        value=result.global_state.data_size,
    )
    if result.skipped_keys:
        metrics.add_metric(
            name="MalformedKeysSkipped", unit=MetricUnit.Count, value=result.skipped_keys
        )

    return summarize(result)
