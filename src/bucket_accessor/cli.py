#!/usr/bin/env python

# src/bucket_accessor/cli.py

import argparse
import os
from typing import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .app import run
from .config import AccessorConfig, MalformedKeyPolicy
from .core import CatalogResult, format_size
from .exceptions import ConfigurationError, MigrationAccessorError

# Command line flags override the matching MBA_* environment variables.
_FLAG_TO_ENV = {
    "access_key": "MBA_ACCESS_KEY",
    "secret_key": "MBA_SECRET_KEY",
    "profile_name": "MBA_PROFILE_NAME",
    "region": "MBA_REGION",
    "bucket_name": "MBA_BUCKET_NAME",
    "migration_id": "MBA_MIGRATION_ID",
    "k8s_config_map_name": "MBA_K8S_CONFIG_MAP_NAME",
    "k8s_config_map_namespace": "MBA_K8S_CONFIG_MAP_NAMESPACE",
    "page_size": "MBA_PAGE_SIZE",
    "component_suffixes": "MBA_COMPONENT_SUFFIXES",
    "malformed_key_policy": "MBA_MALFORMED_KEY_POLICY",
    "kms_key_id": "MBA_KMS_KEY_ID",
    "log_level": "LOG_LEVEL",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="migration-bucket-accessor",
        description=(
            "Catalog the SSTables stored in an S3 bucket and persist one descriptor "
            "per SSTable plus the migration global state."
        ),
    )
    creds = parser.add_argument_group("credentials")
    creds.add_argument(
        "--access-key",
        help="A valid access key for your AWS account. Requires a secret key as well.",
    )
    creds.add_argument(
        "--secret-key",
        help="The secret key for the access key that you specified.",
    )
    creds.add_argument(
        "--profile-name",
        help="The profile to load credentials for. Only used without access and secret keys.",
    )

    parser.add_argument("--region", help="The AWS region where your S3 bucket is.")
    parser.add_argument("--bucket-name", help="The name of your S3 bucket.")
    parser.add_argument("--migration-id", help="The identifier of this migration.")
    parser.add_argument(
        "--k8s-config-map-name",
        help="The config map to write to. Requires a namespace; leave empty to disable.",
    )
    parser.add_argument(
        "--k8s-config-map-namespace", help="The namespace of the config map."
    )
    parser.add_argument(
        "--page-size", type=int, help="Number of keys per listing page (default 200)."
    )
    parser.add_argument(
        "--component-suffixes",
        help="Comma separated SSTable component suffixes, e.g. 'Data.db,TOC.txt'.",
    )
    parser.add_argument(
        "--malformed-key-policy",
        choices=[p.value for p in MalformedKeyPolicy],
        help="Abort on a malformed component key (fail, default) or log and skip it.",
    )
    parser.add_argument("--kms-key-id", help="KMS key for encrypting descriptors.")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    return parser


def _environ_with_overrides(args: argparse.Namespace) -> dict[str, str]:
    environ = dict(os.environ)
    for attr, env_name in _FLAG_TO_ENV.items():
        value = getattr(args, attr)
        if value is not None:
            environ[env_name] = str(value)
    return environ


def render_summary(result: CatalogResult) -> Table:
    state = result.global_state
    table = Table(title=f"Migration {state.migration_id}", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Keyspaces", str(state.keyspace_count))
    table.add_row("CQL tables", str(state.cql_table_count))
    table.add_row("SSTables", str(state.sstable_count))
    table.add_row("Data size", f"{format_size(state.data_size)} ({state.data_size} bytes)")
    table.add_row("Descriptor prefix", state.sstable_descriptor_key_prefix)
    table.add_row("Global state", result.global_state_descriptor_key)
    if result.skipped_keys:
        table.add_row("Malformed keys skipped", f"[yellow]{result.skipped_keys}[/yellow]")
    status = "written" if result.config_map_written else "not written (disabled)"
    for key, value in result.config_map_entries.items():
        table.add_row(f"Config map {status}", f"{key} --> {value}")
    return table


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    console = Console()

    try:
        config = AccessorConfig.load_from_env(_environ_with_overrides(args))
    except ConfigurationError as e:
        console.print(
            Panel(str(e), title="Input parameter validation error", border_style="red")
        )
        return 2

    try:
        result = run(config)
    except MigrationAccessorError as e:
        console.print(
            Panel(
                str(e),
                title="Error while creating the SSTable and global descriptors",
                border_style="red",
            )
        )
        return 2

    console.print(render_summary(result))
    console.print("[bold green]Descriptors created and persisted to S3[/bold green]")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
