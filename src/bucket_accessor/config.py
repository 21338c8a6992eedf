import enum
import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Mapping

from .exceptions import ConfigurationError
from .keys import DEFAULT_COMPONENT_SUFFIXES

logger = logging.getLogger(__name__)

ENV_PREFIX = "MBA_"
DEFAULT_PAGE_SIZE = 200
MAX_PAGE_SIZE = 1000


class MalformedKeyPolicy(str, enum.Enum):
    """What to do with a component file key whose path cannot be parsed."""

    FAIL = "fail"
    SKIP = "skip"


@dataclass(frozen=True, slots=True)
class AccessorConfig:
    """Accessor configuration loaded from ``MBA_*`` environment variables."""

    # --- Required Variables ---
    region: str
    bucket_name: str
    migration_id: str

    # --- Credentials: an explicit pair or a named profile ---
    access_key: str = ""
    secret_key: str = field(default="", repr=False)
    profile_name: str = ""

    # --- Optional K8s config map mirror ---
    k8s_config_map_name: str = ""
    k8s_config_map_namespace: str = ""

    # --- Optional Variables with Defaults ---
    page_size: int = DEFAULT_PAGE_SIZE
    component_suffixes: tuple[str, ...] = DEFAULT_COMPONENT_SUFFIXES
    malformed_key_policy: MalformedKeyPolicy = MalformedKeyPolicy.FAIL
    kms_key_id: str = ""
    log_level: str = "INFO"

    # --- Derived Properties ---
    @property
    def uses_static_credentials(self) -> bool:
        return bool(self.access_key and self.secret_key)

    @property
    def config_map_enabled(self) -> bool:
        return bool(self.k8s_config_map_name and self.k8s_config_map_namespace)

    def describe(self) -> dict[str, Any]:
        """A loggable view of the configuration, with secrets masked."""
        return {
            "region": self.region,
            "bucket_name": self.bucket_name,
            "migration_id": self.migration_id,
            "access_key": _mask(self.access_key),
            "secret_key": _mask(self.secret_key),
            "profile_name": self.profile_name,
            "k8s_config_map_name": self.k8s_config_map_name,
            "k8s_config_map_namespace": self.k8s_config_map_namespace,
            "page_size": self.page_size,
            "component_suffixes": list(self.component_suffixes),
            "malformed_key_policy": self.malformed_key_policy.value,
            "kms_key_id": self.kms_key_id,
            "log_level": self.log_level,
        }

    @classmethod
    def load_from_env(cls, environ: Mapping[str, str] | None = None) -> "AccessorConfig":
        """
        Loads configuration from environment variables, performing validation and type casting.
        Fails fast with a ConfigurationError if anything is invalid or contradictory.
        """
        env = os.environ if environ is None else environ

        def get(name: str, default: str = "") -> str:
            return env.get(ENV_PREFIX + name, default).strip()

        access_key = get("ACCESS_KEY")
        secret_key = get("SECRET_KEY")
        profile_name = get("PROFILE_NAME")

        # --- Credentials ---
        if bool(access_key) != bool(secret_key):
            raise ConfigurationError(
                "Invalid credentials: please specify both access key and secret key, "
                "or neither of them"
            )
        if not access_key and not profile_name:
            raise ConfigurationError(
                "Missing credentials: please specify both access key and secret key, "
                "or the name of the profile to use"
            )
        if access_key and profile_name:
            logger.warning(
                "The profile name will be ignored, as access key and secret key were "
                "specified and take precedence",
                extra={"profile_name": profile_name},
            )

        # --- Required string variables ---
        region = get("REGION")
        if not region:
            raise ConfigurationError("Missing mandatory region parameter, please specify it")
        bucket_name = get("BUCKET_NAME")
        if not bucket_name:
            raise ConfigurationError(
                "Missing mandatory bucketName parameter, please specify it"
            )
        migration_id = get("MIGRATION_ID")
        if not migration_id:
            raise ConfigurationError(
                "Missing mandatory migrationId parameter, please specify it"
            )

        # --- K8s config map: both or neither ---
        config_map_name = get("K8S_CONFIG_MAP_NAME")
        config_map_namespace = get("K8S_CONFIG_MAP_NAMESPACE")
        if bool(config_map_name) != bool(config_map_namespace):
            logger.warning(
                "A K8s config map requires both a name and a namespace: the migration "
                "global state will not be persisted to any config map",
                extra={
                    "k8s_config_map_name": config_map_name,
                    "k8s_config_map_namespace": config_map_namespace,
                },
            )
        elif not config_map_name:
            logger.info(
                "No K8s config map was specified: the migration global state will "
                "not be persisted to any config map"
            )

        try:
            page_size = int(get("PAGE_SIZE", str(DEFAULT_PAGE_SIZE)))
            if not 1 <= page_size <= MAX_PAGE_SIZE:
                raise ValueError(
                    f"MBA_PAGE_SIZE must be between 1 and {MAX_PAGE_SIZE}."
                )

            raw_suffixes = get("COMPONENT_SUFFIXES")
            if raw_suffixes:
                component_suffixes = tuple(
                    s.strip() for s in raw_suffixes.split(",") if s.strip()
                )
                if not component_suffixes:
                    raise ValueError("MBA_COMPONENT_SUFFIXES must list at least one suffix.")
                dashed = [s for s in component_suffixes if "-" in s]
                if dashed:
                    raise ValueError(
                        f"MBA_COMPONENT_SUFFIXES entries cannot contain '-': {dashed}"
                    )
            else:
                component_suffixes = DEFAULT_COMPONENT_SUFFIXES

            malformed_key_policy = MalformedKeyPolicy(
                get("MALFORMED_KEY_POLICY", MalformedKeyPolicy.FAIL.value).lower()
            )

            log_level = env.get("LOG_LEVEL", "INFO").strip().upper()
            allowed_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
            if log_level not in allowed_log_levels:
                raise ValueError(
                    f"LOG_LEVEL must be one of {allowed_log_levels}, not '{log_level}'"
                )
        except (ValueError, TypeError) as e:
            raise ConfigurationError(
                f"Invalid value for an environment variable: {e}"
            ) from e

        return cls(
            region=region,
            bucket_name=bucket_name,
            migration_id=migration_id,
            access_key=access_key,
            secret_key=secret_key,
            profile_name=profile_name,
            k8s_config_map_name=config_map_name,
            k8s_config_map_namespace=config_map_namespace,
            page_size=page_size,
            component_suffixes=component_suffixes,
            malformed_key_policy=malformed_key_policy,
            kms_key_id=get("KMS_KEY_ID"),
            log_level=log_level,
        )


def _mask(value: str) -> str:
    if not value:
        return ""
    return value[:4] + "****" if len(value) > 8 else "****"


# --- Singleton Factory Function (Lazy-loaded and Cached) ---
@lru_cache(maxsize=1)
def get_config() -> AccessorConfig:
    """
    Loads the accessor configuration from environment variables.
    The result is cached using lru_cache, so the environment is only read once
    on the first call. This avoids import-time side effects.
    """
    logger.info("Loading accessor configuration from environment...")
    return AccessorConfig.load_from_env()
