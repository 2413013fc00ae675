"""Configuration for the pause coordinator."""

from pathlib import Path
from typing import Annotated, Self
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
from safir.logging import LogLevel, Profile, configure_logging
from safir.pydantic import HumanTimedelta

from .constants import (
    ADMIN_REQUEST_TIMEOUT,
    DEFAULT_NAMESPACE,
    DEFAULT_PAUSE_DURATION,
    DEFAULT_TIME_ZONE,
    ENV_PREFIX,
    KUBERNETES_REQUEST_TIMEOUT,
    MAX_UNPAUSE_RETRY_COUNT,
    ROOT_LOGGER,
)
from .models.domain.product import Product

__all__ = ["Config", "EnvFirstSettings"]


class EnvFirstSettings(BaseSettings):
    """Base class for Pydantic settings with environment overrides.

    Classes that inherit from this base class will prioritize environment
    variables over arguments to the class constructor.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX, extra="forbid", validate_by_name=True
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Override the sources of settings.

        Deactivate :file:`.env` and secret file support. Allow environment
        variables to override init parameters, since init parameters come
        from the YAML configuration file and environment variables take
        precedence over it.
        """
        return (env_settings, init_settings)


def _alias(name: str, camel: str) -> AliasChoices:
    return AliasChoices(ENV_PREFIX + name, camel)


class Config(EnvFirstSettings):
    """Configuration for pausing a Scalar product.

    Command-line options override these settings.
    """

    namespace: Annotated[
        str,
        Field(title="Namespace of the Helm release"),
    ] = DEFAULT_NAMESPACE

    release_name: Annotated[
        str | None,
        Field(
            title="Helm release name",
            description="Must be set here or on the command line",
            validation_alias=_alias("RELEASE_NAME", "releaseName"),
        ),
    ] = None

    pause_duration: Annotated[
        int,
        Field(
            title="Pause duration",
            description="How long to keep the product paused, in milliseconds",
            ge=1,
            validation_alias=_alias("PAUSE_DURATION", "pauseDuration"),
        ),
    ] = DEFAULT_PAUSE_DURATION

    max_pause_wait_time: Annotated[
        int | None,
        Field(
            title="Maximum wait for outstanding requests",
            description=(
                "Milliseconds the product waits for outstanding requests"
                " before pausing. If not set, the product default is used."
            ),
            ge=0,
            validation_alias=_alias(
                "MAX_PAUSE_WAIT_TIME", "maxPauseWaitTime"
            ),
        ),
    ] = None

    product: Annotated[
        Product | None,
        Field(
            title="Scalar product",
            description=(
                "If set, the Helm release must run this product. Otherwise"
                " the product is detected from the pod labels."
            ),
        ),
    ] = None

    admin_port: Annotated[
        int | None,
        Field(
            title="Admin port",
            description=(
                "If set, used instead of the port found in the headless"
                " service"
            ),
            ge=1,
            le=65535,
            validation_alias=_alias("ADMIN_PORT", "adminPort"),
        ),
    ] = None

    tls: Annotated[
        bool,
        Field(title="Use TLS for admin requests"),
    ] = False

    ca_root_cert: Annotated[
        str | None,
        Field(
            title="PEM root certificate for admin requests",
            description="If not set, the system root certificates are used",
            validation_alias=_alias("CA_ROOT_CERT", "caRootCert"),
        ),
    ] = None

    override_authority: Annotated[
        str | None,
        Field(
            title="Host name to verify in the certificate of the pods",
            validation_alias=_alias(
                "OVERRIDE_AUTHORITY", "overrideAuthority"
            ),
        ),
    ] = None

    kubeconfig: Annotated[
        Path | None,
        Field(
            title="Path to kubeconfig file",
            description=(
                "If neither this nor the context is set, the in-cluster"
                " configuration is used when available"
            ),
        ),
    ] = None

    kube_context: Annotated[
        str | None,
        Field(
            title="Context of the kubeconfig file to use",
            validation_alias=_alias("KUBE_CONTEXT", "kubeContext"),
        ),
    ] = None

    kubernetes_timeout: Annotated[
        HumanTimedelta,
        Field(
            title="Timeout for finding the target pods",
            validation_alias=_alias(
                "KUBERNETES_TIMEOUT", "kubernetesTimeout"
            ),
        ),
    ] = KUBERNETES_REQUEST_TIMEOUT

    admin_timeout: Annotated[
        HumanTimedelta,
        Field(
            title="Timeout of one admin request to one pod",
            validation_alias=_alias("ADMIN_TIMEOUT", "adminTimeout"),
        ),
    ] = ADMIN_REQUEST_TIMEOUT

    max_unpause_retry_count: Annotated[
        int,
        Field(
            title="Number of unpause attempts",
            ge=1,
            validation_alias=_alias(
                "MAX_UNPAUSE_RETRY_COUNT", "maxUnpauseRetryCount"
            ),
        ),
    ] = MAX_UNPAUSE_RETRY_COUNT

    time_zone: Annotated[
        str,
        Field(
            title="Time zone of reported local times",
            examples=["Etc/UTC", "Asia/Tokyo"],
            validation_alias=_alias("TIME_ZONE", "timeZone"),
        ),
    ] = DEFAULT_TIME_ZONE

    debug: Annotated[
        bool,
        Field(
            title="Show debug output and log style",
            description=(
                "If True, then log level will be set to debug and logs will be"
                " non-structured, human-readable output."
            ),
        ),
    ] = False

    log_profile: Annotated[
        Profile,
        Field(
            title="Logging profile",
            validation_alias=_alias("LOG_PROFILE", "logProfile"),
        ),
    ] = Profile.production

    log_level: Annotated[
        LogLevel,
        Field(
            title="Log level",
            validation_alias=_alias("LOG_LEVEL", "logLevel"),
        ),
    ] = LogLevel.INFO

    add_timestamp: Annotated[
        bool,
        Field(
            title="Add timestamp to log lines",
            validation_alias=_alias("ADD_TIMESTAMP", "addTimestamp"),
        ),
    ] = False

    alert_hook: Annotated[
        SecretStr | None,
        Field(
            title="Slack webhook URL used for sending alerts",
            description=(
                "An https URL, which should be considered secret."
                " If not set or set to `None`, this feature will be disabled."
            ),
            validation_alias=_alias("ALERT_HOOK", "alertHook"),
        ),
    ] = None

    @field_validator("time_zone")
    @classmethod
    def _validate_time_zone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone {v}") from e
        return v

    @property
    def zone(self) -> ZoneInfo:
        """Time zone in which to report local times."""
        return ZoneInfo(self.time_zone)

    @classmethod
    def from_file(cls, path: Path) -> Self:
        """Construct the configuration from a YAML file.

        Parameters
        ----------
        path
            Path to the configuration file in YAML.

        Returns
        -------
        Config
            The corresponding configuration.
        """
        with path.open("r") as f:
            config = cls(**(yaml.safe_load(f) or {}))
        config.configure_logging()
        return config

    def configure_logging(self) -> None:
        """Configure logging based on the configuration."""
        if self.debug:
            log_level = LogLevel.DEBUG
            log_profile = Profile.development
        else:
            log_level = self.log_level
            log_profile = self.log_profile

        configure_logging(
            profile=log_profile,
            log_level=log_level,
            add_timestamp=self.add_timestamp,
            name=ROOT_LOGGER,
        )
