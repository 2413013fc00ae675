"""Models printed by the command-line interface."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Annotated, Self
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

from ..domain.product import Product
from ..domain.target import PausedDuration

__all__ = ["PauseResult", "ProductEntry"]

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class PauseResult(BaseModel):
    """Result of a successful pause, used to locate the matching backup."""

    namespace: Annotated[
        str, Field(title="Namespace", examples=["scalar"])
    ]

    helm_release_name: Annotated[
        str, Field(title="Helm release name", examples=["scalardb"])
    ]

    pause_start_timestamp_ms: Annotated[
        int,
        Field(
            title="Start of paused period",
            description="Milliseconds since the epoch",
            examples=[1700000000000],
        ),
    ]

    pause_end_timestamp_ms: Annotated[
        int,
        Field(
            title="End of paused period",
            description="Milliseconds since the epoch",
            examples=[1700000005000],
        ),
    ]

    pause_start_date_time: Annotated[
        str,
        Field(
            title="Start of paused period",
            description="Local date and time in the reporting time zone",
            examples=["2023-11-14T22:13:20.000"],
        ),
    ]

    pause_end_date_time: Annotated[
        str,
        Field(
            title="End of paused period",
            description="Local date and time in the reporting time zone",
            examples=["2023-11-14T22:13:25.000"],
        ),
    ]

    timezone: Annotated[
        str, Field(title="Reporting time zone", examples=["Etc/UTC"])
    ]

    @classmethod
    def from_duration(
        cls,
        duration: PausedDuration,
        *,
        namespace: str,
        release: str,
        zone: ZoneInfo,
    ) -> Self:
        """Build the result for a paused period.

        Parameters
        ----------
        duration
            Paused period returned by the pauser.
        namespace
            Namespace of the paused pods.
        release
            Helm release of the paused pods.
        zone
            Time zone in which to report local times.

        Returns
        -------
        PauseResult
            Result ready to be serialized.
        """
        start = duration.start_time.astimezone(zone).replace(tzinfo=None)
        end = duration.end_time.astimezone(zone).replace(tzinfo=None)
        return cls(
            namespace=namespace,
            helm_release_name=release,
            pause_start_timestamp_ms=_to_millis(duration.start_time),
            pause_end_timestamp_ms=_to_millis(duration.end_time),
            pause_start_date_time=start.isoformat(timespec="milliseconds"),
            pause_end_date_time=end.isoformat(timespec="milliseconds"),
            timezone=zone.key,
        )


class ProductEntry(BaseModel):
    """Kubernetes conventions of one supported product."""

    product: Annotated[Product, Field(title="Product")]

    app_label: Annotated[
        str, Field(title="Value of the app.kubernetes.io/app label")
    ]

    admin_port_name: Annotated[
        str, Field(title="Name of the admin port in the headless service")
    ]

    default_admin_port: Annotated[int, Field(title="Default admin port")]

    deployment_name: Annotated[
        str,
        Field(
            title="Deployment name",
            description="Name of the deployment for a given release",
            examples=["<release>-scalardb"],
        ),
    ]

    @classmethod
    def from_product(cls, product: Product, release: str) -> Self:
        return cls(
            product=product,
            app_label=product.app_label,
            admin_port_name=product.admin_port_name,
            default_admin_port=product.default_admin_port,
            deployment_name=product.deployment_name(release),
        )


def _to_millis(when: datetime) -> int:
    return (when - _EPOCH) // timedelta(milliseconds=1)
