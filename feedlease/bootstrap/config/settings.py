from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, PydanticBaseSettingsSource, YamlConfigSettingsSource

from feedlease.bootstrap.config.loader import get_configfile
from feedlease.core.models.config import HostConfig


class HostSettings(BaseModel):
    name: Annotated[
        str,
        Field(
            description=(
                "Unique and stable identifier for this host within the lease group.\n"
                "It is written as the owner of every lease the host acquires, so it\n"
                "must not be shared by two running hosts and should survive restarts:\n"
                "a restarted host resumes the leases still recorded under its name.\n"
            ),
            min_length=1,
        )
    ]


class LeaseSettings(BaseModel):
    expiration: Annotated[
        float,
        Field(
            description=(
                "Seconds after which a lease not renewed by its owner is considered\n"
                "abandoned and may be taken over by another host."
            ),
            default=60.0,
            gt=0,
        )
    ]

    renew_interval: Annotated[
        float,
        Field(
            description="Seconds between two renewals of an owned lease.",
            default=17.0,
            gt=0,
        )
    ]

    discovery_interval: Annotated[
        float,
        Field(
            description="Seconds between two passes looking for free or expired leases.",
            default=13.0,
            gt=0,
        )
    ]

    drain_timeout: Annotated[
        float,
        Field(
            description="Maximum time allowed for partition workers to stop on shutdown.",
            default=10.0,
            ge=0,
        )
    ]

    @model_validator(mode="after")
    def validate_intervals(self) -> "LeaseSettings":
        if self.renew_interval >= self.expiration:
            raise ValueError("renew_interval must be lower than expiration")
        return self


class StorageSettings(BaseModel):
    data_dir: Annotated[
        Path,
        Field(
            description=(
                "Directory of the LMDB environment holding the leases.\n"
                "Hosts sharing leases must point to the same directory on the same machine.\n"
                "It must exist or be creatable, writable, and persistent across restarts."
            )
        )
    ]


class AppSettings(BaseModel):
    processor_factory: Annotated[
        str,
        Field(
            description=(
                "Import path ('module:attribute') of a callable returning the\n"
                "PartitionProcessorFactory that processes the changes of a partition."
            )
        )
    ]

    topology: Annotated[
        str,
        Field(
            description=(
                "Import path ('module:attribute') of a callable returning the\n"
                "PartitionTopology describing the partitions of the monitored feed."
            )
        )
    ]

    @field_validator("processor_factory", "topology")
    @classmethod
    def validate_import_path(cls, v: str) -> str:
        module, sep, attr = v.partition(":")
        if not sep or not module or not attr:
            raise ValueError(f"expected 'module:attribute', got {v!r}")
        return v


class FeedLeaseConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FEEDLEASE_",
        extra="allow"
    )

    host: Annotated[
        HostSettings,
        Field(description="Identity of this host in the lease group.")
    ]

    lease: Annotated[
        LeaseSettings,
        Field(
            description=(
                "Lease timing configuration.\n"
                "Controls how long an unrenewed lease survives, how often owned leases\n"
                "are renewed and how often free leases are looked for."
            ),
            default_factory=LeaseSettings,
        )
    ]

    storage: Annotated[
        StorageSettings,
        Field(description="Lease store configuration.")
    ]

    app: Annotated[
        AppSettings,
        Field(description="User components plugged into the host.")
    ]

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (YamlConfigSettingsSource(settings_cls, yaml_file=get_configfile()),)

    def get_host_config(self) -> HostConfig:
        return HostConfig(
            host_name=self.host.name,
            expiration=self.lease.expiration,
            renew_interval=self.lease.renew_interval,
            discovery_interval=self.lease.discovery_interval,
            drain_timeout=self.lease.drain_timeout,
        )
