"""Pydantic models for the worker configuration file (``flaredeck.toml``)."""

import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from flaredeck.constants import ModuleType

__all__ = [
    "AIBinding",
    "AnalyticsEngineDataset",
    "BrowserBinding",
    "ConstellationBinding",
    "D1Database",
    "DispatchNamespace",
    "DurableObjectBinding",
    "DurableObjects",
    "HyperdriveBinding",
    "KVNamespace",
    "Limits",
    "Migration",
    "MtlsCertificate",
    "Placement",
    "QueueConsumer",
    "QueueProducer",
    "Queues",
    "R2Bucket",
    "Rule",
    "SendEmailBinding",
    "ServiceBinding",
    "TailConsumer",
    "UnsafeConfig",
    "VectorizeIndex",
    "VersionMetadataBinding",
    "WorkerConfig",
]


class _Binding(BaseModel):
    model_config = ConfigDict(extra="allow")


class KVNamespace(_Binding):
    binding: str
    id: str
    preview_id: str | None = None


class R2Bucket(_Binding):
    binding: str
    bucket_name: str
    jurisdiction: str | None = None


class D1Database(_Binding):
    binding: str
    database_id: str
    database_name: str | None = None


class DurableObjectBinding(_Binding):
    name: str
    """Binding name the worker code uses."""

    class_name: str
    """Exported class implementing the durable object."""

    script_name: str | None = None
    """Worker that exports the class, when it is not this one."""

    environment: str | None = None


class DurableObjects(BaseModel):
    bindings: list[DurableObjectBinding] = Field(default_factory=list)


class QueueProducer(_Binding):
    binding: str
    queue: str
    delivery_delay: int | None = None


class QueueConsumer(_Binding):
    queue: str
    max_batch_size: int | None = None
    max_batch_timeout: int | None = None
    max_retries: int | None = None
    dead_letter_queue: str | None = None


class Queues(BaseModel):
    producers: list[QueueProducer] = Field(default_factory=list)
    consumers: list[QueueConsumer] = Field(default_factory=list)


class ServiceBinding(_Binding):
    binding: str
    service: str
    environment: str | None = None
    entrypoint: str | None = None


class VectorizeIndex(_Binding):
    binding: str
    index_name: str


class HyperdriveBinding(_Binding):
    binding: str
    id: str


class ConstellationBinding(_Binding):
    binding: str
    project_id: str


class AIBinding(_Binding):
    binding: str


class BrowserBinding(_Binding):
    binding: str


class VersionMetadataBinding(_Binding):
    binding: str


class SendEmailBinding(_Binding):
    name: str
    destination_address: str | None = None
    allowed_destination_addresses: list[str] | None = None


class AnalyticsEngineDataset(_Binding):
    binding: str
    dataset: str | None = None


class DispatchNamespace(_Binding):
    binding: str
    namespace: str


class MtlsCertificate(_Binding):
    binding: str
    certificate_id: str


class UnsafeConfig(BaseModel):
    bindings: list[dict[str, Any]] | None = None
    metadata: dict[str, Any] | None = None
    capnp: dict[str, Any] | None = None


class Placement(BaseModel):
    mode: Literal["off", "smart"] = "off"


class Limits(BaseModel):
    cpu_ms: int | None = None


class TailConsumer(BaseModel):
    service: str
    environment: str | None = None


class Rule(BaseModel):
    """Maps file globs to a module type for no-bundle uploads."""

    type: ModuleType
    globs: list[str]
    fallthrough: bool = False


class Migration(BaseModel):
    tag: str
    new_classes: list[str] = Field(default_factory=list)
    renamed_classes: list[dict[str, str]] = Field(default_factory=list)
    deleted_classes: list[str] = Field(default_factory=list)


class WorkerConfig(BaseModel):
    """
    Worker configuration as read from ``flaredeck.toml``.

    The deploy pipeline treats this as read-only input. CLI flags override a subset
    of these fields through ``DeployProps``.
    """

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    main: str | None = None
    compatibility_date: str | None = None
    compatibility_flags: list[str] = Field(default_factory=list)

    jsx_factory: str = "React.createElement"
    jsx_fragment: str = "React.Fragment"
    tsconfig: str | None = None
    minify: bool | None = None
    define: dict[str, str] = Field(default_factory=dict)
    keep_vars: bool = False
    upload_source_maps: bool = False
    rules: list[Rule] = Field(default_factory=list)
    send_metrics: bool | None = None

    vars: dict[str, Any] = Field(default_factory=dict)
    kv_namespaces: list[KVNamespace] = Field(default_factory=list)
    r2_buckets: list[R2Bucket] = Field(default_factory=list)
    d1_databases: list[D1Database] = Field(default_factory=list)
    durable_objects: DurableObjects = Field(default_factory=DurableObjects)
    queues: Queues = Field(default_factory=Queues)
    services: list[ServiceBinding] = Field(default_factory=list)
    vectorize: list[VectorizeIndex] = Field(default_factory=list)
    hyperdrive: list[HyperdriveBinding] = Field(default_factory=list)
    constellation: list[ConstellationBinding] = Field(default_factory=list)
    ai: AIBinding | None = None
    browser: BrowserBinding | None = None
    version_metadata: VersionMetadataBinding | None = None
    send_email: list[SendEmailBinding] = Field(default_factory=list)
    analytics_engine_datasets: list[AnalyticsEngineDataset] = Field(default_factory=list)
    dispatch_namespaces: list[DispatchNamespace] = Field(default_factory=list)
    mtls_certificates: list[MtlsCertificate] = Field(default_factory=list)
    text_blobs: dict[str, str] | None = None
    unsafe: UnsafeConfig = Field(default_factory=UnsafeConfig)

    placement: Placement | None = None
    usage_model: Literal["bundled", "unbound", "standard"] | None = None
    limits: Limits | None = None
    tail_consumers: list[TailConsumer] | None = None
    migrations: list[Migration] = Field(default_factory=list)

    @classmethod
    def from_file(cls, path: Path) -> "WorkerConfig":
        """Parse a TOML config file. Relative ``main`` paths are kept as written."""
        with path.open("rb") as f:
            data = tomllib.load(f)
        return cls.model_validate(data)
