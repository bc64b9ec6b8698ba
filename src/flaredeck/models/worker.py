"""Pydantic models describing a worker upload and the pieces it is built from."""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from flaredeck.constants import ModuleType
from flaredeck.models.worker_config import (
    AIBinding,
    AnalyticsEngineDataset,
    BrowserBinding,
    ConstellationBinding,
    D1Database,
    DispatchNamespace,
    DurableObjects,
    HyperdriveBinding,
    KVNamespace,
    Limits,
    Migration,
    MtlsCertificate,
    Placement,
    R2Bucket,
    SendEmailBinding,
    ServiceBinding,
    TailConsumer,
    UnsafeConfig,
    VectorizeIndex,
    VersionMetadataBinding,
)

__all__ = [
    "BundleResult",
    "CfModule",
    "Entry",
    "QueueBinding",
    "SourceMap",
    "WorkerBindings",
    "WorkerUpload",
]


class Entry(BaseModel):
    """The worker's entry point on disk."""

    file: Path
    directory: Path
    format: Literal["modules", "service-worker"] = "modules"

    @classmethod
    def from_file(cls, file: Path, format: Literal["modules", "service-worker"] = "modules") -> "Entry":
        file = file.resolve()
        return cls(file=file, directory=file.parent, format=format)


class CfModule(BaseModel):
    """A single module in the upload: the entry point or one of its dependencies."""

    name: str
    """Name the module is uploaded under, relative to the entry directory."""

    content: str | bytes

    type: ModuleType | None = None

    file_path: Path | None = None
    """Where the module was read from, if it came from disk."""

    @property
    def size(self) -> int:
        """Byte length of the content; text is measured as UTF-8."""
        if isinstance(self.content, str):
            return len(self.content.encode("utf-8"))
        return len(self.content)


class SourceMap(BaseModel):
    name: str
    content: str


class QueueBinding(BaseModel):
    binding: str
    queue_name: str
    delivery_delay: int | None = None


class WorkerBindings(BaseModel):
    """The full binding manifest sent with an upload, one field per binding kind."""

    vars: dict[str, Any] = Field(default_factory=dict)
    kv_namespaces: list[KVNamespace] = Field(default_factory=list)
    send_email: list[SendEmailBinding] = Field(default_factory=list)
    wasm_modules: dict[str, str] | None = None
    text_blobs: dict[str, str] | None = None
    data_blobs: dict[str, str] | None = None
    browser: BrowserBinding | None = None
    ai: AIBinding | None = None
    version_metadata: VersionMetadataBinding | None = None
    durable_objects: DurableObjects = Field(default_factory=DurableObjects)
    queues: list[QueueBinding] = Field(default_factory=list)
    r2_buckets: list[R2Bucket] = Field(default_factory=list)
    d1_databases: list[D1Database] = Field(default_factory=list)
    vectorize: list[VectorizeIndex] = Field(default_factory=list)
    constellation: list[ConstellationBinding] = Field(default_factory=list)
    hyperdrive: list[HyperdriveBinding] = Field(default_factory=list)
    services: list[ServiceBinding] = Field(default_factory=list)
    analytics_engine_datasets: list[AnalyticsEngineDataset] = Field(default_factory=list)
    dispatch_namespaces: list[DispatchNamespace] = Field(default_factory=list)
    mtls_certificates: list[MtlsCertificate] = Field(default_factory=list)
    unsafe: UnsafeConfig = Field(default_factory=UnsafeConfig)


class WorkerUpload(BaseModel):
    """Everything needed to build the multipart upload request for one worker."""

    name: str
    main: CfModule
    modules: list[CfModule] = Field(default_factory=list)
    bindings: WorkerBindings
    migrations: list[Migration] | None = None
    source_maps: list[SourceMap] | None = None
    compatibility_date: str
    compatibility_flags: list[str] = Field(default_factory=list)
    usage_model: str | None = None
    keep_vars: bool = False
    keep_secrets: bool = False
    placement: Placement | None = None
    tail_consumers: list[TailConsumer] | None = None
    limits: Limits | None = None


class BundleResult(BaseModel):
    """What a bundler (or the no-bundle path) hands back to the deploy pipeline."""

    modules: list[CfModule] = Field(default_factory=list)

    dependencies: dict[str, int] = Field(default_factory=dict)
    """Bytes in output per input path, used for size reporting."""

    resolved_entry_point_path: Path

    bundle_type: Literal["esm", "commonjs"] = "esm"

    source_map_path: Path | None = None
