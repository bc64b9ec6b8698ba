"""Pydantic models for local worker registry files."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

__all__ = ["DurableObjectDefinition", "WorkerDefinition"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DurableObjectDefinition(_CamelModel):
    """A durable object class exposed by a running worker."""

    name: str
    """Binding name."""

    class_name: str
    """Exported class name (``className`` on disk)."""


class WorkerDefinition(_CamelModel):
    """
    How to reach a locally running worker.

    Stored as one JSON file per worker in the registry directory; the file name is
    the worker name. Keys are camelCase on disk so that other tools sharing the
    directory can read them.
    """

    port: int | None = None
    """Port the worker listens on, if already bound."""

    protocol: Literal["http", "https"] | None = None
    """Scheme to use when calling the worker."""

    host: str | None = None
    """Host the worker listens on."""

    mode: Literal["local", "remote"] = "local"
    """Whether the worker runs on this machine or proxies to the edge."""

    headers: dict[str, str] | None = None
    """Extra headers needed to address the worker."""

    durable_objects: list[DurableObjectDefinition] = Field(default_factory=list)
    """Durable objects exported by this worker, in declaration order."""

    durable_objects_host: str | None = None
    """Override host for durable object requests."""

    durable_objects_port: int | None = None
    """Override port for durable object requests."""

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)
