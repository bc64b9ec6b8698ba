"""Turns a ``WorkerUpload`` into the multipart body the script upload endpoint expects."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from flaredeck.constants import CONTENT_TYPES
from flaredeck.models.worker import CfModule, WorkerBindings, WorkerUpload

__all__ = ["UploadForm", "create_worker_upload_form", "serialize_bindings"]

FilePart = tuple[str, tuple[str, bytes, str]]


@dataclass
class UploadForm:
    """Plain form fields plus file parts, ready for ``httpx`` ``data=`` and ``files=``."""

    data: dict[str, str] = field(default_factory=dict)
    files: list[FilePart] = field(default_factory=list)

    @property
    def metadata(self) -> dict[str, Any]:
        return json.loads(self.data["metadata"])


def _drop_none(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def _as_part(module: CfModule, content_type: str | None = None) -> FilePart:
    content = module.content.encode("utf-8") if isinstance(module.content, str) else module.content
    content_type = content_type or CONTENT_TYPES[module.type or "esm"]
    return (module.name, (module.name, content, content_type))


def serialize_bindings(bindings: WorkerBindings) -> tuple[list[dict[str, Any]], list[FilePart]]:
    """Binding metadata entries, plus any file parts the bindings reference."""
    entries: list[dict[str, Any]] = []
    parts: list[FilePart] = []

    for name, value in bindings.vars.items():
        if isinstance(value, str):
            entries.append({"type": "plain_text", "name": name, "text": value})
        else:
            entries.append({"type": "json", "name": name, "json": value})

    for kv in bindings.kv_namespaces:
        entries.append({"type": "kv_namespace", "name": kv.binding, "namespace_id": kv.id})

    for email in bindings.send_email:
        entries.append(
            _drop_none(
                {
                    "type": "send_email",
                    "name": email.name,
                    "destination_address": email.destination_address,
                    "allowed_destination_addresses": email.allowed_destination_addresses,
                }
            )
        )

    for do in bindings.durable_objects.bindings:
        entries.append(
            _drop_none(
                {
                    "type": "durable_object_namespace",
                    "name": do.name,
                    "class_name": do.class_name,
                    "script_name": do.script_name,
                    "environment": do.environment,
                }
            )
        )

    for queue in bindings.queues:
        entries.append(
            _drop_none(
                {
                    "type": "queue",
                    "name": queue.binding,
                    "queue_name": queue.queue_name,
                    "delivery_delay": queue.delivery_delay,
                }
            )
        )

    for bucket in bindings.r2_buckets:
        entries.append(
            _drop_none(
                {
                    "type": "r2_bucket",
                    "name": bucket.binding,
                    "bucket_name": bucket.bucket_name,
                    "jurisdiction": bucket.jurisdiction,
                }
            )
        )

    for db in bindings.d1_databases:
        entries.append({"type": "d1", "name": db.binding, "id": db.database_id})

    for index in bindings.vectorize:
        entries.append({"type": "vectorize", "name": index.binding, "index_name": index.index_name})

    for project in bindings.constellation:
        entries.append({"type": "constellation", "name": project.binding, "project": project.project_id})

    for hyperdrive in bindings.hyperdrive:
        entries.append({"type": "hyperdrive", "name": hyperdrive.binding, "id": hyperdrive.id})

    for service in bindings.services:
        entries.append(
            _drop_none(
                {
                    "type": "service",
                    "name": service.binding,
                    "service": service.service,
                    "environment": service.environment,
                    "entrypoint": service.entrypoint,
                }
            )
        )

    for dataset in bindings.analytics_engine_datasets:
        entries.append(
            _drop_none({"type": "analytics_engine", "name": dataset.binding, "dataset": dataset.dataset})
        )

    for namespace in bindings.dispatch_namespaces:
        entries.append(
            {"type": "dispatch_namespace", "name": namespace.binding, "namespace": namespace.namespace}
        )

    for cert in bindings.mtls_certificates:
        entries.append(
            {"type": "mtls_certificate", "name": cert.binding, "certificate_id": cert.certificate_id}
        )

    for kind, binding in (
        ("browser", bindings.browser),
        ("ai", bindings.ai),
        ("version_metadata", bindings.version_metadata),
    ):
        if binding is not None:
            entries.append({"type": kind, "name": binding.binding})

    for kind, blobs, content_type in (
        ("wasm_module", bindings.wasm_modules, CONTENT_TYPES["compiled-wasm"]),
        ("text_blob", bindings.text_blobs, CONTENT_TYPES["text"]),
        ("data_blob", bindings.data_blobs, CONTENT_TYPES["buffer"]),
    ):
        for name, file_path in (blobs or {}).items():
            entries.append({"type": kind, "name": name, "part": name})
            parts.append((name, (Path(file_path).name, Path(file_path).read_bytes(), content_type)))

    entries.extend(bindings.unsafe.bindings or [])
    return entries, parts


def create_worker_upload_form(worker: WorkerUpload) -> UploadForm:
    bindings, binding_parts = serialize_bindings(worker.bindings)

    metadata: dict[str, Any] = {
        "bindings": bindings,
        "compatibility_date": worker.compatibility_date,
        "compatibility_flags": worker.compatibility_flags,
    }
    if worker.main.type == "commonjs":
        metadata["body_part"] = worker.main.name
    else:
        metadata["main_module"] = worker.main.name

    if worker.usage_model:
        metadata["usage_model"] = worker.usage_model
    if worker.migrations:
        metadata["migrations"] = [m.model_dump() for m in worker.migrations]

    keep_bindings: list[str] = []
    if worker.keep_vars:
        keep_bindings += ["plain_text", "json"]
    if worker.keep_secrets:
        keep_bindings += ["secret_text", "secret_key"]
    if keep_bindings:
        metadata["keep_bindings"] = keep_bindings

    if worker.placement is not None:
        metadata["placement"] = worker.placement.model_dump()
    if worker.tail_consumers is not None:
        metadata["tail_consumers"] = [t.model_dump(exclude_none=True) for t in worker.tail_consumers]
    if worker.limits is not None:
        metadata["limits"] = worker.limits.model_dump(exclude_none=True)
    if worker.bindings.unsafe.metadata:
        metadata.update(worker.bindings.unsafe.metadata)

    files = [_as_part(worker.main)]
    files += [_as_part(module) for module in worker.modules]
    files += binding_parts
    for source_map in worker.source_maps or []:
        files.append(
            (source_map.name, (source_map.name, source_map.content.encode("utf-8"), "application/source-map"))
        )

    return UploadForm(data={"metadata": json.dumps(metadata)}, files=files)
