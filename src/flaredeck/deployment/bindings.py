"""Binding manifest assembly and the on-screen summary of it."""

import json
from typing import Any

from flaredeck.constants import HIDDEN_VAR
from flaredeck.logger import Logger, logger
from flaredeck.models.worker import QueueBinding, WorkerBindings
from flaredeck.models.worker_config import WorkerConfig

__all__ = ["build_bindings", "mask_vars", "print_bindings"]


def build_bindings(config: WorkerConfig, vars: dict[str, Any] | None = None) -> WorkerBindings:
    """Bindings declared in the config file, with CLI ``vars`` taking precedence."""
    return WorkerBindings(
        vars={**config.vars, **(vars or {})},
        kv_namespaces=config.kv_namespaces,
        send_email=config.send_email,
        browser=config.browser,
        ai=config.ai,
        version_metadata=config.version_metadata,
        durable_objects=config.durable_objects,
        queues=[
            QueueBinding(
                binding=producer.binding,
                queue_name=producer.queue,
                delivery_delay=producer.delivery_delay,
            )
            for producer in config.queues.producers
        ],
        r2_buckets=config.r2_buckets,
        d1_databases=config.d1_databases,
        vectorize=config.vectorize,
        constellation=config.constellation,
        hyperdrive=config.hyperdrive,
        services=config.services,
        analytics_engine_datasets=config.analytics_engine_datasets,
        dispatch_namespaces=config.dispatch_namespaces,
        mtls_certificates=config.mtls_certificates,
        unsafe=config.unsafe,
    )


def mask_vars(vars: dict[str, Any], config_vars: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``vars`` with every value that did not come from the config file hidden."""
    return {
        key: value if key in config_vars and config_vars[key] == value else HIDDEN_VAR
        for key, value in vars.items()
    }


def _sections(bindings: WorkerBindings) -> list[tuple[str, list[str]]]:
    return [
        ("Vars", [f"{k}: {json.dumps(v)}" for k, v in bindings.vars.items()]),
        ("KV Namespaces", [f"{kv.binding}: {kv.id}" for kv in bindings.kv_namespaces]),
        ("Send Email", [e.name for e in bindings.send_email]),
        (
            "Durable Objects",
            [
                f"{do.name}: {do.class_name}" + (f" (defined in {do.script_name})" if do.script_name else "")
                for do in bindings.durable_objects.bindings
            ],
        ),
        ("Queues", [f"{q.binding}: {q.queue_name}" for q in bindings.queues]),
        ("R2 Buckets", [f"{b.binding}: {b.bucket_name}" for b in bindings.r2_buckets]),
        ("D1 Databases", [f"{d.binding}: {d.database_name or d.database_id}" for d in bindings.d1_databases]),
        ("Vectorize Indexes", [f"{v.binding}: {v.index_name}" for v in bindings.vectorize]),
        ("Constellation Projects", [f"{c.binding}: {c.project_id}" for c in bindings.constellation]),
        ("Hyperdrive Configs", [f"{h.binding}: {h.id}" for h in bindings.hyperdrive]),
        (
            "Services",
            [
                f"{s.binding}: {s.service}" + (f" - {s.environment}" if s.environment else "")
                for s in bindings.services
            ],
        ),
        (
            "Analytics Engine Datasets",
            [f"{a.binding}: {a.dataset or a.binding}" for a in bindings.analytics_engine_datasets],
        ),
        ("Dispatch Namespaces", [f"{d.binding}: {d.namespace}" for d in bindings.dispatch_namespaces]),
        ("mTLS Certificates", [f"{m.binding}: {m.certificate_id}" for m in bindings.mtls_certificates]),
        ("Browser", [bindings.browser.binding] if bindings.browser else []),
        ("AI", [bindings.ai.binding] if bindings.ai else []),
        ("Worker Version Metadata", [bindings.version_metadata.binding] if bindings.version_metadata else []),
        ("Text Blobs", [f"{k}: {v}" for k, v in (bindings.text_blobs or {}).items()]),
        ("Data Blobs", [f"{k}: {v}" for k, v in (bindings.data_blobs or {}).items()]),
        ("Wasm Modules", [f"{k}: {v}" for k, v in (bindings.wasm_modules or {}).items()]),
        ("Unsafe", [json.dumps(b) for b in bindings.unsafe.bindings or []]),
    ]


def print_bindings(bindings: WorkerBindings, output: Logger | None = None) -> None:
    output = output or logger
    sections = [(title, lines) for title, lines in _sections(bindings) if lines]
    if not sections:
        return

    output.log("Your worker has access to the following bindings:")
    for title, lines in sections:
        output.log(f"- {title}:")
        for line in lines:
            output.log(f"  - {line}")
