from flaredeck.deployment.bindings import build_bindings, mask_vars, print_bindings
from flaredeck.deployment.upload_form import create_worker_upload_form
from flaredeck.models.worker import CfModule, WorkerUpload
from flaredeck.models.worker_config import (
    D1Database,
    DurableObjectBinding,
    DurableObjects,
    KVNamespace,
    Limits,
    Placement,
    QueueProducer,
    Queues,
    ServiceBinding,
    UnsafeConfig,
    WorkerConfig,
)


def _config() -> WorkerConfig:
    return WorkerConfig(
        name="api",
        compatibility_date="2024-01-01",
        vars={"GREETING": "hello", "LIMITS": {"max": 3}},
        kv_namespaces=[KVNamespace(binding="CACHE", id="kv-1")],
        d1_databases=[D1Database(binding="DB", database_id="d1-1", database_name="main")],
        durable_objects=DurableObjects(
            bindings=[DurableObjectBinding(name="ROOM", class_name="Room", script_name="chat")]
        ),
        queues=Queues(producers=[QueueProducer(binding="JOBS", queue="jobs")]),
        services=[ServiceBinding(binding="AUTH", service="auth", environment="production")],
        unsafe=UnsafeConfig(bindings=[{"type": "ratelimit", "name": "LIMITER"}], metadata={"logpush": True}),
    )


def _worker(config: WorkerConfig, **overrides) -> WorkerUpload:
    values = {
        "name": "api",
        "main": CfModule(name="index.js", content="export default {}", type="esm"),
        "modules": [CfModule(name="add.wasm", content=b"\x00asm", type="compiled-wasm")],
        "bindings": build_bindings(config),
        "compatibility_date": "2024-01-01",
        "compatibility_flags": ["nodejs_compat"],
    }
    values.update(overrides)
    return WorkerUpload(**values)


def test_build_bindings_merges_cli_vars_over_config():
    bindings = build_bindings(_config(), {"GREETING": "hi", "EXTRA": "x"})

    assert bindings.vars == {"GREETING": "hi", "LIMITS": {"max": 3}, "EXTRA": "x"}
    assert bindings.queues[0].queue_name == "jobs"
    assert bindings.queues[0].binding == "JOBS"


def test_mask_vars_hides_values_not_from_config():
    masked = mask_vars({"A": "override", "B": "2", "C": "new"}, {"A": "1", "B": "2"})

    assert masked == {"A": "(hidden)", "B": "2", "C": "(hidden)"}


def test_metadata_lists_every_binding():
    form = create_worker_upload_form(_worker(_config()))

    metadata = form.metadata
    assert metadata["main_module"] == "index.js"
    assert metadata["compatibility_flags"] == ["nodejs_compat"]
    assert metadata["logpush"] is True
    assert metadata["bindings"] == [
        {"type": "plain_text", "name": "GREETING", "text": "hello"},
        {"type": "json", "name": "LIMITS", "json": {"max": 3}},
        {"type": "kv_namespace", "name": "CACHE", "namespace_id": "kv-1"},
        {"type": "durable_object_namespace", "name": "ROOM", "class_name": "Room", "script_name": "chat"},
        {"type": "queue", "name": "JOBS", "queue_name": "jobs"},
        {"type": "d1", "name": "DB", "id": "d1-1"},
        {"type": "service", "name": "AUTH", "service": "auth", "environment": "production"},
        {"type": "ratelimit", "name": "LIMITER"},
    ]


def test_module_parts_carry_content_types():
    form = create_worker_upload_form(_worker(_config()))

    parts = {name: part for name, part in form.files}
    assert parts["index.js"] == ("index.js", b"export default {}", "application/javascript+module")
    assert parts["add.wasm"] == ("add.wasm", b"\x00asm", "application/wasm")


def test_optional_settings_only_when_present():
    bare = create_worker_upload_form(_worker(WorkerConfig())).metadata
    assert "placement" not in bare
    assert "limits" not in bare
    assert "keep_bindings" not in bare

    full = create_worker_upload_form(
        _worker(
            WorkerConfig(),
            placement=Placement(mode="smart"),
            limits=Limits(cpu_ms=50),
            usage_model="unbound",
            keep_vars=True,
        )
    ).metadata
    assert full["placement"] == {"mode": "smart"}
    assert full["limits"] == {"cpu_ms": 50}
    assert full["usage_model"] == "unbound"
    assert full["keep_bindings"] == ["plain_text", "json"]


def test_commonjs_main_uses_body_part():
    worker = _worker(
        WorkerConfig(),
        main=CfModule(name="sw.js", content="addEventListener('fetch', () => {})", type="commonjs"),
    )

    metadata = create_worker_upload_form(worker).metadata

    assert metadata["body_part"] == "sw.js"
    assert "main_module" not in metadata


def test_print_bindings_lists_sections(output):
    print_bindings(build_bindings(_config()), output=output.logger)

    lines = output.out.splitlines()
    assert lines[0] == "Your worker has access to the following bindings:"
    assert "- Vars:" in lines
    assert '  - GREETING: "hello"' in lines
    assert "  - ROOM: Room (defined in chat)" in lines
    assert "  - AUTH: auth - production" in lines


def test_print_bindings_silent_without_bindings(output):
    print_bindings(build_bindings(WorkerConfig()), output=output.logger)

    assert output.out == ""
