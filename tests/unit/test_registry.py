import asyncio
import json
from pathlib import Path

import pytest

from flaredeck.exceptions import InvalidWorkerNameError, WorkerNotRegisteredError
from flaredeck.models.registry import DurableObjectDefinition, WorkerDefinition
from flaredeck.models.worker_config import DurableObjectBinding, DurableObjects, ServiceBinding
from flaredeck.registry import WorkerRegistry, scan_registry


@pytest.fixture
def registry_dir(tmp_path):
    return tmp_path / "registry"


@pytest.fixture
def registry(registry_dir):
    return WorkerRegistry(registry_dir)


def _definition(port: int) -> WorkerDefinition:
    return WorkerDefinition(port=port, protocol="http", host="localhost", mode="local")


async def _wait_for(predicate, timeout: float = 5.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.05)


class TestRegisterAndSnapshot:
    @pytest.mark.asyncio
    async def test_snapshot_empty_before_first_scan(self, registry):
        assert dict(registry.snapshot()) == {}
        assert not registry.ready.is_set()

    @pytest.mark.asyncio
    async def test_register_n_workers(self, registry):
        for i, name in enumerate(["alpha", "beta", "gamma"]):
            await registry.register(name, _definition(8000 + i))

        snapshot = await registry.refresh()

        assert list(snapshot) == ["alpha", "beta", "gamma"]
        assert snapshot["beta"].port == 8001
        assert registry.ready.is_set()

    @pytest.mark.asyncio
    async def test_unregister_removes_one_entry(self, registry):
        for i, name in enumerate(["alpha", "beta", "gamma"]):
            await registry.register(name, _definition(8000 + i))
        await registry.refresh()

        await registry.unregister("beta")
        snapshot = await registry.refresh()

        assert set(snapshot) == {"alpha", "gamma"}

    @pytest.mark.asyncio
    async def test_register_overwrites_existing_entry(self, registry):
        await registry.register("alpha", _definition(8000))
        await registry.register("alpha", _definition(9000))

        snapshot = await registry.refresh()

        assert len(snapshot) == 1
        assert snapshot["alpha"].port == 9000

    @pytest.mark.asyncio
    async def test_register_creates_directory_and_writes_camel_case(self, registry, registry_dir):
        definition = WorkerDefinition(
            port=8787,
            protocol="https",
            host="127.0.0.1",
            mode="local",
            durable_objects=[DurableObjectDefinition(name="COUNTER", class_name="Counter")],
            durable_objects_host="127.0.0.1",
            durable_objects_port=8788,
        )

        await registry.register("worker-a", definition)

        on_disk = json.loads((registry_dir / "worker-a").read_text())
        assert on_disk["durableObjects"] == [{"name": "COUNTER", "className": "Counter"}]
        assert on_disk["durableObjectsPort"] == 8788
        assert "headers" not in on_disk
        assert [p.name for p in registry_dir.iterdir()] == ["worker-a"]

    @pytest.mark.asyncio
    async def test_snapshot_is_read_only_and_replaced(self, registry):
        await registry.register("alpha", _definition(8000))
        first = await registry.refresh()

        with pytest.raises(TypeError):
            first["beta"] = _definition(8001)  # type: ignore[index]

        await registry.register("beta", _definition(8001))
        second = await registry.refresh()

        assert set(first) == {"alpha"}
        assert set(second) == {"alpha", "beta"}


class TestUnregister:
    @pytest.mark.asyncio
    async def test_missing_entry_is_ignored_by_default(self, registry):
        await registry.unregister("nobody")

    @pytest.mark.asyncio
    async def test_missing_entry_raises_when_strict(self, registry, registry_dir):
        registry_dir.mkdir()
        with pytest.raises(WorkerNotRegisteredError, match="nobody"):
            await registry.unregister("nobody", missing_ok=False)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["../outside", "..", ".hidden", "a/b", ""])
    async def test_rejects_names_outside_the_directory(self, registry, registry_dir, name):
        outside = registry_dir.parent / "outside"
        outside.write_text("keep me")

        with pytest.raises(InvalidWorkerNameError):
            await registry.unregister(name)
        with pytest.raises(InvalidWorkerNameError):
            await registry.register(name, _definition(8000))

        assert outside.read_text() == "keep me"


class TestScan:
    def test_skips_corrupt_and_partial_files(self, registry_dir):
        registry_dir.mkdir()
        (registry_dir / "good").write_text(_definition(8000).to_json())
        (registry_dir / "corrupt").write_text("{not json")
        (registry_dir / "partial").write_text("")
        (registry_dir / ".good.tmp123").write_text(_definition(9000).to_json())

        workers = scan_registry(registry_dir)

        assert list(workers) == ["good"]

    def test_skips_files_that_are_not_utf8(self, registry_dir):
        registry_dir.mkdir()
        (registry_dir / "good").write_text(_definition(8000).to_json())
        (registry_dir / "torn").write_bytes(b'{"port": 80\xff\xfe')
        (registry_dir / "garbage").write_bytes(b"\xff\xfe")

        assert list(scan_registry(registry_dir)) == ["good"]

    def test_skips_unreadable_files(self, registry_dir, monkeypatch):
        registry_dir.mkdir()
        (registry_dir / "good").write_text(_definition(8000).to_json())
        (registry_dir / "locked").write_text(_definition(9000).to_json())
        read_bytes = Path.read_bytes

        def guarded_read_bytes(self):
            if self.name == "locked":
                raise PermissionError(13, "Permission denied", str(self))
            return read_bytes(self)

        monkeypatch.setattr(Path, "read_bytes", guarded_read_bytes)

        assert list(scan_registry(registry_dir)) == ["good"]

    @pytest.mark.asyncio
    async def test_start_survives_undecodable_entry(self, registry_dir):
        registry_dir.mkdir()
        (registry_dir / "good").write_text(_definition(8000).to_json())
        (registry_dir / "torn").write_bytes(b'{"port": 80\xff\xfe')

        async with WorkerRegistry(registry_dir) as registry:
            assert registry.ready.is_set()
            assert list(registry.snapshot()) == ["good"]

    def test_missing_directory_is_empty(self, registry_dir):
        assert scan_registry(registry_dir) == {}

    @pytest.mark.asyncio
    async def test_scanner_is_injectable(self, registry_dir):
        calls = []

        def scanner(directory):
            calls.append(directory)
            return {"fake": _definition(1234)}

        registry = WorkerRegistry(registry_dir, scanner=scanner)
        snapshot = await registry.refresh()

        assert calls == [registry_dir]
        assert snapshot["fake"].port == 1234


class TestResolveBound:
    @pytest.mark.asyncio
    async def test_returns_only_referenced_workers(self, registry):
        for i, name in enumerate(["auth", "billing", "search", "unrelated"]):
            await registry.register(name, _definition(8000 + i))
        await registry.refresh()

        bound = registry.resolve_bound(
            services=[
                ServiceBinding(binding="AUTH", service="auth"),
                ServiceBinding(binding="AUTH_AGAIN", service="auth"),
                ServiceBinding(binding="MISSING", service="not-running"),
            ],
            durable_objects=DurableObjects(
                bindings=[
                    DurableObjectBinding(name="SEARCH", class_name="Index", script_name="search"),
                    DurableObjectBinding(name="LOCAL", class_name="Local"),
                ]
            ),
        )

        assert list(bound) == ["auth", "search"]

    @pytest.mark.asyncio
    async def test_no_bindings_returns_empty(self, registry):
        await registry.register("auth", _definition(8000))
        await registry.refresh()

        assert registry.resolve_bound(None, None) == {}


class TestWatch:
    @pytest.mark.asyncio
    async def test_start_scans_and_follows_changes(self, registry, registry_dir):
        other_process = WorkerRegistry(registry_dir)
        await other_process.register("alpha", _definition(8000))

        async with registry:
            assert registry.ready.is_set()
            assert set(registry.snapshot()) == {"alpha"}

            await other_process.register("beta", _definition(8001))
            await _wait_for(lambda: set(registry.snapshot()) == {"alpha", "beta"})

            await other_process.unregister("alpha")
            await _wait_for(lambda: set(registry.snapshot()) == {"beta"})

    @pytest.mark.asyncio
    async def test_start_creates_directory(self, registry, registry_dir):
        await registry.start()
        try:
            assert registry_dir.is_dir()
        finally:
            await registry.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self, registry):
        await registry.stop()
        await registry.stop()
