from pathlib import Path

import pytest

from kiln.build import Builder
from kiln.build.mounts import EXPORTS_VOLUME, RSYNC_VOLUME


@pytest.mark.asyncio
async def test_exports_container_is_created_once(builder: Builder, engine) -> None:
    builder.session.image_id = "sha256:base"

    first = await builder.make_exports_container()
    second = await builder.make_exports_container()

    assert first == second
    assert engine.calls["create_container"] == 1
    name = builder.containers.exports_container_name(builder.session)
    created = engine.containers[name]
    assert created["Image"] == "grammarly/rsync-static:1"
    assert created["Volumes"] == [RSYNC_VOLUME, EXPORTS_VOLUME]
    assert created["Labels"] == {
        "kiln.build_file": str(builder.session.build_file),
        "kiln.image_id": "sha256:base",
    }
    assert engine.pulled == [("grammarly/rsync-static", "1", None)]


@pytest.mark.asyncio
async def test_exports_container_found_by_name_is_reused(
    builder: Builder, engine
) -> None:
    name = builder.containers.exports_container_name(builder.session)
    engine.containers[name] = {"Id": "existing", "Name": name}

    assert await builder.make_exports_container() == "existing"
    assert "create_container" not in engine.calls
    assert builder.session.exports_container_id == "existing"


def test_container_names_are_deterministic_per_build_file(builder: Builder) -> None:
    other = Builder(
        builder.session.context_dir,
        "Rockerfile",
        engine=builder.engine,
        settings=builder.settings,
        sink=builder.session.sink,
    )
    name = builder.containers.exports_container_name(builder.session)
    assert name == other.containers.exports_container_name(other.session)
    assert name.startswith("kiln_exports_")


@pytest.mark.asyncio
async def test_volume_container_per_path(builder: Builder, engine) -> None:
    cache = await builder.make_volume_container("/root/.cache")
    again = await builder.make_volume_container("/root/.cache")
    other = await builder.make_volume_container("/var/lib/gems")

    assert cache == again
    assert cache != other
    assert engine.calls["create_container"] == 2


def test_binds_and_container_ids(builder: Builder) -> None:
    builder.add_mount("/host/src", "/src")
    builder.add_mount("", "/root/.cache", container_id="c1")
    builder.add_mount("", "/var/cache", container_id="c1")
    builder.add_mount("", "/opt", container_id="c2")

    assert builder.get_binds() == ["/host/src:/src"]
    assert builder.get_mount_container_ids() == ["c1", "c2"]
    assert "" not in builder.get_mount_container_ids()


def test_reset_mounts_keeps_history(builder: Builder) -> None:
    builder.add_mount("/host/a", "/a")
    builder.add_mount("", "/data", container_id="c1")
    builder.reset_mounts()
    builder.add_mount("", "/other", container_id="c2")

    assert builder.get_binds() == []
    assert builder.get_mount_container_ids() == ["c2"]
    assert builder.get_all_mount_container_ids() == ["c1", "c2"]
    assert len(builder.session.all_mounts) == 3


def test_context_mount_src_is_resolved_against_context(
    builder: Builder, tmp_path: Path
) -> None:
    context = builder.session.context_dir

    assert builder.get_context_mount_src("src/../lib") == str(context / "lib")
    assert builder.get_context_mount_src("/abs/path/") == "/abs/path"


def test_context_mount_src_uses_host_resolver(tmp_path: Path, engine, sink) -> None:
    builder = Builder(
        tmp_path,
        "Rockerfile",
        engine=engine,
        sink=sink,
        resolve_host_path=lambda path: "/Users/me" + path,
    )

    assert builder.get_context_mount_src("/data") == "/Users/me/data"
