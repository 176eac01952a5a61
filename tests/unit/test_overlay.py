import pytest

from kiln.build import Builder


def test_temporary_cmd_restores_command(builder: Builder) -> None:
    builder.config.cmd = ["/bin/app"]

    with builder.temporary_cmd(["/bin/sh", "-c", "make"]) as config:
        assert config.cmd == ["/bin/sh", "-c", "make"]

    assert builder.config.cmd == ["/bin/app"]


def test_temporary_cmd_restores_command_on_error(builder: Builder) -> None:
    builder.config.cmd = ["/bin/app"]

    with pytest.raises(RuntimeError):
        with builder.temporary_cmd(["false"]):
            raise RuntimeError("step failed")

    assert builder.config.cmd == ["/bin/app"]


def test_temporary_config_restores_full_snapshot_on_error(builder: Builder) -> None:
    builder.config.cmd = ["run"]
    builder.config.env = ["A=1"]
    builder.add_labels({"keep": "yes"})

    def mutate(config) -> None:
        config.cmd = ["other"]
        config.env.append("B=2")
        config.labels["keep"] = "no"
        config.volumes["/data"] = {}

    with pytest.raises(ValueError):
        with builder.temporary_config(mutate) as config:
            assert config.env == ["A=1", "B=2"]
            raise ValueError("boom")

    assert builder.config.cmd == ["run"]
    assert builder.config.env == ["A=1"]
    assert builder.config.labels == {"keep": "yes"}
    assert builder.config.volumes == {}


def test_add_labels_creates_map_and_overwrites(builder: Builder) -> None:
    assert builder.config.labels is None

    builder.add_labels({"a": "1", "b": "2"})
    builder.add_labels({"b": "3"})

    assert builder.config.labels == {"a": "1", "b": "3"}
