"""
Tests for per-project resolution and the command line.
"""

import json
import sys
from types import SimpleNamespace

import pytest

from chipmgr import build_logic
from chipmgr.build import find_projects, main
from chipmgr.build_logic import TargetResolver, resolve_targets
from chipmgr.errors import ArtifactOverflow, UnsupportedCapability
from chipmgr.models import BuildOutput


def sensor_config(**overrides):
    settings = dict(
        CHIP="STM32F405RGT6",
        CAPABILITIES=["GPIO", "I2C"],
        PINS={},
        MEMORY_OVERRIDES={"stack": 0x1000},
        INCLUDE_PATHS=["Core/Inc"],
        PROBE="openocd",
        ADAPTER="stlink",
        TRANSPORT="SWD",
        TARGET_NAME="firmware",
        BUILD_DIR="build",
    )
    settings.update(overrides)
    return SimpleNamespace(**settings)


class TestTargetResolver:
    """One project's config driven through every stage"""

    def test_resolve(self, registry, resolver, cache):
        target = TargetResolver(sensor_config(), "prj_sensor", registry, resolver).resolve()
        assert target.chip.identifier == "STM32F405xG"
        assert [ref.name for ref in target.packages] == ["F4-core", "F4-base-driver", "F4-I2C-driver"]
        assert target.layout.region("stack").size == 0x1000
        assert target.build.include_paths[0] == "prj_sensor/Core/Inc"
        assert target.build.include_paths[1].startswith(str(cache.root))
        assert target.debug.config_files[-1] == "target/stm32f4x.cfg"
        json.dumps(target.to_dict())

    def test_missing_settings_use_defaults(self, registry, resolver):
        config = SimpleNamespace(CHIP="STM32G071RBT6")
        target = TargetResolver(config, "prj_min", registry, resolver).resolve()
        assert [ref.name for ref in target.packages] == ["G0-core", "G0-base-driver"]
        assert target.debug.server_type == "openocd"

    def test_capability_missing_on_chip(self, registry, resolver):
        # F4 ships a CAN driver, but the F401 has no CAN peripheral.
        config = sensor_config(CHIP="STM32F401CCU6", CAPABILITIES=["GPIO", "CAN"])
        with pytest.raises(UnsupportedCapability) as excinfo:
            TargetResolver(config, "prj_sensor", registry, resolver).resolve()
        assert excinfo.value.capability == "CAN"
        assert excinfo.value.target == "STM32F401xC"

    def test_fetch_packages(self, registry, resolver, fake_fetcher):
        runner = TargetResolver(sensor_config(), "prj_sensor", registry, resolver)
        paths = runner.fetch_packages(runner.resolve())
        assert len(paths) == 3
        assert len(fake_fetcher.calls) == 3

    def test_report(self, registry, resolver, monkeypatch):
        seen = []

        def fake_read_sections(elf_path, size_tool=None):
            seen.append(elf_path)
            return BuildOutput(elf_path, {".text": 20000, ".data": 300, ".bss": 4000})

        monkeypatch.setattr(build_logic, "read_sections", fake_read_sections)
        runner = TargetResolver(sensor_config(), "prj_sensor", registry, resolver)
        artifact = runner.report(runner.resolve())
        assert seen == ["build/prj_sensor/firmware.elf"]
        assert artifact.passed
        assert artifact.image.path == "build/prj_sensor/firmware.bin"


class TestResolveTargets:
    """Several projects resolved concurrently over one cache"""

    def test_shared_packages_fetched_once(self, registry, resolver, fake_fetcher):
        projects = [
            (sensor_config(), "prj_a"),
            (sensor_config(CHIP="STM32F407VGT6", CAPABILITIES=["GPIO", "I2C", "UART"]), "prj_b"),
            (sensor_config(CHIP="STM32F429ZIT6"), "prj_c"),
        ]
        targets = resolve_targets(projects, registry, resolver, max_workers=3, fetch=True)
        assert list(targets) == ["prj_a", "prj_b", "prj_c"]
        assert targets["prj_b"].chip.device_macro == "STM32F407xx"
        assert sorted(fake_fetcher.calls) == sorted({
            "F4-core==2.6.10", "F4-base-driver==1.8.3", "F4-I2C-driver==1.8.3", "F4-UART-driver==1.8.3",
        })

    def test_results_do_not_interfere(self, registry, resolver):
        projects = [(sensor_config(MEMORY_OVERRIDES={"stack": 0x400 * n}), f"prj_{n}") for n in range(1, 5)]
        targets = resolve_targets(projects, registry, resolver)
        for n in range(1, 5):
            assert targets[f"prj_{n}"].layout.region("stack").size == 0x400 * n


PROJECT_CONFIG = """\
CHIP = "{chip}"
CAPABILITIES = ["GPIO", "UART"]
MEMORY_OVERRIDES = {{"stack": 0x800}}
TRANSPORT = "SWD"
"""


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """A directory with project folders, used as the current directory."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "path", list(sys.path))

    def add_project(name, chip="STM32F405RGT6"):
        (tmp_path / name).mkdir()
        (tmp_path / name / "config.py").write_text(PROJECT_CONFIG.format(chip=chip))
        return name

    return add_project


class TestCommandLine:
    """chipmgr <project> [command]"""

    def test_find_projects(self, tmp_path, workspace):
        workspace("prj_cli_find")
        (tmp_path / "docs").mkdir()
        assert find_projects(str(tmp_path)) == ["prj_cli_find"]

    def test_unknown_project(self, workspace, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["prj_missing"])
        assert excinfo.value.code == 1
        assert "Available projects" in capsys.readouterr().out

    def test_unknown_command(self, workspace):
        workspace("prj_cli_command")
        with pytest.raises(SystemExit):
            main(["prj_cli_command", "flash"])

    def test_layout_command(self, workspace, capsys):
        workspace("prj_cli_layout")
        main(["prj_cli_layout", "layout"])
        out = capsys.readouterr().out
        assert "MEMORY" in out
        assert "STACK    (rw) : ORIGIN = 0x2001F800, LENGTH = 2048" in out

    def test_debug_command(self, workspace, capsys):
        workspace("prj_cli_debug")
        main(["prj_cli_debug", "debug"])
        out = capsys.readouterr().out
        data = json.loads(out[out.index("{"):])
        assert data["config_files"] == ["interface/stlink.cfg", "target/stm32f4x.cfg"]

    def test_bad_chip_exits(self, workspace, capsys):
        workspace("prj_cli_badchip", chip="STM32F4")
        with pytest.raises(SystemExit) as excinfo:
            main(["prj_cli_badchip"])
        assert excinfo.value.code == 1
        assert "Ambiguous chip" in capsys.readouterr().err

    def test_bad_probe_setting_exits(self, workspace, tmp_path, capsys):
        name = workspace("prj_cli_badprobe")
        with open(tmp_path / name / "config.py", "a") as f:
            f.write('PROBE = "blackmagic"\n')
        with pytest.raises(SystemExit) as excinfo:
            main([name, "debug"])
        assert excinfo.value.code == 1
        err = capsys.readouterr().err
        assert "Invalid ProbeKind 'blackmagic'" in err
        assert "Traceback" not in err

    def test_report_overflow_exits(self, workspace, monkeypatch, capsys):
        workspace("prj_cli_report")
        monkeypatch.setattr(
            build_logic, "read_sections",
            lambda elf_path, size_tool=None: BuildOutput(elf_path, {".text": 2_000_000}),
        )
        with pytest.raises(SystemExit) as excinfo:
            main(["prj_cli_report", "report", "out/fw.elf"])
        assert excinfo.value.code == 1
        assert "overflows" in capsys.readouterr().err

    def test_report_overflow_is_an_artifact_error(self, registry, resolver, monkeypatch):
        monkeypatch.setattr(
            build_logic, "read_sections",
            lambda elf_path, size_tool=None: BuildOutput(elf_path, {".text": 2_000_000}),
        )
        runner = TargetResolver(sensor_config(), "prj_sensor", registry, resolver)
        with pytest.raises(ArtifactOverflow):
            runner.report(runner.resolve()).raise_for_overflow()
