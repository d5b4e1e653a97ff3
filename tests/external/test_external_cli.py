from __future__ import annotations

from pathlib import Path
import subprocess
import sys


def _tool_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _fixture(name: str) -> Path:
    return _tool_root() / "tests" / "fixtures" / name


def _run(args: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
    run_cwd = _tool_root() if cwd is None else cwd
    return subprocess.run(
        [sys.executable, "platgen.py", *args],
        cwd=run_cwd,
        capture_output=True,
        text=True,
        check=False,
    )


def _run_generate(manifest: Path, output: Path) -> subprocess.CompletedProcess[str]:
    return _run(["--input", str(manifest.resolve()), "--output", str(output.resolve())])


def test_t_01_generate_writes_guarded_rust_source(tmp_path: Path) -> None:
    output = tmp_path / "src" / "platform_gen.rs"

    result = _run_generate(_fixture("decls.xml"), output)

    assert result.returncode == 0, result.stderr
    assert result.stderr == ""
    assert "Platform declarations generated:" in result.stdout
    assert "Total:" in result.stdout

    source = output.read_text(encoding="utf-8")
    assert "// | Source: decls.xml" in source
    assert "// | Entries: 5" in source
    assert '#[cfg(target_os = "linux")]\npub fn update_kernel(&self) {' in source
    assert "pub async fn read<T: Default>(&mut self, buf: &mut [T], mut len: usize)" in source
    assert "    Self::read_impl::<T>(self, buf, len).await\n" in source
    assert "fn get_wm_name(&self) -> String;" in source
    assert "pub type HandleWindows = Handle;" in source
    assert "_assert_traits::<Handle>();" in source
    assert "pub mod linux;" in source
    assert "pub mod windows;" in source
    assert "pub mod macos;" not in source
    assert "compile_error!" not in source


def test_t_02_rejected_declarations_exit_1_but_still_write_output(
    tmp_path: Path,
) -> None:
    output = tmp_path / "platform_gen.rs"

    result = _run_generate(_fixture("rejected.xml"), output)

    assert result.returncode == 1
    assert "rejected.xml:2:3: error: Configuration excludes all platforms" in result.stderr
    assert "rejected.xml:6:3: error:" in result.stderr
    assert "Diagnostics: 2 (see stderr)" in result.stdout

    source = output.read_text(encoding="utf-8")
    assert source.count("compile_error!") == 2
    assert "#[cfg(any())]" in source


def test_t_03_list_platforms_succeeds_without_manifest() -> None:
    result = _run(["--list-platforms"])

    assert result.returncode == 0
    assert "Platform groups:" in result.stdout
    assert "alias suffix: Windows" in result.stdout


def test_t_04_resolve_prints_guard_for_option_block() -> None:
    result = _run(["--resolve", "include(posix), exclude(macos)"])

    assert result.returncode == 0
    assert "Platforms: linux" in result.stdout
    assert 'Guard:     #[cfg(target_os = "linux")]' in result.stdout


def test_t_05_resolve_rejects_malformed_block() -> None:
    result = _run(["--resolve", "include(beos)"])

    assert result.returncode == 1
    assert "Config error [INVALID_OPTIONS]" in result.stdout


def test_t_06_missing_input_reports_config_error(tmp_path: Path) -> None:
    result = _run(["--output", str(tmp_path / "out.rs")])

    assert result.returncode == 1
    assert "Config error [MISSING_INPUT]" in result.stdout
    assert not (tmp_path / "out.rs").exists()


def test_t_07_malformed_manifest_xml_exits_1(tmp_path: Path) -> None:
    manifest = tmp_path / "broken.xml"
    manifest.write_text("<manifest>", encoding="utf-8")

    result = _run_generate(manifest, tmp_path / "out.rs")

    assert result.returncode == 1
    assert "Error:" in result.stdout
    assert not (tmp_path / "out.rs").exists()
