"""Unit tests for CLI command handling."""

from __future__ import annotations

from pathlib import Path

import pytest

from cli.main import build_parser, main


@pytest.fixture
def cli_env(tmp_path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the local backend at a temporary store."""
    monkeypatch.setenv("ARCHIVIST_LOCAL_STORE_ROOT", str(tmp_path / "blobs"))
    monkeypatch.setenv("ARCHIVIST_BACKEND", "local")
    monkeypatch.delenv("ARCHIVIST_PATH_PREFIX", raising=False)
    return tmp_path


def _source_dir(root: Path) -> Path:
    source_dir = root / "P"
    source_dir.mkdir()
    (source_dir / "foo").write_text("bar", encoding="utf-8")
    return source_dir


def _run(args: list[str], capsys) -> tuple[int, str]:
    exit_code = main(args)
    return exit_code, capsys.readouterr().out.strip()


def test_cli_upload_then_download(cli_env: Path, capsys) -> None:
    """CLI upload should print a version id that download materializes."""
    archive_root = str(cli_env / "archive")
    source_dir = _source_dir(cli_env)

    upload_code, version_id = _run(
        ["--archive-root", archive_root, "upload", str(source_dir), "--service", "svc", "--resource", "res"],
        capsys,
    )
    download_code, current_path = _run(
        ["--archive-root", archive_root, "download", "--service", "svc", "--resource", "res"],
        capsys,
    )

    assert upload_code == 0 and version_id.isdigit()
    assert download_code == 0
    assert Path(current_path) == cli_env / "archive" / "svc" / "res" / "current"
    assert (Path(current_path) / "foo").read_text(encoding="utf-8") == "bar"


def test_cli_versions_marks_current(cli_env: Path, capsys) -> None:
    """Versions output should mark the generation current points at."""
    archive_root = str(cli_env / "archive")
    source_dir = _source_dir(cli_env)
    common = ["--archive-root", archive_root, "--compression", "gzip"]
    resource = ["--service", "svc", "--resource", "res"]
    _, first = _run(common + ["upload", str(source_dir)] + resource, capsys)
    _, second = _run(common + ["upload", str(source_dir)] + resource, capsys)
    _run(common + ["download", "--generation", first] + resource, capsys)

    exit_code, output = _run(common + ["versions"] + resource, capsys)

    assert exit_code == 0
    assert output.splitlines() == [f"{first}\t*", f"{second}\t-"]


def test_cli_resources_and_delete_local(cli_env: Path, capsys) -> None:
    """Resources should list uploads and delete-local should report removal."""
    archive_root = str(cli_env / "archive")
    source_dir = _source_dir(cli_env)
    common = ["--archive-root", archive_root]
    _run(common + ["upload", str(source_dir), "--service", "svc", "--resource", "b"], capsys)
    _run(common + ["upload", str(source_dir), "--service", "svc", "--resource", "a"], capsys)
    _run(common + ["download", "--service", "svc", "--resource", "a"], capsys)

    _, resources = _run(common + ["resources", "--service", "svc"], capsys)
    _, first_delete = _run(common + ["delete-local", "--service", "svc", "--resource", "a"], capsys)
    _, second_delete = _run(common + ["delete-local", "--service", "svc", "--resource", "a"], capsys)

    assert resources.splitlines() == ["a", "b"]
    assert first_delete == "deleted"
    assert second_delete == "absent"


def test_cli_reads_config_file(cli_env: Path, capsys) -> None:
    """YAML config values should apply when passed with --config."""
    config_file = cli_env / "archivist.yaml"
    config_file.write_text(
        f"archive_root: {cli_env / 'from-file'}\npath_prefix: team\n",
        encoding="utf-8",
    )
    source_dir = _source_dir(cli_env)
    resource = ["--service", "svc", "--resource", "res"]

    _run(["--config", str(config_file), "upload", str(source_dir)] + resource, capsys)
    exit_code, current_path = _run(["--config", str(config_file), "download"] + resource, capsys)

    assert exit_code == 0
    assert Path(current_path).parent == cli_env / "from-file" / "svc" / "res"
    assert (cli_env / "blobs" / "archivist" / "team" / "svc").is_dir()


def test_cli_reports_errors_with_exit_code(cli_env: Path, capsys) -> None:
    """Archivist errors should print a message and return exit code 1."""
    exit_code = main(
        [
            "--archive-root",
            str(cli_env / "archive"),
            "download",
            "--service",
            "svc",
            "--resource",
            "missing",
        ]
    )
    captured = capsys.readouterr()

    assert exit_code == 1
    assert "error:" in captured.err


def test_cli_rejects_unknown_compression() -> None:
    """Argparse should reject unsupported compression modes."""
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--compression", "zstd", "resources", "--service", "svc"])
