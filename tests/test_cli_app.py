from __future__ import annotations

import json
import os

import app


def _run(tmp_path, *argv: str) -> int:
    return app.run(["--root", str(tmp_path), *argv])


def test_init_then_list(tmp_path, capsys):
    assert _run(tmp_path, "pkg", "init") == 0
    with open(os.path.join(str(tmp_path), "modules", "vault.json"), "r", encoding="utf-8") as f:
        assert json.load(f) == {"modules": []}
    capsys.readouterr()
    assert _run(tmp_path, "pkg", "list") == 0
    out = capsys.readouterr().out.splitlines()
    assert out == ["identifier | enabled | version | metadata_url"]


def test_errors_fail_the_process(tmp_path, capsys):
    assert _run(tmp_path, "pkg", "init") == 0
    assert _run(tmp_path, "pkg", "enable", "x/y") == 1
    assert "error: not_found:" in capsys.readouterr().err


def test_list_without_vault_fails(tmp_path, capsys):
    assert _run(tmp_path, "pkg", "list") == 1
    assert "filesystem_error" in capsys.readouterr().err


def test_remove_absent_module_succeeds(tmp_path, capsys):
    assert _run(tmp_path, "pkg", "init") == 0
    assert _run(tmp_path, "pkg", "rem", "octo/foo") == 0
    assert "removed octo/foo" in capsys.readouterr().out


def test_enable_then_list_shows_flag(tmp_path, capsys):
    assert _run(tmp_path, "pkg", "init") == 0
    with open(os.path.join(str(tmp_path), "modules", "vault.json"), "w", encoding="utf-8") as f:
        json.dump({"modules": [{"identifier": "a/b", "metadataURL": "a/r/main/metadata.json", "enabled": False}]}, f)
    assert _run(tmp_path, "pkg", "enable", "a/b") == 0
    capsys.readouterr()
    assert _run(tmp_path, "pkg", "list") == 0
    assert "a/b | true | ? | a/r/main/metadata.json" in capsys.readouterr().out


def _vault_with_disabled_entry(tmp_path) -> None:
    with open(os.path.join(str(tmp_path), "modules", "vault.json"), "w", encoding="utf-8") as f:
        json.dump({"modules": [{"identifier": "a/b", "metadataURL": "a/r/main/metadata.json", "enabled": False}]}, f)


def test_progress_stays_off_the_console_by_default(tmp_path, capsys):
    assert _run(tmp_path, "pkg", "init") == 0
    _vault_with_disabled_entry(tmp_path)
    capsys.readouterr()
    assert _run(tmp_path, "pkg", "enable", "a/b") == 0
    captured = capsys.readouterr()
    assert captured.out.strip() == "enabled a/b"
    assert "no host activator" not in captured.err
    with open(os.path.join(str(tmp_path), "logs", "bespoke.log"), "r", encoding="utf-8") as f:
        assert "no host activator" in f.read()


def test_verbose_shows_progress_on_stderr(tmp_path, capsys):
    assert _run(tmp_path, "pkg", "init") == 0
    _vault_with_disabled_entry(tmp_path)
    capsys.readouterr()
    assert _run(tmp_path, "-v", "pkg", "enable", "a/b") == 0
    assert "no host activator" in capsys.readouterr().err
