from __future__ import annotations

import json
import os

import pytest

from bespoke.core.errors import FilesystemError, NotFoundError, ParseError
from bespoke.core.modules.vault import Vault, get_vault


def _write(path, obj) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f)


def _read(path):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def test_find_by_identifier(fs):
    _write(fs.vault, {"modules": [{"identifier": "a/b", "metadataURL": "a/b-repo/main/metadata.json", "enabled": False}]})
    v = Vault(fs.vault)
    assert v.find_by_identifier("a/b") == "a/b-repo/main/metadata.json"
    with pytest.raises(NotFoundError):
        v.find_by_identifier("x/y")


def test_missing_vault_is_an_error(fs):
    # Invariant: no implicit empty vault.
    v = Vault(fs.vault)
    with pytest.raises(FilesystemError):
        v.get()


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        json.dumps({"modules": "nope"}),
        json.dumps({"modules": [{"identifier": "a/b"}]}),
        json.dumps(
            {
                "modules": [
                    {"identifier": "a/b", "metadataURL": "u1", "enabled": True},
                    {"identifier": "a/b", "metadataURL": "u2", "enabled": False},
                ]
            }
        ),
    ],
)
def test_malformed_vault_is_parse_error(fs, content):
    with open(fs.vault, "w", encoding="utf-8") as f:
        f.write(content)
    with pytest.raises(ParseError):
        Vault(fs.vault).get()


def test_create_empty_does_not_clobber(fs):
    _write(fs.vault, {"modules": [{"identifier": "a/b", "metadataURL": "u", "enabled": True}]})
    v = Vault.create_empty(fs.vault)
    assert [e.identifier for e in v.entries()] == ["a/b"]


def test_loaded_once_then_cached(fs):
    _write(fs.vault, {"modules": []})
    v = Vault(fs.vault)
    assert v.entries() == []
    _write(fs.vault, {"modules": [{"identifier": "a/b", "metadataURL": "u", "enabled": True}]})
    assert v.entries() == []
    assert [e.identifier for e in v.reload().modules] == ["a/b"]


def test_toggle_rewrites_file(fs):
    _write(fs.vault, {"modules": [{"identifier": "a/b", "metadataURL": "u", "enabled": False}]})
    v = Vault(fs.vault)
    entry = v.toggle("a/b", True)
    assert entry.enabled is True
    assert _read(fs.vault) == {"modules": [{"identifier": "a/b", "metadataURL": "u", "enabled": True}]}
    with pytest.raises(NotFoundError):
        v.toggle("x/y", True)


def test_upsert_keeps_order_and_enabled_flag(fs, vault):
    vault.upsert("a/one", "u1", enabled=True)
    vault.upsert("a/two", "u2", enabled=False)
    vault.upsert("a/one", "u1b", enabled=False)
    assert [(e.identifier, e.metadata_url, e.enabled) for e in vault.entries()] == [
        ("a/one", "u1b", True),
        ("a/two", "u2", False),
    ]
    assert [m["identifier"] for m in _read(fs.vault)["modules"]] == ["a/one", "a/two"]


def test_discard(fs, vault):
    vault.upsert("a/one", "u1", enabled=True)
    assert vault.discard("a/one") is True
    assert vault.discard("a/one") is False
    assert _read(fs.vault) == {"modules": []}


def test_mutation_keeps_prewrite_backup(fs, vault):
    vault.upsert("a/one", "u1", enabled=True)
    backups = os.listdir(fs.backups_dir)
    assert any(name.startswith("vault.json.") for name in backups)


def test_returned_data_is_a_copy(vault):
    vault.upsert("a/one", "u1", enabled=True)
    data = vault.get()
    data.modules.clear()
    assert len(vault.entries()) == 1


def test_get_vault_is_process_wide(fs):
    assert get_vault(fs.vault) is get_vault(fs.vault)
    assert get_vault(fs.vault) is not get_vault(fs.vault + ".other")
