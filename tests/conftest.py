from __future__ import annotations

import logging
import os

import pytest

from bespoke.core.config.models import BespokeConfig
from bespoke.core.config.paths import ConfigFsPaths
from bespoke.core.events import EventLogger
from bespoke.core.modules.github import GitHubClient
from bespoke.core.modules.manager import ModuleManager
from bespoke.core.modules.vault import Vault, reset_vault_cache
from tests.helpers.fakes import FakeSession


class _L:
    def info(self, *_a, **_k): ...
    def warning(self, *_a, **_k): ...
    def error(self, *_a, **_k): ...


@pytest.fixture(autouse=True)
def _fresh_vault_cache():
    reset_vault_cache()
    yield
    reset_vault_cache()


@pytest.fixture(autouse=True)
def _fresh_bespoke_logger():
    """
    Handlers bind the stderr of the test that created them; drop them so
    each test configures logging against its own streams and tmp dirs.
    """
    yield
    logger = logging.getLogger("bespoke")
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()


@pytest.fixture
def fs(tmp_path):
    """
    Isolated bespoke root with config/ and modules/ under tmp_path.
    """
    paths = ConfigFsPaths(root=str(tmp_path))
    os.makedirs(paths.config_dir, exist_ok=True)
    os.makedirs(paths.modules_dir, exist_ok=True)
    return paths


@pytest.fixture
def vault(fs):
    return Vault.create_empty(fs.vault, backups_dir=fs.backups_dir)


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def cfg():
    return BespokeConfig()


@pytest.fixture
def github(cfg, session):
    return GitHubClient(cfg=cfg, session=session)


@pytest.fixture
def manager(fs, vault, github, cfg):
    return ModuleManager(
        modules_root=fs.modules_dir,
        vault=vault,
        github=github,
        cfg=cfg,
        event_logger=EventLogger(fs.events),
        logger=_L(),
    )
