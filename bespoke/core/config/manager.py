from __future__ import annotations

import os
from typing import Optional

from pydantic import ValidationError

from bespoke.core.config.io import read_json_file
from bespoke.core.config.models import BespokeConfig
from bespoke.core.config.paths import ConfigFsPaths
from bespoke.core.errors import ConfigError


TOKEN_ENV = "BESPOKE_GITHUB_TOKEN"


def load_config(fs: Optional[ConfigFsPaths] = None) -> BespokeConfig:
    """
    Read config/bespoke.json. A missing file means defaults; anything else
    that fails to read or validate is fatal.
    """
    fs = fs or ConfigFsPaths(".")
    rr = read_json_file(fs.config_file)
    if not rr.ok and rr.error != "missing":
        raise ConfigError("bespoke.json could not be read.", path=fs.config_file, reason=rr.error)
    try:
        cfg = BespokeConfig.model_validate(rr.data)
    except ValidationError as e:
        raise ConfigError("bespoke.json is invalid.", path=fs.config_file, reason=str(e)[:300]) from e

    token = os.environ.get(TOKEN_ENV)
    if token:
        cfg = cfg.model_copy(update={"github_token": token})
    return cfg
