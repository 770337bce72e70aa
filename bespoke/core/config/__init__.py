from bespoke.core.config.manager import load_config
from bespoke.core.config.models import BespokeConfig
from bespoke.core.config.paths import ConfigFsPaths, default_root

__all__ = ["BespokeConfig", "ConfigFsPaths", "default_root", "load_config"]
