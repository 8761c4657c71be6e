from .config import Config, load_config
from .expand import Expansion, expand, transform_source

__all__ = ["__version__", "Config", "Expansion", "expand", "load_config", "transform_source"]

__version__ = "0.1.0"
