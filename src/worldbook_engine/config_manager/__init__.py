from .i18n import Description, I18nMixin
from .main import Config
from .worldbook import WorldbookConfig
from .utils import read_yaml, validate_config

__all__ = [
    "Config",
    "Description",
    "I18nMixin",
    "WorldbookConfig",
    "read_yaml",
    "validate_config",
]
