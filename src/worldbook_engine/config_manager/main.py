# config_manager/main.py
from pydantic import BaseModel, Field
from typing import Dict, ClassVar

from .worldbook import WorldbookConfig
from .i18n import I18nMixin, Description


class Config(I18nMixin, BaseModel):
    """
    Main configuration for the application.
    """

    worldbook: WorldbookConfig = Field(
        default_factory=WorldbookConfig, alias="worldbook"
    )

    DESCRIPTIONS: ClassVar[Dict[str, Description]] = {
        "worldbook": Description(
            en="World-info storage and import settings", zh="世界书存储与导入设置"
        ),
    }
