"""
Configuration models for the world-info (worldbook) engine.
"""

from pydantic import BaseModel, Field
from typing import Dict, ClassVar, Literal
from .i18n import I18nMixin, Description


class WorldbookConfig(I18nMixin, BaseModel):
    """Configuration for worldbook storage and import."""

    storage_backend: Literal["json", "sqlite"] = Field(
        "json", alias="storage_backend"
    )
    base_dir: str = Field("worldbook", alias="base_dir")
    storage_key: str = Field("worldbookData", alias="storage_key")
    character_group_suffix: str = Field(
        " World Info", alias="character_group_suffix"
    )
    max_upload_bytes: int = Field(20 * 1024 * 1024, alias="max_upload_bytes", gt=0)
    entry_header: str = Field("【{name}】", alias="entry_header")

    DESCRIPTIONS: ClassVar[Dict[str, Description]] = {
        "storage_backend": Description(
            en="Snapshot storage: 'json' (one file per store) or 'sqlite' (one row per store)",
            zh="快照存储方式：'json'（每个存储一个文件）或 'sqlite'（每个存储一行）",
        ),
        "base_dir": Description(
            en="Directory holding worldbook data (default: worldbook)",
            zh="世界书数据目录（默认：worldbook）",
        ),
        "storage_key": Description(
            en="Key of the worldbook record in the store (default: worldbookData)",
            zh="世界书记录在存储中的键（默认：worldbookData）",
        ),
        "character_group_suffix": Description(
            en="Suffix appended to a character's name for its imported group",
            zh="导入角色卡时分组名称的后缀",
        ),
        "max_upload_bytes": Description(
            en="Maximum accepted size of an imported file in bytes (default: 20 MiB)",
            zh="导入文件的最大字节数（默认：20 MiB）",
        ),
        "entry_header": Description(
            en="Header line for each resolved entry; '{name}' is replaced by the entry name",
            zh="关联设定的标题行；'{name}' 会被替换为设定名称",
        ),
    }
