"""
Bilingual field descriptions shared by the configuration models.
"""

from typing import ClassVar, Dict, Optional

from pydantic import BaseModel


class Description(BaseModel):
    """A field description in English and Chinese."""

    en: str
    zh: Optional[str] = None

    def get_text(self, lang_code: str = "en") -> str:
        if lang_code == "zh" and self.zh:
            return self.zh
        return self.en


class I18nMixin:
    """Expose `DESCRIPTIONS` lookups on a configuration model."""

    DESCRIPTIONS: ClassVar[Dict[str, Description]] = {}

    @classmethod
    def get_field_description(
        cls, field_name: str, lang_code: str = "en"
    ) -> Optional[str]:
        description = cls.DESCRIPTIONS.get(field_name)
        if description is None:
            return None
        return description.get_text(lang_code)
