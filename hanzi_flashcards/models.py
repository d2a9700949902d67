from __future__ import annotations

import time
import uuid

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from hanzi_flashcards.enrichment.llm_enricher import CharacterWordDetails


def _now_ms() -> int:
    return int(time.time() * 1000)


class Word(BaseModel):
    """A vocabulary entry. Serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    character: str
    pinyin: str = ''
    meaning: str = ''
    example_sentence: str = ''
    example_meaning: str = ''
    created_at: int = Field(default_factory=_now_ms)

    @classmethod
    def from_details(cls, details: CharacterWordDetails) -> 'Word':
        return cls(
            character=details.character.strip(),
            pinyin=details.pinyin,
            meaning=details.meaning,
            example_sentence=details.example_sentence,
            example_meaning=details.example_meaning,
        )

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True)
