from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class SyncResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    provider: str
    plans_inserted: int = 0
    plans_deleted: int = 0
    duration_ms: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_response(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class SyncStatus(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    in_progress: list[str] = []
    last_results: dict[str, SyncResult] = {}

    def as_response(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
