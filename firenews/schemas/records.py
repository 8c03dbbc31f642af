"""Source record schema shared by fetchers, parsers and the aggregator."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SourceRecord(BaseModel):
    """One candidate news item prior to synthesis."""

    model_config = ConfigDict(frozen=True)

    title: str
    link: str
    published_at: datetime
    summary: str = ""
    source_name: str

    @property
    def title_key(self) -> str:
        """Normalized title used as the deduplication identity."""
        return self.title.strip().lower()
