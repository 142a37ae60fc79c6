from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class RawItem:
    title: str
    link: str
    origin: str
    source_type: str
    snippet: str = ""
    author: str = ""
    fallback_source: str = ""
    published: datetime | str | None = None
    has_stable_url: bool = True
    topic_filter: bool = False


@dataclass
class Article:
    id: str
    title: str
    url: str
    source: str
    published_at: datetime | None
    summary: str
    category: str
    significance: str
    is_alert: bool
    source_type: str = "rss"
    domain: str = ""

    def canonical_text(self) -> str:
        return f"{self.title} {self.summary}".strip()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "source": self.source,
            "publishedAt": self.published_at.isoformat() if self.published_at else None,
            "summary": self.summary,
            "category": self.category,
            "significance": self.significance,
            "isAlert": self.is_alert,
        }


@dataclass
class DailyBrief:
    generated_at: str
    summary: str
    alerts: list[Article] = field(default_factory=list)
    top_stories: list[Article] = field(default_factory=list)
    also_noted: list[Article] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "alerts": [article.to_dict() for article in self.alerts],
            "topStories": [article.to_dict() for article in self.top_stories],
            "alsoNoted": [article.to_dict() for article in self.also_noted],
            "summary": self.summary,
            "generatedAt": self.generated_at,
        }
