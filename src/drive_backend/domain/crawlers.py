from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

# Link-unfurl bots of the major social platforms (lowercase substrings).
DEFAULT_CRAWLER_USER_AGENTS: frozenset[str] = frozenset(
    {
        "facebookexternalhit",
        "facebookcatalog",
        "facebot",
        "twitterbot",
        "linkedinbot",
        "discordbot",
        "telegrambot",
        "slackbot",
        "whatsapp",
    }
)


@dataclass(frozen=True)
class CrawlerClassifier:
    identifiers: frozenset[str] = DEFAULT_CRAWLER_USER_AGENTS

    @classmethod
    def with_extra(cls, extra: Iterable[str]) -> "CrawlerClassifier":
        cleaned = {x.strip().lower() for x in extra if x and x.strip()}
        return cls(identifiers=DEFAULT_CRAWLER_USER_AGENTS | cleaned)

    def is_known_crawler(self, user_agent: str | None) -> bool:
        ua = (user_agent or "").lower()
        if not ua:
            return False
        return any(bot in ua for bot in self.identifiers)
