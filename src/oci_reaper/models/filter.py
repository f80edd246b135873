"""Name filters for repositories and tags."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Self

from ..exceptions import ConfigError


class FilterMode(Enum):
    """How a filter string is interpreted."""

    MATCH_ALL = "all"
    PREFIX_LIST = "prefix"
    REGEX = "regex"


@dataclass(frozen=True)
class NameFilter:
    """A filter for repository or tag names.

    The mode is fixed when the filter is built, so matching never has to
    re-examine the original filter text.
    """

    mode: FilterMode = FilterMode.MATCH_ALL
    prefixes: tuple[str, ...] = ()
    pattern: re.Pattern[str] | None = field(default=None, compare=False)
    text: str = ""

    @classmethod
    def for_repositories(cls, text: str | None) -> Self:
        """Build a repository filter.

        A comma anywhere in the text makes it a list of prefixes; anything
        else non-empty is a regular expression.  Empty prefixes are
        dropped, so a stray comma never selects every repository.
        """
        if not text:
            return cls()
        if "," in text:
            prefixes = tuple(
                p.strip() for p in text.split(",") if p.strip() != ""
            )
            return cls(
                mode=FilterMode.PREFIX_LIST, prefixes=prefixes, text=text
            )
        return cls._regex(text)

    @classmethod
    def for_tags(cls, text: str | None) -> Self:
        """Build a tag filter.  Tag filters are always regular expressions."""
        if not text:
            return cls()
        return cls._regex(text)

    @classmethod
    def _regex(cls, text: str) -> Self:
        try:
            pattern = re.compile(text)
        except re.error as exc:
            raise ConfigError(
                f"Invalid regular expression '{text}': {exc}"
            ) from exc
        return cls(mode=FilterMode.REGEX, pattern=pattern, text=text)

    def matches(self, name: str) -> bool:
        match self.mode:
            case FilterMode.MATCH_ALL:
                return True
            case FilterMode.PREFIX_LIST:
                return any(name.startswith(p) for p in self.prefixes)
            case FilterMode.REGEX:
                if self.pattern is None:
                    raise ValueError("Regex filter has no compiled pattern")
                return self.pattern.search(name) is not None

    def __str__(self) -> str:
        return self.text or "all"


def matches_repository(name: str, filter_text: str | None) -> bool:
    """Return whether a repository name passes a repository filter string."""
    return NameFilter.for_repositories(filter_text).matches(name)


def matches_tag(name: str, filter_text: str | None) -> bool:
    """Return whether a tag name passes a tag filter string."""
    return NameFilter.for_tags(filter_text).matches(name)
