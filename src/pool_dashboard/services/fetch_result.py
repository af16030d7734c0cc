from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Outcome of one independent sub-call: a value, or a fallback plus the reason."""

    value: T
    warning: str | None = None

    @property
    def ok(self) -> bool:
        return self.warning is None

    @classmethod
    def success(cls, value: T) -> "FetchResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, warning: str, fallback: T) -> "FetchResult[T]":
        return cls(value=fallback, warning=warning)


def collect_warnings(*results: FetchResult) -> list[str]:
    return [result.warning for result in results if result.warning]
