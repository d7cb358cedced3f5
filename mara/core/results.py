"""Result contracts for components that degrade instead of failing.

`Ok` wraps a value produced on the primary path (for example a model-backed
classification). `Degraded` wraps the fallback value produced after an upstream
failure, together with the reason. Callers use `.value` either way and can
inspect `.degraded` for logging or tests.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def degraded(self) -> bool:
        return False


@dataclass(frozen=True)
class Degraded(Generic[T]):
    value: T
    reason: str = ""

    @property
    def degraded(self) -> bool:
        return True


Result = Union[Ok[T], Degraded[T]]
