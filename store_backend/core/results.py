# core/results.py

"""
SERVICE RESULTS

Mutating services return a result object instead of raising for expected
business conditions. The caller decides: inspect `.ok` / `.outcome`, or call
`.raise_for_outcome()` to turn a failure into the matching domain error.

Subclasses declare:
- SUCCESS:  outcomes that count as ok
- ERRORS:   outcome -> StoreCreditError subclass
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar

from core.exceptions import StoreCreditError


class Outcome(str, Enum):
    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ServiceResult:
    outcome: Outcome

    SUCCESS: ClassVar[frozenset] = frozenset()
    ERRORS: ClassVar[dict] = {}

    @property
    def ok(self) -> bool:
        return self.outcome in self.SUCCESS

    def raise_for_outcome(self):
        if self.ok:
            return self
        error_cls = self.ERRORS.get(self.outcome, StoreCreditError)
        raise error_cls(f"{type(self).__name__}: {self.outcome}")
