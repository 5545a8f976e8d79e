"""
Result type for operations that tolerate non-fatal failures
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal problem that was handled instead of raised"""

    code: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Outcome(Generic[T]):
    value: T
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.diagnostics

    def warn(self, code: str, message: str, **context: Any) -> Diagnostic:
        diagnostic = Diagnostic(code=code, message=message, context=context)
        self.diagnostics.append(diagnostic)
        return diagnostic

    def has(self, code: str) -> bool:
        return any(d.code == code for d in self.diagnostics)
