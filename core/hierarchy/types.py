"""
Hierarchy domain types - no dependencies on other hierarchy modules.

NOTE: Keep this minimal. Only add types here if they are shared by several
hierarchy submodules.
"""
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ValidationResult:
    """Outcome of a hierarchy check.

    Errors and warnings accumulate; a result is valid until the first error
    is added.
    """
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Fold another result into this one (in place) and return self."""
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        self.is_valid = self.is_valid and other.is_valid
        return self

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class RoleChangeRequest:
    """A proposed hierarchy transition (transient, never persisted as-is).

    Roles and change type are kept as given by the caller so that unknown
    values can be reported by the validator instead of failing at parse time.
    """
    member_id: int
    change_type: str
    current_role: Optional[str] = None
    target_role: Optional[str] = None
    reason: str = ""
    changed_by: Optional[int] = None


@dataclass(frozen=True)
class HierarchyMember:
    """A devotee as seen by the hierarchy engine."""
    id: int
    legal_name: str
    name: Optional[str] = None
    district_code: Optional[str] = None
    leadership_role: Optional[str] = None
    reporting_to_devotee_id: Optional[int] = None

    @property
    def display_name(self) -> str:
        return self.name or self.legal_name

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.display_name,
            "legal_name": self.legal_name,
            "district_code": self.district_code,
            "leadership_role": self.leadership_role,
            "reporting_to_devotee_id": self.reporting_to_devotee_id,
        }
