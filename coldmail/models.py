# coldmail/models.py

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Tuple, Union


# ============================================================
# inputs
# ============================================================

@dataclass(frozen=True)
class ContactRecord:
    """One spreadsheet row that has both an email address and a role."""
    name: str
    email_address: str
    role: str


@dataclass(frozen=True)
class ResourceSet:
    """
    Uploaded template and resume files held in memory.

    Keys are the original file names, values the raw bytes.
    """
    templates: Mapping[str, bytes] = field(default_factory=dict)
    resumes: Mapping[str, bytes] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.templates and not self.resumes


ResourceLocation = Union[str, Path, ResourceSet]


@dataclass(frozen=True)
class RequestContext:
    requester_full_name: str
    requester_phone: str
    resource_location: ResourceLocation
    requester_linkedin: str = ""


# ============================================================
# resolution results
# ============================================================

@dataclass(frozen=True)
class TemplateMatch:
    content: str
    source_file_name: str
    path: Path


@dataclass(frozen=True)
class ResumeMatch:
    path: Path
    source_file_name: str
    attachment_name: str


@dataclass(frozen=True)
class TemplateNotFound:
    role: str
    expected_descriptor: str
    suggestion: str


@dataclass(frozen=True)
class ResumeNotFound:
    role: str
    expected_descriptor: str
    suggestion: str


# ============================================================
# per-contact outcomes
# ============================================================

@dataclass(frozen=True)
class Success:
    email: str
    role: str
    draft_id: str = ""
    attachment_name: str = ""


@dataclass(frozen=True)
class MissingTemplate:
    email: str
    role: str
    expected_descriptor: str
    suggestion: str = ""


@dataclass(frozen=True)
class MissingResume:
    email: str
    role: str
    expected_descriptor: str
    suggestion: str = ""


@dataclass(frozen=True)
class OtherError:
    email: str
    role: str
    message: str


ProcessingOutcome = Union[Success, MissingTemplate, MissingResume, OtherError]


# ============================================================
# report
# ============================================================

@dataclass(frozen=True)
class MissingResourceGroup:
    role: str
    expected_descriptor: str
    suggestion: str
    affected_emails: Tuple[str, ...]

    def to_dict(self) -> Dict:
        return {
            "role": self.role,
            "expected_descriptor": self.expected_descriptor,
            "suggestion": self.suggestion,
            "affected_emails": list(self.affected_emails),
        }


@dataclass(frozen=True)
class ProcessingReport:
    """
    Aggregate result of one pipeline run.

    Every contact adds exactly one unit to success_count or error_count.
    A run that aborts before any contact is attempted carries a single
    run-level error instead (aborted=True, total_processed=0).
    """
    total_processed: int
    success_count: int
    error_count: int
    errors: Tuple[str, ...]
    warnings: Tuple[str, ...]
    missing_templates_by_role: Mapping[str, MissingResourceGroup]
    missing_resumes_by_role: Mapping[str, MissingResourceGroup]
    help_text: str = ""
    aborted: bool = False
    sender_email: str = ""

    def __post_init__(self):
        object.__setattr__(self, "missing_templates_by_role", MappingProxyType(dict(self.missing_templates_by_role)))
        object.__setattr__(self, "missing_resumes_by_role", MappingProxyType(dict(self.missing_resumes_by_role)))

    @property
    def is_consistent(self) -> bool:
        run_level = 1 if self.aborted else 0
        return self.total_processed + run_level == self.success_count + self.error_count

    def summary(self) -> str:
        return (
            f"Total: {self.total_processed}, Success: {self.success_count}, "
            f"Errors: {self.error_count}, Consistent: {self.is_consistent}"
        )

    def to_dict(self) -> Dict:
        return {
            "total_processed": self.total_processed,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "missing_templates_by_role": {
                role: group.to_dict() for role, group in self.missing_templates_by_role.items()
            },
            "missing_resumes_by_role": {
                role: group.to_dict() for role, group in self.missing_resumes_by_role.items()
            },
            "help_text": self.help_text,
            "aborted": self.aborted,
            "sender_email": self.sender_email,
        }
