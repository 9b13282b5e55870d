# coldmail/report.py

"""
Outcome aggregation for one pipeline run.

Counting rule: every contact adds exactly one unit to either the success
or the error counter. Missing templates and resumes are additionally
grouped by role for display; that grouping never changes the counters,
so six contacts failing on the same missing template count as six
errors, listed under one role entry with six affected emails.
"""

import logging
from typing import Dict, List, Optional

from coldmail.models import (
    MissingResourceGroup,
    MissingResume,
    MissingTemplate,
    OtherError,
    ProcessingOutcome,
    ProcessingReport,
    Success,
)
from coldmail.naming import format_name

logger = logging.getLogger(__name__)

NO_CONTACTS_WARNING = "No valid contacts found in contacts file"
NO_CONTACTS_HELP = (
    "Check your contacts file format. Ensure it has 'Name', 'Email Id', and 'Role' "
    "columns, in that order, below a header row."
)
AUTH_HELP = "Please log in again to continue using the service."


class _Group:
    def __init__(self, role: str, expected_descriptor: str, suggestion: str):
        self.role = role
        self.expected_descriptor = expected_descriptor
        self.suggestion = suggestion
        self.affected_emails: List[str] = []

    def freeze(self) -> MissingResourceGroup:
        return MissingResourceGroup(
            role=self.role,
            expected_descriptor=self.expected_descriptor,
            suggestion=self.suggestion,
            affected_emails=tuple(self.affected_emails),
        )


class ReportBuilder:
    """Mutable accumulator owned by the orchestrator; build() freezes it."""

    def __init__(self):
        self.total_processed = 0
        self.success_count = 0
        self.error_count = 0
        self.errors: List[str] = []
        self.warnings: List[str] = []
        self.help_text = ""
        self.aborted = False
        self.sender_email = ""
        self._templates_by_role: Dict[str, _Group] = {}
        self._resumes_by_role: Dict[str, _Group] = {}

    # -------------------------
    # recording
    # -------------------------

    def record_success(self) -> None:
        self.success_count += 1

    def record_missing_template(
        self,
        role: str,
        expected_descriptor: str,
        affected_email: str,
        suggestion: Optional[str] = None,
    ) -> None:
        self.error_count += 1

        group = self._templates_by_role.get(role)
        if group is None:
            group = _Group(
                role,
                expected_descriptor,
                suggestion or (
                    f"Create {role}.txt with email template content using placeholders "
                    "like {NAME}, {POSITION}, {USER_NAME}"
                ),
            )
            self._templates_by_role[role] = group
            self.errors.append(f"Template missing: {role}.txt not found at {expected_descriptor}")

        group.affected_emails.append(affected_email)

    def record_missing_resume(
        self,
        role: str,
        expected_descriptor: str,
        requester_name: str,
        affected_email: str,
        suggestion: Optional[str] = None,
    ) -> None:
        self.error_count += 1

        group = self._resumes_by_role.get(role)
        if group is None:
            applicant = format_name(requester_name)
            group = _Group(
                role,
                expected_descriptor,
                suggestion or f"Create resume file named {applicant}_{role}.pdf or {applicant}_{role}.docx",
            )
            self._resumes_by_role[role] = group
            self.errors.append(f"Resume missing: {role} resume not found at {expected_descriptor}")

        group.affected_emails.append(affected_email)

    def record_other_error(self, message: str) -> None:
        self.error_count += 1
        self.errors.append(message)

    def record(self, outcome: ProcessingOutcome, requester_name: str = "") -> None:
        """Apply one contact's outcome."""
        if isinstance(outcome, Success):
            self.record_success()
        elif isinstance(outcome, MissingTemplate):
            self.record_missing_template(
                outcome.role, outcome.expected_descriptor, outcome.email, outcome.suggestion or None
            )
        elif isinstance(outcome, MissingResume):
            self.record_missing_resume(
                outcome.role, outcome.expected_descriptor, requester_name, outcome.email, outcome.suggestion or None
            )
        elif isinstance(outcome, OtherError):
            self.record_other_error(f"Failed to process {outcome.email} ({outcome.role}): {outcome.message}")
        else:
            raise TypeError(f"Unknown outcome type: {type(outcome).__name__}")

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)

    def fail_run(self, message: str, help_text: str) -> None:
        """
        Mark the whole run as failed before any contact was attempted.

        Leaves a single run-level error and no processed contacts.
        """
        self.total_processed = 0
        self.success_count = 0
        self.error_count = 1
        self.errors = [message]
        self._templates_by_role.clear()
        self._resumes_by_role.clear()
        self.help_text = help_text
        self.aborted = True

    # -------------------------
    # queries
    # -------------------------

    @property
    def has_missing_templates(self) -> bool:
        return bool(self._templates_by_role)

    @property
    def has_missing_resumes(self) -> bool:
        return bool(self._resumes_by_role)

    @property
    def missing_template_roles(self) -> int:
        return len(self._templates_by_role)

    @property
    def missing_resume_roles(self) -> int:
        return len(self._resumes_by_role)

    def affected_email_count(self) -> int:
        groups = list(self._templates_by_role.values()) + list(self._resumes_by_role.values())
        return sum(len(g.affected_emails) for g in groups)

    def build(self) -> ProcessingReport:
        report = ProcessingReport(
            total_processed=self.total_processed,
            success_count=self.success_count,
            error_count=self.error_count,
            errors=tuple(self.errors),
            warnings=tuple(self.warnings),
            missing_templates_by_role={r: g.freeze() for r, g in self._templates_by_role.items()},
            missing_resumes_by_role={r: g.freeze() for r, g in self._resumes_by_role.items()},
            help_text=self.help_text,
            aborted=self.aborted,
            sender_email=self.sender_email,
        )
        if not report.is_consistent:
            logger.error(f"Report counters are inconsistent: {report.summary()}")
        return report


# ============================================================
# guidance text
# ============================================================

def build_help_text(builder: ReportBuilder, uploaded: bool = False) -> str:
    """One consolidated hint describing which resources are missing and how to supply them."""
    template_roles = builder.missing_template_roles
    resume_roles = builder.missing_resume_roles
    affected = builder.affected_email_count()

    if builder.has_missing_templates and builder.has_missing_resumes:
        if uploaded:
            return (
                f"Missing {template_roles} template file(s) and {resume_roles} resume file(s) "
                f"affecting {affected} email addresses. Upload .txt files for templates and "
                ".pdf/.docx files for resumes. File names should contain the role name "
                "(e.g., 'hello_fse.txt', 'my_fse_resume.pdf')."
            )
        return (
            f"Missing {template_roles} template file(s) and {resume_roles} resume file(s) "
            f"affecting {affected} email addresses. Template files can have flexible names "
            "(ending with the role), and resume files will be attached with standardized names: "
            "Full_Name_Role.extension format."
        )

    if builder.has_missing_templates:
        if uploaded:
            return (
                f"Missing {template_roles} template file(s) affecting {affected} email addresses. "
                "Upload .txt files with role names in the filename (e.g., 'fse_template.txt', "
                "'backend.txt') containing email content with placeholders like {NAME}, "
                "{POSITION}, {USER_NAME}."
            )
        return (
            f"Missing {template_roles} template file(s) affecting {affected} email addresses. "
            "Create .txt files ending with the role name (e.g., FSE.txt, template_backend.txt, "
            "ml.txt) in your templates folder, using placeholders like {NAME}, {POSITION}, "
            "{USER_NAME}."
        )

    if builder.has_missing_resumes:
        if uploaded:
            return (
                f"Missing {resume_roles} resume file(s) affecting {affected} email addresses. "
                "Upload .pdf or .docx files with role names in the filename "
                "(e.g., 'john_fse_resume.pdf', 'backend_cv.docx')."
            )
        return (
            f"Missing {resume_roles} resume file(s) affecting {affected} email addresses. "
            "Resume files can have flexible names (containing the role), but will be attached "
            "using the standardized format Full_Name_Role.extension (e.g., John_Smith_FSE.pdf). "
            "Ensure resume files contain the role name in your templates folder."
        )

    if builder.error_count > 0:
        return (
            "Check the error details above. Common issues include invalid email addresses "
            "in the contacts file or authentication problems."
        )

    return ""
