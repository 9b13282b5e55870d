import threading
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import pytest

from coldmail.errors import AuthenticationError, DispatchError
from coldmail.generator import DraftPipeline, process_contact
from coldmail.models import (
    ContactRecord,
    MissingResume,
    MissingTemplate,
    OtherError,
    ResourceSet,
    Success,
)
from coldmail.report import AUTH_HELP, NO_CONTACTS_WARNING
from coldmail.resources import DirectoryResources


# -----------------------------
# Test doubles
# -----------------------------
class FakeDispatcher:
    def __init__(self, fail_for: Optional[set] = None):
        self.fail_for = fail_for or set()
        self.calls: List[dict] = []
        self._lock = threading.Lock()

    def create_draft(self, recipient, subject, html_body, attachment, attachment_name):
        if recipient in self.fail_for:
            raise DispatchError(f"rejected {recipient}")
        with self._lock:
            self.calls.append({
                "recipient": recipient,
                "subject": subject,
                "html_body": html_body,
                "attachment": Path(attachment),
                "attachment_name": attachment_name,
            })
            return f"draft-{len(self.calls)}"


class FakeIdentity:
    def __init__(self, email="saloni@x.com", error: Optional[Exception] = None):
        self.email = email
        self.error = error
        self.calls = 0

    def current_user_email(self):
        self.calls += 1
        if self.error:
            raise self.error
        return self.email


def six_rows():
    return [
        ("Priya", "priya@x.com", "FSE"),
        ("Omar", "omar@x.com", "Backend"),
        ("Lena", "lena@x.com", "ML"),
        ("Kai", "kai@x.com", "FSE"),
        ("Ravi", "ravi@x.com", "ML"),
        ("Mia", "mia@x.com", "Backend"),
    ]


# -----------------------------
# process_contact
# -----------------------------
def test_process_contact_renders_and_dispatches(resources_dir, context):
    dispatcher = FakeDispatcher()
    outcome = process_contact(
        ContactRecord("Priya", "priya@x.com", "FSE"), DirectoryResources(resources_dir), context, dispatcher
    )

    assert outcome == Success("priya@x.com", "FSE", draft_id="draft-1", attachment_name="Saloni_Ranka_FSE.pdf")
    call = dispatcher.calls[0]
    assert call["subject"] == "Application for Full Stack Engineer - Saloni Ranka"
    assert call["attachment"].name == "saloni_ranka_fse_resume.pdf"
    assert call["attachment_name"] == "Saloni_Ranka_FSE.pdf"
    assert call["html_body"].startswith("Hi Priya,<br><br>I am applying for the <b>Full Stack Engineer</b> role.")
    assert "<ul><li>Python</li><li>Java</li></ul>" in call["html_body"]
    assert call["html_body"].endswith("Saloni Ranka<br>+1 555 0100")


def test_process_contact_missing_template(resources_dir, context):
    outcome = process_contact(
        ContactRecord("Lena", "lena@x.com", "ML"), DirectoryResources(resources_dir), context, FakeDispatcher()
    )
    assert isinstance(outcome, MissingTemplate)
    assert outcome.expected_descriptor == str(resources_dir / "ML.txt")


def test_process_contact_missing_resume(resources_dir, context):
    (resources_dir / "QA.txt").write_text("hi", encoding="utf-8")
    dispatcher = FakeDispatcher()
    outcome = process_contact(
        ContactRecord("Zed", "zed@x.com", "QA"), DirectoryResources(resources_dir), context, dispatcher
    )
    assert isinstance(outcome, MissingResume)
    assert dispatcher.calls == []


def test_process_contact_dispatch_failure_is_other_error(resources_dir, context):
    outcome = process_contact(
        ContactRecord("Priya", "priya@x.com", "FSE"),
        DirectoryResources(resources_dir),
        context,
        FakeDispatcher(fail_for={"priya@x.com"}),
    )
    assert outcome == OtherError("priya@x.com", "FSE", "rejected priya@x.com")


# -----------------------------
# DraftPipeline
# -----------------------------
def test_six_rows_with_ml_template_missing(make_xlsx, context):
    dispatcher = FakeDispatcher()
    report = DraftPipeline(dispatcher, FakeIdentity()).process(make_xlsx(six_rows()), context)

    assert report.total_processed == 6
    assert (report.success_count, report.error_count) == (4, 2)
    assert report.is_consistent
    assert list(report.missing_templates_by_role) == ["ML"]
    assert report.missing_templates_by_role["ML"].affected_emails == ("lena@x.com", "ravi@x.com")
    assert report.errors == (f"Template missing: ML.txt not found at {context.resource_location}/ML.txt",)
    assert report.help_text.startswith("Missing 1 template file(s) affecting 2 email addresses.")
    assert report.sender_email == "saloni@x.com"
    assert [c["recipient"] for c in dispatcher.calls] == ["priya@x.com", "omar@x.com", "kai@x.com", "mia@x.com"]


def test_three_contacts_share_one_missing_template_group(make_xlsx, tmp_path, context):
    empty = tmp_path / "empty"
    empty.mkdir()
    rows = [("A", "a@x.com", "Backend"), ("B", "b@x.com", "Backend"), ("C", "c@x.com", "Backend")]
    report = DraftPipeline(FakeDispatcher(), FakeIdentity()).process(
        make_xlsx(rows), replace(context, resource_location=str(empty))
    )

    assert report.error_count == 3
    assert len(report.missing_templates_by_role) == 1
    assert len(report.missing_templates_by_role["Backend"].affected_emails) == 3
    assert report.is_consistent


def test_missing_resumes_are_grouped(make_xlsx, resources_dir, context):
    (resources_dir / "backend_cv.docx").unlink()
    rows = [("A", "a@x.com", "Backend"), ("B", "b@x.com", "Backend"), ("C", "c@x.com", "FSE")]
    report = DraftPipeline(FakeDispatcher(), FakeIdentity()).process(make_xlsx(rows), context)

    assert (report.success_count, report.error_count) == (1, 2)
    group = report.missing_resumes_by_role["Backend"]
    assert group.affected_emails == ("a@x.com", "b@x.com")
    assert group.expected_descriptor == str(resources_dir / "Saloni_Ranka_Backend.pdf")
    assert report.help_text.startswith("Missing 1 resume file(s) affecting 2 email addresses.")


def test_header_only_sheet_warns_without_error(make_xlsx, context):
    identity = FakeIdentity()
    report = DraftPipeline(FakeDispatcher(), identity).process(make_xlsx([]), context)

    assert report.total_processed == 0
    assert report.error_count == 0
    assert report.warnings == (NO_CONTACTS_WARNING,)
    assert "Name" in report.help_text
    assert not report.aborted
    assert report.is_consistent


def test_malformed_input_aborts_run(tmp_path, context):
    bogus = tmp_path / "contacts.xlsx"
    bogus.write_bytes(b"not a workbook")
    dispatcher = FakeDispatcher()
    report = DraftPipeline(dispatcher, FakeIdentity()).process(bogus, context)

    assert report.aborted
    assert (report.total_processed, report.success_count, report.error_count) == (0, 0, 1)
    assert report.errors[0].startswith("Failed to process contacts file: ")
    assert report.help_text
    assert dispatcher.calls == []


def test_authentication_failure_aborts_before_reading_contacts(make_xlsx, context):
    identity = FakeIdentity(error=AuthenticationError("token expired"))
    dispatcher = FakeDispatcher()
    report = DraftPipeline(dispatcher, identity).process(make_xlsx(six_rows()), context)

    assert report.aborted
    assert report.errors == ("Authentication error: token expired",)
    assert report.help_text == AUTH_HELP
    assert (report.total_processed, report.error_count) == (0, 1)
    assert dispatcher.calls == []


def test_dispatch_failure_does_not_stop_the_run(make_xlsx, context):
    dispatcher = FakeDispatcher(fail_for={"omar@x.com"})
    rows = [("Priya", "priya@x.com", "FSE"), ("Omar", "omar@x.com", "Backend"), ("Kai", "kai@x.com", "FSE")]
    report = DraftPipeline(dispatcher, FakeIdentity()).process(make_xlsx(rows), context)

    assert (report.success_count, report.error_count) == (2, 1)
    assert report.errors == ("Failed to process omar@x.com (Backend): rejected omar@x.com",)
    assert "Check the error details" in report.help_text


def test_all_success_has_no_help_text(make_xlsx, context):
    rows = [("Priya", "priya@x.com", "FSE"), ("Omar", "omar@x.com", "Backend")]
    report = DraftPipeline(FakeDispatcher(), FakeIdentity()).process(make_xlsx(rows), context)
    assert (report.success_count, report.error_count, report.help_text) == (2, 0, "")


def test_parallel_run_matches_sequential(make_xlsx, context):
    path = make_xlsx(six_rows() * 3)
    sequential = DraftPipeline(FakeDispatcher(), FakeIdentity()).process(path, context)
    parallel = DraftPipeline(FakeDispatcher(), FakeIdentity(), max_workers=4).process(path, context)

    assert parallel.to_dict() == sequential.to_dict()
    assert parallel.success_count == 12


def test_repeated_runs_give_the_same_report(make_xlsx, context):
    path = make_xlsx(six_rows())
    first = DraftPipeline(FakeDispatcher(), FakeIdentity()).process(path, context)
    second = DraftPipeline(FakeDispatcher(), FakeIdentity()).process(path, context)
    assert first.to_dict() == second.to_dict()


# -----------------------------
# uploaded resources
# -----------------------------
def test_uploaded_files_are_matched_and_cleaned_up(make_xlsx, context, monkeypatch):
    staged_dirs = []
    real_init = DirectoryResources.__init__

    def spy_init(self, directory, *, uploaded=False):
        real_init(self, directory, uploaded=uploaded)
        if uploaded:
            staged_dirs.append(self.directory)

    monkeypatch.setattr(DirectoryResources, "__init__", spy_init)

    uploads = ResourceSet(
        templates={"MyFSETemplate.txt": b"Hi {NAME}"},
        resumes={"xxxSaloFSE.docx": b"PK"},
    )
    dispatcher = FakeDispatcher()
    rows = [("Priya", "priya@x.com", "FSE"), ("Lena", "lena@x.com", "ML")]
    report = DraftPipeline(dispatcher, FakeIdentity()).process(
        make_xlsx(rows), replace(context, resource_location=uploads)
    )

    assert (report.success_count, report.error_count) == (1, 1)
    assert dispatcher.calls[0]["attachment_name"] == "Saloni_Ranka_FSE.docx"
    assert report.missing_templates_by_role["ML"].expected_descriptor == "Uploaded file containing: ML"
    assert "Upload .txt files" in report.help_text
    assert staged_dirs and not any(d.exists() for d in staged_dirs)


def test_empty_upload_aborts_run(make_xlsx, context):
    report = DraftPipeline(FakeDispatcher(), FakeIdentity()).process(
        make_xlsx(six_rows()), replace(context, resource_location=ResourceSet())
    )
    assert report.aborted
    assert report.errors == ("Failed to process files: At least one template or resume file must be uploaded",)


@pytest.mark.parametrize("workers", [1, 3])
def test_invariant_holds_for_mixed_runs(make_xlsx, context, workers):
    rows = six_rows() + [("Zed", "zed@x.com", "QA"), ("", "", "FSE")]
    report = DraftPipeline(FakeDispatcher(fail_for={"kai@x.com"}), FakeIdentity(), max_workers=workers).process(
        make_xlsx(rows), context
    )
    assert report.total_processed == 7
    assert report.success_count + report.error_count == 7
