# coldmail/__init__.py
"""
ColdMail - bulk application drafts from a contacts sheet.

This package provides the core functionality for:
- Reading contacts (Name, Email Id, Role) from .xlsx/.csv files or Google Sheets
- Finding the template and resume for each contact's role
- Rendering personalized letters and creating drafts with the resume attached
- Aggregating a per-run report with consolidated guidance

Public API:
-----------
Contacts:
    extract_contacts(source) -> List[ContactRecord]

Resources:
    find_template(location, role) -> TemplateMatch | TemplateNotFound
    find_resume(location, role, requester_name) -> ResumeMatch | ResumeNotFound

Rendering:
    render(template_text, placeholders) -> str
    build_subject(role, requester_full_name) -> str
    attachment_name(requester_full_name, role, original_file_name) -> str

Pipeline:
    DraftPipeline(dispatcher, identity).process(tabular_input, context) -> ProcessingReport
    build_preview_rows(contacts, location, context) -> List[Dict]
"""

from coldmail.data_sources import extract_contacts
from coldmail.generator import DraftPipeline, process_contact
from coldmail.models import (
    ContactRecord,
    ProcessingReport,
    RequestContext,
    ResourceSet,
)
from coldmail.naming import attachment_name, format_name
from coldmail.preview import build_preview_rows
from coldmail.renderer import build_subject, full_role_name, render
from coldmail.report import ReportBuilder, build_help_text
from coldmail.resolver import PlaceholderResolver
from coldmail.resources import find_resume, find_template

__all__ = [
    # Contacts
    "extract_contacts",
    # Resources
    "find_template",
    "find_resume",
    # Rendering
    "render",
    "build_subject",
    "full_role_name",
    "attachment_name",
    "format_name",
    "PlaceholderResolver",
    # Pipeline
    "DraftPipeline",
    "process_contact",
    "build_preview_rows",
    "ReportBuilder",
    "build_help_text",
    # Models
    "ContactRecord",
    "RequestContext",
    "ResourceSet",
    "ProcessingReport",
]
