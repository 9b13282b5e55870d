# coldmail/generator.py

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, List

from coldmail.data_sources import extract_contacts
from coldmail.dispatchers import DraftDispatcher
from coldmail.models import (
    ContactRecord,
    MissingResume,
    MissingTemplate,
    OtherError,
    ProcessingOutcome,
    ProcessingReport,
    RequestContext,
    ResourceSet,
    ResumeNotFound,
    Success,
    TemplateNotFound,
)
from coldmail.renderer import build_subject, render
from coldmail.report import AUTH_HELP, NO_CONTACTS_HELP, NO_CONTACTS_WARNING, ReportBuilder, build_help_text
from coldmail.resolver import PlaceholderResolver
from coldmail.resources import DirectoryResources, open_resources

logger = logging.getLogger(__name__)

FILES_HELP = "Check your uploaded files and try again."
CONTACTS_FILE_HELP = (
    "Check that the contacts file is a valid .xlsx or .csv file with "
    "'Name', 'Email Id', and 'Role' columns."
)


# ============================================================
# one contact
# ============================================================

def process_contact(
    contact: ContactRecord,
    resources: DirectoryResources,
    context: RequestContext,
    dispatcher: DraftDispatcher,
) -> ProcessingOutcome:
    """
    Resolve, render and dispatch the draft for one contact.

    Never raises: every failure comes back as an outcome value.
    """
    email, role = contact.email_address, contact.role
    try:
        template = resources.find_template(role)
        if isinstance(template, TemplateNotFound):
            return MissingTemplate(email, role, template.expected_descriptor, template.suggestion)

        resume = resources.find_resume(role, context.requester_full_name)
        if isinstance(resume, ResumeNotFound):
            return MissingResume(email, role, resume.expected_descriptor, resume.suggestion)

        resolver = PlaceholderResolver(contact, context)
        body = render(template.content, resolver.placeholders())
        subject = build_subject(role, context.requester_full_name)

        draft_id = dispatcher.create_draft(email, subject, body, resume.path, resume.attachment_name)
    except Exception as e:
        logger.exception(f"Error processing contact {email}")
        return OtherError(email, role, str(e))

    logger.info(f"Draft created for {email} ({role}) with attachment {resume.attachment_name}")
    return Success(email, role, draft_id=draft_id or "", attachment_name=resume.attachment_name)


# ============================================================
# whole run
# ============================================================

@dataclass
class DraftPipeline:
    """
    Turns a contacts sheet into one draft per contact.

    Order: check the sending identity, prepare resources, read contacts,
    process each contact, aggregate. A failure in any of the first three
    steps aborts the run with a single run-level error.
    """
    dispatcher: DraftDispatcher
    identity: Any
    max_workers: int = 1

    def process(self, tabular_input: Any, context: RequestContext) -> ProcessingReport:
        builder = ReportBuilder()

        try:
            builder.sender_email = self.identity.current_user_email()
        except Exception as e:
            logger.error(f"Authentication error: {e}")
            builder.fail_run(f"Authentication error: {e}", AUTH_HELP)
            return builder.build()

        uploaded = isinstance(context.resource_location, ResourceSet)
        try:
            with open_resources(context.resource_location) as resources:
                self._run(builder, resources, tabular_input, context)
        except (ValueError, OSError) as e:
            # Raised while staging uploads, before any contact is read
            logger.error(f"Failed to process files: {e}")
            builder.fail_run(f"Failed to process files: {e}", FILES_HELP)
            return builder.build()

        if not builder.aborted and builder.total_processed > 0:
            builder.help_text = build_help_text(builder, uploaded=uploaded)

        report = builder.build()
        logger.info(f"Processing complete. {report.summary()}")
        return report

    def _run(self, builder: ReportBuilder, resources: DirectoryResources, tabular_input: Any, context: RequestContext) -> None:
        try:
            contacts = extract_contacts(tabular_input)
        except Exception as e:
            logger.error(f"Failed to process contacts file: {e}")
            builder.fail_run(f"Failed to process contacts file: {e}", CONTACTS_FILE_HELP)
            return

        builder.total_processed = len(contacts)
        logger.info(f"Found {len(contacts)} contacts to process")

        if not contacts:
            builder.add_warning(NO_CONTACTS_WARNING)
            builder.help_text = NO_CONTACTS_HELP
            return

        for outcome in self._outcomes(contacts, resources, context):
            builder.record(outcome, context.requester_full_name)

    def _outcomes(self, contacts: List[ContactRecord], resources: DirectoryResources, context: RequestContext) -> List[ProcessingOutcome]:
        if self.max_workers <= 1 or len(contacts) == 1:
            return [process_contact(c, resources, context, self.dispatcher) for c in contacts]

        # map() yields in input order, so the report reads the same as a sequential run
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            return list(pool.map(lambda c: process_contact(c, resources, context, self.dispatcher), contacts))
