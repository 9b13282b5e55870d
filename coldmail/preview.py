# coldmail/preview.py

from typing import Dict, List, Optional, Union

from coldmail.models import ContactRecord, RequestContext, ResourceLocation, ResumeNotFound, TemplateNotFound
from coldmail.renderer import build_subject
from coldmail.resolver import PlaceholderResolver
from coldmail.resources import DirectoryResources, open_resources

STATUS_READY = "ready"
STATUS_MISSING_TEMPLATE = "missing_template"
STATUS_MISSING_RESUME = "missing_resume"


# ============================================================
# single row
# ============================================================

def preview_row(contact: ContactRecord, resources: DirectoryResources, context: RequestContext) -> Dict:
    """What would be drafted for one contact, without creating anything."""
    resolver = PlaceholderResolver(contact, context)

    row = {
        "name": resolver.get_contact_name(),
        "email": resolver.get_email(),
        "role": contact.role,
        "position": resolver.get_position(),
        "subject": build_subject(contact.role, context.requester_full_name),
        "template_file": "",
        "resume_file": "",
        "attachment_name": "",
        "status": STATUS_READY,
    }

    template = resources.find_template(contact.role)
    if isinstance(template, TemplateNotFound):
        row["status"] = STATUS_MISSING_TEMPLATE
        return row
    row["template_file"] = template.source_file_name

    resume = resources.find_resume(contact.role, context.requester_full_name)
    if isinstance(resume, ResumeNotFound):
        row["status"] = STATUS_MISSING_RESUME
        return row
    row["resume_file"] = resume.source_file_name
    row["attachment_name"] = resume.attachment_name

    return row


# ============================================================
# preview table
# ============================================================

def build_preview_rows(
    contacts: List[ContactRecord],
    location: Optional[Union[DirectoryResources, ResourceLocation]],
    context: RequestContext,
) -> List[Dict]:
    """
    Build preview table rows, one per contact, in input order.

    Returns list of dicts with keys:
        name
        email
        role
        position         full title used in the letter
        subject
        template_file    matched template file name ("" when missing)
        resume_file      matched resume file name ("" when missing)
        attachment_name  name the resume is sent under
        status           ready | missing_template | missing_resume

    `location` defaults to the context's resource location.
    """
    if isinstance(location, DirectoryResources):
        return [preview_row(c, location, context) for c in contacts]

    with open_resources(location if location is not None else context.resource_location) as resources:
        return [preview_row(c, resources, context) for c in contacts]
