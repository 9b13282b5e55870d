# coldmail/resolver.py

from typing import Dict

from coldmail.models import ContactRecord, RequestContext
from coldmail.renderer import apply_placeholders, full_role_name


class PlaceholderResolver:
    """
    Builds the placeholder values for one contact's letter.

    Supported placeholders:
    {NAME}          contact's name ("" when the sheet has none)
    {POSITION}      full position title for the contact's role
    {USER_NAME}     requester's full name
    {PHONE}         requester's phone
    {LINKEDIN}      requester's LinkedIn URL ("" when not given)

    Legacy placeholders, still found in older templates:
    {{CONTACT_NAME}} {{ROLE}} {{FULL_NAME}} {{PHONE_NUMBER}} {{LINKEDIN_URL}}
    """

    def __init__(self, contact: ContactRecord, context: RequestContext):
        self.contact = contact
        self.context = context

        self._contact_name = (contact.name or "").strip()
        self._position = full_role_name(contact.role)
        self._linkedin = (context.requester_linkedin or "").strip()

    # -------------------------
    # Placeholder values
    # -------------------------

    def _linkedin_section(self) -> str:
        if not self._linkedin:
            return ""
        return f'LinkedIn: <a href="{self._linkedin}">{self._linkedin}</a>'

    def placeholders(self) -> Dict[str, str]:
        """Placeholder -> value, in the order the replacements are applied."""
        full_name = self.context.requester_full_name or ""
        phone = self.context.requester_phone or ""

        return {
            "{NAME}": self._contact_name,
            "{POSITION}": self._position,
            "{USER_NAME}": full_name,
            "{PHONE}": phone,
            "{LINKEDIN}": self._linkedin,
            "{{CONTACT_NAME}}": self._contact_name,
            "{{ROLE}}": self._position,
            "{{FULL_NAME}}": full_name,
            "{{PHONE_NUMBER}}": phone,
            "{{LINKEDIN_URL}}": self._linkedin_section(),
        }

    def resolve_text(self, text: str) -> str:
        if not text or "{" not in text:
            return text or ""
        return apply_placeholders(text, self.placeholders())

    # -------------------------
    # Convenience getters
    # -------------------------

    def get_email(self) -> str:
        return self.contact.email_address

    def get_position(self) -> str:
        return self._position

    def get_contact_name(self) -> str:
        return self._contact_name
