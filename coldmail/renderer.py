# coldmail/renderer.py

import re
from typing import Mapping, Optional


# Short role codes used in the contacts sheet -> position title
ROLE_NAMES = {
    "FSE": "Full Stack Engineer",
    "Backend": "Backend Developer",
    "Frontend": "Frontend Developer",
    "DevOps": "DevOps Engineer",
    "QA": "Quality Assurance Engineer",
    "Mobile": "Mobile Application Developer",
    "DataScientist": "Data Scientist",
    "ML": "Machine Learning Engineer",
    "PM": "Product Manager",
    "TPM": "Technical Program Manager",
}

_BOLD_RE = re.compile(r"\*\*(.*?)\*\*")
_BULLET_RE = re.compile(r"^[*\-] (.*?)$", flags=re.MULTILINE)
_LIST_RUN_RE = re.compile(r"<li>.*?</li>(?:\n<li>.*?</li>)*")
_LIST_ITEM_RE = re.compile(r"<li>.*?</li>")
_LINK_RE = re.compile(r"\[(.*?)\]\((.*?)\)")


# ============================================================
# roles / subject
# ============================================================

def full_role_name(role: str) -> str:
    """Position title for a role code; unknown codes pass through unchanged."""
    return ROLE_NAMES.get(role, role)


def build_subject(role: str, requester_full_name: str) -> str:
    return f"Application for {full_role_name(role)} - {requester_full_name}"


# ============================================================
# body rendering
# ============================================================

def apply_placeholders(text: str, placeholders: Mapping[str, Optional[str]]) -> str:
    """
    Literal (non-regex) replacement of every placeholder, in mapping order.

    Placeholders that are not in the mapping are left in the text as-is.
    """
    out = text or ""
    for key, value in placeholders.items():
        out = out.replace(key, value if value is not None else "")
    return out


def _wrap_list_run(match: re.Match) -> str:
    return "<ul>" + "".join(_LIST_ITEM_RE.findall(match.group(0))) + "</ul>"


def convert_markup(text: str) -> str:
    """
    Convert the small markup subset used in templates to email HTML.

    **bold**, "* item" / "- item" lists, [text](url) links, and newlines.
    Line breaks are converted last: the list rules depend on them.
    """
    content = (text or "").replace("\r\n", "\n")

    content = _BOLD_RE.sub(r"<b>\1</b>", content)
    content = _BULLET_RE.sub(r"<li>\1</li>", content)
    content = _LIST_RUN_RE.sub(_wrap_list_run, content)
    content = _LINK_RE.sub(r'<a href="\2">\1</a>', content)

    return content.replace("\n", "<br>")


def render(template_text: str, placeholders: Mapping[str, Optional[str]]) -> str:
    return convert_markup(apply_placeholders(template_text, placeholders))
