# coldmail/naming.py

import logging

logger = logging.getLogger(__name__)

DEFAULT_NAME = "Resume"


def format_name(full_name: str | None) -> str:
    """
    Title-case each word of a person's name and join with underscores.

    "saloni ranka" -> "Saloni_Ranka"; blank -> "Resume".
    """
    if not full_name or not full_name.strip():
        return DEFAULT_NAME

    words = full_name.split()
    return "_".join(w[:1].upper() + w[1:].lower() for w in words)


def file_extension(file_name: str) -> str:
    """Extension including the dot, or "" when the name has none (or is a dotfile)."""
    last_dot = file_name.rfind(".")
    if last_dot > 0:
        return file_name[last_dot:]
    return ""


def attachment_name(requester_full_name: str | None, role: str, original_file_name: str) -> str:
    """
    Standardized name the recipient sees for the resume attachment.

    Independent of the name of the file actually read from disk, apart
    from its extension.
    """
    name = f"{format_name(requester_full_name)}_{role}{file_extension(original_file_name)}"
    logger.debug(f"Attachment name {name!r} (requester={requester_full_name!r}, role={role!r}, file={original_file_name!r})")
    return name


def name_patterns(full_name: str | None) -> list[str]:
    """Lowercased forms of a requester's name that may appear in their resume file name."""
    if not full_name or not full_name.strip():
        return []

    lowered = full_name.strip().lower()
    patterns = [
        format_name(full_name).lower(),
        lowered.replace(" ", "_"),
        lowered.replace(" ", ""),
    ]
    # dict.fromkeys keeps order while dropping duplicates
    return list(dict.fromkeys(p for p in patterns if p))
