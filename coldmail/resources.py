# coldmail/resources.py

"""
Locates the template and resume file for a contact's role.

File names are whatever the user picked, so matching is fuzzy: case is
ignored and the role only has to appear in the right place in the name.

Folder mode (a templates folder on disk):
    template  <role>.txt, *_<role>.txt, *-<role>.txt, *<role>.txt
    resume    any .pdf/.docx whose name contains the role

Uploaded mode (files sent with the request, staged in a private folder):
    template  any .txt whose name contains the role
    resume    same rule as folder mode

Resume lookup first prefers a file that also carries the requester's
name and only then falls back to any resume for the role. Candidates are
visited in case-insensitive name order, so the first match is stable
across platforms.
"""

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Union

from coldmail.models import (
    ResourceLocation,
    ResourceSet,
    ResumeMatch,
    ResumeNotFound,
    TemplateMatch,
    TemplateNotFound,
)
from coldmail.naming import attachment_name, format_name, name_patterns

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".txt"
RESUME_SUFFIXES = (".pdf", ".docx")
STAGING_PREFIX = "coldmail-"


# ============================================================
# helpers
# ============================================================

def _base_name(file_name: str, suffix: str) -> str:
    return file_name[: len(file_name) - len(suffix)].lower()


def _resume_suffix(file_name: str) -> Optional[str]:
    lower = file_name.lower()
    for suffix in RESUME_SUFFIXES:
        if lower.endswith(suffix):
            return suffix
    return None


def _template_name_matches(base: str, role: str, uploaded: bool) -> bool:
    if uploaded:
        return role in base
    return (
        base == role
        or base.endswith("_" + role)
        or base.endswith("-" + role)
        or base.endswith(role)
    )


# ============================================================
# resource folder
# ============================================================

class DirectoryResources:
    """Template and resume files inside one folder."""

    def __init__(self, directory: Union[str, Path], *, uploaded: bool = False):
        self.directory = Path(directory)
        self.uploaded = uploaded

    def __repr__(self) -> str:
        mode = "uploaded" if self.uploaded else "folder"
        return f"DirectoryResources({str(self.directory)!r}, {mode})"

    def entries(self) -> List[Path]:
        if not self.directory.is_dir():
            logger.error(f"Resource directory does not exist: {self.directory}")
            return []
        try:
            files = [p for p in self.directory.iterdir() if p.is_file()]
        except OSError as e:
            logger.error(f"Error scanning resource directory {self.directory}: {e}")
            return []
        return sorted(files, key=lambda p: (p.name.lower(), p.name))

    # -------------------------
    # templates
    # -------------------------

    def _template_not_found(self, role: str, suggestion: Optional[str] = None) -> TemplateNotFound:
        if self.uploaded:
            return TemplateNotFound(
                role=role,
                expected_descriptor=f"Uploaded file containing: {role}",
                suggestion=suggestion or (
                    f"Upload a .txt file with '{role}' in the filename "
                    f"(e.g., 'hello_{role.lower()}.txt', '{role.lower()}_template.txt')"
                ),
            )
        return TemplateNotFound(
            role=role,
            expected_descriptor=str(self.directory / f"{role}.txt"),
            suggestion=suggestion or (
                f"Create {role}.txt in your templates folder with email content "
                "using placeholders like {NAME}, {POSITION}, {USER_NAME}"
            ),
        )

    def match_template_file(self, role: str) -> Optional[Path]:
        role_lower = role.lower()
        for path in self.entries():
            if not path.name.lower().endswith(TEMPLATE_SUFFIX):
                continue
            base = _base_name(path.name, TEMPLATE_SUFFIX)
            if _template_name_matches(base, role_lower, self.uploaded):
                logger.info(f"Found template file for role '{role}': {path.name}")
                return path
        return None

    def find_template(self, role: str) -> Union[TemplateMatch, TemplateNotFound]:
        path = self.match_template_file(role)
        if path is None:
            logger.warning(f"No template file found for role '{role}' in {self.directory}")
            return self._template_not_found(role)

        try:
            content = path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Error reading template file {path}: {e}")
            return self._template_not_found(
                role,
                suggestion="Unable to read template file. Check file permissions and content encoding.",
            )

        logger.debug(f"Template loaded, length: {len(content)} characters")
        return TemplateMatch(content=content, source_file_name=path.name, path=path)

    # -------------------------
    # resumes
    # -------------------------

    def _resume_not_found(self, role: str, requester_name: str) -> ResumeNotFound:
        if self.uploaded:
            return ResumeNotFound(
                role=role,
                expected_descriptor=f"Uploaded file containing: {role}",
                suggestion=(
                    f"Upload a resume file (.pdf or .docx) with '{role}' in the filename "
                    f"(e.g., '{role.lower()}_resume.pdf', 'my_{role.lower()}_cv.docx')"
                ),
            )
        expected_base = f"{format_name(requester_name)}_{role}"
        return ResumeNotFound(
            role=role,
            expected_descriptor=str(self.directory / f"{expected_base}.pdf"),
            suggestion=(
                f"Create resume file with '{role}' in the filename "
                f"(e.g., {expected_base}.pdf or {expected_base}.docx)"
            ),
        )

    def match_resume_file(self, role: str, requester_name: str) -> Optional[Path]:
        role_lower = role.lower()
        candidates = []
        for path in self.entries():
            suffix = _resume_suffix(path.name)
            if suffix and role_lower in _base_name(path.name, suffix):
                candidates.append((path, _base_name(path.name, suffix)))

        patterns = name_patterns(requester_name)
        if patterns:
            for path, base in candidates:
                if any(p in base for p in patterns):
                    logger.info(f"Found resume file for role '{role}' and requester: {path.name}")
                    return path

        if candidates:
            path = candidates[0][0]
            logger.info(f"Found resume file for role '{role}': {path.name}")
            return path
        return None

    def find_resume(self, role: str, requester_name: str) -> Union[ResumeMatch, ResumeNotFound]:
        path = self.match_resume_file(role, requester_name)
        if path is None:
            logger.warning(f"No resume file found containing role '{role}' in {self.directory}")
            return self._resume_not_found(role, requester_name)

        name = attachment_name(requester_name, role, path.name)
        logger.info(f"Resume {path.name} will be attached as {name}")
        return ResumeMatch(path=path, source_file_name=path.name, attachment_name=name)


# ============================================================
# public API
# ============================================================

def _as_resources(location: Union[ResourceLocation, DirectoryResources]) -> DirectoryResources:
    if isinstance(location, DirectoryResources):
        return location
    if isinstance(location, ResourceSet):
        raise TypeError("Uploaded resource sets must be staged first (see staged_resources)")
    return DirectoryResources(location)


def find_template(location, role: str) -> Union[TemplateMatch, TemplateNotFound]:
    return _as_resources(location).find_template(role)


def find_resume(location, role: str, requester_name: str) -> Union[ResumeMatch, ResumeNotFound]:
    return _as_resources(location).find_resume(role, requester_name)


def _safe_upload_name(raw: str) -> str:
    # Drop any directory part a client may have sent along with the name
    return os.path.basename((raw or "").replace("\\", "/")).strip()


def _write_uploads(target: Path, files, allowed, kind: str) -> int:
    saved = 0
    for raw_name, data in files.items():
        name = _safe_upload_name(raw_name)
        if not name or not name.lower().endswith(allowed):
            logger.warning(f"Skipping {kind} file with unsupported name: {raw_name!r}")
            continue
        if not data:
            logger.warning(f"Skipping empty {kind} file: {name}")
            continue
        (target / name).write_bytes(data)
        logger.debug(f"Saved {kind} file: {name}")
        saved += 1
    return saved


@contextmanager
def staged_resources(resource_set: ResourceSet) -> Iterator[DirectoryResources]:
    """
    Copy uploaded files into a private temporary folder for one run.

    The folder is removed when the block exits, whatever the outcome.
    """
    if resource_set.is_empty():
        raise ValueError("At least one template or resume file must be uploaded")

    staging_dir = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX))
    logger.info(f"Created temporary directory: {staging_dir}")
    try:
        templates = _write_uploads(staging_dir, resource_set.templates, (TEMPLATE_SUFFIX,), "template")
        resumes = _write_uploads(staging_dir, resource_set.resumes, RESUME_SUFFIXES, "resume")
        logger.info(f"Staged {templates} template file(s) and {resumes} resume file(s)")
        yield DirectoryResources(staging_dir, uploaded=True)
    finally:
        shutil.rmtree(staging_dir, ignore_errors=True)
        if staging_dir.exists():
            logger.warning(f"Failed to fully delete temporary directory: {staging_dir}")
        else:
            logger.info(f"Cleaned up temporary directory: {staging_dir}")


@contextmanager
def open_resources(location: ResourceLocation) -> Iterator[DirectoryResources]:
    """Resources for a run: a folder as-is, or an uploaded set staged for the run."""
    if isinstance(location, ResourceSet):
        with staged_resources(location) as resources:
            yield resources
    else:
        yield DirectoryResources(location)
