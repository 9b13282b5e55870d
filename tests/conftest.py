from pathlib import Path
from typing import Iterable, Optional, Sequence

import pytest
from openpyxl import Workbook

from coldmail.models import RequestContext

HEADER = ("Name", "Email Id", "Role")


# -----------------------------
# Helpers
# -----------------------------
def write_xlsx(path: Path, rows: Iterable[Sequence], header: Optional[Sequence] = HEADER) -> Path:
    wb = Workbook()
    ws = wb.active
    if header:
        ws.append(list(header))
    for row in rows:
        ws.append(list(row))
    wb.save(path)
    return path


def write_files(directory: Path, names: Iterable[str], content: bytes = b"data") -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    for name in names:
        (directory / name).write_bytes(content)
    return directory


# -----------------------------
# Fixtures
# -----------------------------
@pytest.fixture
def make_xlsx(tmp_path):
    def _make(rows, name="contacts.xlsx", header=HEADER):
        return write_xlsx(tmp_path / name, rows, header)

    return _make


@pytest.fixture
def resources_dir(tmp_path):
    """Templates for FSE and Backend, resumes for FSE and Backend."""
    directory = tmp_path / "resources"
    directory.mkdir()
    (directory / "FSE.txt").write_text(
        "Hi {NAME},\n\nI am applying for the **{POSITION}** role.\n"
        "* Python\n* Java\n\nThanks,\n{USER_NAME}\n{PHONE}",
        encoding="utf-8",
    )
    (directory / "template_backend.txt").write_text(
        "Hello {NAME}, I would like to join as {POSITION}. - {USER_NAME}",
        encoding="utf-8",
    )
    (directory / "saloni_ranka_fse_resume.pdf").write_bytes(b"%PDF-1.4 fse")
    (directory / "backend_cv.docx").write_bytes(b"PK backend")
    return directory


@pytest.fixture
def context(resources_dir):
    return RequestContext(
        requester_full_name="Saloni Ranka",
        requester_phone="+1 555 0100",
        resource_location=str(resources_dir),
        requester_linkedin="https://www.linkedin.com/in/saloni",
    )
