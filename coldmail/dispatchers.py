# coldmail/dispatchers.py

import base64
import logging
import re
import shutil
import subprocess
import tempfile
import threading
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from pathlib import Path
from typing import Optional, Union

from bs4 import BeautifulSoup

from coldmail.errors import DispatchError

logger = logging.getLogger(__name__)

Attachment = Union[str, Path, bytes]

_MIME_SUBTYPES = {
    ".pdf": "pdf",
    ".docx": "vnd.openxmlformats-officedocument.wordprocessingml.document",
}


# ============================================================
# helpers
# ============================================================

def wrap_in_html(body: str) -> str:
    """Wrap a rendered body fragment in a minimal HTML document."""
    content = (body or "").strip()
    if content.lower().startswith("<html"):
        return content
    return f"<html><body style='margin:0;padding:0;font-family:Arial,sans-serif;'>{content}</body></html>"


def html_to_text(html: str) -> str:
    """Plain-text alternative of a rendered body: line breaks kept, links spelled out."""
    soup = BeautifulSoup(html or "", "html.parser")

    for br in soup.find_all("br"):
        br.replace_with("\n")
    for li in soup.find_all("li"):
        li.insert(0, "• ")
        li.append("\n")
    for a in soup.find_all("a"):
        href = a.get("href") or ""
        text = a.get_text()
        a.replace_with(f"{text} ({href})" if href and href != text else text)

    text = soup.get_text()
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _read_attachment(attachment: Attachment) -> bytes:
    if isinstance(attachment, (bytes, bytearray)):
        return bytes(attachment)
    return Path(attachment).read_bytes()


def _clean_header(value: str) -> str:
    return (value or "").replace("\r", " ").replace("\n", " ").strip()


def build_mime_message(
    sender: str,
    recipient: str,
    subject: str,
    html_body: str,
    attachment: Optional[Attachment] = None,
    attachment_name: str = "",
) -> MIMEMultipart:
    """
    multipart/mixed message: a text/html alternative pair plus the resume.

    The attachment is sent under `attachment_name`, whatever the source
    file is called on disk.
    """
    msg = MIMEMultipart("mixed")
    if sender:
        msg["From"] = _clean_header(sender)
    msg["To"] = _clean_header(recipient)
    msg["Subject"] = _clean_header(subject)
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid()

    html = wrap_in_html(html_body)
    alt = MIMEMultipart("alternative")
    alt.attach(MIMEText(html_to_text(html), "plain", "utf-8"))
    alt.attach(MIMEText(html, "html", "utf-8"))
    msg.attach(alt)

    if attachment is not None:
        name = attachment_name or (Path(attachment).name if not isinstance(attachment, (bytes, bytearray)) else "attachment")
        subtype = _MIME_SUBTYPES.get(Path(name).suffix.lower(), "octet-stream")
        part = MIMEApplication(_read_attachment(attachment), _subtype=subtype)
        part.add_header("Content-Disposition", "attachment", filename=name)
        msg.attach(part)

    return msg


# ============================================================
# dispatchers
# ============================================================

class DraftDispatcher:
    """Creates one draft in the requester's mailbox and returns its id."""

    def create_draft(
        self,
        recipient: str,
        subject: str,
        html_body: str,
        attachment: Optional[Attachment],
        attachment_name: str,
    ) -> str:
        raise NotImplementedError


class GmailDraftDispatcher(DraftDispatcher):
    """
    Drafts through the Gmail API.

    Either pass a ready `service` (googleapiclient resource) or an
    `identity` exposing gmail_service(); the service is then built on the
    first draft, after the run has authenticated.
    """

    def __init__(self, service=None, identity=None, sender: str = ""):
        if service is None and identity is None:
            raise ValueError("GmailDraftDispatcher needs a service or an identity")
        self._service = service
        self._identity = identity
        self.sender = sender
        # googleapiclient resources are not thread-safe
        self._lock = threading.Lock()

    def _get_service(self):
        if self._service is None:
            self._service = self._identity.gmail_service()
        return self._service

    def _get_sender(self) -> str:
        if not self.sender and self._identity is not None:
            self.sender = self._identity.current_user_email()
        return self.sender

    def create_draft(self, recipient, subject, html_body, attachment, attachment_name) -> str:
        with self._lock:
            try:
                message = build_mime_message(
                    self._get_sender(), recipient, subject, html_body, attachment, attachment_name
                )
                raw = base64.urlsafe_b64encode(message.as_bytes()).decode("ascii")
                draft = (
                    self._get_service()
                    .users()
                    .drafts()
                    .create(userId="me", body={"message": {"raw": raw}})
                    .execute()
                )
            except Exception as e:
                raise DispatchError(f"Gmail draft creation failed: {e}") from e

        draft_id = (draft or {}).get("id", "")
        logger.debug(f"Gmail draft {draft_id} created for {recipient}")
        return draft_id


def _escape_applescript(s: str) -> str:
    if not s:
        return ""
    return s.replace("\\", "\\\\").replace('"', '\\"')


class OutlookDraftDispatcher(DraftDispatcher):
    """Drafts in Outlook (Classic) on macOS via AppleScript."""

    def _script(self, recipient: str, subject: str, body: str, attach_path: Optional[str]) -> str:
        to_esc = _escape_applescript(recipient)
        subj = _escape_applescript(subject)
        bod = _escape_applescript(body)

        attach_cmd = ""
        if attach_path:
            esc_attach = _escape_applescript(attach_path)
            attach_cmd = f'make new attachment with properties {{file:POSIX file "{esc_attach}"}}'

        return f'''
    on run
        try
            tell application "Microsoft Outlook" to get name
        on error errMsg number errNum
            error "Outlook AppleScript not available. If you're on 'New Outlook', switch to Classic Outlook. " & errMsg number errNum
        end try

        tell application "Microsoft Outlook"
            set newMessage to make new outgoing message
            tell newMessage
                make new recipient at end of to recipients with properties {{email address:{{address:"{to_esc}"}}}}
                set subject to "{subj}"
                set content to "{bod}"
                {attach_cmd}
            end tell
            return id of newMessage
        end tell
    end run
    '''

    def _run_applescript(self, script: str) -> str:
        result = subprocess.run(
            ["osascript", "-e", script],
            check=True,
            capture_output=True,
            text=True,
        )
        return (result.stdout or "").strip()

    def create_draft(self, recipient, subject, html_body, attachment, attachment_name) -> str:
        # Outlook names the attachment after the file, so stage a copy under the final name
        staging_dir = Path(tempfile.mkdtemp(prefix="coldmail-outlook-"))
        try:
            attach_path = None
            if attachment is not None:
                attach_path = staging_dir / (attachment_name or "attachment")
                attach_path.write_bytes(_read_attachment(attachment))

            script = self._script(
                recipient,
                subject,
                wrap_in_html(html_body),
                str(attach_path) if attach_path else None,
            )
            try:
                return self._run_applescript(script)
            except subprocess.CalledProcessError as e:
                raise DispatchError(f"Outlook draft creation failed: {(e.stderr or '').strip() or e}") from e
            except FileNotFoundError as e:
                raise DispatchError("osascript not found; Outlook drafts need macOS") from e
        finally:
            shutil.rmtree(staging_dir, ignore_errors=True)


class EmlDraftDispatcher(DraftDispatcher):
    """Writes each draft as a .eml file into a folder, for review or import."""

    def __init__(self, output_dir: Union[str, Path], sender: str = ""):
        self.output_dir = Path(output_dir)
        self.sender = sender
        self._count = 0
        self._lock = threading.Lock()

    def _next_path(self, recipient: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.@-]", "_", recipient or "recipient")
        with self._lock:
            self._count += 1
            return self.output_dir / f"draft_{self._count:03d}_{safe}.eml"

    def create_draft(self, recipient, subject, html_body, attachment, attachment_name) -> str:
        try:
            message = build_mime_message(self.sender, recipient, subject, html_body, attachment, attachment_name)
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path = self._next_path(recipient)
            path.write_bytes(message.as_bytes())
        except OSError as e:
            raise DispatchError(f"Could not write draft for {recipient}: {e}") from e

        logger.debug(f"Wrote draft {path}")
        return path.name
