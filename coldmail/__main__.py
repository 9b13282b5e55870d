#!/usr/bin/env python3
"""
ColdMail CLI

Command-line interface for the draft pipeline.

Usage:
    python -m coldmail load-contacts <path>
    python -m coldmail preview <path> [--resources DIR | --template FILE... --resume FILE...]
    python -m coldmail process <path> [--dispatcher gmail|outlook|eml] [--eml-dir DIR] [--workers N]
    python -m coldmail [--profile NAME] profile show
    python -m coldmail [--profile NAME] profile save [--full-name ...] [--phone ...] [--activate]
    python -m coldmail auth [--client-secrets FILE] [--session ID]

Requester details not given on the command line come from the active
settings profile. All commands output JSON to stdout; logs go to stderr.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from coldmail.errors import SettingsError


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Configure root logging: DEBUG with -v, INFO otherwise."""
    level = logging.DEBUG if verbose else logging.INFO

    root_logger = logging.getLogger()
    root_logger.handlers = []

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )

    # googleapiclient is chatty at INFO
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)


def output_json(data: Any, success: bool = True) -> None:
    """Output JSON response to stdout."""
    response = {
        "success": success,
        "data": data if success else None,
        "error": None if success else data,
    }
    print(json.dumps(response, indent=2, ensure_ascii=False))


# ============================================================
# argument helpers
# ============================================================

def _load_settings(args: argparse.Namespace):
    from coldmail.settings import load_settings

    return load_settings(Path(args.settings) if args.settings else None)


def _resource_location(args: argparse.Namespace):
    """Uploaded file set when --template/--resume are given, else --resources (or None)."""
    from coldmail.models import ResourceSet

    if args.template or args.resume:
        templates = {Path(p).name: Path(p).read_bytes() for p in (args.template or [])}
        resumes = {Path(p).name: Path(p).read_bytes() for p in (args.resume or [])}
        return ResourceSet(templates=templates, resumes=resumes)
    return args.resources


def _request_context(args: argparse.Namespace, profile: dict):
    from coldmail.settings import request_context_for

    return request_context_for(
        profile,
        full_name=args.full_name,
        phone=args.phone,
        linkedin=args.linkedin,
        resource_location=_resource_location(args),
    )


def _build_dispatcher(args: argparse.Namespace, profile: dict):
    """(dispatcher, identity) for the chosen dispatcher kind."""
    from coldmail.auth import GoogleIdentityProvider, StaticIdentityProvider, TokenFileSessionStore
    from coldmail.dispatchers import EmlDraftDispatcher, GmailDraftDispatcher, OutlookDraftDispatcher
    from coldmail.settings import tokens_dir

    kind = args.dispatcher or profile.get("dispatcher") or "gmail"
    sender = args.sender or profile.get("sender_email", "")

    if kind == "gmail":
        identity = GoogleIdentityProvider(TokenFileSessionStore(tokens_dir()), args.session)
        return GmailDraftDispatcher(identity=identity), identity

    if kind == "outlook":
        return OutlookDraftDispatcher(), StaticIdentityProvider(sender)

    if kind == "eml":
        eml_dir = args.eml_dir or profile.get("eml_dir") or "drafts"
        return EmlDraftDispatcher(eml_dir, sender=sender), StaticIdentityProvider(sender)

    raise SettingsError(f"Unknown dispatcher: {kind}")


# ============================================================
# commands
# ============================================================

def cmd_load_contacts(args: argparse.Namespace) -> int:
    """Read a contacts sheet and return the usable rows."""
    from coldmail.data_sources import extract_contacts

    try:
        contacts = extract_contacts(args.path)
        output_json({
            "contacts": [
                {"name": c.name, "email": c.email_address, "role": c.role} for c in contacts
            ],
            "count": len(contacts),
        })
        return 0
    except Exception as e:
        output_json(str(e), success=False)
        return 1


def cmd_preview(args: argparse.Namespace) -> int:
    """Show which template and resume each contact would get."""
    from coldmail.data_sources import extract_contacts
    from coldmail.preview import build_preview_rows

    try:
        settings = _load_settings(args)
        context = _request_context(args, settings.profile(args.profile))
        contacts = extract_contacts(args.path)
        rows = build_preview_rows(contacts, context.resource_location, context)
        output_json({"preview_rows": rows, "count": len(rows)})
        return 0
    except Exception as e:
        output_json(str(e), success=False)
        return 1


def cmd_process(args: argparse.Namespace) -> int:
    """Create one draft per contact and return the run report."""
    from coldmail.generator import DraftPipeline

    try:
        settings = _load_settings(args)
        profile = settings.profile(args.profile)
        context = _request_context(args, profile)
        dispatcher, identity = _build_dispatcher(args, profile)
    except Exception as e:
        output_json(str(e), success=False)
        return 1

    pipeline = DraftPipeline(dispatcher=dispatcher, identity=identity, max_workers=args.workers)
    report = pipeline.process(args.path, context)
    output_json(report.to_dict())
    return 1 if report.aborted else 0


def cmd_profile_show(args: argparse.Namespace) -> int:
    try:
        settings = _load_settings(args)
        name = args.profile or settings.active_profile
        output_json({
            "name": name,
            "active": name == settings.active_profile,
            "profile": settings.profile(name),
            "profiles": settings.profile_order,
        })
        return 0
    except Exception as e:
        output_json(str(e), success=False)
        return 1


def cmd_profile_save(args: argparse.Namespace) -> int:
    from coldmail.settings import save_settings

    try:
        settings = _load_settings(args)
        name = args.profile or settings.active_profile
        profile = settings.update_profile(
            name,
            full_name=args.full_name,
            phone=args.phone,
            linkedin=args.linkedin,
            resources_dir=args.resources,
            dispatcher=args.dispatcher,
            eml_dir=args.eml_dir,
            sender_email=args.sender,
            client_secrets=args.client_secrets,
        )
        if args.activate:
            settings.active_profile = name
        path = save_settings(settings, Path(args.settings) if args.settings else None)
        output_json({"name": name, "profile": profile, "path": str(path)})
        return 0
    except Exception as e:
        output_json(str(e), success=False)
        return 1


def cmd_auth(args: argparse.Namespace) -> int:
    """Authorize Gmail access for a session through the browser."""
    from coldmail.auth import GoogleIdentityProvider, TokenFileSessionStore, authorize
    from coldmail.settings import tokens_dir

    try:
        settings = _load_settings(args)
        secrets = args.client_secrets or settings.profile(args.profile).get("client_secrets")
        if not secrets:
            raise SettingsError("No OAuth client secrets file given (use --client-secrets)")

        store = TokenFileSessionStore(tokens_dir())
        authorize(Path(secrets), store, args.session)
        email = GoogleIdentityProvider(store, args.session).current_user_email()
        output_json({"session": args.session, "email": email})
        return 0
    except Exception as e:
        output_json(str(e), success=False)
        return 1


# ============================================================
# parser
# ============================================================

def _add_context_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--full-name", help="Requester's full name")
    p.add_argument("--phone", help="Requester's phone number")
    p.add_argument("--linkedin", help="Requester's LinkedIn URL")
    p.add_argument("--resources", help="Folder holding templates and resumes")
    p.add_argument("--template", nargs="+", metavar="FILE", help="Template files to upload instead of a folder")
    p.add_argument("--resume", nargs="+", metavar="FILE", help="Resume files to upload instead of a folder")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="coldmail",
        description="ColdMail CLI - personalized application drafts from a contacts sheet",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--settings", help="Settings file (default: user data directory)")
    parser.add_argument("--profile", help="Settings profile to use (default: active profile)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # load-contacts
    p_load = subparsers.add_parser("load-contacts", help="Read contacts from .xlsx/.csv or a Google Sheet")
    p_load.add_argument("path", help="Contacts file or Google Sheets URL")
    p_load.set_defaults(func=cmd_load_contacts)

    # preview
    p_preview = subparsers.add_parser("preview", help="Match templates and resumes without creating drafts")
    p_preview.add_argument("path", help="Contacts file or Google Sheets URL")
    _add_context_options(p_preview)
    p_preview.set_defaults(func=cmd_preview)

    # process
    p_proc = subparsers.add_parser("process", help="Create drafts for every contact")
    p_proc.add_argument("path", help="Contacts file or Google Sheets URL")
    _add_context_options(p_proc)
    p_proc.add_argument("--dispatcher", choices=["gmail", "outlook", "eml"], help="Where drafts are created")
    p_proc.add_argument("--eml-dir", help="Output folder for the eml dispatcher")
    p_proc.add_argument("--sender", help="From address for outlook/eml drafts")
    p_proc.add_argument("--session", default="default", help="Gmail session id")
    p_proc.add_argument("--workers", type=int, default=1, help="Contacts processed in parallel")
    p_proc.set_defaults(func=cmd_process)

    # profile
    p_prof = subparsers.add_parser("profile", help="Show or save a settings profile")
    prof_sub = p_prof.add_subparsers(dest="profile_command", required=True)

    p_show = prof_sub.add_parser("show", help="Print a profile")
    p_show.set_defaults(func=cmd_profile_show)

    p_save = prof_sub.add_parser("save", help="Create or update a profile")
    p_save.add_argument("--full-name")
    p_save.add_argument("--phone")
    p_save.add_argument("--linkedin")
    p_save.add_argument("--resources", help="Folder holding templates and resumes")
    p_save.add_argument("--dispatcher", choices=["gmail", "outlook", "eml"])
    p_save.add_argument("--eml-dir")
    p_save.add_argument("--sender")
    p_save.add_argument("--client-secrets")
    p_save.add_argument("--activate", action="store_true", help="Make this the active profile")
    p_save.set_defaults(func=cmd_profile_save)

    # auth
    p_auth = subparsers.add_parser("auth", help="Authorize Gmail draft access")
    p_auth.add_argument("--client-secrets", help="OAuth client secrets JSON")
    p_auth.add_argument("--session", default="default", help="Session id to store the token under")
    p_auth.set_defaults(func=cmd_auth)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.log_file)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
