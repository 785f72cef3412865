"""Command-line front end for the resource catalog.

Usage:
  resource-catalog list --search python --type book
  resource-catalog add --title "Reti - appunti" --category Reti --file reti.pdf
  resource-catalog edit abc123xyz --color blue
  resource-catalog delete abc123xyz

The backend endpoint comes from CATALOG_API_URL (a .env file is honoured).
Without it the commands run against a temporary in-memory catalog.
"""

import argparse
import asyncio
import base64
import mimetypes
import sys
from pathlib import Path
from typing import Optional

import httpx
import structlog
from dotenv import load_dotenv

from resource_catalog.client.repository import build_repository
from resource_catalog.client.state import CatalogState, MutationResult
from resource_catalog.config.observability import configure_logging
from resource_catalog.config.settings import ClientSettings
from resource_catalog.errors import BackendError, UploadError
from resource_catalog.models.schemas import (
    PREDEFINED_CATEGORIES,
    Resource,
    ResourceChanges,
    ResourceDraft,
    ResourceType,
    TagColor,
)

logger = structlog.get_logger()


def encode_file(path: Path) -> str:
    """Read a file as a base64 data URL."""
    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


def file_or_text(value: Optional[str]) -> Optional[str]:
    """Encode an existing file path; anything else (URL, emoji) is kept."""
    if value is None:
        return None
    path = Path(value)
    if value and path.is_file():
        return encode_file(path)
    return value


def format_resource(resource: Resource) -> str:
    parts = [f"[{resource.type.value}] {resource.title}"]
    if resource.description:
        parts.append(resource.description)
    if resource.category:
        parts.append(f"#{resource.category} ({resource.category_color.value})")
    if resource.year:
        parts.append(resource.year)
    line = " | ".join(parts)
    return f"{resource.id:<12} {line}"


def print_progress(percentage: int) -> None:
    print(f"\rUploading... {percentage:3d}%", end="", file=sys.stderr, flush=True)
    if percentage >= 100:
        print(file=sys.stderr)


def explain_failure(result: MutationResult) -> str:
    error = result.error
    if isinstance(error, UploadError) and error.permission_denied:
        return "Storage permission error: the backend cannot write to its file store. Check its credentials."
    if isinstance(error, (UploadError, BackendError)) and "busy" in str(error).lower():
        return "The catalog is busy with another write. Please submit again."
    return f"Error: {result.message}"


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="resource-catalog", description="Browse and edit the resource catalog")
    parser.add_argument("--api-url", default=None, help="Backend endpoint (overrides CATALOG_API_URL)")
    parser.add_argument("--verbose", action="store_true", help="Show debug logs")
    sub = parser.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list", help="List resources")
    list_cmd.add_argument("--search", default="", help="Substring of title, category or description")
    list_cmd.add_argument("--category", default=None, help="Exact category")
    list_cmd.add_argument("--type", choices=[t.value for t in ResourceType], default=None)
    list_cmd.add_argument(
        "--categories", action="store_true", help="Only print the predefined categories and those in use"
    )

    add_cmd = sub.add_parser("add", help="Add a resource")
    add_cmd.add_argument("--title", required=True)
    add_cmd.add_argument("--type", choices=[t.value for t in ResourceType], default=ResourceType.NOTE.value)
    source = add_cmd.add_mutually_exclusive_group()
    source.add_argument("--url", default="", help="External link")
    source.add_argument("--file", type=Path, default=None, help="File to upload (PDF, ...)")
    add_cmd.add_argument("--description", default="", help="Description, or author for books")
    add_cmd.add_argument("--year", default="")
    add_cmd.add_argument("--category", default="", help="e.g. " + ", ".join(PREDEFINED_CATEGORIES))
    add_cmd.add_argument("--color", choices=[c.value for c in TagColor], default=TagColor.GRAY.value)
    add_cmd.add_argument("--icon", default="", help="Image path, URL or emoji")
    add_cmd.add_argument("--cover", default="", help="Cover image path or URL")

    edit_cmd = sub.add_parser("edit", help="Edit a resource; omitted fields are kept")
    edit_cmd.add_argument("id")
    edit_cmd.add_argument("--title", default=None)
    edit_cmd.add_argument("--type", choices=[t.value for t in ResourceType], default=None)
    edit_source = edit_cmd.add_mutually_exclusive_group()
    edit_source.add_argument("--url", default=None)
    edit_source.add_argument("--file", type=Path, default=None)
    edit_cmd.add_argument("--description", default=None)
    edit_cmd.add_argument("--year", default=None)
    edit_cmd.add_argument("--category", default=None)
    edit_cmd.add_argument("--color", choices=[c.value for c in TagColor], default=None)
    icon = edit_cmd.add_mutually_exclusive_group()
    icon.add_argument("--icon", default=None)
    icon.add_argument("--clear-icon", action="store_true")
    cover = edit_cmd.add_mutually_exclusive_group()
    cover.add_argument("--cover", default=None)
    cover.add_argument("--clear-cover", action="store_true")

    delete_cmd = sub.add_parser("delete", help="Delete a resource")
    delete_cmd.add_argument("id")

    return parser.parse_args(argv)


def build_draft(args: argparse.Namespace) -> ResourceDraft:
    return ResourceDraft(
        title=args.title,
        type=args.type,
        url=args.url or "",
        file_data=encode_file(args.file) if args.file else "",
        description=args.description,
        year=args.year,
        category=args.category,
        category_color=args.color,
        icon=file_or_text(args.icon) or "",
        cover_image=file_or_text(args.cover) or "",
    )


def build_changes(args: argparse.Namespace) -> ResourceChanges:
    return ResourceChanges(
        id=args.id,
        title=args.title,
        type=args.type,
        url=args.url,
        file_data=encode_file(args.file) if args.file else None,
        description=args.description,
        year=args.year,
        category=args.category,
        category_color=args.color,
        icon="" if args.clear_icon else file_or_text(args.icon),
        cover_image="" if args.clear_cover else file_or_text(args.cover),
    )


async def run(args: argparse.Namespace) -> int:
    settings = ClientSettings()
    if args.api_url:
        settings.api_url = args.api_url

    repository = build_repository(settings)
    if not repository.persistent:
        print(
            "WARNING: CATALOG_API_URL is not set. Using a temporary in-memory catalog; nothing will be saved.",
            file=sys.stderr,
        )

    state = CatalogState(repository)
    try:
        if args.command == "list":
            await state.load()
            if args.categories:
                for category in state.category_choices:
                    print(category)
                return 0
            items = state.search(args.search, args.category)
            if args.type:
                items = [r for r in items if r.type.value == args.type]
            for resource in items:
                print(format_resource(resource))
            print(f"{len(items)} resource(s); storage {state.storage.used} / {state.storage.limit} bytes", file=sys.stderr)
            return 0

        if args.command == "add":
            result = await state.create(build_draft(args), on_progress=print_progress)
        elif args.command == "edit":
            await state.load()
            result = await state.edit(build_changes(args), on_progress=print_progress)
        else:
            await state.load()
            result = await state.delete(args.id)

        if not result.ok:
            print(explain_failure(result), file=sys.stderr)
            return 1
        if result.item is not None and args.command != "delete":
            print(format_resource(result.item))
        else:
            print(f"Deleted {args.id}")
        return 0
    except (BackendError, httpx.HTTPError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await repository.close()


def main(argv: Optional[list[str]] = None) -> int:
    load_dotenv()
    args = _parse_args(argv)
    configure_logging("DEBUG" if args.verbose else "WARNING", json=False, stream=sys.stderr)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
