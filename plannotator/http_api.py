# -*- coding: utf-8 -*-
"""
HTTP API for the document review server.

Design:
- No import of server.py (avoids circular imports).
- server.py passes ctx=<ReviewSession> to register_routes().
- Path/validation errors are mapped to status codes here and never escape.
- Every route not registered below serves the UI shell (single-page app).
"""

from __future__ import annotations

import asyncio
import os
import uuid
from typing import Any, Dict, List, Optional

from aiohttp import BodyPartReader, web

from .atomic_io import atomic_write
from .config import mime_for_image_suffix
from .decision import LinkedDocs, build_feedback
from .errors import (
    AmbiguousFilenameError,
    DocumentNotFoundError,
    ExtensionNotAllowedError,
    FileTooLargeError,
    PathTraversalError,
    UploadError,
)
from .path_engine import load_linked_document
from .security import is_allowed_image_extension, sanitize_filename, validate_image_path
from .session import ReviewSession

UPLOAD_CHUNK_BYTES = 1024 * 1024
UPLOAD_FILE_MODE = 0o600
UPLOAD_DIR_MODE = 0o700

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


def _text(message: str, status: int) -> web.Response:
    return web.Response(status=status, text=message, content_type="text/plain")


def _optional_str(v: Any) -> Optional[str]:
    if isinstance(v, str) and v.strip():
        return v
    return None


def register_routes(app: web.Application, *, ctx: ReviewSession) -> None:
    """
    Register aiohttp routes for one review session.
    """

    async def handle_get_doc(request: web.Request) -> web.Response:
        requested = (request.rel_url.query.get("path") or "").strip()
        read_only = request.rel_url.query.get("readonly") == "true"

        if not requested:
            return web.json_response(
                {
                    "markdown": ctx.markdown,
                    "filepath": ctx.filepath,
                    "origin": ctx.origin,
                    "isMain": True,
                    "readOnly": read_only,
                    "sharingEnabled": ctx.sharing_enabled,
                    "repoInfo": ctx.repo_info,
                }
            )

        try:
            doc = await load_linked_document(requested, ctx.base_dir, ctx.project_root)
        except AmbiguousFilenameError as e:
            return _error(str(e), 400)
        except PathTraversalError as e:
            print(f"[DOC] blocked linked doc {requested!r}", flush=True)
            return _error(str(e), 403)
        except DocumentNotFoundError as e:
            return _error(str(e), 404)
        except Exception as e:
            return _error(str(e) or "Failed to load file", 500)

        return web.json_response(
            {
                "markdown": doc.markdown,
                "filepath": str(doc.path),
                "origin": ctx.origin,
                "isMain": False,
                "readOnly": doc.read_only,
                "sharingEnabled": ctx.sharing_enabled,
                "repoInfo": ctx.repo_info,
            }
        )

    async def handle_get_image(request: web.Request) -> web.StreamResponse:
        image_path = (request.rel_url.query.get("path") or "").strip()
        if not image_path:
            return _text("Missing path parameter", 400)

        def _locate():
            validated = validate_image_path(image_path, ctx.image_bases())
            return validated, validated.is_file()

        try:
            validated, exists = await asyncio.to_thread(_locate)
            if not exists:
                return _text("File not found", 404)
        except PathTraversalError:
            return _text("Access denied", 403)
        except ExtensionNotAllowedError:
            return _text("File type not allowed", 403)
        except Exception:
            return _text("Failed to read file", 500)

        return web.FileResponse(
            path=validated,
            headers={"Content-Type": mime_for_image_suffix(validated.suffix)},
        )

    async def _read_upload(field: BodyPartReader) -> bytes:
        limit = ctx.config.max_upload_bytes
        data = bytearray()
        while True:
            chunk = await field.read_chunk(size=UPLOAD_CHUNK_BYTES)
            if not chunk:
                break
            data.extend(chunk)
            if len(data) > limit:
                raise FileTooLargeError(len(data), limit)
        return bytes(data)

    async def handle_upload(request: web.Request) -> web.Response:
        if not request.content_type.startswith("multipart/"):
            return _text("No file provided", 400)
        try:
            reader = await request.multipart()
        except (ValueError, AssertionError, KeyError):
            return _text("No file provided", 400)

        try:
            field = None
            while True:
                part = await reader.next()
                if part is None:
                    break
                if isinstance(part, BodyPartReader) and part.name == "file":
                    field = part
                    break
                await part.release()

            if field is None:
                return _text("No file provided", 400)

            orig_name = field.filename or ""

            try:
                data = await _read_upload(field)
            except FileTooLargeError as e:
                print(f"[UPLOAD] rejected {orig_name!r}: {e}", flush=True)
                return _text(str(e), 413)

            if not is_allowed_image_extension(orig_name):
                return _text("File type not allowed", 415)

            safe_name = sanitize_filename(orig_name)
            ext = safe_name.rsplit(".", 1)[-1].lower() if "." in safe_name else "png"

            upload_dir = ctx.config.upload_dir
            target = upload_dir / f"{uuid.uuid4()}.{ext}"

            def _store() -> None:
                upload_dir.mkdir(parents=True, exist_ok=True, mode=UPLOAD_DIR_MODE)
                # mkdir leaves an existing dir's mode alone
                os.chmod(upload_dir, UPLOAD_DIR_MODE)
                atomic_write(target, data, mode=UPLOAD_FILE_MODE)

            try:
                await asyncio.to_thread(_store)
            except OSError as e:
                raise UploadError(f"Failed to write file: {e}") from e
        except Exception as e:
            print(f"[UPLOAD] failed: {e!r}", flush=True)
            return _error(str(e) or "Upload failed", 500)

        print(f"[UPLOAD] stored {orig_name!r} -> {target} ({len(data)} bytes)", flush=True)
        return web.json_response({"path": str(target)})

    async def handle_get_agents(request: web.Request) -> web.Response:
        if ctx.agents_provider is None:
            return web.json_response({"agents": []})

        try:
            raw = await ctx.agents_provider()
        except Exception as e:
            print(f"[AGENTS] provider failed: {e!r}", flush=True)
            return web.json_response({"agents": [], "error": "Failed to fetch agents"})

        agents: List[Dict[str, Any]] = []
        for a in raw or []:
            if not isinstance(a, dict):
                continue
            if a.get("mode") != "primary" or a.get("hidden"):
                continue
            agents.append({"id": a.get("name"), "name": a.get("name"), "description": a.get("description")})
        return web.json_response({"agents": agents})

    async def handle_approve(request: web.Request) -> web.Response:
        try:
            try:
                body = await request.json()
            except Exception:
                body = {}
            if not isinstance(body, dict):
                body = {}

            ctx.decision.approve(agent_switch=_optional_str(body.get("agentSwitch")))
            return web.json_response({"ok": True})
        except Exception as e:
            return _error(str(e) or "Failed to process approval", 500)

    async def handle_feedback(request: web.Request) -> web.Response:
        try:
            body = await request.json()
        except Exception:
            return _error("Expected JSON body.", 400)
        if not isinstance(body, dict):
            return _error("Body must be a JSON object.", 400)

        try:
            annotations = body.get("annotations")
            enhanced = build_feedback(
                str(body.get("feedback") or ""),
                ctx.filepath,
                LinkedDocs.from_payload(body.get("linkedDocs")),
                command=ctx.config.review_command,
            )
            ctx.decision.submit_feedback(
                enhanced,
                annotations=annotations if isinstance(annotations, list) else [],
                agent_switch=_optional_str(body.get("agentSwitch")),
            )
            return web.json_response({"ok": True})
        except Exception as e:
            return _error(str(e) or "Failed to process feedback", 500)

    async def handle_shell(request: web.Request) -> web.Response:
        return web.Response(
            text=ctx.html_content,
            content_type="text/html",
            headers=NO_CACHE_HEADERS,
        )

    # ---- Route registrations (single place) ----
    app.router.add_get("/api/doc", handle_get_doc)
    app.router.add_get("/api/image", handle_get_image)
    app.router.add_post("/api/upload", handle_upload)
    app.router.add_get("/api/agents", handle_get_agents)
    app.router.add_post("/api/approve", handle_approve)
    app.router.add_post("/api/feedback", handle_feedback)
    app.router.add_route("*", "/{tail:.*}", handle_shell)
