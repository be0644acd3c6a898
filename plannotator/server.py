# -*- coding: utf-8 -*-
"""
Document review server.

Serves one markdown document for annotation in the browser and hands a single
review decision (approve / feedback) back to the caller.

Lifecycle:
- start_doc_server() binds a port (retrying while it is in use), registers the
  HTTP API and returns a DocServer handle.
- the caller awaits DocServer.wait_for_decision() (no timeout).
- the caller persists what it needs and calls DocServer.stop().

review_document() runs that whole lifecycle for a file on disk; main() is the
`python -m plannotator <file>` entrypoint.

Environment variables: see config.py (read once by load_config()).
"""

from __future__ import annotations

import asyncio
import errno
import html
import json
import os
import sys
import webbrowser
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Union

from aiohttp import web

from . import http_api, plan_store
from .config import NO_CHANGES_DIFF, PORT_ENV_VAR, ReviewConfig, load_config
from .decision import Decision, DecisionBroker
from .errors import PortInUseError, WriteFailureError
from .repo_info import get_repo_info
from .session import AgentsProvider, ReviewSession

ReadyCallback = Callable[[str, bool, int], Optional[Awaitable[None]]]

_ADDRESS_IN_USE = {errno.EADDRINUSE, 10048}  # 10048: WSAEADDRINUSE


def _placeholder_shell(filepath: str) -> str:
    return (
        "<!doctype html><html><head><meta charset='utf-8'/>"
        f"<title>Review: {html.escape(filepath)}</title>"
        "</head><body>"
        f"<p>Reviewing <code>{html.escape(filepath)}</code>. "
        "No UI bundle configured (set PLANNOTATOR_UI_FILE).</p>"
        "</body></html>"
    )


def is_address_in_use(exc: BaseException) -> bool:
    if not isinstance(exc, OSError):
        return False
    if exc.errno in _ADDRESS_IN_USE:
        return True
    return "address already in use" in str(exc).lower()


class DocServer:
    """
    Handle for a running review server.
    """

    def __init__(self, runner: web.AppRunner, session: ReviewSession, port: int) -> None:
        self._runner = runner
        self.session = session
        self.port = port
        self.url = f"http://localhost:{port}"
        self.is_remote = session.config.is_remote
        self._stopped = False

    async def wait_for_decision(self) -> Decision:
        return await self.session.decision.wait()

    async def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        await self._runner.cleanup()
        print(f"[SERVER] stopped {self.url}", flush=True)


async def _bind(runner: web.AppRunner, config: ReviewConfig) -> int:
    for attempt in range(1, config.max_retries + 1):
        site = web.TCPSite(runner, config.host, config.port)
        try:
            await site.start()
        except OSError as e:
            try:
                await site.stop()
            except RuntimeError:
                pass  # never registered with the runner
            if not is_address_in_use(e):
                raise
            if attempt < config.max_retries:
                print(
                    f"[SERVER] port {config.port} in use (attempt {attempt}/{config.max_retries}), retrying",
                    flush=True,
                )
                await asyncio.sleep(config.retry_delay_s)
                continue
            raise PortInUseError(
                config.port,
                config.max_retries,
                f" (set {PORT_ENV_VAR} to use different port)",
            ) from e

        addresses = runner.addresses
        return int(addresses[0][1]) if addresses else config.port

    raise PortInUseError(config.port, config.max_retries, f" (set {PORT_ENV_VAR} to use different port)")


async def start_doc_server(
    markdown: str,
    filepath: str,
    *,
    html_content: Optional[str] = None,
    origin: Optional[str] = None,
    sharing_enabled: bool = True,
    project_root: Optional[Union[str, Path]] = None,
    config: Optional[ReviewConfig] = None,
    on_ready: Optional[ReadyCallback] = None,
    agents_provider: Optional[AgentsProvider] = None,
) -> DocServer:
    """
    Start the document review server.

    Must be awaited inside a running event loop; the decision future is bound
    to that loop.
    """
    cfg = config or load_config()

    # Captured before any await so later cwd changes don't move the root
    root = Path(project_root or os.getcwd()).resolve()
    base_dir = Path(filepath).expanduser().resolve().parent

    if html_content is None:
        if cfg.ui_file is not None:
            html_content = cfg.ui_file.read_text(encoding="utf-8")
        else:
            html_content = _placeholder_shell(filepath)

    repo_info = await asyncio.to_thread(get_repo_info, root)

    session = ReviewSession(
        filepath=filepath,
        markdown=markdown,
        base_dir=base_dir,
        project_root=root,
        decision=DecisionBroker(),
        config=cfg,
        html_content=html_content,
        origin=origin,
        sharing_enabled=sharing_enabled,
        repo_info=repo_info,
        agents_provider=agents_provider,
    )

    app = web.Application()
    http_api.register_routes(app, ctx=session)

    runner = web.AppRunner(app)
    await runner.setup()
    try:
        port = await _bind(runner, cfg)
    except BaseException:
        await runner.cleanup()
        raise

    server = DocServer(runner, session, port)
    print(f"[SERVER] reviewing {filepath} at {server.url} (remote={cfg.is_remote})", flush=True)

    if on_ready is not None:
        maybe = on_ready(server.url, server.is_remote, server.port)
        if asyncio.iscoroutine(maybe):
            await maybe

    return server


async def handle_doc_server_ready(url: str, is_remote: bool, port: int) -> None:
    """
    Default on_ready: open the browser locally, print the URL when remote.
    """
    if is_remote:
        print(f"[SERVER] open {url} in your browser (forward port {port})", flush=True)
        return
    opened = await asyncio.to_thread(webbrowser.open, url)
    if not opened:
        print(f"[SERVER] could not open a browser; visit {url}", flush=True)


def _persist(markdown: str, decision: Decision, cfg: ReviewConfig) -> List[Path]:
    plan_dir = plan_store.get_plan_dir(cfg.plan_dir)
    slug = plan_store.generate_unique_slug(markdown, plan_dir)
    diff = NO_CHANGES_DIFF if decision.approved else decision.feedback

    written = plan_store.save_review_artifacts(slug, markdown, diff, plan_dir)
    written.append(
        plan_store.save_final_snapshot(
            slug,
            "approved" if decision.approved else "denied",
            markdown,
            diff,
            plan_dir,
        )
    )
    return written


async def review_document(
    path: Union[str, Path],
    *,
    config: Optional[ReviewConfig] = None,
    html_content: Optional[str] = None,
    on_ready: Optional[ReadyCallback] = handle_doc_server_ready,
    save: bool = True,
) -> Decision:
    """
    Serve a markdown file for review, wait for the decision, persist, stop.
    """
    cfg = config or load_config()
    doc_path = Path(path).expanduser().resolve()
    markdown = await asyncio.to_thread(doc_path.read_text, encoding="utf-8")

    server = await start_doc_server(
        markdown,
        str(doc_path),
        html_content=html_content,
        config=cfg,
        on_ready=on_ready,
    )
    try:
        decision = await server.wait_for_decision()
        if save:
            try:
                await asyncio.to_thread(_persist, markdown, decision, cfg)
            except WriteFailureError as e:
                print(f"[STORE] could not save review artifacts: {e}", flush=True)
    finally:
        await server.stop()

    return decision


def main(argv: Optional[List[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) != 1 or args[0] in ("-h", "--help"):
        print("usage: python -m plannotator <markdown-file>", file=sys.stderr)
        return 2

    target = Path(args[0]).expanduser()
    if not target.is_file():
        print(f"[FATAL] not a file: {target}", file=sys.stderr)
        return 1

    try:
        decision = asyncio.run(review_document(target))
    except PortInUseError as e:
        print(f"[FATAL] {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130

    print(json.dumps(decision.to_dict(), ensure_ascii=False))
    return 0
