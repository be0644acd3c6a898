# -*- coding: utf-8 -*-
"""
Review decision: one-shot handoff from the HTTP layer to the waiting caller.

The broker is fulfilled at most once (approve or feedback). Later attempts
are ignored and reported back as False; the caller only ever sees the first
decision.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .config import APPROVED_FEEDBACK, REVIEW_COMMAND


@dataclass(frozen=True)
class Decision:
    approved: bool
    feedback: str
    annotations: List[Any] = field(default_factory=list)
    agent_switch: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "approved": self.approved,
            "feedback": self.feedback,
            "annotations": list(self.annotations),
        }
        if self.agent_switch:
            out["agentSwitch"] = self.agent_switch
        return out


@dataclass(frozen=True)
class LinkedDocs:
    viewed: List[str] = field(default_factory=list)
    requested: List[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, obj: Any) -> Optional["LinkedDocs"]:
        if not isinstance(obj, dict):
            return None

        def _paths(v: Any) -> List[str]:
            if not isinstance(v, list):
                return []
            return [str(x) for x in v if str(x).strip()]

        return cls(viewed=_paths(obj.get("viewed")), requested=_paths(obj.get("requested")))

    def is_empty(self) -> bool:
        return not self.viewed and not self.requested


def build_feedback(
    feedback: str,
    filepath: str,
    linked_docs: Optional[LinkedDocs] = None,
    *,
    command: str = REVIEW_COMMAND,
) -> str:
    """
    Raw reviewer feedback plus the linked-documents block and status envelope.
    """
    lines = [feedback or ""]

    if linked_docs is not None and not linked_docs.is_empty():
        lines.append("\n\n---\n## Linked Documents\n")
        for path in linked_docs.requested:
            lines.append(f"- {path} **(review requested)**\n")
        for path in linked_docs.viewed:
            if path not in linked_docs.requested:
                lines.append(f"- {path} (viewed only)\n")

        if linked_docs.requested:
            lines.append("\nTo review requested documents, run:\n")
            for path in linked_docs.requested:
                lines.append(f"`{command} {path}`\n")

    lines.append(
        f"\n---\n**Status: CHANGES REQUESTED**\nAfter applying changes, re-run: `{command} {filepath}`\n"
    )
    return "".join(lines)


class DecisionBroker:
    """
    First-write-wins future owned by one review session.

    Must be created while an event loop is running (server startup).
    """

    def __init__(self) -> None:
        self._future: "asyncio.Future[Decision]" = asyncio.get_running_loop().create_future()

    @property
    def settled(self) -> bool:
        return self._future.done()

    def resolve(self, decision: Decision) -> bool:
        if self._future.done():
            print(
                f"[DECISION] ignored duplicate decision (approved={decision.approved})",
                flush=True,
            )
            return False
        self._future.set_result(decision)
        print(f"[DECISION] settled approved={decision.approved}", flush=True)
        return True

    def approve(self, agent_switch: Optional[str] = None, feedback: str = APPROVED_FEEDBACK) -> bool:
        return self.resolve(Decision(approved=True, feedback=feedback, agent_switch=agent_switch))

    def submit_feedback(
        self,
        feedback: str,
        annotations: Optional[List[Any]] = None,
        agent_switch: Optional[str] = None,
    ) -> bool:
        return self.resolve(
            Decision(
                approved=False,
                feedback=feedback,
                annotations=list(annotations or []),
                agent_switch=agent_switch,
            )
        )

    async def wait(self) -> Decision:
        # shield: a cancelled waiter must not cancel the session's decision
        return await asyncio.shield(self._future)
