from __future__ import annotations

import asyncio

import pytest

from plannotator.decision import Decision, DecisionBroker, LinkedDocs, build_feedback


def test_approve_then_feedback_keeps_first() -> None:
    async def scenario():
        broker = DecisionBroker()
        assert broker.approve(agent_switch="build") is True
        assert broker.submit_feedback("too late", annotations=[{"id": 1}]) is False
        assert broker.approve() is False
        return broker.settled, await broker.wait()

    settled, decision = asyncio.run(scenario())

    assert settled is True
    assert decision == Decision(approved=True, feedback="LGTM - no changes needed", agent_switch="build")


def test_feedback_then_approve_keeps_first() -> None:
    async def scenario():
        broker = DecisionBroker()
        broker.submit_feedback("needs work", annotations=[{"id": 1}])
        broker.approve()
        return await broker.wait(), await broker.wait()

    first, second = asyncio.run(scenario())

    assert first.approved is False
    assert first.feedback == "needs work"
    assert first.annotations == [{"id": 1}]
    assert second == first


def test_waiter_blocks_until_fulfilled() -> None:
    async def scenario():
        broker = DecisionBroker()
        waiter = asyncio.ensure_future(broker.wait())
        await asyncio.sleep(0)
        assert not waiter.done()
        broker.approve()
        return await asyncio.wait_for(waiter, timeout=1)

    assert asyncio.run(scenario()).approved is True


def test_cancelled_waiter_does_not_cancel_decision() -> None:
    async def scenario():
        broker = DecisionBroker()
        waiter = asyncio.ensure_future(broker.wait())
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert broker.approve() is True
        return await broker.wait()

    assert asyncio.run(scenario()).approved is True


def test_build_feedback_plain() -> None:
    out = build_feedback("Please fix step 2.", "/repo/docs/plan.md")
    assert out == (
        "Please fix step 2."
        "\n---\n**Status: CHANGES REQUESTED**\n"
        "After applying changes, re-run: `/plannotator-doc /repo/docs/plan.md`\n"
    )


def test_build_feedback_with_linked_docs() -> None:
    linked = LinkedDocs(viewed=["a.md", "b.md"], requested=["b.md", "c.md"])
    out = build_feedback("fb", "plan.md", linked)

    assert "\n\n---\n## Linked Documents\n" in out
    assert "- b.md **(review requested)**\n" in out
    assert "- c.md **(review requested)**\n" in out
    assert "- a.md (viewed only)\n" in out
    assert "- b.md (viewed only)" not in out
    assert "To review requested documents, run:\n`/plannotator-doc b.md`\n`/plannotator-doc c.md`\n" in out
    assert out.endswith("re-run: `/plannotator-doc plan.md`\n")


def test_build_feedback_viewed_only_has_no_instructions() -> None:
    out = build_feedback("fb", "plan.md", LinkedDocs(viewed=["a.md"]), command="/review")
    assert "- a.md (viewed only)" in out
    assert "To review requested documents" not in out
    assert out.endswith("re-run: `/review plan.md`\n")


def test_linked_docs_from_payload_tolerates_junk() -> None:
    assert LinkedDocs.from_payload(None) is None
    docs = LinkedDocs.from_payload({"viewed": "nope", "requested": ["x.md", ""]})
    assert docs == LinkedDocs(viewed=[], requested=["x.md"])
    assert LinkedDocs.from_payload({}).is_empty()


def test_decision_to_dict() -> None:
    d = Decision(approved=False, feedback="f", annotations=[1], agent_switch="plan")
    assert d.to_dict() == {"approved": False, "feedback": "f", "annotations": [1], "agentSwitch": "plan"}
