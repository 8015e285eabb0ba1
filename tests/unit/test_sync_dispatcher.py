"""
Unit tests for the sync dispatcher.

Uses an in-memory content API whose sequence updates can be held open
to exercise queuing, coalescing and reconciliation.
"""

import asyncio

import httpx
import pytest
import pytest_asyncio

from src.content_api.client import ContentApiClient
from src.ordering.errors import SyncFailure
from src.ordering.models import TOP_LEVEL, ItemKind, MoveEvent, SyncOp
from src.ordering.outline import CourseOutline
from src.ordering.reorder import apply_move
from src.ordering.sync import REVERTED_MESSAGE, SyncDispatcher
from tests.factories import ids


async def _wait_for(predicate, rounds=200):
    for _ in range(rounds):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def _move(outline, item_id, destination, new_index):
    """Apply a move to the outline and return its sync ops."""
    container_id, old_index = outline.locate(item_id)
    result = apply_move(
        outline.views(),
        MoveEvent(item_id, container_id, destination or container_id, old_index, new_index),
    )
    return result.sync_ops + outline.apply(result)


@pytest.fixture
def outline(server_payloads):
    sections, contents = server_payloads
    outline = CourseOutline()
    outline.reset_entities(sections, contents)
    return outline


@pytest.fixture
def failures():
    return []


@pytest.fixture
def dispatcher(fake_api, outline, failures):
    return SyncDispatcher(
        fake_api,
        outline,
        group_id="g-1",
        debounce_seconds=0.0,
        on_failure=failures.append,
    )


class TestCommit:
    """Successful commits."""

    @pytest.mark.asyncio
    async def test_one_batched_request_per_gesture(self, dispatcher, fake_api, outline):
        ops = _move(outline, "c", None, 0)

        result = await dispatcher.commit(ops)

        assert result.success is True
        assert result.sent == 3
        calls = fake_api.calls_named("update_contents_sequence")
        assert len(calls) == 1
        assert sorted(u["id"] for u in calls[0][1]) == ["a", "b", "c"]
        assert {c["id"]: c["sequence"] for c in fake_api.contents if c["idSection"] == "S1"} == {
            "c": 0, "a": 1, "b": 2,
        }

    @pytest.mark.asyncio
    async def test_section_ops_use_section_endpoint(self, dispatcher, fake_api, outline):
        ops = _move(outline, "S2", None, 0)

        result = await dispatcher.commit(ops)

        assert result.success is True
        (call,) = fake_api.calls_named("update_sections_sequence")
        assert call[1] == [{"id": "S2", "sequence": 0}, {"id": "S1", "sequence": 1}]
        assert fake_api.calls_named("update_contents_sequence") == []

    @pytest.mark.asyncio
    async def test_cross_section_payload_carries_new_parent(self, dispatcher, fake_api, outline):
        ops = _move(outline, "a", "S2", 1)

        await dispatcher.commit(ops)

        (call,) = fake_api.calls_named("update_contents_sequence")
        payload = {u["id"]: u for u in call[1]}
        assert payload["a"] == {"id": "a", "sequence": 1, "idSection": "S2"}
        assert "x" not in payload

    @pytest.mark.asyncio
    async def test_empty_and_draft_only_commits_send_nothing(self, dispatcher, fake_api):
        assert (await dispatcher.commit([])).success is True
        result = await dispatcher.commit([SyncOp("draft-1", ItemKind.ACTIVITY, 0, "S1")])

        assert result.success is True
        assert result.sent == 0
        assert fake_api.calls == []

    @pytest.mark.asyncio
    async def test_status_tracks_in_flight(self, fake_api, outline):
        seen = []
        dispatcher = SyncDispatcher(
            fake_api, outline, "g-1",
            debounce_seconds=0.0,
            on_status_change=lambda status: seen.append(status.in_flight),
        )

        await dispatcher.commit(_move(outline, "b", None, 0))

        assert seen == [1, 0]
        assert dispatcher.is_saving is False
        assert dispatcher.status.total_commits == 1
        assert dispatcher.status.last_sync_success is True


class TestFailure:
    """Rejected updates reconcile with the server."""

    @pytest.mark.asyncio
    async def test_failure_reverts_to_server_order(self, dispatcher, fake_api, outline, failures):
        fake_api.fail_updates = True
        ops = _move(outline, "c", None, 0)
        assert ids(outline.view("S1")) == ["c", "a", "b"]

        result = await dispatcher.commit(ops)

        assert result.success is False
        assert result.reconciled is True
        assert isinstance(result.error, SyncFailure)
        assert str(result.error).startswith(REVERTED_MESSAGE)
        assert result.error.status_code == 422
        assert sorted(result.error.item_ids) == ["a", "b", "c"]
        assert ids(outline.view("S1")) == ["a", "b", "c"]
        assert failures == [result.error]
        assert dispatcher.status.total_failures == 1
        assert dispatcher.status.last_sync_success is False

    @pytest.mark.asyncio
    async def test_failure_leaves_other_subtrees_alone(self, dispatcher, fake_api, outline):
        # optimistic top-level order that has not been committed
        _move(outline, "S2", None, 0)
        fake_api.fail_updates = True

        await dispatcher.commit(_move(outline, "c", None, 0))

        assert ids(outline.view("S1")) == ["a", "b", "c"]
        assert ids(outline.view(TOP_LEVEL)) == ["S2", "S1"]

    @pytest.mark.asyncio
    async def test_refetch_failure_is_reported(self, dispatcher, fake_api, outline):
        fake_api.fail_updates = True
        fake_api.fail_refetch = True

        result = await dispatcher.commit(_move(outline, "c", None, 0))

        assert result.success is False
        assert result.reconciled is False
        assert result.error is not None

    @pytest.mark.asyncio
    async def test_malformed_snapshot_is_reported(self, dispatcher, fake_api, outline, failures):
        fake_api.fail_updates = True
        fake_api.contents.append({"id": "broken", "name": "No section", "sequence": 0})

        result = await dispatcher.commit(_move(outline, "c", None, 0))

        assert result.success is False
        assert result.reconciled is False
        assert failures == [result.error]
        assert dispatcher.pending_count() == 0

    @pytest.mark.asyncio
    async def test_failure_callback_errors_are_contained(self, fake_api, outline):
        def explode(failure):
            raise RuntimeError("toast failed")

        dispatcher = SyncDispatcher(
            fake_api, outline, "g-1", debounce_seconds=0.0, on_failure=explode,
        )
        fake_api.fail_updates = True

        result = await dispatcher.commit(_move(outline, "c", None, 0))

        assert result.success is False


class TestQueueing:
    """Commits racing on the same or different subtrees."""

    @pytest.mark.asyncio
    async def test_queued_commits_coalesce(self, dispatcher, fake_api, outline):
        fake_api.block_updates()
        first = asyncio.create_task(dispatcher.commit(_move(outline, "c", None, 0)))
        await _wait_for(lambda: fake_api.calls_named("update_contents_sequence"))
        assert dispatcher.is_saving is True

        second = asyncio.create_task(dispatcher.commit(_move(outline, "c", None, 2)))
        third = asyncio.create_task(dispatcher.commit(_move(outline, "b", None, 0)))
        await _wait_for(lambda: dispatcher.status.in_flight == 3)
        fake_api.release()

        results = await asyncio.gather(first, second, third)

        assert all(r.success for r in results)
        calls = fake_api.calls_named("update_contents_sequence")
        assert len(calls) == 2
        assert results[1].sent == 3
        assert results[2].coalesced is True
        assert ids(outline.view("S1")) == ["b", "a", "c"]
        assert {c["id"]: c["sequence"] for c in fake_api.contents if c["idSection"] == "S1"} == {
            "b": 0, "a": 1, "c": 2,
        }

    @pytest.mark.asyncio
    async def test_queued_ops_dropped_after_reconcile(self, dispatcher, fake_api, outline, failures):
        fake_api.block_updates()
        fake_api.fail_updates = True
        first = asyncio.create_task(dispatcher.commit(_move(outline, "c", None, 0)))
        await _wait_for(lambda: fake_api.calls_named("update_contents_sequence"))

        second = asyncio.create_task(dispatcher.commit(_move(outline, "a", None, 2)))
        await _wait_for(lambda: dispatcher.status.in_flight == 2)
        fake_api.release()

        first_result, second_result = await asyncio.gather(first, second)

        assert first_result.success is False
        assert second_result.success is False
        assert second_result.reconciled is True
        assert second_result.error is first_result.error
        assert len(fake_api.calls_named("update_contents_sequence")) == 1
        assert failures == [first_result.error]
        assert ids(outline.view("S1")) == ["a", "b", "c"]
        assert dispatcher.pending_count() == 0

    @pytest.mark.asyncio
    async def test_moves_during_refetch_are_not_sent(self, dispatcher, fake_api, outline):
        fake_api.fail_updates = True
        fake_api.block_refetch()
        first = asyncio.create_task(dispatcher.commit(_move(outline, "c", None, 0)))
        await _wait_for(lambda: fake_api.calls_named("list_sections"))

        # made on the rejected view while the snapshot is still loading
        fake_api.fail_updates = False
        second = asyncio.create_task(dispatcher.commit(_move(outline, "b", None, 0)))
        await _wait_for(lambda: dispatcher.status.in_flight == 2)
        fake_api.release_refetch()

        first_result, second_result = await asyncio.gather(first, second)

        assert first_result.success is False
        assert second_result.success is False
        assert second_result.reconciled is True
        assert len(fake_api.calls_named("update_contents_sequence")) == 1
        assert {c["id"]: c["sequence"] for c in fake_api.contents if c["idSection"] == "S1"} == {
            "a": 0, "b": 1, "c": 2,
        }
        assert ids(outline.view("S1")) == ["a", "b", "c"]
        assert dispatcher.pending_count() == 0

    @pytest.mark.asyncio
    async def test_different_subtrees_do_not_wait(self, dispatcher, fake_api, outline):
        fake_api.block_updates()
        first = asyncio.create_task(dispatcher.commit(_move(outline, "c", None, 0)))
        second = asyncio.create_task(dispatcher.commit(_move(outline, "S2", None, 0)))

        await _wait_for(
            lambda: fake_api.calls_named("update_contents_sequence")
            and fake_api.calls_named("update_sections_sequence")
        )
        assert dispatcher.status.in_flight == 2
        fake_api.release()

        results = await asyncio.gather(first, second)
        assert all(r.success for r in results)


class TestOverHttp:
    """Dispatcher driving the real client against a mocked transport."""

    @pytest_asyncio.fixture
    async def http_api(self):
        client = ContentApiClient(base_url="http://content.test/api/v1", retry_attempts=1, retry_backoff=0)
        yield client
        await client.close()

    @pytest.mark.asyncio
    async def test_plain_text_acknowledgement(self, http_api, outline):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            return httpx.Response(200, text="OK")

        await http_api.close()
        http_api.client = httpx.AsyncClient(
            base_url=http_api.base_url, transport=httpx.MockTransport(handler),
        )
        dispatcher = SyncDispatcher(http_api, outline, "g-1", debounce_seconds=0.0)

        result = await dispatcher.commit(_move(outline, "c", None, 0))

        assert result.success is True
        assert seen == [("PATCH", "/api/v1/contents/sequence")]

    @pytest.mark.asyncio
    async def test_unreadable_refetch_keeps_commit_from_raising(self, http_api, outline):
        def handler(request):
            if request.method == "PATCH":
                return httpx.Response(422, json={"message": "bad sequence"})
            return httpx.Response(200, text="OK")

        await http_api.close()
        http_api.client = httpx.AsyncClient(
            base_url=http_api.base_url, transport=httpx.MockTransport(handler),
        )
        failures = []
        dispatcher = SyncDispatcher(
            http_api, outline, "g-1", debounce_seconds=0.0, on_failure=failures.append,
        )

        result = await dispatcher.commit(_move(outline, "c", None, 0))

        assert result.success is False
        assert result.reconciled is False
        assert result.error.status_code == 422
        assert failures == [result.error]
