"""Unit tests for Stripe event classification."""

import pytest

from app.domain.webhook_events import EventType, classify_event, extract_object


class TestClassifyEvent:

    @pytest.mark.parametrize("event_type", [t.value for t in EventType])
    def test_recognized_types(self, event_type):
        event = classify_event({"id": "evt_1", "type": event_type, "data": {"object": {"id": "obj_1"}}})

        assert event is not None
        assert event.event_type == EventType(event_type)
        assert event.object_id == "obj_1"

    @pytest.mark.parametrize(
        "event_type",
        ["charge.succeeded", "checkout.session.completed", "customer.subscription.paused", None, ""],
    )
    def test_other_types_are_ignored(self, event_type):
        assert classify_event({"id": "evt_1", "type": event_type, "data": {}}) is None

    def test_idempotency_key_prefers_event_id(self):
        event = classify_event({
            "id": "evt_9",
            "type": "customer.subscription.updated",
            "data": {"object": {"id": "sub_1"}},
        })
        assert event.idempotency_key == "evt_9"

    def test_idempotency_key_without_event_id(self):
        event = classify_event({
            "type": "customer.subscription.deleted",
            "data": {"id": "sub_1"},
        })
        assert event.idempotency_key == "customer.subscription.deleted:sub_1"


class TestExtractObject:

    def test_envelope(self):
        assert extract_object({"data": {"object": {"id": "sub_1"}}}) == {"id": "sub_1"}

    def test_flattened(self):
        assert extract_object({"data": {"id": "sub_1", "status": "active"}}) == {
            "id": "sub_1",
            "status": "active",
        }

    def test_missing_or_malformed_data(self):
        assert extract_object({}) == {}
        assert extract_object({"data": "oops"}) == {}
