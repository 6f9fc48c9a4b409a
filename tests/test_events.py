"""
Tests for the ledger notification dispatcher
"""

from datetime import datetime
from unittest.mock import Mock

from token_ledger.address import Address, ZERO_ADDRESS
from token_ledger.events import (
    LedgerEvent, EventPayload, EventDispatcher, EventRecorder,
    transfer_event, approval_event, blacklist_event, pause_event
)


ALICE = Address("0x" + "b2" * 20)
BOB = Address("0x" + "c3" * 20)


class TestEventPayload:
    """Test EventPayload creation and serialization"""

    def test_payload_defaults(self):
        event = EventPayload(event_type=LedgerEvent.PAUSE_CHANGED, data={"paused": True})

        assert isinstance(event.timestamp, datetime)
        assert len(event.event_id) > 0
        assert event.sequence == 0

    def test_serialization(self):
        original = approval_event(ALICE, BOB, 10)

        restored = EventPayload.from_dict(original.to_dict())

        assert restored.event_type == LedgerEvent.APPROVAL
        assert restored.data == original.data
        assert restored.event_id == original.event_id
        assert restored.timestamp == original.timestamp


class TestEventFactories:
    """Test payload builders"""

    def test_transfer_kinds(self):
        assert transfer_event(ALICE, BOB, 1).data["kind"] == "transfer"
        assert transfer_event(ZERO_ADDRESS, BOB, 1).data["kind"] == "mint"
        assert transfer_event(ALICE, ZERO_ADDRESS, 1).data["kind"] == "burn"

    def test_amounts_are_strings(self):
        big = (1 << 256) - 1
        assert transfer_event(ALICE, BOB, big).data["amount"] == str(big)

    def test_blacklist_and_pause(self):
        assert blacklist_event(ALICE, True).data == {"account": ALICE.value, "blacklisted": True}
        assert pause_event(False).data == {"paused": False}


class TestEventDispatcher:
    """Test the event dispatcher"""

    def test_subscribe_and_publish(self):
        dispatcher = EventDispatcher()
        handler = Mock()
        dispatcher.subscribe(LedgerEvent.TRANSFER, handler)

        event = transfer_event(ALICE, BOB, 5)
        dispatcher.publish(event)

        handler.assert_called_once_with(event)

    def test_handlers_only_see_their_type(self):
        dispatcher = EventDispatcher()
        transfer_handler = Mock()
        pause_handler = Mock()
        dispatcher.subscribe(LedgerEvent.TRANSFER, transfer_handler)
        dispatcher.subscribe(LedgerEvent.PAUSE_CHANGED, pause_handler)

        dispatcher.publish(pause_event(True))

        transfer_handler.assert_not_called()
        pause_handler.assert_called_once()

    def test_global_handlers(self):
        dispatcher = EventDispatcher()
        recorder = EventRecorder(dispatcher)

        dispatcher.publish(transfer_event(ALICE, BOB, 1))
        dispatcher.publish(pause_event(True))

        assert [e.event_type for e in recorder.events] == [
            LedgerEvent.TRANSFER, LedgerEvent.PAUSE_CHANGED
        ]
        assert len(recorder.of_type(LedgerEvent.TRANSFER)) == 1

    def test_sequence_numbers_increase(self):
        dispatcher = EventDispatcher()
        recorder = EventRecorder(dispatcher)

        for _ in range(3):
            dispatcher.publish(pause_event(True))

        assert [e.sequence for e in recorder.events] == [1, 2, 3]

    def test_failing_handler_does_not_block_others(self):
        dispatcher = EventDispatcher()
        failing = Mock(side_effect=RuntimeError("boom"))
        healthy = Mock()
        dispatcher.subscribe(LedgerEvent.TRANSFER, failing)
        dispatcher.subscribe(LedgerEvent.TRANSFER, healthy)

        dispatcher.publish(transfer_event(ALICE, BOB, 1))

        failing.assert_called_once()
        healthy.assert_called_once()

    def test_unsubscribe(self):
        dispatcher = EventDispatcher()
        handler = Mock()
        dispatcher.subscribe(LedgerEvent.APPROVAL, handler)
        dispatcher.unsubscribe(LedgerEvent.APPROVAL, handler)

        dispatcher.publish(approval_event(ALICE, BOB, 1))

        handler.assert_not_called()
        assert dispatcher.get_handler_count(LedgerEvent.APPROVAL) == 0

    def test_unsubscribe_unknown_handler_is_harmless(self):
        dispatcher = EventDispatcher()
        dispatcher.unsubscribe(LedgerEvent.APPROVAL, Mock())
        dispatcher.unsubscribe_all(Mock())

    def test_handler_counts_and_clear(self):
        dispatcher = EventDispatcher()
        dispatcher.subscribe(LedgerEvent.TRANSFER, Mock())
        dispatcher.subscribe(LedgerEvent.APPROVAL, Mock())
        dispatcher.subscribe_all(Mock())

        assert dispatcher.get_handler_count() == 3
        assert dispatcher.get_handler_count(LedgerEvent.TRANSFER) == 1

        dispatcher.clear()
        assert dispatcher.get_handler_count() == 0
