"""Tests for new-message change tracking."""

from cursor_chat_share.core import Conversation, Message
from cursor_chat_share.tracker import ChangeTracker, is_tracked, max_timestamp


def user(ts, text="q"):
    return Message(role="user", text=text, timestamp=ts)


def assistant(ts, text="a"):
    return Message(role="assistant", text=text, timestamp=ts)


BASE = [user(50), assistant(100)]


class TestChangeTracker:

    def test_first_observation_is_silent(self):
        tracker = ChangeTracker()
        assert tracker.observe("c1", "Chat", BASE) is None
        state = tracker.get("c1")
        assert state.last_message_count == 2
        assert state.last_message_timestamp == 100

    def test_growth_with_new_assistant_message(self):
        tracker = ChangeTracker()
        tracker.observe("c1", "Chat", BASE)
        event = tracker.observe("c1", "Chat", BASE + [assistant(150), user(140)], workspace_id="ws")
        assert event is not None
        assert event.conversation_name == "Chat"
        assert event.conversation_id == "c1"
        assert event.workspace_id == "ws"
        assert event.new_message_count == 2
        assert tracker.get("c1").last_message_count == 4
        assert tracker.get("c1").last_message_timestamp == 150

    def test_identical_observations_never_notify(self):
        tracker = ChangeTracker()
        for _ in range(5):
            assert tracker.observe("c1", "Chat", BASE) is None

    def test_new_user_message_only(self):
        tracker = ChangeTracker()
        tracker.observe("c1", "Chat", BASE)
        assert tracker.observe("c1", "Chat", BASE + [user(200)]) is None
        assert tracker.get("c1").last_message_count == 3

    def test_new_assistant_message_not_newer(self):
        tracker = ChangeTracker()
        tracker.observe("c1", "Chat", BASE)
        # Local edit: appended but carrying an old timestamp
        assert tracker.observe("c1", "Chat", BASE + [assistant(100)]) is None

    def test_timestamp_growth_without_new_messages(self):
        tracker = ChangeTracker()
        tracker.observe("c1", "Chat", BASE)
        assert tracker.observe("c1", "Chat", [user(50), assistant(300)]) is None
        assert tracker.get("c1").last_message_timestamp == 300

    def test_state_replaced_when_conversation_shrinks(self):
        tracker = ChangeTracker()
        tracker.observe("c1", "Chat", BASE + [assistant(150)])
        assert tracker.observe("c1", "Chat", [user(10)], baseline_timestamp=0) is None
        assert tracker.get("c1").last_message_count == 1
        assert tracker.get("c1").last_message_timestamp == 10

    def test_count_is_monotonic_while_growing(self):
        tracker = ChangeTracker()
        messages = []
        counts = []
        for i in range(6):
            messages = messages + [assistant(100 + i)]
            tracker.observe("c1", "Chat", messages)
            counts.append(tracker.get("c1").last_message_count)
        assert counts == sorted(counts)
        assert counts[-1] == 6

    def test_baseline_timestamp(self):
        tracker = ChangeTracker()
        tracker.observe("c1", "Chat", BASE, baseline_timestamp=500)
        assert tracker.get("c1").last_message_timestamp == 500
        # Newer than 150 but not than the baseline
        assert tracker.observe("c1", "Chat", BASE + [assistant(150)], baseline_timestamp=500) is None

    def test_reset(self):
        tracker = ChangeTracker()
        tracker.observe("c1", "Chat", BASE)
        tracker.observe("c2", "Other", BASE)
        assert len(tracker) == 2
        tracker.reset()
        assert len(tracker) == 0
        # After a reset the next sighting is a first observation again
        assert tracker.observe("c1", "Chat", BASE + [assistant(150)]) is None

    def test_observe_conversation_uses_display_name(self):
        tracker = ChangeTracker()
        conversation = Conversation(id="c1", name=None, last_updated_at=10, messages=list(BASE))
        tracker.observe_conversation(conversation)
        conversation.messages = BASE + [assistant(200)]
        event = tracker.observe_conversation(conversation, workspace_id="ws")
        assert event.conversation_name == "Unnamed Chat"

    def test_states_snapshot(self):
        tracker = ChangeTracker()
        tracker.observe("c1", "Chat", BASE)
        snapshot = tracker.states()
        tracker.reset()
        assert "c1" in snapshot


class TestHelpers:

    def test_is_tracked(self):
        assert is_tracked(Conversation(id="a"), ["a"])
        assert is_tracked(Conversation(id="b", name="Refactor"), [])
        assert not is_tracked(Conversation(id="c", name="New Chat"), [])
        assert not is_tracked(Conversation(id="d"), ["a"])
        assert is_tracked(Conversation(id="e", name="New Chat"), ["e"])

    def test_max_timestamp(self):
        assert max_timestamp([]) == 0
        assert max_timestamp([], 7) == 7
        assert max_timestamp(BASE, 70) == 100
