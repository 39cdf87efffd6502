"""Unit tests for handler and listener registries."""

import pytest

from ipc_hub.errors import InvalidArgument
from ipc_hub.protocol.schema import define_call, define_event
from ipc_hub.registry import HandlerRegistry, ListenerRegistry, require_callable, resolve_name


class TestResolveName:
    """Test name validation."""

    def test_plain_string(self):
        assert resolve_name("sum", "test") == "sum"

    def test_definitions_use_their_name(self):
        assert resolve_name(define_call("sum"), "test") == "sum"
        assert resolve_name(define_event("tick"), "test") == "tick"

    @pytest.mark.parametrize("name", ["", None, 42, b"sum", ["sum"]])
    def test_rejects_non_strings_and_empty(self, name):
        with pytest.raises(InvalidArgument, match="name"):
            resolve_name(name, "test")

    def test_require_callable(self):
        require_callable(print, "handler", "test")

        with pytest.raises(InvalidArgument, match="handler"):
            require_callable("not callable", "handler", "test")


class TestHandlerRegistry:
    """Test one-handler-per-name semantics."""

    def test_set_and_get(self):
        registry = HandlerRegistry()
        handler = lambda data: data  # noqa: E731

        registry.set("echo", handler)

        assert registry.get("echo") is handler
        assert "echo" in registry
        assert len(registry) == 1

    def test_later_registration_replaces(self):
        registry = HandlerRegistry()
        first = lambda data: 1  # noqa: E731
        second = lambda data: 2  # noqa: E731

        registry.set("value", first)
        registry.set("value", second)

        assert registry.get("value") is second
        assert len(registry) == 1

    def test_remove(self):
        registry = HandlerRegistry()
        registry.set("echo", print)

        assert registry.remove("echo") is True
        assert registry.get("echo") is None

    def test_remove_absent_is_noop(self):
        registry = HandlerRegistry()

        assert registry.remove("missing") is False

    def test_names_sorted(self):
        registry = HandlerRegistry()
        registry.set("b", print)
        registry.set("a", print)

        assert registry.names() == ["a", "b"]


class TestListenerRegistry:
    """Test ordered multi-listener semantics."""

    def test_multiple_listeners_in_order(self):
        registry = ListenerRegistry()
        first, second = (lambda data: None), (lambda data: None)

        registry.add("tick", first)
        registry.add("tick", second)

        assert registry.snapshot("tick") == [first, second]
        assert registry.count("tick") == 2

    def test_remove_all_for_name(self):
        registry = ListenerRegistry()
        registry.add("tick", print)
        registry.add("tick", repr)

        registry.remove("tick")

        assert registry.snapshot("tick") == []
        assert "tick" not in registry

    def test_remove_first_occurrence_only(self):
        registry = ListenerRegistry()
        registry.add("tick", print)
        registry.add("tick", repr)
        registry.add("tick", print)

        registry.remove("tick", print)

        assert registry.snapshot("tick") == [repr, print]

    def test_remove_unknown_listener_is_noop(self):
        registry = ListenerRegistry()
        registry.add("tick", print)

        registry.remove("tick", repr)
        registry.remove("other", print)

        assert registry.snapshot("tick") == [print]

    def test_removing_last_listener_drops_name(self):
        registry = ListenerRegistry()
        registry.add("tick", print)

        registry.remove("tick", print)

        assert registry.names() == []

    def test_snapshot_is_a_copy(self):
        """Mutating the registry does not change a snapshot taken earlier."""
        registry = ListenerRegistry()
        registry.add("tick", print)

        snapshot = registry.snapshot("tick")
        registry.add("tick", repr)

        assert snapshot == [print]

    def test_total_count(self):
        registry = ListenerRegistry()
        registry.add("a", print)
        registry.add("b", print)
        registry.add("b", repr)

        assert registry.count() == 3
