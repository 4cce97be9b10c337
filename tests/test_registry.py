"""Connection registry tests."""

import pytest
from conftest import make_connection

from restart_hub.events.registry import ConnectionRegistry
from restart_hub.events.types import ConnectionState


def test_add_marks_connection_open() -> None:
    """Registered connections start open and are counted."""
    registry = ConnectionRegistry()
    conn, _ = make_connection("a")
    assert conn.state is ConnectionState.CONNECTING

    assert registry.add(conn) is True
    assert conn.state is ConnectionState.OPEN
    assert registry.size() == 1
    assert conn in registry


def test_add_skips_closed_connection() -> None:
    """A connection that closed before registration is not added."""
    registry = ConnectionRegistry()
    conn, _ = make_connection("a")
    conn.transition(ConnectionState.CLOSED)

    assert registry.add(conn) is False
    assert registry.size() == 0


def test_remove_is_idempotent() -> None:
    """Removing twice, or removing an unknown connection, is a no-op."""
    registry = ConnectionRegistry()
    conn, _ = make_connection("a")
    stranger, _ = make_connection("b")
    registry.add(conn)

    assert registry.remove(conn) is True
    assert registry.remove(conn) is False
    assert registry.remove(stranger) is False
    assert registry.size() == 0


def test_transition_to_closed_removes_entry() -> None:
    """Closing a connection drops it from the registry immediately."""
    registry = ConnectionRegistry()
    conn, _ = make_connection("a")
    registry.add(conn)

    conn.transition(ConnectionState.CLOSED)

    assert conn not in registry
    assert len(registry) == 0


def test_closed_is_terminal() -> None:
    """A closed connection cannot be reopened."""
    conn, _ = make_connection("a")
    conn.transition(ConnectionState.CLOSED)
    conn.transition(ConnectionState.OPEN)
    assert conn.state is ConnectionState.CLOSED


def test_transitions_never_move_backward() -> None:
    """A closing connection cannot return to open."""
    conn, _ = make_connection("a")
    seen: list[ConnectionState] = []
    conn.on_transition(lambda _conn, state: seen.append(state))

    conn.transition(ConnectionState.CLOSING)
    conn.transition(ConnectionState.OPEN)
    conn.transition(ConnectionState.CONNECTING)

    assert conn.state is ConnectionState.CLOSING
    assert seen == [ConnectionState.CLOSING]


def test_add_skips_closing_connection() -> None:
    """A connection already closing is neither registered nor reopened."""
    registry = ConnectionRegistry()
    conn, _ = make_connection("a")
    conn.transition(ConnectionState.CLOSING)

    assert registry.add(conn) is False
    assert conn.state is ConnectionState.CLOSING
    assert registry.size() == 0


def test_on_change_fires_for_add_and_remove() -> None:
    """The change callback runs after every membership change."""
    registry = ConnectionRegistry()
    sizes: list[int] = []
    registry.on_change(lambda: sizes.append(registry.size()))
    conn, _ = make_connection("a")

    registry.add(conn)
    registry.remove(conn)
    registry.remove(conn)

    assert sizes == [1, 0]


@pytest.mark.asyncio
async def test_for_each_open_skips_other_states() -> None:
    """Only open connections are visited."""
    registry = ConnectionRegistry()
    open_conn, _ = make_connection("open")
    closing_conn, _ = make_connection("closing")
    registry.add(open_conn)
    registry.add(closing_conn)
    closing_conn.transition(ConnectionState.CLOSING)

    async def visit(conn):
        return conn.id

    assert await registry.for_each_open(visit) == ["open"]
    assert registry.size() == 2


@pytest.mark.asyncio
async def test_for_each_open_uses_snapshot() -> None:
    """Connections closing mid-iteration do not break the loop."""
    registry = ConnectionRegistry()
    first, _ = make_connection("a")
    second, _ = make_connection("b")
    registry.add(first)
    registry.add(second)

    async def close_other(conn):
        other = second if conn is first else first
        other.transition(ConnectionState.CLOSED)
        return conn.id

    visited = await registry.for_each_open(close_other)

    assert sorted(visited) == ["a", "b"]
    assert registry.size() == 0


@pytest.mark.asyncio
async def test_close_all_closes_and_empties() -> None:
    """close_all closes every transport and leaves the registry empty."""
    registry = ConnectionRegistry()
    conn_a, transport_a = make_connection("a")
    conn_b, transport_b = make_connection("b", fail_close=True)
    registry.add(conn_a)
    registry.add(conn_b)

    closed = await registry.close_all(code=1001, reason="hub stopping")

    assert closed == 2
    assert registry.size() == 0
    assert transport_a.closed_with == (1001, "hub stopping")
    assert transport_b.closed_with == (1001, "hub stopping")
    assert conn_a.state is ConnectionState.CLOSED
    assert conn_b.state is ConnectionState.CLOSED
