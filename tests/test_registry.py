from __future__ import annotations

from esprelay.backend.services.connection import ConnectionRole


def test_register_device_replaces_previous_without_closing(registry, make_conn) -> None:
    first = make_conn()
    second = make_conn()

    assert registry.register_device(first) is None
    assert registry.register_device(second) is first

    assert registry.device() is second
    assert first.role is ConnectionRole.UNIDENTIFIED
    assert first.is_open


def test_register_same_device_twice_is_noop(registry, make_conn) -> None:
    conn = make_conn()
    registry.register_device(conn)

    assert registry.register_device(conn) is None
    assert registry.device() is conn
    assert conn.role is ConnectionRole.DEVICE


def test_register_client_is_idempotent(registry, make_conn) -> None:
    conn = make_conn()

    assert registry.register_client(conn) is True
    assert registry.register_client(conn) is False
    assert registry.clients() == (conn,)
    assert registry.client_count == 1


def test_connection_holds_a_single_role(registry, make_conn) -> None:
    conn = make_conn()

    registry.register_client(conn)
    registry.register_device(conn)
    assert registry.clients() == ()
    assert registry.device() is conn

    registry.register_client(conn)
    assert registry.device() is None
    assert registry.clients() == (conn,)
    assert conn.role is ConnectionRole.CLIENT


def test_unregister_clears_whichever_slot(registry, make_conn) -> None:
    device = make_conn()
    client = make_conn()
    registry.register_device(device)
    registry.register_client(client)

    assert registry.unregister(device) is ConnectionRole.DEVICE
    assert registry.unregister(client) is ConnectionRole.CLIENT
    assert registry.device() is None
    assert registry.clients() == ()


def test_unregister_absent_connection_is_noop(registry, make_conn) -> None:
    device = make_conn()
    stranger = make_conn()
    registry.register_device(device)

    assert registry.unregister(stranger) is ConnectionRole.UNIDENTIFIED
    assert registry.device() is device


def test_clients_returns_a_snapshot(registry, make_conn) -> None:
    a, b = make_conn(), make_conn()
    registry.register_client(a)
    registry.register_client(b)

    view = registry.clients()
    registry.unregister(a)

    assert view == (a, b)
    assert registry.clients() == (b,)


def test_open_clients_filters_closed_channels(registry, make_conn) -> None:
    a, b = make_conn(), make_conn()
    registry.register_client(a)
    registry.register_client(b)
    a.websocket.drop()

    assert registry.open_clients() == (b,)


def test_closed_connection_cannot_rejoin_as_client(registry, make_conn) -> None:
    conn = make_conn()
    registry.register_client(conn)
    conn.mark_closed()
    registry.unregister(conn)

    assert registry.register_client(conn) is False
    assert registry.clients() == ()
    assert conn.role is ConnectionRole.UNIDENTIFIED


def test_closed_connection_cannot_take_device_slot(registry, make_conn) -> None:
    current = make_conn()
    stale = make_conn()
    registry.register_device(current)
    stale.websocket.drop()

    assert registry.register_device(stale) is None
    assert registry.device() is current
    assert stale.role is ConnectionRole.UNIDENTIFIED
