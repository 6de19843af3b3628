import os
import socket

import pytest

from pynetmeter.meter import (
    ConfigurationError,
    ConnectError,
    Provisioner,
    Transport,
    split_host_port,
)
from pynetmeter.meter.connection import DEFAULT_DIAL_HOST
from tests.helpers import free_port


@pytest.mark.parametrize('address, expected', [
    (':13501', ('', 13501)),
    ('127.0.0.1:80', ('127.0.0.1', 80)),
    ('localhost:0', ('localhost', 0)),
    ('[::1]:9000', ('::1', 9000)),
])
def test_split_host_port(address, expected):
    assert split_host_port(address) == expected


@pytest.mark.parametrize('address', [
    'localhost', '::1:80', 'host:port', 'host:70000', 'host:-1',
])
def test_split_host_port_errors(address):
    with pytest.raises(ConfigurationError):
        split_host_port(address)


def test_provisioner_validates_at_construction():
    with pytest.raises(ConfigurationError):
        Provisioner('udp', ':1')
    with pytest.raises(ConfigurationError):
        Provisioner('tcp', '')
    with pytest.raises(ConfigurationError):
        Provisioner('tcp', 'nohost')
    with pytest.raises(ConfigurationError):
        Provisioner('tcp', ':1', client_port=65536)


def test_provisioner_targets():
    p = Provisioner(Transport.TCP, ':13501')
    family = socket.AF_INET6 if p.dualstack else socket.AF_INET
    assert p.listen_target() == (family, ('', 13501))
    assert p.dial_target() == (socket.AF_INET, (DEFAULT_DIAL_HOST, 13501))
    assert str(p) == 'tcp::13501'

    p = Provisioner('tcp', '[::1]:13501')
    assert p.family == socket.AF_INET6
    assert not p.dualstack
    assert not Provisioner('tcp', '127.0.0.1:1').dualstack

    p = Provisioner('unix', '/tmp/x.sock', client_port=5)
    assert p.dial_target() == (socket.AF_UNIX, '/tmp/x.sock')


def test_tcp_listen_and_dial():
    p = Provisioner('tcp', f'127.0.0.1:{free_port()}')
    with p.listen() as listener:
        with p.dial() as conn:
            peer, _ = listener.accept()
            with peer:
                conn.sendall(b'hi')
                assert peer.recv(2) == b'hi'
            nodelay = conn.getsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY)
            assert nodelay != 0


def test_dial_binds_client_port():
    client_port = free_port()
    p = Provisioner('tcp', f'127.0.0.1:{free_port()}', client_port=client_port)
    with p.listen() as listener:
        with p.dial() as conn:
            assert conn.getsockname()[1] == client_port
            peer, addr = listener.accept()
            peer.close()
            assert addr[1] == client_port


def test_listen_on_busy_port_fails():
    with socket.create_server(('127.0.0.1', 0)) as busy:
        port = busy.getsockname()[1]
        with pytest.raises(ConnectError):
            Provisioner('tcp', f'127.0.0.1:{port}').listen()


def test_dial_refused():
    with pytest.raises(ConnectError):
        Provisioner('tcp', f'127.0.0.1:{free_port()}').dial()


def test_unix_listen_removes_stale_socket(tmp_path):
    path = str(tmp_path / 'stale.sock')
    stale = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    stale.bind(path)
    stale.close()
    assert os.path.exists(path)

    p = Provisioner('unix', path)
    with p.listen() as listener:
        with p.dial() as conn:
            peer, _ = listener.accept()
            with peer:
                conn.sendall(b'ok')
                assert peer.recv(2) == b'ok'


def test_unix_listen_keeps_regular_file(tmp_path):
    path = tmp_path / 'not-a-socket'
    path.write_text('data')
    with pytest.raises(ConnectError):
        Provisioner('unix', str(path)).listen()
    assert path.read_text() == 'data'


def test_unix_dial_missing_socket(tmp_path):
    with pytest.raises(ConnectError):
        Provisioner('unix', str(tmp_path / 'absent.sock')).dial()


def test_empty_host_listens_on_ipv4():
    with Provisioner('tcp', ':0').listen() as listener:
        port = listener.getsockname()[1]
        with socket.create_connection(('127.0.0.1', port)) as conn:
            peer, _ = listener.accept()
            with peer:
                conn.sendall(b'v4')
                assert peer.recv(2) == b'v4'


def has_ipv6_loopback() -> bool:
    if not socket.has_dualstack_ipv6():
        return False
    try:
        with socket.socket(socket.AF_INET6, socket.SOCK_STREAM) as s:
            s.bind(('::1', 0))
    except OSError:
        return False
    return True


@pytest.mark.skipif(not has_ipv6_loopback(), reason="no IPv6 loopback")
def test_empty_host_listens_on_ipv6_too():
    with Provisioner('tcp', ':0').listen() as listener:
        assert listener.family == socket.AF_INET6
        port = listener.getsockname()[1]
        with socket.create_connection(('::1', port)) as conn:
            peer, _ = listener.accept()
            with peer:
                conn.sendall(b'v6')
                assert peer.recv(2) == b'v6'
