import pytest
import socket

import dgr


environment = ('DGR_MODE', 'DGR_MASTER_DEST', 'DGR_SLAVE_LISTENPORT',
               'DGR_SLAVE_WAIT', 'DGR_SLAVE_STALE', 'DGR_SLAVE_EXIT')


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    """ Keep the developer's own DGR settings out of the tests. The settings
        directory points at an empty temporary directory.
    """

    monkeypatch.setenv('DGR_HOME', str(tmp_path))

    for variable in environment:
        monkeypatch.delenv(variable, raising=False)

    yield tmp_path


@pytest.fixture
def pair():
    """ A connected (master, slave) pair on the loopback interface. The
        slave waits up to half a second in update(), which returns as soon
        as a datagram arrives.
    """

    slave = dgr.init(mode='slave', listen=0, wait=0.5)
    master = dgr.init(mode='master', dest=[('127.0.0.1', slave.port)])

    yield master, slave

    master.close()
    slave.close()


@pytest.fixture
def injector():
    """ A bare UDP socket for sending hand-crafted datagrams.
    """

    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    yield sock
    sock.close()


@pytest.fixture
def listeners():
    """ Factory for bound UDP sockets on the loopback interface, standing
        in for relay destinations.
    """

    opened = list()

    def listener():
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.bind(('127.0.0.1', 0))
        sock.settimeout(2)
        opened.append(sock)
        return sock

    yield listener

    for sock in opened:
        sock.close()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
