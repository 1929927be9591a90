import pytest
import socket
import time

import dgr


def test_send_and_receive():

    receiver = dgr.transport.Receiver(0, '127.0.0.1')
    sender = dgr.transport.Sender([('127.0.0.1', receiver.port)])

    assert receiver.is_open == True
    assert sender.is_open == True

    assert receiver.receive() == []

    sender.send(b'first')
    sender.send(b'second')

    # Everything queued comes back at once, oldest first.
    assert receiver.receive(0.5) == [b'first', b'second']
    assert receiver.receive() == []

    sender.close()
    receiver.close()

    assert receiver.is_open == False
    assert sender.is_open == False


def test_bounded_wait():

    receiver = dgr.transport.Receiver(0, '127.0.0.1')

    begin = time.time()
    received = receiver.receive(0.2)
    elapsed = time.time() - begin

    assert received == []
    assert elapsed >= 0.15
    assert elapsed < 1

    receiver.close()


def test_broadcast_enabled():

    sender = dgr.transport.Sender([('127.0.0.1', 9)])

    sock = sender.sockets[socket.AF_INET]
    assert sock.getsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST) != 0

    sender.close()


def test_errors():

    with pytest.raises(dgr.transport.TransportPortError):
        dgr.transport.Sender([('no-such-host.invalid', 5000)])

    occupied = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    occupied.bind(('127.0.0.1', 0))
    port = occupied.getsockname()[1]

    with pytest.raises(dgr.transport.TransportPortError):
        dgr.transport.Receiver(port, '127.0.0.1')

    occupied.close()

    sender = dgr.transport.Sender([('127.0.0.1', 9)])

    with pytest.raises(dgr.transport.TransportSendError):
        sender.send(b'\x00' * 70000)

    sender.close()

    assert issubclass(dgr.transport.TransportSendError, dgr.TransportError)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
