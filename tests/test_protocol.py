import pytest
import struct

import dgr


def frame(*tuples):
    """ Build a data frame by hand, independent of the encoder.
    """

    parts = list()
    for name, value in tuples:
        name = name.encode()
        parts.append(struct.pack('!H', len(name)))
        parts.append(name)
        parts.append(struct.pack('!I', len(value)))
        parts.append(value)

    return b''.join(parts)


def test_layout():

    encoded = dgr.protocol.encode_values({'angle': b'\x00\x00\xb4\x42'})
    assert encoded == b'\x00\x05angle\x00\x00\x00\x04\x00\x00\xb4\x42'


def test_decode():

    datagram = frame(('angle', b'\x01\x02\x03\x04'), ('seed', b'\x05' * 8))
    decoded = dgr.protocol.decode(datagram)

    assert isinstance(decoded, dgr.protocol.Data)
    assert decoded.shutdown == False
    assert len(decoded) == 2
    assert list(decoded) == [('angle', b'\x01\x02\x03\x04'), ('seed', b'\x05' * 8)]


def test_decode_registry_frame():

    registry = dgr.registry.Registry()
    registry.declare('first', bytearray(b'abc'))
    registry.declare('second', bytearray(b'\xff' * 10))
    registry.declare('zero-prefix', bytearray(b'unused'), size=0)

    decoded = dgr.protocol.decode(dgr.protocol.encode(registry))

    assert decoded.values == {'first': b'abc', 'second': b'\xff' * 10, 'zero-prefix': b''}


def test_shutdown():

    decoded = dgr.protocol.decode(dgr.protocol.shutdown_datagram)
    assert isinstance(decoded, dgr.protocol.Shutdown)
    assert decoded.shutdown == True

    assert len(dgr.protocol.shutdown_datagram) == 15

    # The trailing NUL is optional.
    decoded = dgr.protocol.decode(b'!!!dgr_died!!!')
    assert isinstance(decoded, dgr.protocol.Shutdown)

    assert dgr.protocol.is_shutdown(b'!!!dgr_died!!!\x00')
    assert dgr.protocol.is_shutdown(b'!!!dgr_died!!!')
    assert not dgr.protocol.is_shutdown(b'!!!dgr_died!!!\x00\x00')
    assert not dgr.protocol.is_shutdown(b'!!!dgr_died!!')
    assert not dgr.protocol.is_shutdown(frame(('!!!dgr_died!!!', b'\x01\x00\x00\x00')))


def test_sentinel_name_is_data():
    """ A variable that happens to use the sentinel text as its name is an
        ordinary variable.
    """

    datagram = frame(('!!!dgr_died!!!', b'\x01\x00\x00\x00'))
    decoded = dgr.protocol.decode(datagram)

    assert isinstance(decoded, dgr.protocol.Data)
    assert decoded.values['!!!dgr_died!!!'] == b'\x01\x00\x00\x00'


def test_truncated():

    datagram = frame(('angle', b'\x01\x02\x03\x04'), ('seed', b'\x05' * 8))

    for length in (1, 3, 7, 10, len(datagram) - 1):
        with pytest.raises(dgr.protocol.ProtocolError):
            dgr.protocol.decode(datagram[:length])

    with pytest.raises(dgr.ProtocolError):
        dgr.protocol.decode(datagram + b'\x00')


def test_malformed():

    with pytest.raises(dgr.protocol.ProtocolError):
        dgr.protocol.decode(b'')

    with pytest.raises(dgr.protocol.ProtocolError):
        dgr.protocol.decode(frame(('twice', b'a'), ('twice', b'b')))

    with pytest.raises(dgr.protocol.ProtocolError):
        dgr.protocol.decode(b'\x00\x02\xff\xfe\x00\x00\x00\x00')

    with pytest.raises(dgr.protocol.ProtocolError):
        dgr.protocol.decode(b'\x00\x00\x00\x00\x00\x00')

    # ProtocolError is a ValueError, so generic handlers catch it too.
    assert issubclass(dgr.protocol.ProtocolError, ValueError)


def test_check():

    registry = dgr.registry.Registry(writable=True)
    registry.declare('angle', bytearray(4))

    good = dgr.protocol.decode(frame(('angle', b'\x00' * 4), ('unknown', b'\x00' * 3)))
    good.check(registry)

    bad = dgr.protocol.decode(frame(('angle', b'\x00' * 8)))
    with pytest.raises(dgr.protocol.ProtocolError):
        bad.check(registry)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
