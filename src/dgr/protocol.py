""" Encoding and decoding of DGR datagrams. A datagram is either a data
    frame or the shutdown sentinel:

    A data frame is a sequence of variable tuples, repeated until the end
    of the datagram, each laid out as::

        name length     unsigned 16-bit, big-endian
        name            UTF-8 bytes
        value length    unsigned 32-bit, big-endian
        value           raw bytes

    The shutdown sentinel is the ASCII text ``!!!dgr_died!!!`` followed by
    a single NUL byte; the NUL is optional when receiving. No data frame
    can be confused with the sentinel: a data frame starting with ``!!``
    declares an 8481 byte name, far longer than the sentinel itself.

    :func:`decode` returns a :class:`Data` or a :class:`Shutdown` instance,
    so that callers dispatch on the type of frame instead of inspecting
    the bytes.
"""

import struct


sentinel = b'!!!dgr_died!!!'
shutdown_datagram = sentinel + b'\x00'

name_header = struct.Struct('!H')
value_header = struct.Struct('!I')

# With a 1500 byte MTU, 1472 bytes is what fits in a single unfragmented
# IPv4 UDP datagram. Anything larger relies on IP fragmentation, which
# works but is more fragile on a lossy network. 65507 bytes is the largest
# payload a UDP datagram over IPv4 can carry at all.

safe_size = 1472
maximum_size = 65507


class ProtocolError(ValueError):
    """ A received datagram is malformed, or disagrees with the locally
        registered variables. The datagram is dropped in its entirety.
    """
    pass



class Frame:
    """ Base class for decoded datagrams.
    """

    shutdown = False


# end of class Frame



class Data(Frame):
    """ A data frame: one consistent snapshot of every variable the master
        knew about when the frame was assembled. *values* is a dictionary
        mapping variable names to their raw bytes, in wire order.
    """

    def __init__(self, values):
        self.values = values


    def __iter__(self):
        return iter(self.values.items())


    def __len__(self):
        return len(self.values)


    def __repr__(self):
        return 'protocol.Data(%r)' % (list(self.values.keys()),)


    def check(self, registry):
        """ Confirm that every value in this frame has the size registered
            locally for the same name in *registry*. Names not present in the
            registry are not checked. Raises :class:`ProtocolError` on the
            first disagreement.
        """

        for name, value in self.values.items():
            record = registry.get(name)

            if record is None:
                continue

            if record.size != len(value):
                error = "'%s' is %d bytes in the frame but registered locally as %d bytes"
                error = error % (name, len(value), record.size)
                raise ProtocolError(error)


# end of class Data



class Shutdown(Frame):
    """ The master has finished; no further frames will arrive.
    """

    shutdown = True

    def __repr__(self):
        return 'protocol.Shutdown()'


# end of class Shutdown



def encode(records):
    """ Serialize an iterable of :class:`dgr.registry.Record` instances as a
        data frame, reading the current contents of each buffer. Returns the
        datagram as bytes.
    """

    parts = list()

    for record in records:
        encoded = record.encoded
        parts.append(name_header.pack(len(encoded)))
        parts.append(encoded)
        parts.append(value_header.pack(record.size))
        parts.append(record.read())

    return b''.join(parts)



def encode_values(values):
    """ Serialize a dictionary or sequence of (name, bytes) pairs as a data
        frame. This is the registry-free counterpart of :func:`encode`.
    """

    try:
        values = values.items()
    except AttributeError:
        pass

    parts = list()

    for name, value in values:
        encoded = name.encode('utf-8')
        value = bytes(value)
        parts.append(name_header.pack(len(encoded)))
        parts.append(encoded)
        parts.append(value_header.pack(len(value)))
        parts.append(value)

    return b''.join(parts)



def is_shutdown(datagram):
    """ Return True if *datagram* is the shutdown sentinel.
    """

    if len(datagram) == len(sentinel):
        return datagram == sentinel

    if len(datagram) == len(shutdown_datagram):
        return datagram == shutdown_datagram

    return False



def decode(datagram):
    """ Parse a received *datagram* and return either a :class:`Shutdown`
        or a :class:`Data` instance. Parsing is strict: any datagram whose
        length does not exactly account for the tuples it declares, whose
        names are not valid UTF-8, or that repeats a name, raises
        :class:`ProtocolError`. An empty datagram is also rejected; a master
        with nothing registered does not send at all.
    """

    datagram = bytes(datagram)

    if is_shutdown(datagram):
        return Shutdown()

    total = len(datagram)

    if total == 0:
        raise ProtocolError('empty datagram')

    values = dict()
    offset = 0

    while offset < total:
        if offset + name_header.size > total:
            raise ProtocolError('truncated name length at byte %d' % (offset))

        name_length, = name_header.unpack_from(datagram, offset)
        offset += name_header.size

        if name_length == 0:
            raise ProtocolError('zero-length name at byte %d' % (offset))

        if offset + name_length > total:
            raise ProtocolError('truncated name at byte %d' % (offset))

        name = datagram[offset:offset + name_length]
        offset += name_length

        try:
            name = name.decode('utf-8')
        except UnicodeDecodeError:
            raise ProtocolError('variable name is not valid UTF-8: ' + repr(name))

        if offset + value_header.size > total:
            raise ProtocolError("truncated value length for '%s'" % (name))

        value_length, = value_header.unpack_from(datagram, offset)
        offset += value_header.size

        if offset + value_length > total:
            error = "'%s' declares %d bytes but only %d remain"
            error = error % (name, value_length, total - offset)
            raise ProtocolError(error)

        if name in values:
            raise ProtocolError("'%s' appears twice in one frame" % (name))

        values[name] = datagram[offset:offset + value_length]
        offset += value_length

    return Data(values)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
