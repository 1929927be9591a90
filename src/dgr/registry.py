""" The variable registry: a process-local table mapping a name to a
    caller-owned buffer. The registry never allocates storage for a value
    and never copies a value on its own initiative; it only knows where the
    bytes live, so that the synchronizer can read them (master) or write
    them (slave) at the right moment in the frame.
"""

import numpy

from .config import ConfigurationError


# The name length is a 16-bit field on the wire.

maximum_name_length = 0xffff


class Record:
    """ A single registered variable. *view* is a flat, byte-oriented
        :class:`memoryview` of the first *size* bytes of the caller's
        *buffer*; reads and writes go through the view so that the caller's
        object sees every change immediately.
    """

    __slots__ = ('name', 'encoded', 'buffer', 'view', 'size')

    def __init__(self, name, encoded, buffer, view, size):
        self.name = name
        self.encoded = encoded
        self.buffer = buffer
        self.view = view
        self.size = size


    def __repr__(self):
        return 'registry.Record(%r, %d bytes, %s)' % (self.name, self.size, type(self.buffer).__name__)


    def read(self):
        """ Return a copy of the current contents of the buffer.
        """

        return self.view.tobytes()


    def write(self, value):
        """ Overwrite the buffer with *value*, which must be exactly
            :attr:`size` bytes long.
        """

        self.view[:] = value


# end of class Record



class Registry:
    """ The :class:`Registry` is a dictionary-like container of
        :class:`Record` instances keyed by variable name. Iteration follows
        registration order, which is also the order values appear in an
        outbound frame.

        If *writable* is True every registered buffer must accept writes;
        this is the case for a slave, which copies values received from the
        master into the buffers.
    """

    def __init__(self, writable=False):
        self.writable = writable
        self._records = dict()


    def __contains__(self, name):
        return name in self._records


    def __getitem__(self, name):
        return self._records[name]


    def __iter__(self):
        return iter(self._records.values())


    def __len__(self):
        return len(self._records)


    def __repr__(self):
        return 'registry.Registry: ' + repr(list(self._records.values()))


    def get(self, name, default=None):
        return self._records.get(name, default)


    def names(self):
        return self._records.keys()


    def declare(self, name, buffer, size=None):
        """ Record or refresh the registration of *name*. Calling this
            repeatedly with the same name is expected, typically once per
            frame, and the most recent *buffer* always wins. The *size* in
            bytes defaults to the full size of *buffer*; it must not change
            once a name is registered.

            Returns the :class:`Record` for *name*.
        """

        existing = self._records.get(name)

        if existing is not None and existing.buffer is buffer:
            # The common case, the same buffer every frame. Skip rebuilding
            # the view.
            if size is not None and size != existing.size:
                raise ConfigurationError(mismatch(name, existing.size, size))
            return existing

        if existing is None:
            encoded = encode_name(name)
        else:
            encoded = existing.encoded

        view, size = byte_view(buffer, size, self.writable)

        if existing is not None and existing.size != size:
            raise ConfigurationError(mismatch(name, existing.size, size))

        record = Record(name, encoded, buffer, view, size)
        self._records[name] = record
        return record


    def describe(self):
        """ Return a list of (index, size, buffer type, name) tuples, one for
            each registered variable, in registration order.
        """

        described = list()

        for index, record in enumerate(self._records.values()):
            described.append((index, record.size, type(record.buffer).__name__, record.name))

        return described


# end of class Registry



def mismatch(name, old, new):
    return "variable '%s' was registered with %d bytes, now %d bytes; master and slave code must agree" % (name, old, new)



def encode_name(name):
    """ Return the on-the-wire encoding of the variable *name*.
    """

    if isinstance(name, str):
        pass
    else:
        raise TypeError('variable names must be strings, not ' + type(name).__name__)

    if name == '':
        raise ValueError('variable names cannot be empty')

    encoded = name.encode('utf-8')

    if len(encoded) > maximum_name_length:
        raise ValueError('variable name too long: %d bytes' % (len(encoded)))

    return encoded



def byte_view(buffer, size=None, writable=False):
    """ Return a (view, size) tuple, where *view* is a one-dimensional
        unsigned byte :class:`memoryview` covering the first *size* bytes of
        *buffer*. The buffer must be C-contiguous, since its bytes are
        copied in and out as one block.

        The flat view is built with :func:`numpy.frombuffer` rather than
        :meth:`memoryview.cast`; the latter refuses the explicit-endian
        formats exported by ctypes objects, which are a common way to
        register a scalar.
    """

    try:
        described = memoryview(buffer)
    except TypeError:
        raise TypeError('DGR buffers must support the buffer protocol, not ' + type(buffer).__name__)

    if described.c_contiguous == False:
        raise ValueError('DGR buffers must be C-contiguous')

    if writable == True and described.readonly == True:
        raise TypeError('a DGR slave needs a writable buffer, not ' + type(buffer).__name__)

    available = described.nbytes
    described.release()

    if available == 0:
        raise ValueError('DGR buffers cannot be empty')

    flat = numpy.frombuffer(buffer, dtype=numpy.uint8)
    view = memoryview(flat)

    if size is None:
        size = available
    else:
        size = int(size)

        if size < 0:
            raise ValueError('variable size cannot be negative')

        if size > available:
            raise ValueError('variable size %d exceeds the %d byte buffer' % (size, available))

    if size != available:
        view = view[:size]

    return view, size


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
