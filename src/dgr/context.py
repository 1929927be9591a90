""" The :class:`Context` is the per-process handle on DGR. Render code
    creates one via :func:`dgr.init`, declares its shared variables through
    :func:`Context.declare_or_sync` every frame, and calls
    :func:`Context.update` once per frame. On the master, :func:`update`
    sends the current contents of every registered buffer; on a slave,
    :func:`update` receives the newest frame from the master and copies it
    into the registered buffers.

    A typical render loop, identical on master and slaves::

        context = dgr.init()
        angle = numpy.zeros(1, dtype=numpy.float32)

        while True:
            if context.is_master():
                angle[0] = read_input_device()

            context.declare_or_sync('angle', angle)
            context.update()
            draw(angle[0])
"""

import logging
import time
import weakref

from . import config
from . import protocol
from . import registry
from . import transport


logger = logging.getLogger(__name__)


class Context:
    """ Replication state for one process. *configuration* is a resolved
        :class:`dgr.config.Configuration`; the role it names is fixed for
        the lifetime of the context.

        :ivar mode: 'master', 'slave', or 'standalone'.
        :ivar registry: the :class:`dgr.registry.Registry` of declared variables.
        :ivar received: the number of frames applied so far (slave only).
        :ivar rejected: the number of datagrams dropped as malformed.
        :ivar last_received: :func:`time.monotonic` timestamp of the last
            applied frame, or None if nothing has arrived yet.
    """

    def __init__(self, configuration):

        self.config = configuration
        self.mode = configuration.mode
        self.wait = configuration.wait
        self.stale = configuration.stale
        self.exit_on_shutdown = configuration.exit_on_shutdown

        self.sender = None
        self.receiver = None
        self.enabled = False
        self.ended = False
        self.closed = False

        self.received = 0
        self.rejected = 0
        self.last_received = None
        self._stale_warned = False

        # Values received for names the slave has not declared yet. A
        # late declaration picks up the newest value from here.
        self.latest = dict()

        if self.mode == config.SLAVE:
            self.registry = registry.Registry(writable=True)
        else:
            self.registry = registry.Registry()

        if self.mode == config.MASTER:
            self.sender = transport.Sender(configuration.destinations)
            self.enabled = True
        elif self.mode == config.SLAVE:
            self.receiver = transport.Receiver(configuration.listen)
            self.enabled = True
        else:
            logger.debug("DGR is disabled.")

        # The finalizer runs at interpreter exit, or when the context is
        # collected without being closed. It holds the sockets, not the
        # context.

        self._finalizer = weakref.finalize(self, release, self.sender, self.receiver)

        if self.enabled == True:
            logger.info("DGR enabled as %s.", self.mode)

        if self.mode == config.SLAVE:
            # Pick up anything that is already waiting for us.
            self._receive(0)


    def __enter__(self):
        return self


    def __exit__(self, *exc):
        self.close()


    def __repr__(self):
        return 'context.Context(%s, %d variables)' % (self.mode, len(self.registry))


    @property
    def port(self):
        """ The UDP port a slave is listening on, or None for a master or a
            standalone process.
        """

        if self.receiver is None:
            return None
        return self.receiver.port


    def is_master(self):
        """ Return True if this process is authoritative for the shared
            variables: either the master, or a standalone process with no
            replication configured. Calling code uses this to gate work that
            must only happen in one place, such as reading input devices.
        """

        return self.mode != config.SLAVE


    def is_enabled(self):
        """ Return True if replication is active: a master that has not
            been closed, or a slave that has not seen the master shut down.
        """

        return self.enabled


    def declare_or_sync(self, name, buffer, size=None):
        """ Declare the variable *name*, stored in the caller-owned
            *buffer*, which is *size* bytes long; the size defaults to the
            full size of the buffer. Call this every frame, on master and
            slaves alike, with the same name and size in every process.

            On the master this tells the next :func:`update` where to read
            the value from. On a slave it tells the next :func:`update` where
            to write the value, and immediately copies in the newest value
            received from the master, if there is one.

            Re-declaring *name* with a different size raises
            :class:`dgr.config.ConfigurationError`.
        """

        if self.mode == config.STANDALONE:
            return

        record = self.registry.declare(name, buffer, size)

        if self.mode == config.SLAVE:
            try:
                value = self.latest[name]
            except KeyError:
                return

            if len(value) == record.size:
                record.write(value)
            else:
                # A frame applied earlier, before this name was declared,
                # carried a different size. That frame could not have been
                # checked against this declaration.
                del self.latest[name]
                raise config.ConfigurationError(registry.mismatch(name, len(value), record.size))

    setget = declare_or_sync


    def update(self, send=True, receive=True):
        """ Send (master) or receive and apply (slave) one frame. This is a
            no-op for a standalone process, and for a slave after the master
            has shut down. The *send* and *receive* flags allow the master's
            send and a slave's receive to be placed at different points in
            the frame; set the flag that does not apply to False to skip it.
        """

        if self.enabled == False:
            return

        if self.mode == config.MASTER:
            if send == True:
                self._send()
        elif receive == True:
            self._receive(self.wait)


    def close(self):
        """ Stop replicating. A master sends the shutdown sentinel to its
            slaves, once, on a best-effort basis. Safe to call more than once;
            the same cleanup runs automatically at interpreter exit, or when
            an unclosed context is garbage collected.
        """

        if self.closed == True:
            return

        self.closed = True
        self.enabled = False

        self._finalizer()


    def print_list(self):
        """ Log the variables this context knows about, at debug level.
        """

        if self.enabled == False:
            logger.debug("DGR is disabled or not initialized correctly.")
            return

        logger.debug("Current DGR list (index, size, type, name):")

        described = self.registry.describe()

        for index, size, kind, name in described:
            logger.debug("%3d %5d %s %s", index, size, kind, name)

        if len(described) == 0:
            logger.debug("[ the list is empty ]")


    def _send(self):

        if len(self.registry) == 0:
            # No need to send an empty packet.
            return

        datagram = protocol.encode(self.registry)
        self.sender.send(datagram)


    def _receive(self, wait):

        datagrams = self.receiver.receive(wait)

        if len(datagrams) == 0:
            self._check_stale()
            return

        # Several datagrams can queue up while a slave is busy rendering;
        # only the newest valid frame matters, but a shutdown anywhere in
        # the queue ends replication.

        newest = None
        shutdown = False

        for datagram in datagrams:
            try:
                frame = protocol.decode(datagram)
                if frame.shutdown == False:
                    frame.check(self.registry)
            except protocol.ProtocolError as e:
                self.rejected += 1
                logger.warning("DGR Slave: dropping %d byte datagram: %s", len(datagram), e)
                continue

            if frame.shutdown == True:
                shutdown = True
                break

            newest = frame

        if newest is not None:
            self._apply(newest)
        elif shutdown == False:
            # Datagrams arrived, but none of them could be applied.
            self._check_stale()

        if shutdown == True:
            self._shutdown()


    def _apply(self, frame):
        """ Copy every value in *frame* into its registered buffer. The frame
            has already been checked against the registry, so no write can
            fail part way through.
        """

        for name, value in frame:
            self.latest[name] = value
            record = self.registry.get(name)

            if record is not None:
                record.write(value)

        self.received += 1
        self.last_received = time.monotonic()
        self._stale_warned = False


    def _check_stale(self):

        if self.last_received is None or self._stale_warned == True:
            return

        silent = time.monotonic() - self.last_received

        if silent >= self.stale:
            logger.warning("DGR Slave: no packets within %.1f seconds; did the master die? Reusing the last values received.", silent)
            self._stale_warned = True


    def _shutdown(self):

        logger.info("DGR Slave: the master is exiting; replication has ended.")

        self.ended = True
        self.close()

        if self.exit_on_shutdown == True:
            raise SystemExit(0)


# end of class Context



def release(sender, receiver):
    """ Close the sockets of a context. A master first tells its slaves
        that it is exiting.
    """

    if sender is not None:
        logger.debug("Informing slaves that the master is exiting.")
        try:
            sender.send(protocol.shutdown_datagram)
        except transport.TransportError as e:
            logger.warning("DGR Master: could not send shutdown notice: %s", e)

        sender.close()

    if receiver is not None:
        receiver.close()



def init(mode=None, dest=None, listen=None, wait=None, stale=None,
         exit_on_shutdown=None, settings=None, environ=None):
    """ Create a new :class:`Context`. Each argument overrides the matching
        environment variable or settings file entry; see :mod:`dgr.config`.
        *settings* names an alternate settings file and *environ* an
        alternate environment mapping.

        There is no hidden per-process instance: every call returns a new,
        independent context, and it is up to the caller to keep it.
    """

    overrides = dict()
    arguments = {
        'mode': mode,
        'dest': dest,
        'listen': listen,
        'wait': wait,
        'stale': stale,
        'exit_on_shutdown': exit_on_shutdown,
    }

    for keyword, value in arguments.items():
        overrides[config.keywords[keyword]] = value

    configuration = config.Configuration(overrides, environ, settings)
    return Context(configuration)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
