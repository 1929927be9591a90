""" UDP transport for DGR. A master owns a :class:`Sender`, a slave owns a
    :class:`Receiver`. Neither retries anything: DGR is fire-and-forget, and
    a socket-level failure here means the local environment is broken, not
    that the network is having a bad day. Such failures are raised as
    :class:`TransportError` subclasses.
"""

import logging
import socket

from . import protocol


logger = logging.getLogger(__name__)

try:
    timeouts = (TimeoutError, socket.timeout)
except AttributeError:
    # socket.timeout was deprecated in 3.10, in favor of TimeoutError.
    timeouts = (TimeoutError,)

# Large enough for any UDP datagram.

receive_size = 65536


class TransportError(Exception):
    """Base class for all transport-layer errors."""


class TransportPortError(TransportError):
    """A socket could not be created, configured, or bound."""


class TransportSendError(TransportError):
    """A datagram could not be sent, or was only partially sent."""


class TransportReceiveError(TransportError):
    """Reading from a bound socket failed."""



def resolve(host, port):
    """ Resolve *host* and *port* to a (family, sockaddr) tuple suitable for
        :meth:`socket.socket.sendto`. The first address returned by the
        resolver is used.
    """

    try:
        found = socket.getaddrinfo(host, port, socket.AF_UNSPEC, socket.SOCK_DGRAM)
    except socket.gaierror as e:
        raise TransportPortError('cannot resolve %s port %d: %s' % (host, port, e))

    if len(found) == 0:
        raise TransportPortError('cannot resolve %s port %d' % (host, port))

    family, type, proto, canonical, sockaddr = found[0]
    return family, sockaddr



class Sender:
    """ Send datagrams to a fixed list of *destinations*, each a
        ``(host, port)`` tuple. One socket is opened per address family;
        broadcast is enabled on IPv4 sockets so that a destination may be a
        subnet broadcast address.
    """

    def __init__(self, destinations):

        self.destinations = tuple(destinations)
        self.sockets = dict()
        self.targets = list()

        try:
            for host, port in self.destinations:
                family, sockaddr = resolve(host, port)

                try:
                    sock = self.sockets[family]
                except KeyError:
                    sock = self._socket(family)
                    self.sockets[family] = sock

                logger.info("DGR Master: Preparing to send packets to %s port %d.", host, port)
                self.targets.append((sock, sockaddr))
        except BaseException:
            self.close()
            raise


    def _socket(self, family):

        try:
            sock = socket.socket(family, socket.SOCK_DGRAM)
        except OSError as e:
            raise TransportPortError('socket(): ' + str(e))

        if family == socket.AF_INET:
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            except OSError as e:
                sock.close()
                raise TransportPortError('cannot enable broadcast: ' + str(e))

        return sock


    def close(self):
        for sock in self.sockets.values():
            sock.close()

        self.sockets = dict()
        self.targets = list()


    @property
    def is_open(self):
        return len(self.targets) > 0


    def send(self, datagram):
        """ Send *datagram* once to every destination, in configured order.
        """

        size = len(datagram)

        if size > protocol.safe_size:
            logger.debug("DGR Master: %d byte datagram exceeds %d bytes, relying on IP fragmentation.", size, protocol.safe_size)

        for sock, sockaddr in self.targets:
            try:
                sent = sock.sendto(datagram, sockaddr)
            except OSError as e:
                logger.error("DGR Master: sendto %s: %s", sockaddr, e)
                raise TransportSendError('sendto %s: %s' % (sockaddr, e))

            if sent != size:
                logger.error("DGR Master: sent %d of %d bytes to %s.", sent, size, sockaddr)
                raise TransportSendError('sent %d of %d bytes to %s' % (sent, size, sockaddr))


# end of class Sender



class Receiver:
    """ Receive datagrams on UDP *port*, bound on all interfaces unless a
        specific *host* is given. A *port* of zero lets the operating system
        choose; the chosen port is available as :attr:`port` afterwards.
    """

    def __init__(self, port, host=''):

        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as e:
            raise TransportPortError('socket(): ' + str(e))

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, int(port)))
        except OSError as e:
            sock.close()
            raise TransportPortError('cannot bind UDP port %s: %s' % (port, e))

        self.socket = sock
        self.host = host
        self.port = sock.getsockname()[1]

        logger.info("DGR Slave: Preparing to receive packets on port %d.", self.port)


    def close(self):
        if self.socket is not None:
            self.socket.close()
            self.socket = None


    @property
    def is_open(self):
        return self.socket is not None


    def receive(self, wait=0):
        """ Return a list of every datagram waiting on the socket, oldest
            first. If nothing is waiting, block for at most *wait* seconds
            for the first datagram to arrive; a *wait* of zero never blocks.
            An empty list means nothing arrived.
        """

        sock = self.socket
        received = list()

        if wait > 0:
            sock.settimeout(wait)
        else:
            sock.settimeout(0)

        while True:
            try:
                data, address = sock.recvfrom(receive_size)
            except timeouts:
                break
            except BlockingIOError:
                break
            except OSError as e:
                logger.error("DGR Slave: recvfrom: %s", e)
                raise TransportReceiveError('recvfrom: ' + str(e))

            received.append(data)

            # Something arrived. Drain whatever else is already queued
            # without waiting any further.
            sock.settimeout(0)

        return received


# end of class Receiver


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
