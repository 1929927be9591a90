""" The DGR relay listens for UDP datagrams on one port and forwards each
    one, byte for byte, to one or more ports on another host. It is used
    when the master cannot reach its slaves directly, for example when they
    sit on a different subnet or the network does not deliver broadcasts.

    The relay exits on its own, successfully, when the master goes quiet:
    after :attr:`Relay.first_timeout` seconds if no datagram ever arrived,
    after :attr:`Relay.idle_timeout` seconds of silence once traffic has
    been flowing, or right after forwarding the master's shutdown sentinel.
    Any socket error is fatal. The relay is a cheap, restartable shim; it
    does not retry.

    Run it as ``dgr-relay port-in ipaddr-out port-out [port2-out ...]`` or
    ``python -m dgr.relay ...``.
"""

import argparse
import logging
import socket
import sys
import threading
import time

from . import config
from . import log
from . import protocol
from . import transport


logger = logging.getLogger(__name__)

WAITING = 'WAITING_FIRST_PACKET'
ACTIVE = 'ACTIVE'
TERMINATED = 'TERMINATED'

default_first_timeout = 15.0
default_idle_timeout = 5.0
default_interval = 0.1

success = 0
failure = 1


class Relay:
    """ Forward datagrams arriving on *port_in* to each port in *ports_out*
        at *host_out*, in the order the ports are listed. Sockets are opened
        and bound here, so a :class:`dgr.transport.TransportError` from the
        constructor means the relay cannot run at all.

        The forwarding itself starts with :func:`run`, which blocks until the
        relay terminates and returns the exit status.

        :ivar state: one of :data:`WAITING`, :data:`ACTIVE`, :data:`TERMINATED`.
        :ivar status: the exit status once terminated, otherwise None.
        :ivar forwarded: the number of datagrams forwarded so far.
        :ivar port: the bound input port; useful when *port_in* was zero.
    """

    def __init__(self, port_in, host_out, ports_out,
                 first_timeout=default_first_timeout,
                 idle_timeout=default_idle_timeout,
                 interval=default_interval, host_in=''):

        self.host_out = host_out
        self.ports_out = tuple(int(port) for port in ports_out)
        self.first_timeout = float(first_timeout)
        self.idle_timeout = float(idle_timeout)
        self.interval = float(interval)

        if len(self.ports_out) == 0:
            raise ValueError('the relay needs at least one output port')

        self.state = WAITING
        self.status = None
        self.reason = None
        self.forwarded = 0
        self.started = None
        self.last_received = None

        self.socket = None
        self.routes = list()
        self.thread = None
        self.terminated = threading.Event()
        self._state_lock = threading.Lock()

        try:
            self._open(port_in, host_in)
        except BaseException:
            self.close()
            raise


    def _open(self, port_in, host_in):

        for port in self.ports_out:
            logger.info("DGR Relay: Preparing to send data to %s on port %d", self.host_out, port)

            family, sockaddr = transport.resolve(self.host_out, port)

            try:
                sock = socket.socket(family, socket.SOCK_DGRAM)
            except OSError as e:
                raise transport.TransportPortError('socket(): ' + str(e))

            self.routes.append((sock, sockaddr))

            if family == socket.AF_INET:
                try:
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
                except OSError as e:
                    raise transport.TransportPortError('cannot enable broadcast: ' + str(e))

        logger.info("DGR Relay: Preparing to receive data on port %s", port_in)

        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as e:
            raise transport.TransportPortError('socket(): ' + str(e))

        self.socket = sock

        try:
            sock.bind((host_in, int(port_in)))
        except OSError as e:
            raise transport.TransportPortError('cannot bind UDP port %s: %s' % (port_in, e))

        # The receiver wakes up at the same cadence as the liveness check,
        # so that it notices termination without anyone closing the socket
        # out from under it.

        sock.settimeout(self.interval)
        self.port = sock.getsockname()[1]


    def close(self):
        """ Close every socket. Only call this once the receiver thread has
            exited; :func:`run` takes care of that.
        """

        if self.socket is not None:
            self.socket.close()
            self.socket = None

        for sock, sockaddr in self.routes:
            sock.close()

        self.routes = list()


    def run(self):
        """ Forward datagrams until the relay terminates, then close the
            sockets and return the exit status: :data:`success` for a
            timeout or an orderly shutdown, :data:`failure` for a socket
            error.
        """

        self.started = time.monotonic()
        self.thread = threading.Thread(target=self.receive_loop)
        self.thread.daemon = True
        self.thread.start()

        logger.info("DGR Relay: Initialization complete, running...")

        try:
            while self.terminated.wait(self.interval) == False:
                self.check()
        finally:
            if self.status is None:
                # Interrupted from outside, most likely a KeyboardInterrupt.
                self.terminate(failure, 'interrupted')

            self.thread.join()
            self.close()

        return self.status


    def check(self, now=None):
        """ Enforce the two idle timeouts. This is the liveness half of the
            relay; it only reads what the receiver records.
        """

        if now is None:
            now = time.monotonic()

        last = self.last_received

        if last is None:
            if now - self.started > self.first_timeout:
                reason = "we never received any packets within %.1f seconds" % (self.first_timeout)
                self.terminate(success, reason)
        elif now - last > self.idle_timeout:
            reason = "we haven't received a packet within %.1f seconds (and we have received packets previously)" % (self.idle_timeout)
            self.terminate(success, reason)


    def terminate(self, status, reason):
        """ Move to the terminal state with exit *status*. Only the first
            call has any effect.
        """

        with self._state_lock:
            if self.state == TERMINATED:
                return False

            self.state = TERMINATED
            self.status = status
            self.reason = reason

        if status == success:
            logger.info("DGR Relay: Exiting because %s.", reason)
        else:
            logger.error("DGR Relay: Exiting because %s.", reason)

        self.terminated.set()
        return True


    def receive_loop(self):
        """ Receive datagrams and forward them, until the relay terminates.
            Runs in its own thread.
        """

        sock = self.socket

        while self.state != TERMINATED:
            try:
                data, address = sock.recvfrom(transport.receive_size)
            except transport.timeouts:
                continue
            except OSError as e:
                self.terminate(failure, 'recvfrom: ' + str(e))
                break

            self.last_received = time.monotonic()

            if self.state == WAITING:
                with self._state_lock:
                    if self.state == WAITING:
                        self.state = ACTIVE
                logger.debug("DGR Relay: first packet received from %s.", address[0])

            if self.forward(data) == False:
                break

            if protocol.is_shutdown(data):
                self.terminate(success, 'the master indicated that DGR communication is complete')
                break


    def forward(self, datagram):
        """ Send *datagram* to every destination, in order. Returns False if
            a send failed, in which case the relay has terminated.
        """

        for sock, sockaddr in self.routes:
            try:
                sock.sendto(datagram, sockaddr)
            except OSError as e:
                self.terminate(failure, 'sendto %s: %s' % (sockaddr, e))
                return False

        self.forwarded += 1
        return True


# end of class Relay



class ArgumentParser(argparse.ArgumentParser):
    """ An :class:`argparse.ArgumentParser` that exits with status 1, the
        relay's only failure status, instead of 2 on a usage error.
    """

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(failure, '%s: error: %s\n' % (self.prog, message))


# end of class ArgumentParser



def port_argument(value):
    try:
        return config.parse_port(value, allow_zero=True)
    except config.ConfigurationError as e:
        raise argparse.ArgumentTypeError(str(e))


def seconds_argument(value):
    try:
        value = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError('not a number of seconds: ' + repr(value))

    if value <= 0:
        raise argparse.ArgumentTypeError('timeout must be positive: ' + repr(value))

    return value



def build_parser():

    description = 'Listen on a specific port for UDP packets. When one is received, send it to the specified IP address. If more than one output port is specified, send the packet to each of those ports at that IP address.'

    parser = ArgumentParser(prog='dgr-relay', description=description)

    parser.add_argument('port_in', metavar='port-in', type=port_argument,
                        help='UDP port to receive packets on')
    parser.add_argument('ip_out', metavar='ipaddr-out',
                        help='address to forward packets to; may be a broadcast address')
    parser.add_argument('ports_out', metavar='port-out', type=port_argument, nargs='+',
                        help='one or more UDP ports at ipaddr-out')
    parser.add_argument('--first-timeout', type=seconds_argument, default=default_first_timeout,
                        help='exit if no packet arrives within this many seconds (default: %(default)s)')
    parser.add_argument('--idle-timeout', type=seconds_argument, default=default_idle_timeout,
                        help='exit if packets stop arriving for this many seconds (default: %(default)s)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='log at debug level')
    parser.add_argument('--log-file', default=None,
                        help='also log to this file')

    return parser



def main(argv=None):
    """ Command-line entry point. Returns the exit status.
    """

    arguments = build_parser().parse_args(argv)
    log.setup_logging(verbose=arguments.verbose, log_file=arguments.log_file)

    try:
        relay = Relay(arguments.port_in, arguments.ip_out, arguments.ports_out,
                      first_timeout=arguments.first_timeout,
                      idle_timeout=arguments.idle_timeout)
    except transport.TransportError as e:
        logger.error("DGR Relay: %s", e)
        return failure

    return relay.run()



if __name__ == '__main__':
    sys.exit(main())


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
