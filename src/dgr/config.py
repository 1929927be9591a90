""" Resolution of DGR settings. A value for any given setting can come from
    four places, checked in order: an explicit keyword argument passed to
    :func:`dgr.init`, an environment variable, the ``settings.json`` file in
    the configuration :func:`directory`, and finally a built-in default.
"""

import logging
import os

from . import json


logger = logging.getLogger(__name__)

MASTER = 'master'
SLAVE = 'slave'
STANDALONE = 'standalone'

valid_modes = set((MASTER, SLAVE))

truths = set(('true', 't', 'yes', 'y', 'on', '1'))
untruths = set(('false', 'f', 'no', 'n', 'off', '0'))


# Setting name, environment variable, default value. The setting names
# match the historical settings.ini keys so existing cluster configuration
# can be carried over by hand.

settings = (
    ('dgr.mode',             'DGR_MODE',             None),
    ('dgr.master.dest',      'DGR_MASTER_DEST',      None),
    ('dgr.slave.listenport', 'DGR_SLAVE_LISTENPORT', None),
    ('dgr.slave.wait',       'DGR_SLAVE_WAIT',       0.0),
    ('dgr.slave.stale',      'DGR_SLAVE_STALE',      15.0),
    ('dgr.slave.exit',       'DGR_SLAVE_EXIT',       False),
)

# Keyword arguments accepted by :func:`dgr.init`, mapped to setting names.

keywords = {
    'mode': 'dgr.mode',
    'dest': 'dgr.master.dest',
    'listen': 'dgr.slave.listenport',
    'wait': 'dgr.slave.wait',
    'stale': 'dgr.slave.stale',
    'exit_on_shutdown': 'dgr.slave.exit',
}


class ConfigurationError(ValueError):
    """ The local configuration is unusable, or cooperating processes
        disagree about the layout of a shared variable. Neither can be
        worked around at runtime.
    """
    pass



class Configuration:
    """ A convenience class to represent resolved DGR settings. To first
        order an instance acts like a read-only dictionary keyed by setting
        name (``dgr.mode``, ``dgr.master.dest``, ...); the interpreted values
        are available as attributes: :attr:`mode`, :attr:`destinations`,
        :attr:`listen`, :attr:`wait`, :attr:`stale`, and
        :attr:`exit_on_shutdown`.

        *overrides* is a dictionary of explicit values keyed by setting name;
        a value of None in *overrides* means "not specified". *environ*
        defaults to :data:`os.environ`, and *filename* to the
        ``settings.json`` file in :func:`directory`.
    """

    def __init__(self, overrides=None, environ=None, filename=None):

        if overrides is None:
            overrides = dict()

        if environ is None:
            environ = os.environ

        if filename is None:
            filename = os.path.join(directory(environ), 'settings.json')

        self.filename = filename
        self._raw = dict()
        self._source = dict()

        from_file = load(filename)

        for name, variable, default in settings:
            value = overrides.get(name)
            if value is not None:
                self._raw[name] = value
                self._source[name] = 'argument'
                continue

            value = environ.get(variable)
            if value is not None and value != '':
                self._raw[name] = value
                self._source[name] = variable
                continue

            value = from_file.get(name)
            if value is not None and value != '':
                self._raw[name] = value
                self._source[name] = filename
                continue

            self._raw[name] = default
            self._source[name] = 'default'

        self.mode = self._interpret_mode()

        self.destinations = ()
        self.listen = None

        if self.mode == MASTER:
            self.destinations = parse_destinations(self._raw['dgr.master.dest'])
        elif self.mode == SLAVE:
            listen = self._raw['dgr.slave.listenport']
            if listen is None or listen == '':
                raise ConfigurationError('dgr.slave.listenport must be set for a DGR slave')
            self.listen = parse_port(listen, allow_zero=True)

        self.wait = self._interpret_seconds('dgr.slave.wait')
        self.stale = self._interpret_seconds('dgr.slave.stale')
        self.exit_on_shutdown = self._interpret_boolean('dgr.slave.exit')


    def __contains__(self, name):
        return name in self._raw


    def __getitem__(self, name):
        try:
            return self._raw[name]
        except KeyError:
            raise KeyError('unknown DGR setting: ' + str(name))


    def __len__(self):
        return len(self._raw)


    def __repr__(self):
        return 'config.Configuration: ' + repr(self._raw)


    def keys(self):
        return self._raw.keys()


    def source(self, name):
        """ Return a short description of where the value for the setting
            *name* came from: 'argument', the environment variable name, the
            settings filename, or 'default'.
        """

        return self._source[name]


    def _interpret_mode(self):

        mode = self._raw['dgr.mode']

        if mode is None:
            return STANDALONE

        mode = str(mode).strip().lower()

        if mode == '' or mode == STANDALONE:
            return STANDALONE

        if mode in valid_modes:
            return mode

        raise ConfigurationError("dgr.mode must be 'master' or 'slave', not " + repr(mode))


    def _interpret_seconds(self, name):

        value = self._raw[name]

        try:
            value = float(value)
        except (TypeError, ValueError):
            raise ConfigurationError('%s must be a number of seconds, not %r' % (name, value))

        if value < 0:
            raise ConfigurationError('%s cannot be negative: %r' % (name, value))

        return value


    def _interpret_boolean(self, name):

        value = self._raw[name]

        if value is True or value is False:
            return value

        lowered = str(value).strip().lower()

        if lowered in truths:
            return True
        if lowered in untruths:
            return False

        raise ConfigurationError('%s must be a boolean, not %r' % (name, value))


# end of class Configuration



def directory(environ=None):
    """ Return the directory where DGR looks for its ``settings.json``
        file. This defaults to ``$HOME/.dgr``, but can be overridden by
        setting the ``DGR_HOME`` environment variable; *environ* defaults to
        :data:`os.environ`. Unlike some other configuration directories,
        this one is never created on demand; DGR only reads from it.
    """

    if environ is None:
        environ = os.environ

    try:
        found = environ['DGR_HOME']
    except KeyError:
        pass
    else:
        return found

    try:
        home = environ['HOME']
    except KeyError:
        home = os.path.expanduser('~')

    return os.path.join(home, '.dgr')



def load(filename):
    """ Load the flat dictionary of settings stored in *filename*. A missing
        file is not an error, it just means there are no settings to load.
    """

    try:
        loaded = json.load(filename)
    except FileNotFoundError:
        return dict()
    except OSError as e:
        raise ConfigurationError('cannot read DGR settings %s: %s' % (filename, e))
    except (json.DecodeError, ValueError) as e:
        raise ConfigurationError('malformed DGR settings %s: %s' % (filename, e))

    if isinstance(loaded, dict):
        pass
    else:
        raise ConfigurationError('DGR settings must be a JSON object: ' + filename)

    logger.debug("Using DGR settings file at: %s", filename)
    return loaded



def parse_port(port, allow_zero=False):
    """ Interpret *port* as a UDP port number. Zero asks the operating
        system to pick a free port, which only makes sense for a socket
        that is about to be bound; *allow_zero* enables that case.
    """

    try:
        number = int(str(port).strip())
    except ValueError:
        raise ConfigurationError('invalid UDP port: ' + repr(port))

    if number == 0 and allow_zero == True:
        return number

    if number < 1 or number > 65535:
        raise ConfigurationError('UDP port out of range: ' + repr(port))

    return number



def parse_destinations(dest):
    """ Interpret the ``dgr.master.dest`` setting, a whitespace-separated
        sequence of ``host port`` pairs, and return a tuple of
        ``(host, port)`` tuples. A sequence of pairs is also accepted, which
        is the natural form when the destinations are passed directly to
        :func:`dgr.init`.
    """

    if dest is None:
        raise ConfigurationError('dgr.master.dest must be set for a DGR master')

    if isinstance(dest, str):
        tokens = dest.split()

        if len(tokens) == 0:
            raise ConfigurationError('dgr.master.dest must be set for a DGR master')

        if len(tokens) % 2 == 1:
            raise ConfigurationError('dgr.master.dest must have an even number of tokens: host1 port1 host2 port2 ...')

        pairs = list()
        for index in range(0, len(tokens), 2):
            pairs.append((tokens[index], tokens[index + 1]))
    else:
        pairs = list(dest)

        if len(pairs) == 0:
            raise ConfigurationError('dgr.master.dest must be set for a DGR master')

    destinations = list()

    for pair in pairs:
        try:
            host, port = pair
        except (TypeError, ValueError):
            raise ConfigurationError('destination must be a (host, port) pair: ' + repr(pair))

        host = str(host)
        port = parse_port(port)
        destinations.append((host, port))

    return tuple(destinations)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
