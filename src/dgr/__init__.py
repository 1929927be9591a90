""" Python implementation of DGR, Data Group Replication. A master render
    process shares named variables with slave render processes once per
    frame over UDP, so that every process in a render cluster draws the
    same frame. The forwarding program used when the master cannot reach its
    slaves directly lives in :mod:`dgr.relay`, which is imported on its own.
"""

__version__ = '1.0.0'

# Utility components.

from . import json
from . import log

# Submodules used by multiple other components.

from . import config
from . import protocol
from . import registry
from . import transport

# Primary public-facing interfaces.

from . import context
init = context.init

from .context import Context
from .config import ConfigurationError, MASTER, SLAVE, STANDALONE
from .protocol import ProtocolError
from .transport import TransportError

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
