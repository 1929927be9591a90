import os
import pytest

import dgr


def configuration(overrides=None, environ=None, settings=None, tmp_path=None):
    if environ is None:
        environ = dict()
    if tmp_path is not None:
        settings = os.path.join(str(tmp_path), 'settings.json')
    return dgr.config.Configuration(overrides, environ, settings)


def test_standalone(isolated):

    config = configuration(tmp_path=isolated)
    assert config.mode == dgr.config.STANDALONE
    assert config.destinations == ()
    assert config.listen is None
    assert config.wait == 0.0
    assert config.stale == 15.0
    assert config.exit_on_shutdown == False
    assert config.source('dgr.mode') == 'default'


def test_directory(isolated):

    assert dgr.config.directory() == str(isolated)

    context = dgr.init()
    assert context.config.filename == os.path.join(str(isolated), 'settings.json')

    # An explicit environment also decides where the settings file lives.

    other = isolated / 'other'
    other.mkdir()
    (other / 'settings.json').write_text('{"dgr.mode": "slave", "dgr.slave.listenport": 6000}')

    environ = {'DGR_HOME': str(other)}
    assert dgr.config.directory(environ) == str(other)

    config = dgr.config.Configuration(environ=environ)
    assert config.filename == os.path.join(str(other), 'settings.json')
    assert config.mode == 'slave'
    assert config.listen == 6000

    assert dgr.config.directory({'HOME': '/home/observer'}) == os.path.join('/home/observer', '.dgr')


def test_environment(isolated):

    environ = {
        'DGR_MODE': 'master',
        'DGR_MASTER_DEST': '127.0.0.1 5000 10.0.0.255 5001',
        'DGR_SLAVE_WAIT': '0.01',
        'DGR_SLAVE_EXIT': 'yes',
    }

    config = configuration(environ=environ, tmp_path=isolated)
    assert config.mode == 'master'
    assert config.destinations == (('127.0.0.1', 5000), ('10.0.0.255', 5001))
    assert config.wait == 0.01
    assert config.exit_on_shutdown == True
    assert config['dgr.master.dest'] == environ['DGR_MASTER_DEST']
    assert config.source('dgr.mode') == 'DGR_MODE'


def test_precedence(isolated):

    settings = isolated / 'settings.json'
    settings.write_text('{"dgr.mode": "slave", "dgr.slave.listenport": 6000, "dgr.slave.stale": 3}')

    config = configuration(tmp_path=isolated)
    assert config.mode == 'slave'
    assert config.listen == 6000
    assert config.stale == 3.0
    assert config.source('dgr.slave.listenport') == str(settings)

    environ = {'DGR_SLAVE_LISTENPORT': '6001'}
    config = configuration(environ=environ, tmp_path=isolated)
    assert config.listen == 6001

    overrides = {'dgr.slave.listenport': 6002, 'dgr.slave.stale': None}
    config = configuration(overrides, environ, tmp_path=isolated)
    assert config.listen == 6002
    assert config.source('dgr.slave.listenport') == 'argument'

    # None in the overrides means "not specified", not "unset".
    assert config.stale == 3.0


def test_errors(isolated):

    with pytest.raises(dgr.config.ConfigurationError):
        configuration({'dgr.mode': 'observer'}, tmp_path=isolated)

    with pytest.raises(dgr.config.ConfigurationError):
        configuration({'dgr.mode': 'master'}, tmp_path=isolated)

    with pytest.raises(dgr.config.ConfigurationError):
        configuration({'dgr.mode': 'master', 'dgr.master.dest': '127.0.0.1'}, tmp_path=isolated)

    with pytest.raises(dgr.config.ConfigurationError):
        configuration({'dgr.mode': 'master', 'dgr.master.dest': '127.0.0.1 http'}, tmp_path=isolated)

    with pytest.raises(dgr.config.ConfigurationError):
        configuration({'dgr.mode': 'master', 'dgr.master.dest': '127.0.0.1 70000'}, tmp_path=isolated)

    with pytest.raises(dgr.config.ConfigurationError):
        configuration({'dgr.mode': 'slave'}, tmp_path=isolated)

    with pytest.raises(dgr.config.ConfigurationError):
        configuration({'dgr.slave.wait': 'soon'}, tmp_path=isolated)

    with pytest.raises(dgr.config.ConfigurationError):
        configuration({'dgr.slave.stale': -1}, tmp_path=isolated)

    with pytest.raises(dgr.config.ConfigurationError):
        configuration({'dgr.slave.exit': 'maybe'}, tmp_path=isolated)

    # Configuration errors are ValueErrors.
    with pytest.raises(ValueError):
        dgr.init(mode='slave')


def test_malformed_settings(isolated):

    settings = isolated / 'settings.json'

    settings.write_text('{"dgr.mode": ')
    with pytest.raises(dgr.config.ConfigurationError):
        configuration(tmp_path=isolated)

    settings.write_text('["dgr.mode", "master"]')
    with pytest.raises(dgr.config.ConfigurationError):
        configuration(tmp_path=isolated)


def test_destinations():

    parsed = dgr.config.parse_destinations([('localhost', '5000'), ('127.0.0.1', 5001)])
    assert parsed == (('localhost', 5000), ('127.0.0.1', 5001))

    with pytest.raises(dgr.config.ConfigurationError):
        dgr.config.parse_destinations([])

    with pytest.raises(dgr.config.ConfigurationError):
        dgr.config.parse_destinations(['127.0.0.1'])

    with pytest.raises(dgr.config.ConfigurationError):
        dgr.config.parse_destinations('   ')

    assert dgr.config.parse_port('0', allow_zero=True) == 0

    with pytest.raises(dgr.config.ConfigurationError):
        dgr.config.parse_port('0')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
