''' Wrapper module to select the most performant available library to handle
    JSON decoding. DGR only reads JSON, for its settings file.
'''

msgspec = None
orjson = None
json = None

try:
    import msgspec
except ImportError:
    pass

if msgspec is None:
    try:
        import orjson
    except ImportError:
        pass

if msgspec is None and orjson is None:
    import json


if msgspec is not None:
    loads = msgspec.json.Decoder().decode
    DecodeError = msgspec.DecodeError
elif orjson is not None:
    loads = orjson.loads
    DecodeError = orjson.JSONDecodeError
else:
    loads = json.loads
    DecodeError = json.JSONDecodeError


def load(filename):
    """ Read and decode the JSON document in *filename*. The file is read
        as bytes; all three backends accept bytes directly.
    """

    with open(filename, 'rb') as contents:
        raw = contents.read()

    return loads(raw)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
