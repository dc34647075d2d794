# jsoncomms/__init__.py

"""
jsoncomms: one strict contract for reading JSON request bodies and writing
JSON responses, shared by every handler of a Starlette/FastAPI service.

Modules:
- `config`     Settings (size limits, unknown field policy)
- `tools`      JSONTools with read_json / write_json / error_json
- `decoder`    the body decoding pipeline and its error classification
- `exceptions` the RequestDecodeError taxonomy
- `schemas`    the response envelope and the broker payloads
- `main`       a reference FastAPI service using all of the above

Import from the submodules directly, e.g. `from jsoncomms.tools import JSONTools`.
"""
