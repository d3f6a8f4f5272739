"""Document parser -- load, look up, and extract endpoints.

This sub-package is the syntactic half of the specreg pipeline: turning a
raw Swagger 2 / OpenAPI 3 document (JSON or YAML, local file or remote URL)
into endpoint records that the :class:`~specreg.registry.OperationRegistry`
assigns keys to.

Typical usage::

    from specreg.parser import load_document, extract_endpoints

    store = load_document("https://petstore3.swagger.io/api/v3/openapi.json")
    for ep in extract_endpoints(store):
        print(ep.method.value.upper(), ep.path)

Sub-modules:

* :mod:`~specreg.parser.loader` -- I/O layer (URL, file, stdin) plus format
  detection.
* :mod:`~specreg.parser.document` -- :class:`DocumentStore`, the normalised
  in-memory tree with ``$ref`` resolution.
* :mod:`~specreg.parser.extractor` -- one record per (path, method).
* :mod:`~specreg.parser.keys` -- operation key derivation and collision
  policy.
"""

from specreg.parser.document import DocumentStore
from specreg.parser.extractor import RawEndpoint, extract_endpoints
from specreg.parser.keys import OperationKeyResolver
from specreg.parser.loader import detect_spec_version, load_document, load_spec

__all__ = [
    "DocumentStore",
    "OperationKeyResolver",
    "RawEndpoint",
    "detect_spec_version",
    "extract_endpoints",
    "load_document",
    "load_spec",
]
