"""HTTP client module for specreg.

Provides :class:`ApiClient`, which invokes registry operations by key over
:mod:`httpx` with bearer auth, retry with exponential backoff and typed
error mapping, and :class:`ResourceClient`, which picks the operation from a
resource kind.

Example::

    from specreg.client import ApiClient

    with ApiClient(registry, config) as api:
        api.invoke("listPets", {"limit": 10})
"""

from specreg.client.client import (
    ApiClient,
    ParamBuckets,
    PreparedRequest,
    categorize_params,
    extract_response_data,
    interpolate_path,
)
from specreg.client.resources import ResourceClient

__all__ = [
    "ApiClient",
    "ParamBuckets",
    "PreparedRequest",
    "ResourceClient",
    "categorize_params",
    "extract_response_data",
    "interpolate_path",
]
