"""
Inspectr capture pipeline

Instruments an ASGI application and records one Transaction per exchange:
- Request body decoding by content type
- Transparent response tapping
- Request/response metadata extraction
- Broadcast and console summary of finalized transactions
"""

from .decoders import BodyReader, ContentDecoder, ContentTypes
from .tap import ResponseTap
from .meta import parse_request_meta, parse_response_meta, parse_url
from .recorder import TransactionRecorder
from .middleware import InspectrMiddleware
from .summary import format_summary, print_summary, status_color

__all__ = [
    "BodyReader",
    "ContentDecoder",
    "ContentTypes",
    "ResponseTap",
    "parse_request_meta",
    "parse_response_meta",
    "parse_url",
    "TransactionRecorder",
    "InspectrMiddleware",
    "format_summary",
    "print_summary",
    "status_color",
]
