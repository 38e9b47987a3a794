"""Protocol layer: block framing, command categories, and response classification."""

from .framing import ParseState, decode_blocks, encode_request
from .commands import Category, category_for
from .parser import Response, classify_response, easy_value
