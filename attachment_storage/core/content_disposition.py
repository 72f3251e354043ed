"""
Content-Disposition helpers.

Object stores pass Content-Disposition through as an opaque header, and
many clients choke on raw quotes or non-ASCII bytes in the filename. We
percent-escape the filename inside ``filename="..."`` (keeping spaces
literal) so any client that unquotes the value gets the original name
back byte for byte.
"""

import re
from urllib.parse import quote

# Greedy on purpose: the filename may itself contain quotes, so we take
# everything up to the last quote of the parameter.
_FILENAME_PATTERN = re.compile(r'(?<=filename=")(.+)(?=")', re.DOTALL)


def content_disposition(disposition: str, filename: str) -> str:
    """Build a ``<disposition>; filename="<filename>"`` header value."""
    return f'{disposition}; filename="{filename}"'


def escape_filename(filename: str) -> str:
    return quote(filename, safe=" ")


def encode_content_disposition(value: str) -> str:
    """
    Escape the filename parameter of a Content-Disposition value.

    >>> encode_content_disposition('inline; filename=""été bar.pdf""')
    'inline; filename="%22%C3%A9t%C3%A9 bar.pdf%22"'
    """
    return _FILENAME_PATTERN.sub(lambda match: escape_filename(match.group(1)), value)
