from httpheaders.acceptparse import (
    Accept,
    AcceptCharset,
    AcceptEncoding,
    Entry,
    parse_accept_charset_header,
    parse_accept_encoding_header,
    parse_accept_header,
)
from httpheaders.header import Header

__all__ = [
    'Header', 'Accept', 'AcceptCharset', 'AcceptEncoding', 'Entry',
    'parse_accept_header', 'parse_accept_charset_header',
    'parse_accept_encoding_header',
]
