import re

# RFC 7230 Section 3.2.6 "Field Value Components":
# tchar          = "!" / "#" / "$" / "%" / "&" / "'" / "*"
#                / "+" / "-" / "." / "^" / "_" / "`" / "|" / "~"
#                / DIGIT / ALPHA
tchar_re = r"[!#$%&'*+\-.^_`|~0-9A-Za-z]"

# token          = 1*tchar
token_re = tchar_re + '+'
token_compiled_re = re.compile('^' + token_re + '$')

# quoted-string  = DQUOTE *( qdtext / quoted-pair ) DQUOTE
# An unterminated quoted-string runs to the end of the input.
lenient_quoted_string_re = r'"(?:\\.|[^"\\])*(?:"|\\?\Z)'


def _delimited_compiled_re(delimiter):
    return re.compile(
        '(?:' + lenient_quoted_string_re + '|[^"' + delimiter + '])+',
        re.DOTALL,
    )


_comma_split_re = _delimited_compiled_re(',')
_semicolon_split_re = _delimited_compiled_re(';')


def split_elements(value):
    """
    Split a ``#rule`` header value on the commas outside quoted-strings.

    Empty elements (``'a,,b'``, leading or trailing commas) are dropped, and
    surrounding whitespace is removed.
    """
    for element in _comma_split_re.findall(value):
        element = element.strip()
        if element:
            yield element


def split_parameters(element):
    """
    Split a header element on the semicolons outside quoted-strings.

    Returns a list whose first item is the element's value (possibly
    ``''``), followed by the stripped, non-empty parameter strings.
    """
    value, sep, rest = element.partition(';')
    if '"' in value:
        # quoted-string before the first parameter; fall back to the regex
        parts = _semicolon_split_re.findall(element)
        value, rest = (parts[0] if parts else ''), ';'.join(parts[1:])
    params = [
        param.strip() for param in _semicolon_split_re.findall(rest)
        if param.strip()
    ]
    return [value.strip()] + params


def is_quoted(value):
    return len(value) >= 2 and value.startswith('"') and value.endswith('"')


def unquote(value):
    """
    Return unescaped and unquoted value from a quoted-string token.

    Values that are not quoted are returned unchanged.
    """
    if not is_quoted(value):
        return value
    # RFC 7230, section 3.2.6 "Field Value Components": "Recipients that
    # process the value of a quoted-string MUST handle a quoted-pair as if
    # it were replaced by the octet following the backslash."
    return re.sub(r'\\(.)', r'\1', value[1:-1], flags=re.DOTALL)


def text_(s, encoding="latin-1", errors="strict"):
    if isinstance(s, bytes):
        return str(s, encoding, errors)

    return s
