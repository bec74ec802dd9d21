"""
Base class for request headers that carry a single raw value.
"""

from httpheaders.util import text_


class Header(object):
    """
    Represent a request header holding one raw string value.

    The raw value is available as :attr:`header_value`; it is ``None`` when
    the header was not supplied.  Each subclass turns the raw value into its
    own structured form through :meth:`parse`, and assigning a new
    :attr:`header_value` replaces that structured form entirely.

    Instances are meant to be built once per request; prefer creating a new
    instance over assigning :attr:`header_value` on one that is shared.
    """

    #: Name of the header, as it appears on the wire.
    header_name = None

    def __init__(self, header_value=None):
        self.header_value = header_value

    @property
    def header_value(self):
        """(``str`` or ``None``) The raw header value."""
        return self._header_value

    @header_value.setter
    def header_value(self, value):
        value = text_(value)
        self._header_value = value
        self._parsed = None if value is None else self.parse(value)
        self._update()

    @property
    def parsed(self):
        """
        Parsed form of the header, or ``None`` if the header is unset.
        """
        return self._parsed

    @classmethod
    def parse(cls, value):
        """
        Parse a raw header value.

        This never modifies an instance; the base implementation returns
        `value` unchanged.
        """
        return value

    def _update(self):
        # Called after every change of ``header_value``, once ``_parsed``
        # has been replaced.
        pass

    def __bool__(self):
        """
        Return ``False`` if the header is unset, and ``True`` otherwise.
        """
        return self._header_value is not None

    def __repr__(self):
        return '<{} ({!r})>'.format(self.__class__.__name__, str(self))

    def __str__(self):
        if self._header_value is None:
            return '<no header in request>'
        return self._header_value
