"""
Parses the ``Accept``, ``Accept-Charset`` and ``Accept-Encoding`` headers,
and answers which offers they accept and which the client prefers.

These headers generally take the form of::

    value1;param=1, value2; q=0.5, value3; q=0

Where the ``q`` parameter is optional, and defaults to 1.  A ``q`` of 0 means
the value is not acceptable.

http://www.w3.org/Protocols/rfc2616/rfc2616-sec14.html
"""

import heapq
import itertools
import logging
import math
from collections import namedtuple

from httpheaders.header import Header
from httpheaders.util import (
    is_quoted,
    split_elements,
    split_parameters,
    text_,
    token_compiled_re,
    unquote,
)

log = logging.getLogger(__name__)


class Entry(namedtuple('Entry', 'token params quality specificity index')):
    """
    One element of an ``Accept-*`` header.

    *token* is the value before any parameters (``'text/html'``, ``'gzip'``,
    ``'*'``).

    *params* is a tuple of (parameter name, value) tuples, in the order they
    appear in the header, not including ``q``.  Values are kept as written,
    with any quotes; a parameter with no ``=`` has a value of ``None``.

    *quality* is the qvalue, a ``float`` between 0 and 1.

    *specificity* ranks how narrowly the entry matches; higher is narrower.

    *index* is the position of the element in the header.
    """
    __slots__ = ()

    @property
    def value(self):
        """The token followed by its parameters, e.g. ``text/html;level=1``."""
        return self.token + ''.join(
            ';' + name if value is None else ';' + name + '=' + value
            for name, value in self.params
        )


def _item_qvalue_pair_to_header_element(pair):
    item, qvalue = pair
    if qvalue == 1.0:
        element = item
    elif qvalue == 0.0:
        element = '{};q=0'.format(item)
    else:
        element = '{};q={}'.format(item, qvalue)
    return element


def parse_quality(value):
    """
    Convert the value of a ``q`` parameter to a ``float``.

    Numbers are clamped to the range 0 to 1 and rounded to 3 decimal places.
    A malformed value (including a missing one) is treated as 1.
    """
    try:
        quality = float(value)
    except (TypeError, ValueError):
        quality = math.nan
    if math.isnan(quality):
        log.debug('malformed quality value %r, using 1', value)
        return 1.0
    return round(max(min(quality, 1.0), 0.0), 3)


def parse_entries(value):
    """
    Parse an ``Accept-*`` style header value.

    :param value: (``str``) header value
    :return: iterator of :class:`Entry` tuples, from left to right, with a
             *specificity* of 0.

    Elements are separated by commas, and parameters by semicolons, except
    inside quoted-strings.  Elements without a value are skipped.  Nothing in
    `value` makes this raise.
    """
    for index, element in enumerate(split_elements(value)):
        token, *params = split_parameters(element)
        if not token:
            log.debug('skipping element without a value: %r', element)
            continue

        quality = None
        kept = []
        for param in params:
            name, sep, param_value = param.partition('=')
            name = name.strip()
            param_value = param_value.strip() if sep else None
            if name.lower() == 'q':
                # only the first ``q`` is the weight
                if quality is None:
                    quality = parse_quality(param_value)
                continue
            if (
                param_value is not None and
                param_value.startswith('"') and
                not is_quoted(param_value)
            ):
                log.debug('unterminated quoted-string in %r', element)
            kept.append((name, param_value))

        yield Entry(
            token=token,
            params=tuple(kept),
            quality=1.0 if quality is None else quality,
            specificity=0,
            index=index,
        )


def _always_covers(general, specific):
    return True


def rank_entries(entries, covers=None):
    """
    Order entries by preference.

    Entries are ordered by quality, highest first.  Among entries of the same
    quality, an entry comes after every more specific entry that it `covers`,
    and entries of the same specificity keep their order in the header.

    :param entries: iterable of :class:`Entry`
    :param covers: callable ``covers(general, specific)`` returning whether
                   the ``general`` entry matches everything the ``specific``
                   entry matches.  The default treats every entry as covering
                   every more specific one, which makes the order quality,
                   then specificity, then header order.
    :return: ``list`` of :class:`Entry`
    """
    if covers is None:
        covers = _always_covers
    by_quality = sorted(
        entries, key=lambda entry: (-entry.quality, entry.index),
    )
    ranked = []
    for _, group in itertools.groupby(
        by_quality, key=lambda entry: entry.quality,
    ):
        ranked.extend(_order_by_specificity(list(group), covers))
    return ranked


def _order_by_specificity(group, covers):
    # ``group`` is sorted by index.  Topological sort where a general entry
    # waits for the more specific entries it covers, and an entry waits for
    # the earlier entries of the same specificity.  The leftmost entry that
    # is free to go is always taken next.
    successors = [[] for _ in group]
    waiting = [0] * len(group)
    for after_index, after in enumerate(group):
        for before_index, before in enumerate(group):
            if before.specificity == after.specificity:
                blocks = before_index < after_index
            else:
                blocks = (
                    before.specificity > after.specificity and
                    covers(after, before)
                )
            if blocks:
                successors[before_index].append(after_index)
                waiting[after_index] += 1

    ready = [index for index, count in enumerate(waiting) if not count]
    heapq.heapify(ready)
    ordered = []
    while ready:
        index = heapq.heappop(ready)
        ordered.append(group[index])
        for successor in successors[index]:
            waiting[successor] -= 1
            if not waiting[successor]:
                heapq.heappush(ready, successor)
    return ordered


def _combined_quality(entries):
    """
    Quality of an offer matched equally well by `entries`.

    ``None`` if there are no entries.  A refusal (``q=0``) in any of them
    wins; otherwise the leftmost entry in the header decides.
    """
    entries = list(entries)
    if not entries:
        return None
    if any(entry.quality == 0.0 for entry in entries):
        return 0.0
    return min(entries, key=lambda entry: entry.index).quality


class AcceptBase(Header):
    """
    Shared behaviour of the ``Accept-*`` headers.

    Subclasses decide how entries are normalised, how specific they are,
    which implicit entries the header has, and the quality of an offer.

    To add to the header, use the addition operators (``+`` and ``+=``),
    which return a new object rather than changing this one.
    """

    @classmethod
    def parse(cls, value):
        """
        Parse the header value into a ``list`` of :class:`Entry`.

        Entries are normalised for this header, given their specificity, and
        kept in header order.  Implicit entries are not included.
        """
        entries = []
        for entry in parse_entries(value):
            entry = cls._normalize(entry)
            if entry is None:
                continue
            entries.append(entry._replace(specificity=cls._specificity(entry)))
        return entries

    @classmethod
    def _normalize(cls, entry):
        return entry

    @classmethod
    def _specificity(cls, entry):
        return 0 if entry.token == '*' else 1

    @classmethod
    def _covers(cls, general, specific):
        return general.token == '*'

    @classmethod
    def _with_defaults(cls, entries):
        return list(entries)

    @classmethod
    def _next_index(cls, entries):
        return max(entry.index for entry in entries) + 1 if entries else 0

    def _update(self):
        self._entries = tuple(self._with_defaults(self._parsed or []))
        self._ranked = tuple(rank_entries(self._entries, covers=self._covers))

    @property
    def ranked(self):
        """
        (``tuple``) All entries in order of preference, including implicit
        entries and entries with a quality of 0.
        """
        return self._ranked

    def _acceptable_values(self):
        return [entry.value for entry in self._ranked if entry.quality]

    def _preferred(self):
        for entry in self._ranked:
            if entry.quality:
                return entry.value
        return None

    def quality(self, offer):
        """
        Return the quality the header gives to `offer`.

        :return: (``float`` or ``None``) ``None`` if nothing in the header
                 applies to `offer`.
        """
        raise NotImplementedError()

    def is_accepted(self, offer):
        """
        Return whether `offer` is acceptable according to the header.
        """
        return bool(self.quality(offer))

    def __contains__(self, offer):
        return self.is_accepted(offer)

    def acceptable_offers(self, offers):
        """
        Return the offers that are acceptable according to the header.

        :param offers: ``iterable`` of ``str`` offers
        :return: A list of (offer, qvalue) tuples, in descending order of
                 qvalue.  Where two offers have the same qvalue, they are
                 returned in the same order as their order in `offers`.
        """
        acceptable = []
        for offer in offers:
            quality = self.quality(offer)
            if quality:
                acceptable.append((offer, quality))
        # (stable) sort by qvalue, descending
        acceptable.sort(key=lambda pair: pair[1], reverse=True)
        return acceptable

    def best_match(self, offers, default_match=None):
        """
        Return the acceptable offer with the highest qvalue.

        Ties go to the offer listed first in `offers`.  If no offer is
        acceptable, `default_match` is returned.
        """
        acceptable = self.acceptable_offers(offers)
        if acceptable:
            return acceptable[0][0]
        return default_match

    def __str__(self):
        r"""
        Return a tidied up version of the header value.

        e.g. If ``self.header_value`` is ``',,text/html ; level=1 ; q=0.50,
        text/plain ,'``, ``str(instance)`` returns ``'text/html;level=1;q=0.5,
        text/plain'``.
        """
        if self._parsed is None:
            return super(AcceptBase, self).__str__()
        return ', '.join(
            _item_qvalue_pair_to_header_element((entry.value, entry.quality))
            for entry in self._parsed
        )

    @classmethod
    def _python_value_to_header_str(cls, value):
        """
        Convert Python value to header string for __add__/__radd__.
        """
        if value is None:
            return ''
        if isinstance(value, Header):
            return value.header_value or ''
        if isinstance(value, (str, bytes)):
            return text_(value)
        if hasattr(value, 'items'):
            value = sorted(
                value.items(),
                key=lambda item: item[1],  # qvalue
                reverse=True,
            )
        if isinstance(value, (tuple, list)):
            header_elements = []
            for item in value:
                if isinstance(item, (tuple, list)):
                    item = _item_qvalue_pair_to_header_element(pair=item)
                header_elements.append(item)
            return ', '.join(header_elements)
        return str(value)

    def _add(self, other, instance_on_the_right=False):
        other_header_value = self._python_value_to_header_str(value=other)
        if not other_header_value.strip():
            return self.__class__(header_value=self.header_value)
        if not self.header_value:
            return self.__class__(header_value=other_header_value)

        new_header_value = (
            (other_header_value + ', ' + self.header_value)
            if instance_on_the_right
            else (self.header_value + ', ' + other_header_value)
        )
        return self.__class__(header_value=new_header_value)

    def __add__(self, other):
        """
        Add to header, creating a new header object.

        `other` can be ``None``, a ``str`` header value, another header
        object, a ``tuple`` or ``list`` whose items are header element
        ``str``\\ s or (value, qvalue) tuples, a ``dict`` of {value: qvalue},
        or any other object, whose ``str()`` is used.

        The two header values are joined with ``', '``.  If `other` amounts
        to an empty header value, the new object has the same header value
        as ``self``.
        """
        return self._add(other)

    def __radd__(self, other):
        """
        Add to header, creating a new header object.

        See the docstring for :meth:`AcceptBase.__add__`.
        """
        return self._add(other, instance_on_the_right=True)


def _offer_str(offer):
    offer = text_(offer)
    if not isinstance(offer, str):
        return None
    return offer.strip()


def _params_dict(params):
    return dict(
        (name.lower(), None if value is None else unquote(value))
        for name, value in params
    )


class Accept(AcceptBase):
    """
    Represent an ``Accept`` header, a list of media ranges.

    Media ranges may use wildcards (``*/*`` and ``type/*``) and carry media
    type parameters (``text/html;level=1``).  There is no implicit default:
    an offer that no media range matches is not acceptable.
    """

    header_name = 'Accept'

    #: Media types considered HTML-like by :meth:`accept_html`.
    html_types = (
        'text/html',
        'application/xhtml+xml',
        'application/xml',
        'text/xml',
    )

    @classmethod
    def _normalize(cls, entry):
        # RFC 7231, section 3.1.1.1 "Media Type":
        # "The type, subtype, and parameter name tokens are case-insensitive."
        media_range = entry.token.lower()
        if media_range == '*':
            media_range = '*/*'
        type_, sep, subtype = media_range.partition('/')
        if (
            not sep or
            token_compiled_re.match(type_) is None or
            token_compiled_re.match(subtype) is None or
            (type_ == '*' and subtype != '*')
        ):
            log.debug('skipping malformed media range %r', entry.token)
            return None
        return entry._replace(token=media_range)

    @classmethod
    def _specificity(cls, entry):
        # Based on the example in RFC 7231 section 5.3.2 explaining how
        # "media ranges can be overridden by more specific media ranges or
        # specific media types".
        type_, subtype = entry.token.split('/')
        if type_ == '*':
            return 1
        if subtype == '*':
            return 2
        if entry.params:
            return 4
        return 3

    @staticmethod
    def _matches(entry, offer_type, offer_subtype, offer_params):
        range_type, range_subtype = entry.token.split('/')
        if range_type == '*':
            return True
        if range_type != offer_type:
            return False
        if range_subtype == '*':
            return True
        if range_subtype != offer_subtype:
            return False
        # Every parameter of the range has to be on the offer with the same
        # value.  Offers may carry more parameters ('text/html;level=3'
        # matches 'text/html').
        for name, value in _params_dict(entry.params).items():
            if name not in offer_params or offer_params[name] != value:
                return False
        return True

    @classmethod
    def _covers(cls, general, specific):
        specific_type, specific_subtype = specific.token.split('/')
        return cls._matches(
            general, specific_type, specific_subtype,
            _params_dict(specific.params),
        )

    @classmethod
    def _parse_offer(cls, offer):
        offer = _offer_str(offer)
        if not offer:
            return None
        entries = list(parse_entries(offer))
        if len(entries) != 1:
            return None
        return cls._normalize(entries[0])

    def quality(self, offer):
        """
        Return the quality the header gives to the media type `offer`.

        The most specific media range matching `offer` decides, as in
        :rfc:`RFC 7231, section 5.3.2 <7231#section-5.3.2>`.

        :param offer: (``str``) media type, with any media type parameters
        :return: (``float`` or ``None``) the qvalue of the most specific
                 matching range, or ``None`` if no range matches, or if
                 `offer` is not a media type.
        """
        offer = self._parse_offer(offer)
        if offer is None:
            return None
        offer_type, offer_subtype = offer.token.split('/')
        offer_params = _params_dict(offer.params)

        matches = [
            entry for entry in self._entries
            if self._matches(entry, offer_type, offer_subtype, offer_params)
        ]
        if not matches:
            return None
        specificity = max(entry.specificity for entry in matches)
        return _combined_quality(
            entry for entry in matches if entry.specificity == specificity
        )

    def preferred_type(self):
        """
        Return the media range the client prefers most.

        :return: (``str`` or ``None``) the first acceptable media range in
                 order of preference, with its parameters as written in the
                 header, or ``None`` if nothing is acceptable.
        """
        return self._preferred()

    def ranked_types(self):
        """
        Return the acceptable media ranges in order of preference.

        :return: ``tuple`` of ``str``.  Media ranges with a qvalue of 0 are
                 left out.

        Please note that this is not the same as the set of acceptable media
        types, e.g. ``'audio/basic;q=0, */*'`` means 'everything but
        audio/basic', but this returns only ``('*/*',)``.
        """
        return tuple(self._acceptable_values())

    def accept_html(self):
        """
        Return ``True`` if any HTML-like type is accepted.

        The HTML-like types are 'text/html', 'application/xhtml+xml',
        'application/xml' and 'text/xml'.
        """
        return bool(self.acceptable_offers(offers=self.html_types))
    accepts_html = property(fget=accept_html, doc=accept_html.__doc__)
    # note the plural


class AcceptCharset(AcceptBase):
    """
    Represent an ``Accept-Charset`` header.

    Charset names are case-insensitive and are lowercased.  From
    :rfc:`RFC 2616, section 14.2 <2616#section-14.2>`: "If no "*" is present
    in an Accept-Charset field, then all character sets not explicitly
    mentioned get a quality value of 0, except for ISO-8859-1, which gets a
    quality value of 1 if not explicitly mentioned."
    """

    header_name = 'Accept-Charset'

    #: Charset acceptable unless the header mentions it or has a ``*``.
    default_charset = 'iso-8859-1'

    @classmethod
    def _normalize(cls, entry):
        return entry._replace(token=entry.token.lower(), params=())

    @classmethod
    def _with_defaults(cls, entries):
        tokens = set(entry.token for entry in entries)
        if '*' in tokens or cls.default_charset in tokens:
            return list(entries)
        return list(entries) + [Entry(
            token=cls.default_charset,
            params=(),
            quality=1.0,
            specificity=1,
            index=cls._next_index(entries),
        )]

    def quality(self, offer):
        """
        Return the quality the header gives to the charset `offer`.

        An explicit mention of the charset decides; after that the implicit
        ``iso-8859-1``; after that a ``*``.

        :return: (``float`` or ``None``)
        """
        offer = _offer_str(offer)
        if not offer:
            return None
        offer = offer.lower()
        explicit = [entry for entry in self._entries if entry.token == offer]
        if explicit:
            return _combined_quality(explicit)
        return _combined_quality(
            entry for entry in self._entries if entry.token == '*'
        )

    def charsets(self):
        """
        Return the acceptable charsets in order of preference.

        :return: ``list`` of lowercased ``str``, including the implicit
                 ``iso-8859-1`` and any ``*``.  Charsets with a qvalue of 0
                 are left out.
        """
        return self._acceptable_values()

    def preferred_charset(self):
        """
        Return the charset the client prefers most, or ``None``.
        """
        return self._preferred()


class AcceptEncoding(AcceptBase):
    """
    Represent an ``Accept-Encoding`` header.

    From :rfc:`RFC 2616, section 14.3 <2616#section-14.3>`: "The "identity"
    content-coding is always acceptable, unless specifically refused because
    the Accept-Encoding field includes "identity;q=0", or because the field
    includes "*;q=0" and does not explicitly include the "identity"
    content-coding.  If the Accept-Encoding field-value is empty, then only
    the "identity" encoding is acceptable."

    A missing header is treated the same as an empty one.
    """

    header_name = 'Accept-Encoding'

    #: Coding acceptable unless refused.
    default_coding = 'identity'

    #: RFC 2616 section 3.5: "applications SHOULD consider "x-gzip" and
    #: "x-compress" to be equivalent to "gzip" and "compress" respectively."
    coding_aliases = {
        'x-gzip': 'gzip',
        'x-compress': 'compress',
    }

    @classmethod
    def _normalize(cls, entry):
        return entry._replace(token=entry.token.lower(), params=())

    @classmethod
    def _coding(cls, token):
        return cls.coding_aliases.get(token, token)

    @classmethod
    def _with_defaults(cls, entries):
        codings = set(cls._coding(entry.token) for entry in entries)
        if cls.default_coding in codings:
            return list(entries)
        wildcard_quality = _combined_quality(
            entry for entry in entries if entry.token == '*'
        )
        if wildcard_quality == 0.0:
            return list(entries)
        return list(entries) + [Entry(
            token=cls.default_coding,
            params=(),
            quality=1.0,
            specificity=1,
            index=cls._next_index(entries),
        )]

    def quality(self, offer):
        """
        Return the quality the header gives to the content-coding `offer`.

        An explicit mention of the coding decides; after that a ``*``.
        ``identity`` is acceptable by default as described above.

        :return: (``float`` or ``None``)
        """
        offer = _offer_str(offer)
        if not offer:
            return None
        coding = self._coding(offer.lower())
        explicit = [
            entry for entry in self._entries
            if self._coding(entry.token) == coding
        ]
        if explicit:
            return _combined_quality(explicit)
        return _combined_quality(
            entry for entry in self._entries if entry.token == '*'
        )

    def encodings(self):
        """
        Return the acceptable content-codings in order of preference.

        :return: ``list`` of lowercased ``str``, including ``identity`` when it
                 is acceptable by default.  Codings with a qvalue of 0 are
                 left out.
        """
        return self._acceptable_values()

    def preferred_encoding(self):
        """
        Return the content-coding the client prefers most, or ``None``.

        ``None`` means not even ``identity`` is acceptable (e.g. the header
        is ``*;q=0``).
        """
        return self._preferred()


def parse_accept_header(header_value):
    """
    Create an :class:`Accept` from a header value.

    :param header_value: (``str`` or ``None``) header value; ``None`` when the
                         header is not in the request
    """
    return Accept(header_value=header_value)


def parse_accept_charset_header(header_value):
    """
    Create an :class:`AcceptCharset` from a header value.
    """
    return AcceptCharset(header_value=header_value)


def parse_accept_encoding_header(header_value):
    """
    Create an :class:`AcceptEncoding` from a header value.
    """
    return AcceptEncoding(header_value=header_value)
