import pytest

from httpheaders.util import (
    is_quoted,
    split_elements,
    split_parameters,
    text_,
    unquote,
)


class TestSplitElements(object):
    @pytest.mark.parametrize('value, expected', [
        ('', []),
        (',', []),
        (' , ,\t', []),
        ('gzip', ['gzip']),
        (
            ',,\t gzip;q=1.0, identity; q=0.5, *;q=0 \t ,',
            ['gzip;q=1.0', 'identity; q=0.5', '*;q=0'],
        ),
        (
            'text/html;josh="a, b", text/plain',
            ['text/html;josh="a, b"', 'text/plain'],
        ),
        (
            r'text/html;p="a\", b", text/plain',
            [r'text/html;p="a\", b"', 'text/plain'],
        ),
    ])
    def test_split(self, value, expected):
        assert list(split_elements(value)) == expected

    def test_unterminated_quoted_string_runs_to_the_end(self):
        value = 'text/html;p="abc, text/plain'
        assert list(split_elements(value)) == ['text/html;p="abc, text/plain']

    def test_trailing_backslash_in_unterminated_quoted_string(self):
        value = 'a, b;p="x\\'
        assert list(split_elements(value)) == ['a', 'b;p="x\\']


class TestSplitParameters(object):
    @pytest.mark.parametrize('element, expected', [
        ('text/html', ['text/html']),
        ('text/html;level=1', ['text/html', 'level=1']),
        (
            'text/html;josh="hello"; q=0.1',
            ['text/html', 'josh="hello"', 'q=0.1'],
        ),
        ('text/html ; level=1 ;; q=0.1 ;', ['text/html', 'level=1', 'q=0.1']),
        ('text/html;p="a;b";q=1', ['text/html', 'p="a;b"', 'q=1']),
        (';q=1', ['', 'q=1']),
        ('"a;b";x=1', ['"a;b"', 'x=1']),
    ])
    def test_split(self, element, expected):
        assert split_parameters(element) == expected


class TestUnquote(object):
    @pytest.mark.parametrize('value, expected', [
        ('token', 'token'),
        ('"hello"', 'hello'),
        ('""', ''),
        (r'"a\"b"', 'a"b'),
        (r'"a\\b"', 'a\\b'),
        ('"', '"'),
        ('"unterminated', '"unterminated'),
    ])
    def test_unquote(self, value, expected):
        assert unquote(value) == expected

    def test_is_quoted(self):
        assert is_quoted('"x"')
        assert not is_quoted('"x')
        assert not is_quoted('x')


class TestText(object):
    def test_bytes_are_decoded_as_latin1(self):
        assert text_(b'caf\xe9') == 'caf\xe9'

    def test_str_and_none_are_unchanged(self):
        assert text_('gzip') == 'gzip'
        assert text_(None) is None
