import httpheaders


def test_public_names():
    for name in httpheaders.__all__:
        assert hasattr(httpheaders, name)


def test_factories_from_package():
    accept_encoding = httpheaders.parse_accept_encoding_header('gzip')
    assert isinstance(accept_encoding, httpheaders.AcceptEncoding)
    assert isinstance(accept_encoding, httpheaders.Header)
    assert accept_encoding.preferred_encoding() == 'gzip'
