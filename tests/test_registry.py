import pytest

from hypernav.http.error import UnsupportedFormat
from hypernav.state import binary, hal, html, siren, text
from hypernav.state.registry import FormatRegistry


def test_default_accept_header():
    """Highest q value first."""
    assert FormatRegistry().accept_header() == (
        'application/prs.hal-forms+json;q=1.0, '
        'application/hal+json;q=0.9, '
        'application/vnd.api+json;q=0.8, '
        'application/vnd.siren+json;q=0.8, '
        'application/vnd.collection+json;q=0.8, '
        'application/json;q=0.7, '
        'text/html;q=0.6'
    )


def test_registered_formats_keep_registration_order_on_ties():
    registry = FormatRegistry()
    registry.register('application/x-custom+json', hal.factory, '0.9')

    parts = registry.accept_header().split(', ')
    assert parts[1] == 'application/hal+json;q=0.9'
    assert parts[2] == 'application/x-custom+json;q=0.9'


def test_unregister():
    registry = FormatRegistry()
    registry.unregister('text/html')

    assert 'text/html' not in registry
    assert 'text/html' not in registry.accept_header()
    assert registry.get_factory('text/html') is text.factory


def test_factory_lookup():
    registry = FormatRegistry()

    assert registry.get_factory('application/hal+json; charset=utf-8') is hal.factory
    assert registry.get_factory('Application/Vnd.Siren+JSON') is siren.factory
    assert registry.get_factory('application/json') is hal.factory
    assert registry.get_factory('text/html') is html.factory


def test_fallbacks():
    registry = FormatRegistry()

    assert registry.get_factory('text/csv') is text.factory
    assert registry.get_factory('image/png') is binary.factory
    assert registry.get_factory(None) is binary.factory


def test_strict_mode_raises_unsupported_format():
    registry = FormatRegistry(strict=True)

    with pytest.raises(UnsupportedFormat):
        registry.get_factory('image/png')
    assert registry.get_factory('text/csv') is text.factory
    assert registry.get_factory(None) is binary.factory


def test_mime_types_in_registration_order():
    assert FormatRegistry().mime_types()[:2] == ['application/prs.hal-forms+json', 'application/hal+json']
