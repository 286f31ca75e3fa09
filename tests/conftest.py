"""Pytest configuration shared by every storefront test module.

Settings-derived singletons are cached per process, so they are reset around
each test to let ``monkeypatch``-ed environment variables take effect.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest


@pytest.fixture(autouse=True)
def _reset_cached_settings() -> Iterator[None]:
    """Rebuild settings-derived singletons so monkeypatched env vars apply."""

    from storefront.services.dependencies import get_image_host
    from storefront.settings import get_settings

    get_settings.cache_clear()
    get_image_host.cache_clear()
    yield
    get_settings.cache_clear()
    get_image_host.cache_clear()
