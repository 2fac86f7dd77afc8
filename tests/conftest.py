"""Shared fixtures for the chipmgr tests."""

import threading

import pytest

from chipmgr.chips import default_registry
from chipmgr.errors import FetchTimeout
from chipmgr.fetch import PackageCache
from chipmgr.resolver import DependencyResolver


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def f405(registry):
    return registry.lookup("STM32F405RGT6")


@pytest.fixture
def h743(registry):
    return registry.lookup("STM32H743ZIT6")


class FakeFetcher:
    """Writes a header file instead of downloading; can fail on demand."""

    def __init__(self, failures=0, delay=None):
        self.calls = []
        self.failures = failures
        self.delay = delay
        self._guard = threading.Lock()

    def fetch(self, ref, dest_dir):
        with self._guard:
            self.calls.append(str(ref))
            failing = self.failures > 0
            if failing:
                self.failures -= 1
        if self.delay is not None:
            self.delay.wait(timeout=5)
        if failing:
            raise FetchTimeout(str(ref), 1)
        (dest_dir / "Inc").mkdir()
        (dest_dir / "Inc" / f"{ref.name}.h").write_text(f"/* {ref} */\n")


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def cache(tmp_path, fake_fetcher):
    return PackageCache(root=tmp_path / "packages", fetcher=fake_fetcher)


@pytest.fixture
def resolver(cache):
    return DependencyResolver(cache=cache, url_template="https://example.invalid/{repo}/{version}.tar.gz")
