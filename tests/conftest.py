import pytest

from fakes import FakeSource, FakeWoo


@pytest.fixture
def woo():
    return FakeWoo()


@pytest.fixture
def make_source():
    return FakeSource
