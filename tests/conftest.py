import pytest

from harness import A_RS, A_RS_CONTENT, B_RS, B_RS_CONTENT, make_harness


@pytest.fixture
def files():
    return {A_RS: A_RS_CONTENT, B_RS: B_RS_CONTENT}


@pytest.fixture
def harness(files):
    return make_harness(files)
