"""local_eval テスト共通フィクスチャ"""

import pytest
from fakes import FakeSpecNetwork
from k1s0_local_eval import User


@pytest.fixture
def user() -> User:
    return User(user_id="12345", email="kenny@nfl.com", custom={"level": 9})


@pytest.fixture
def fake_network() -> FakeSpecNetwork:
    return FakeSpecNetwork()
