from __future__ import annotations

import pytest

from nanostudio.core.exceptions import ConfigurationError
from nanostudio.services.credentials import CredentialPool


class TestCredentialPool:
    def test_round_robin(self):
        pool = CredentialPool(["k1", "k2", "k3"], name="test")
        assert [pool.next() for _ in range(5)] == ["k1", "k2", "k3", "k1", "k2"]

    def test_blank_keys_are_dropped(self):
        pool = CredentialPool(["", "k1", ""], name="test")
        assert len(pool) == 1
        assert pool.next() == "k1"
        assert pool.next() == "k1"

    def test_empty_pool_raises(self):
        pool = CredentialPool([], name="test")
        with pytest.raises(ConfigurationError):
            pool.next()

    def test_mask_keeps_last_four(self):
        assert CredentialPool.mask("AIzaSyExample1234") == "...1234"
