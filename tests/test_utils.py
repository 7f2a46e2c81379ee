"""Tests for withinhost.utils — provenance helpers."""

from withinhost.config import default_config
from withinhost.utils import config_hash, config_yaml, get_git_hash


class TestConfigHash:
    def test_stable(self):
        assert config_hash(default_config()) == config_hash(default_config())

    def test_changes_with_config(self):
        a = default_config()
        b = default_config()
        b.kill.k = 4.0
        assert config_hash(a) != config_hash(b)

    def test_yaml_sorted(self):
        text = config_yaml(default_config())
        assert text.index('capacity:') < text.index('kill:') < text.index('sweep:')


def test_git_hash_is_string():
    assert isinstance(get_git_hash(), str)
    assert get_git_hash()
