"""Tests for the .fds reader/writer."""

import pytest

from pkgcockpit import fds


class TestFds:
    def test_dump_and_load_nested(self):
        root = fds.FdsSection()
        root.set("IsInstalled", True)
        root.set("Paths.ModelRoot", "/models")
        root.set("Paths.SDLoraFolder", "Lora")
        text = root.dumps()
        assert text == "IsInstalled: true\nPaths:\n\tModelRoot: /models\n\tSDLoraFolder: Lora\n"

        loaded = fds.loads(text)
        assert loaded.get_bool("IsInstalled") is True
        assert loaded.get("Paths.ModelRoot") == "/models"
        assert loaded.get_section("Paths").get("SDLoraFolder") == "Lora"

    def test_comments_and_lists(self):
        text = "# header\nname: swarm\nitems:\n\t- one\n\t- two\nafter: yes\n"
        loaded = fds.loads(text)
        assert loaded.get("items") == ["one", "two"]
        assert loaded.get("after") == "yes"
        assert loaded.get("name") == "swarm"

    def test_escaping(self):
        root = fds.FdsSection({"ExtraArgs": "a && b\nc"})
        text = root.dumps()
        assert "a &&&& b&nc" in text
        assert fds.loads(text).get("ExtraArgs") == "a && b\nc"

    def test_rewrite_is_stable(self):
        text = "IsInstalled: true\nPaths:\n\tModelRoot: Models\n"
        assert fds.loads(text).dumps() == text

    def test_missing_colon_raises(self):
        with pytest.raises(fds.FdsError):
            fds.loads("just words\n")

    def test_remove_and_missing_paths(self):
        root = fds.FdsSection()
        root.set("a.b", "1")
        root.remove("a.b")
        root.remove("x.y")
        assert root.get("a.b") is None
        assert "a.b" not in root
