"""YAML 读写测试"""

from pathlib import Path

import pytest
import yaml

from cratekit.utils.yaml_io import MAX_YAML_SIZE, atomic_write, load_yaml, save_yaml


class TestLoadYaml:
    def test_missing_and_empty(self, tmp_path: Path) -> None:
        assert load_yaml(tmp_path / "nope.yml") == {}
        empty = tmp_path / "empty.yml"
        empty.write_text("", encoding="utf-8")
        assert load_yaml(empty) == {}

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        p = tmp_path / "list.yml"
        p.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="must contain a mapping"):
            load_yaml(p)

    def test_too_large(self, tmp_path: Path) -> None:
        p = tmp_path / "big.yml"
        p.write_text("a: " + "x" * (MAX_YAML_SIZE + 1), encoding="utf-8")
        with pytest.raises(ValueError, match="too large"):
            load_yaml(p)

    def test_syntax_error(self, tmp_path: Path) -> None:
        p = tmp_path / "bad.yml"
        p.write_text("a: [1, 2\n", encoding="utf-8")
        with pytest.raises(yaml.YAMLError):
            load_yaml(p)


class TestSaveYaml:
    def test_roundtrip_keeps_order_and_unicode(self, tmp_path: Path) -> None:
        p = tmp_path / "nested" / "config.yml"
        save_yaml(p, {"registry": {"token": "t"}, "http": {"proxy": "代理"}})
        text = p.read_text(encoding="utf-8")
        assert text.index("registry") < text.index("http")
        assert "代理" in text
        assert load_yaml(p)["http"]["proxy"] == "代理"

    def test_atomic_write_leaves_no_temp(self, tmp_path: Path) -> None:
        atomic_write(tmp_path / "f.txt", "hello")
        assert [p.name for p in tmp_path.iterdir()] == ["f.txt"]
