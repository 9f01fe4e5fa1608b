"""Unit tests for the package metadata model and meta.yaml loading."""

from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from pakman.core.errors import ValidationError
from pakman.models.meta import Meta, load_meta_yaml


class TestMeta:
    def test_validate_required_passes(self):
        meta = Meta(name="heat", version="1.1.0", description="make heat")
        assert meta.validate_required() is meta

    @pytest.mark.parametrize(
        "fields, missing",
        [
            ({"version": "1", "description": "d"}, "name"),
            ({"name": "n", "description": "d"}, "version"),
            ({"name": "n", "version": "1"}, "description"),
            ({}, "name"),
        ],
    )
    def test_first_missing_field_named(self, fields, missing):
        with pytest.raises(ValidationError, match=f"{missing} cannot be empty"):
            Meta(**fields).validate_required()

    def test_frozen(self):
        meta = Meta(name="heat", version="1", description="d")
        with pytest.raises(PydanticValidationError):
            meta.name = "cold"

    def test_derived_names(self):
        meta = Meta(
            name="heat", version="1.1.0", description="d",
            remote="https://pkgs.example.com/linux/amd64/",
        )
        assert meta.label == "heat@1.1.0"
        assert meta.pkg_filename == "heat-1.1.0.pkg"
        assert meta.url == "https://pkgs.example.com/linux/amd64/heat-1.1.0.pkg"

    def test_unknown_json_fields_ignored(self):
        meta = Meta.model_validate(
            {"name": "n", "version": "1", "description": "d", "arch": "amd64"}
        )
        assert meta.name == "n"


class TestLoadMetaYaml:
    def test_scalars_kept_as_written(self, tmp_path):
        path = tmp_path / "meta.yaml"
        path.write_text("name: heat\nversion: 1.10\ndescription: make heat\n")
        meta = load_meta_yaml(path)
        assert meta == Meta(name="heat", version="1.10", description="make heat")

    @pytest.mark.parametrize("version", ["1.0", "2", "1e3", "0x10", "true", "2024-01-01"])
    def test_unquoted_version_not_coerced(self, tmp_path, version):
        path = tmp_path / "meta.yaml"
        path.write_text(f"name: heat\nversion: {version}\ndescription: make heat\n")
        assert load_meta_yaml(path).version == version

    def test_missing_description_rejected(self, tmp_path):
        path = tmp_path / "meta.yaml"
        path.write_text("name: heat\nversion: '1'\n")
        with pytest.raises(ValidationError, match="description cannot be empty"):
            load_meta_yaml(path)

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "meta.yaml"
        path.write_text("- heat\n- 1\n")
        with pytest.raises(ValidationError, match="must be a mapping"):
            load_meta_yaml(path)

    def test_malformed_yaml_rejected(self, tmp_path):
        path = tmp_path / "meta.yaml"
        path.write_text("name: [unterminated\n")
        with pytest.raises(ValidationError):
            load_meta_yaml(path)
