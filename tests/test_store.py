"""
Tests for model persistence.
"""

import json
import struct
import zipfile

import numpy as np
import pytest
import torch

from sentiment_pipeline.errors import CorruptModelError, ModelNotFoundError
from sentiment_pipeline.store import (
    CLASSIFIER_FILE,
    FEATURIZER_FILE,
    MANIFEST_FILE,
    load_model,
    model_exists,
    save_model,
)


def rewrite_archive(path, replace=None, drop=None):
    """Copy an archive member by member, replacing or dropping entries."""
    replace = replace or {}
    with zipfile.ZipFile(path) as archive:
        members = {name: archive.read(name) for name in archive.namelist()}
    for name in drop or ():
        members.pop(name)
    members.update(replace)
    with zipfile.ZipFile(path, "w") as archive:
        for name, data in members.items():
            archive.writestr(name, data)


class TestSaveLoad:
    """Tests for the save/load round trip."""

    def test_round_trip_predictions(self, trained_model, separable_examples, tmp_path):
        path = save_model(trained_model, tmp_path / "model.zip")
        loaded = load_model(path)

        texts = [e.text for e in separable_examples] + ["", "This was a very bad steak", "нечто новое"]
        for text in texts:
            assert loaded.predict_one(text) == trained_model.predict_one(text)
            assert np.array_equal(
                loaded.featurizer.transform(text),
                trained_model.featurizer.transform(text),
            )

    def test_round_trip_weights_and_metadata(self, trained_model, tmp_path):
        loaded = load_model(save_model(trained_model, tmp_path / "model.zip"))

        assert torch.equal(loaded.classifier.linear.weight, trained_model.classifier.linear.weight)
        assert torch.equal(loaded.classifier.linear.bias, trained_model.classifier.linear.bias)
        assert loaded.metadata == trained_model.metadata
        assert loaded.n_features == trained_model.n_features

    def test_creates_parent_directories(self, trained_model, tmp_path):
        path = tmp_path / "nested" / "dir" / "model.zip"
        save_model(trained_model, path)
        assert model_exists(path)

    def test_overwrites_existing(self, trained_model, tmp_path):
        path = tmp_path / "model.zip"
        path.write_bytes(b"old contents")

        save_model(trained_model, path)

        assert load_model(path).n_features == trained_model.n_features

    def test_no_temporary_file_left(self, trained_model, tmp_path):
        save_model(trained_model, tmp_path / "model.zip")
        assert [p.name for p in tmp_path.iterdir()] == ["model.zip"]

    def test_unwritable_destination(self, trained_model, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(OSError):
            save_model(trained_model, blocker / "model.zip")

    def test_archive_layout(self, trained_model, tmp_path):
        path = save_model(trained_model, tmp_path / "model.zip")

        with zipfile.ZipFile(path) as archive:
            names = set(archive.namelist())
            manifest = json.loads(archive.read(MANIFEST_FILE))

        assert names == {MANIFEST_FILE, FEATURIZER_FILE, CLASSIFIER_FILE}
        assert manifest["format_version"] == 1
        assert manifest["n_features"] == trained_model.n_features


class TestLoadErrors:
    """Tests for loading missing or damaged archives."""

    def test_missing(self, tmp_path):
        with pytest.raises(ModelNotFoundError):
            load_model(tmp_path / "missing.zip")

    def test_missing_is_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_model(tmp_path / "missing.zip")

    def test_model_exists(self, tmp_path):
        assert not model_exists(tmp_path / "missing.zip")
        assert not model_exists(tmp_path)

    def test_garbage_file(self, tmp_path):
        path = tmp_path / "model.zip"
        path.write_bytes(b"this is not a zip archive")

        with pytest.raises(CorruptModelError):
            load_model(path)

    def test_version_mismatch(self, trained_model, tmp_path):
        path = save_model(trained_model, tmp_path / "model.zip")
        with zipfile.ZipFile(path) as archive:
            manifest = json.loads(archive.read(MANIFEST_FILE))
        manifest["format_version"] = 99
        rewrite_archive(path, replace={MANIFEST_FILE: json.dumps(manifest)})

        with pytest.raises(CorruptModelError, match="version"):
            load_model(path)

    def test_foreign_archive(self, tmp_path):
        path = tmp_path / "model.zip"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr(MANIFEST_FILE, json.dumps({"format": "something-else"}))

        with pytest.raises(CorruptModelError):
            load_model(path)

    def test_missing_member(self, trained_model, tmp_path):
        path = save_model(trained_model, tmp_path / "model.zip")
        rewrite_archive(path, drop=[CLASSIFIER_FILE])

        with pytest.raises(CorruptModelError):
            load_model(path)

    def test_damaged_weights(self, trained_model, tmp_path):
        path = save_model(trained_model, tmp_path / "model.zip")
        rewrite_archive(path, replace={CLASSIFIER_FILE: b"\x00\x01garbage"})

        with pytest.raises(CorruptModelError):
            load_model(path)

    def test_dimension_mismatch(self, trained_model, tmp_path):
        path = save_model(trained_model, tmp_path / "model.zip")
        with zipfile.ZipFile(path) as archive:
            manifest = json.loads(archive.read(MANIFEST_FILE))
        manifest["n_features"] += 1
        rewrite_archive(path, replace={MANIFEST_FILE: json.dumps(manifest)})

        with pytest.raises(CorruptModelError):
            load_model(path)

    def test_damaged_compressed_member(self, trained_model, tmp_path):
        path = save_model(trained_model, tmp_path / "model.zip")
        with zipfile.ZipFile(path) as archive:
            info = archive.getinfo(FEATURIZER_FILE)
        assert info.compress_type == zipfile.ZIP_DEFLATED

        data = bytearray(path.read_bytes())
        name_length, extra_length = struct.unpack("<HH", data[info.header_offset + 26:info.header_offset + 30])
        start = info.header_offset + 30 + name_length + extra_length
        # A first deflate block with type bits 11 is invalid.
        data[start] = 0xFF
        path.write_bytes(bytes(data))

        with pytest.raises(CorruptModelError):
            load_model(path)

    @pytest.mark.parametrize("payload", ["[1, 2]", '"featurizer"', "null"])
    def test_featurizer_state_not_a_mapping(self, trained_model, tmp_path, payload):
        path = save_model(trained_model, tmp_path / "model.zip")
        rewrite_archive(path, replace={FEATURIZER_FILE: payload})

        with pytest.raises(CorruptModelError, match="mapping"):
            load_model(path)
