from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import cv2
import numpy as np
import pytest

from face_restoration import main as cli
from face_restoration.core.errors import DeviceError, EngineLoadError
from face_restoration.infrastructure.face_restoration_trt import FaceRestorationTRT


def _items(count: int) -> list[tuple[Path, np.ndarray]]:
    return [(Path(f"face_{idx}.jpg"), np.full((4, 4, 3), idx, dtype=np.uint8)) for idx in range(count)]


class TestBatching:
    def test_exact_batches(self) -> None:
        batches = list(cli.iter_batches(_items(4), 2))
        assert [len(images) for _, images in batches] == [2, 2]
        assert [len(paths) for paths, _ in batches] == [2, 2]

    def test_last_batch_is_padded_with_its_final_image(self) -> None:
        batches = list(cli.iter_batches(_items(5), 4))
        paths, images = batches[-1]
        assert paths == [Path("face_4.jpg")]
        assert len(images) == 4
        assert all(image is images[0] for image in images)

    def test_output_path(self, tmp_path: Path) -> None:
        assert cli.output_path_for(Path("in/Face.JPG"), tmp_path) == tmp_path / "Face_restored.jpg"
        assert cli.output_path_for(Path("in/face"), tmp_path) == tmp_path / "face_restored.png"

    def test_same_stem_from_different_directories_gets_distinct_names(self, tmp_path: Path, captured_logger) -> None:
        log, lines = captured_logger
        sources = [Path("a/face.png"), Path("b/face.png"), Path("c/face.png"), Path("a/other.png")]

        targets = cli.assign_output_paths(sources, tmp_path, log)

        assert [t.name for t in targets] == [
            "face_restored.png",
            "face_restored_2.png",
            "face_restored_3.png",
            "other_restored.png",
        ]
        assert sum("Output name clash" in line for line in lines) == 2


class TestLoadImages:
    def test_unreadable_files_are_skipped(self, tmp_path: Path, captured_logger) -> None:
        log, lines = captured_logger
        good = tmp_path / "good.png"
        cv2.imwrite(str(good), np.zeros((8, 8, 3), dtype=np.uint8))
        bad = tmp_path / "bad.png"
        bad.write_bytes(b"not an image")

        loaded = cli.load_images([good, bad, tmp_path / "missing.png"], log)

        assert [path for path, _ in loaded] == [good]
        assert loaded[0][1].shape == (8, 8, 3)
        assert sum("Skipping unreadable image" in line for line in lines) == 2


class _Builder:
    """Hands out a prepared model instead of building one from an engine."""

    model: FaceRestorationTRT | None = None
    error: Exception | None = None

    def __init__(self, config, *, logger=None) -> None:
        self.config = config

    def build_model(self) -> FaceRestorationTRT:
        if self.error is not None:
            raise self.error
        return self.model


@pytest.fixture
def builder(identity_context, captured_logger):
    log, _ = captured_logger
    _Builder.model = FaceRestorationTRT(identity_context((2, 3, 16, 16)), logger=log)
    _Builder.error = None
    with patch.object(cli, "ModelBuilder", _Builder), patch.object(cli, "apply_log_config", lambda log: log):
        yield _Builder


class TestMain:
    def test_no_images_is_a_usage_error(self) -> None:
        with patch.object(cli, "apply_log_config", lambda log: log):
            assert cli.main([]) == cli.EXIT_USAGE_ERROR

    def test_restores_and_writes_every_real_image(self, tmp_path: Path, builder) -> None:
        sources = []
        for idx in range(3):
            path = tmp_path / f"face_{idx}.png"
            cv2.imwrite(str(path), np.full((16, 16, 3), 40 * idx, dtype=np.uint8))
            sources.append(str(path))
        out_dir = tmp_path / "out"

        assert cli.main([*sources, "-o", str(out_dir)]) == cli.EXIT_OK

        written = sorted(p.name for p in out_dir.iterdir())
        assert written == ["face_0_restored.png", "face_1_restored.png", "face_2_restored.png"]
        assert builder.model.closed
        restored = cv2.imread(str(out_dir / "face_2_restored.png"))
        assert np.abs(restored.astype(int) - 80).max() <= 1

    def test_inputs_sharing_a_name_are_all_written(self, tmp_path: Path, builder) -> None:
        sources = []
        for folder, value in (("a", 20), ("b", 200)):
            (tmp_path / folder).mkdir()
            path = tmp_path / folder / "face.png"
            cv2.imwrite(str(path), np.full((16, 16, 3), value, dtype=np.uint8))
            sources.append(str(path))
        out_dir = tmp_path / "out"

        assert cli.main([*sources, "-o", str(out_dir)]) == cli.EXIT_OK

        assert sorted(p.name for p in out_dir.iterdir()) == ["face_restored.png", "face_restored_2.png"]
        first = cv2.imread(str(out_dir / "face_restored.png"))
        second = cv2.imread(str(out_dir / "face_restored_2.png"))
        assert np.abs(first.astype(int) - 20).max() <= 1
        assert np.abs(second.astype(int) - 200).max() <= 1

    def test_describe_needs_no_images(self, builder) -> None:
        assert cli.main(["--describe"]) == cli.EXIT_OK
        assert builder.model.closed

    def test_engine_load_failure_is_a_usage_error(self, tmp_path: Path, builder) -> None:
        builder.error = EngineLoadError("could not open engine")
        image = tmp_path / "face.png"
        cv2.imwrite(str(image), np.zeros((16, 16, 3), dtype=np.uint8))
        assert cli.main([str(image)]) == cli.EXIT_USAGE_ERROR

    def test_device_failure_exit_code(self, tmp_path: Path, builder) -> None:
        builder.error = DeviceError("CUDA unavailable")
        image = tmp_path / "face.png"
        cv2.imwrite(str(image), np.zeros((16, 16, 3), dtype=np.uint8))
        assert cli.main([str(image)]) == cli.EXIT_DEVICE_ERROR
