from __future__ import annotations

import argparse
from pathlib import Path
from typing import Iterator, Sequence

import cv2
import numpy as np

from face_restoration.application.model_builder import ModelBuilder
from face_restoration.config import load_restoration_config
from face_restoration.config.log_config import apply_log_config
from face_restoration.core.errors import DeviceError, FaceRestorationError
from logger.filtered_logger import FilteredLogger, LogChannel


EXIT_OK = 0
EXIT_DEVICE_ERROR = 1
EXIT_USAGE_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Restore faces with a serialized TensorRT engine")
    parser.add_argument("images", nargs="*", type=Path, help="Input images (any format cv2.imread can decode)")
    parser.add_argument("-e", "--engine", help="Engine file (overrides engine.path in the config)")
    parser.add_argument("-c", "--config", type=Path, help="Restoration YAML config (default: bundled restoration.yaml)")
    parser.add_argument("-o", "--output-dir", type=Path, default=Path("restored"), help="Where restored images are written")
    parser.add_argument("--describe", action="store_true", help="Print the engine bindings and exit")
    parser.add_argument("--warm-up", action="store_true", help="Run one blank batch before the real images")
    return parser


def load_images(paths: Sequence[Path], log: FilteredLogger) -> list[tuple[Path, np.ndarray]]:
    """Decode each path with OpenCV (BGR); unreadable files are reported and skipped."""
    loaded: list[tuple[Path, np.ndarray]] = []
    for path in paths:
        image = cv2.imread(str(path), cv2.IMREAD_COLOR)
        if image is None:
            log.warning(LogChannel.GLOBAL, f"Skipping unreadable image {path}")
            continue
        loaded.append((path, image))
    return loaded


def iter_batches(items: Sequence[tuple[Path, np.ndarray]], batch_size: int) -> Iterator[tuple[list[Path], list[np.ndarray]]]:
    """Yield (paths, images) groups of exactly batch_size images.

    The last group is filled by repeating its final image; only the real
    paths are returned, so the extra outputs can be dropped.
    """
    for start in range(0, len(items), batch_size):
        chunk = list(items[start:start + batch_size])
        paths = [path for path, _ in chunk]
        images = [image for _, image in chunk]
        while len(images) < batch_size:
            images.append(images[-1])
        yield paths, images


def output_path_for(source: Path, output_dir: Path) -> Path:
    suffix = source.suffix.lower() if source.suffix else ".png"
    return output_dir / f"{source.stem}_restored{suffix}"


def assign_output_paths(sources: Sequence[Path], output_dir: Path, log: FilteredLogger) -> list[Path]:
    """Return one distinct output file per input, in input order.

    Inputs sharing a stem (``a/face.png`` and ``b/face.png``) get ``_2``,
    ``_3``... appended instead of overwriting each other.
    """
    assigned: list[Path] = []
    taken: set[Path] = set()
    for source in sources:
        target = output_path_for(source, output_dir)
        index = 1
        while target in taken:
            index += 1
            base = output_path_for(source, output_dir)
            target = base.with_name(f"{base.stem}_{index}{base.suffix}")
        if index > 1:
            log.warning(LogChannel.GLOBAL, f"Output name clash for {source}, writing {target.name}")
        taken.add(target)
        assigned.append(target)
    return assigned


def run(args: argparse.Namespace, log: FilteredLogger) -> int:
    config = load_restoration_config(args.config)
    if args.engine:
        config["engine"]["path"] = args.engine
    builder = ModelBuilder(config, logger=log)

    with builder.build_model() as model:
        if args.describe:
            for line in model.describe():
                log.info(LogChannel.ENGINE, line)
            return EXIT_OK
        if args.warm_up:
            model.warm_up()

        items = load_images(args.images, log)
        if not items:
            log.error(LogChannel.GLOBAL, "No readable input images")
            return EXIT_USAGE_ERROR

        args.output_dir.mkdir(parents=True, exist_ok=True)
        targets = iter(assign_output_paths([path for path, _ in items], args.output_dir, log))
        written = 0
        for paths, images in iter_batches(items, model.batch_size):
            restored = model.infer(images)
            for _, image in zip(paths, restored):
                target = next(targets)
                if not cv2.imwrite(str(target), image):
                    log.warning(LogChannel.GLOBAL, f"Could not write {target}")
                    continue
                written += 1
            log.debug(LogChannel.INFERENCE, f"Batch of {len(paths)} done in {model.last_timings['total_ms']:.1f} ms")
        log.info(LogChannel.GLOBAL, f"Wrote {written} restored image(s) to {args.output_dir}")
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    log = apply_log_config(FilteredLogger())
    args = build_parser().parse_args(argv)
    if not args.describe and not args.images:
        log.error(LogChannel.GLOBAL, "No input images given")
        return EXIT_USAGE_ERROR
    try:
        return run(args, log)
    except DeviceError as exc:
        log.error(LogChannel.INFERENCE, f"Fatal device error: {exc}")
        return EXIT_DEVICE_ERROR
    except (FaceRestorationError, FileNotFoundError) as exc:
        log.error(LogChannel.GLOBAL, str(exc))
        return EXIT_USAGE_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
