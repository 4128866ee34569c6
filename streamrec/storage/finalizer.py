"""
Post-processing for finished captures.

Discards undersized recordings and moves the rest to the complete directory.
"""

import shutil
from pathlib import Path

from ..utils.config import Config
from ..utils.logger import get_logger
from ..state.models import FinalizeOutcome


logger = get_logger(__name__)


def destination_for(
    complete_dir: Path,
    target: str,
    filename: str,
    per_model_directories: bool = False
) -> Path:
    """
    Build the final location of a capture.

    Args:
        complete_dir: Root of finished captures
        target: Model name
        filename: Capture file name
        per_model_directories: Nest files under a directory per model

    Returns:
        Destination path
    """
    if per_model_directories:
        return Path(complete_dir) / target / filename
    return Path(complete_dir) / filename


class ArtifactFinalizer:
    """
    Classifies a finished capture by size and relocates or deletes it.

    Never raises: every filesystem failure is logged and reported through
    the returned FinalizeOutcome.
    """

    def __init__(self, complete_dir: Path, min_size_bytes: int = 0, per_model_directories: bool = False):
        self.complete_dir = Path(complete_dir)
        self.min_size_bytes = min_size_bytes
        self.per_model_directories = per_model_directories

    def destination_for(self, target: str, filename: str) -> Path:
        return destination_for(self.complete_dir, target, filename, self.per_model_directories)

    def finalize_capture(self, target: str, output_path: Path) -> FinalizeOutcome:
        """Finalize a capture using the configured destination and threshold."""
        output_path = Path(output_path)
        destination = self.destination_for(target, output_path.name)
        return finalize(output_path, destination, self.min_size_bytes)


def finalize(output_path: Path, destination_path: Path, min_size_bytes: int) -> FinalizeOutcome:
    """
    Discard or relocate a finished capture.

    Files of min_size_bytes or less are deleted; larger ones are moved to
    destination_path, creating missing parent directories.

    Args:
        output_path: File the capture process wrote
        destination_path: Where a retained capture ends up
        min_size_bytes: Inclusive discard threshold

    Returns:
        FinalizeOutcome describing what happened
    """
    output_path = Path(output_path)
    destination_path = Path(destination_path)

    try:
        size = output_path.stat().st_size
    except FileNotFoundError:
        # Worker died before writing anything
        logger.debug(f"Nothing to finalize, {output_path.name} does not exist")
        return FinalizeOutcome.MISSING
    except OSError as e:
        logger.error(f"Cannot stat {output_path}: {e}")
        return FinalizeOutcome.FAILED

    if size <= min_size_bytes:
        try:
            output_path.unlink()
            logger.info(f"Discarded {output_path.name} ({size} bytes)")
            return FinalizeOutcome.DISCARDED
        except FileNotFoundError:
            return FinalizeOutcome.MISSING
        except OSError as e:
            logger.error(f"Failed to delete {output_path}: {e}")
            return FinalizeOutcome.FAILED

    try:
        destination_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(output_path), str(destination_path))
    except OSError as e:
        # Source stays where it is
        logger.error(f"Failed to move {output_path} to {destination_path}: {e}")
        return FinalizeOutcome.FAILED

    logger.info(f"Saved {destination_path} ({size} bytes)")
    return FinalizeOutcome.MOVED


def create_finalizer(config: Config) -> ArtifactFinalizer:
    """
    Factory function to create a finalizer from configuration.

    Args:
        config: Recorder configuration

    Returns:
        ArtifactFinalizer instance
    """
    return ArtifactFinalizer(
        config.get_complete_directory(),
        min_size_bytes=config.get_min_file_size_bytes(),
        per_model_directories=bool(config.get('capture.per_model_directories', False)),
    )
