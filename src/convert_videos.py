#!/usr/bin/env python3
"""
Batch conversion of a folder of videos to size-reduced MP4 files.

For each video in the source folder:
1. MP4 sources are converted in two passes (audio, then video) so the
   smaller audio track is kept and nothing is encoded twice
2. Other sources are fully re-encoded to MP4 in one pass
3. The output gets the source's modification time

After the batch, every converted file is checked against its original and
MP4 conversions that saved too little are replaced by the original.
"""

import logging
import os
import tempfile
from pathlib import Path

import validation
from media_files import find_source_videos, is_mp4, log_path, output_path, temp_path
from media_probe import MediaProbe
from subprocess_utils import execute
from two_pass import convert_single_pass, convert_two_pass

logger = logging.getLogger(__name__)


class ConversionOutcome:
    """Result of converting one source file."""

    def __init__(self, source_path, output_path, succeeded, error_detail=None):
        self.source_path = Path(source_path)
        self.output_path = Path(output_path)
        self.succeeded = succeeded
        self.error_detail = error_detail

    def __repr__(self):
        status = 'ok' if self.succeeded else f'failed: {self.error_detail}'
        return f"ConversionOutcome({str(self.source_path)!r}, {status})"


class BatchResult:
    """Outcomes of a batch run and the validation report that followed it."""

    def __init__(self, outcomes, validation_report=None):
        self.outcomes = list(outcomes)
        self.validation_report = validation_report

    @property
    def succeeded(self):
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed(self):
        return [o for o in self.outcomes if not o.succeeded]

    def summary(self):
        return f"{len(self.succeeded)} succeeded, {len(self.failed)} failed"


def discard_partial_output(outcome):
    """Remove whatever a failed conversion left at its output path."""
    try:
        outcome.output_path.unlink()
        logger.info(f"Removed partial output {outcome.output_path}")
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.error(f"Failed to remove partial output {outcome.output_path}: {e}")


def copy_mtime(source_path, target_path):
    """Give target_path the modification time of source_path."""
    source_stat = os.stat(source_path)
    os.utime(target_path, (source_stat.st_atime, source_stat.st_mtime))


class VideoConverter:
    """Converts the videos of one run.

    Args:
        settings: ConversionSettings for the run
        probe: MediaProbe shared by every file of the run
        executor: Callable with the signature of subprocess_utils.execute
    """

    def __init__(self, settings, probe=None, executor=execute):
        self.settings = settings
        self.probe = probe or MediaProbe(settings.mp4info)
        self.executor = executor

    def output_sink_for(self, path):
        """Encoder output goes to the terminal in the foreground, to a per-file log otherwise."""
        if self.settings.foreground:
            return None
        return log_path(path, self.settings.log_folder)

    def all_videos(self):
        return find_source_videos(self.settings.folder)

    def convert_file(self, path, scratch_dir):
        """Convert one video into the output folder.

        Returns:
            ConversionOutcome: failures are recorded here, never raised
        """
        source = Path(path)
        destination = output_path(source, self.settings.output_folder)
        sink = self.output_sink_for(source)

        if self.settings.verbose:
            logger.info(f"input: {source}, output: {destination}, log: {sink or 'terminal'}")

        if is_mp4(source):
            result = convert_two_pass(
                source, destination, temp_path(source, scratch_dir), self.probe, self.settings,
                output_sink=sink, executor=self.executor)
        else:
            result = convert_single_pass(
                source, destination, self.settings, output_sink=sink, executor=self.executor)

        if not result.succeeded:
            logger.error(f"❌ Conversion failed for {source}: {result.describe_failure()}")
            return ConversionOutcome(source, destination, False, result.describe_failure())

        try:
            copy_mtime(source, destination)
        except OSError as e:
            logger.error(f"❌ Conversion of {source} produced no usable output: {e}")
            return ConversionOutcome(source, destination, False, str(e))

        self.probe.invalidate(destination)
        logger.info(f"✅ Finished converting {destination}.")
        return ConversionOutcome(source, destination, True)

    def convert_all(self, paths=None):
        """Convert every video, then validate the output folder.

        Args:
            paths: Videos to convert. Defaults to all videos in the source folder.

        Returns:
            BatchResult
        """
        if paths is None:
            paths = self.all_videos()

        self.settings.output_folder.mkdir(parents=True, exist_ok=True)

        if self.settings.verbose:
            logger.info("To be converted:")
            for path in paths:
                logger.info(f"  {path}")

        outcomes = []
        with tempfile.TemporaryDirectory(prefix='convert_videos_') as scratch_dir:
            for path in paths:
                outcome = self.convert_file(path, scratch_dir)
                if not outcome.succeeded:
                    discard_partial_output(outcome)
                outcomes.append(outcome)

        result = BatchResult(outcomes)
        logger.info("Finished converting all videos.")
        logger.info(result.summary())

        result.validation_report = self.check_sizes()
        return result

    def check_sizes(self):
        """Validate the output folder against the source folder."""
        return validation.validate(
            self.settings.output_folder,
            self.settings.folder,
            self.probe,
            threshold=self.settings.threshold,
            fix=self.settings.fix,
            verbose=self.settings.verbose,
        )

    def clean_sources(self, outcomes):
        """Delete the originals of successful conversions when cleaning is enabled.

        Returns:
            list: Paths that were removed
        """
        if not self.settings.clean:
            return []
        if not os.access(self.settings.folder, os.W_OK):
            logger.warning(f"Not removing originals: {self.settings.folder} is not writable")
            return []

        removed = []
        converted = [o.source_path for o in outcomes if o.succeeded]
        if converted:
            logger.info("Removing:")
        for path in converted:
            logger.info(f"  {path}")
            try:
                path.unlink()
                removed.append(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.error(f"Failed to remove {path}: {e}")
        return removed
