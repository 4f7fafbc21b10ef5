"""
Plane traversal and conversion.

:func:`traverse` is the read loop shared by every command: it walks the
tasks of a :class:`~ndconvert.planes.PlaneEnumerator`, reads each plane into
a recycled buffer and hands it to a callback. :class:`ConversionPipeline`
builds on it to copy planes into a destination, and :func:`convert_dataset`
wires up sources, destinations and the overwrite policy for a whole
conversion.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence, Union

from attrs import define

from .config import ReaderConfig, WriterConfig
from .errors import DatasetIOError, FormatError, RangeError
from .formats.base import Destination, Source
from .io import open_destination, open_source
from .logging import get_logger
from .metadata import Plane
from .overwrite import OverwriteGuard
from .planes import PlaneEnumerator, PlaneTask

logger = get_logger(__name__)

ProgressCallback = Callable[[int, Optional[int]], None]


@define
class ConversionResult:
    """
    Outcome of a conversion run.

    Attributes:
        total: Planes enumerated
        written: Planes stored in the destination
        skipped: Planes beyond the destination's capacity
    """

    total: int = 0
    written: int = 0
    skipped: int = 0


def _task_count(tasks: Iterable[PlaneTask]) -> Optional[int]:
    """Number of tasks, or None when ``tasks`` is a plain iterator."""
    try:
        return len(tasks)  # type: ignore[arg-type]
    except TypeError:
        return None


def read_task(
    source: Source, image_index: int, task: PlaneTask, plane: Optional[Plane] = None
) -> Plane:
    """
    Read the plane of ``task``, recycling ``plane``'s buffer.

    Raises:
        FormatError: If the plane cannot be decoded
        DatasetIOError: If the file cannot be read
    """
    try:
        return source.open_plane(image_index, task.flat_index, task.bounds, plane=plane)
    except RangeError:
        raise
    except OSError as exc:
        raise DatasetIOError(
            f"Cannot read plane #{task.sequential_no} (index {task.flat_index}) "
            f"of {source.path}: {exc}"
        ) from exc
    except (FormatError, ValueError) as exc:
        raise FormatError(
            f"Cannot read plane #{task.sequential_no} (index {task.flat_index}) "
            f"of {source.path}: {exc}"
        ) from exc


def _report(done: int, total: Optional[int], progress: Optional[ProgressCallback]) -> None:
    if total is None:
        logger.info("Processed: %d planes.", done)
    else:
        logger.info("Processed: %d/%d planes.", done, total)
    if progress is not None:
        progress(done, total)


def traverse(
    source: Source,
    tasks: Iterable[PlaneTask],
    process_plane: Callable[[PlaneTask, Plane], None],
    image_index: int = 0,
    monitor=None,
    progress: Optional[ProgressCallback] = None,
    reader: Optional[Callable[[Source, int, PlaneTask, Optional[Plane]], Plane]] = None,
) -> int:
    """
    Read every plane of ``tasks`` and pass it to ``process_plane``.

    The same Plane object is refilled for each task; ``process_plane`` must
    copy the data it wants to keep.

    Args:
        source: Source to read from
        tasks: Plane tasks, usually a :class:`PlaneEnumerator`
        process_plane: Called with each task and its plane
        image_index: Image of ``source`` to read
        monitor: Optional object with a ``canceled`` attribute, checked
            before each plane
        progress: Optional ``(done, total)`` callback; ``total`` is None
            when ``tasks`` has no length
        reader: Replaces :func:`read_task` for fetching each plane (e.g. to
            read thumbnails)

    Returns:
        Number of planes processed
    """
    total = _task_count(tasks)
    reader = reader or read_task
    plane = None
    count = 0
    for task in tasks:
        if monitor is not None and monitor.canceled:
            logger.info("Canceled after %d planes.", count)
            break
        plane = reader(source, image_index, task, plane)
        process_plane(task, plane)
        count += 1
        _report(task.sequential_no + 1, total, progress)
    return count


class ConversionPipeline:
    """
    Copy planes from a source to a destination.

    Tasks whose sequential number reaches the destination's plane capacity
    are skipped without being read. After the last task the destination is
    asked to :meth:`~ndconvert.formats.base.Destination.finish`. The first
    read, write or finish failure aborts the run and the destination discards
    what it holds. Source and destination are closed when the run ends,
    whatever the outcome; close failures are only logged.

    Args:
        source: Source to read from
        destination: Destination to write to
        image_index: Image read from the source
        transform: Optional function applied to each plane before writing
        progress: Optional ``(done, total)`` callback
        destination_index: Image written in the destination; defaults to
            ``image_index``
    """

    def __init__(
        self,
        source: Source,
        destination: Destination,
        image_index: int = 0,
        transform: Optional[Callable[[Plane], Plane]] = None,
        progress: Optional[ProgressCallback] = None,
        destination_index: Optional[int] = None,
    ):
        self.source = source
        self.destination = destination
        self.image_index = image_index
        self.transform = transform
        self.progress = progress
        self.destination_index = (
            image_index if destination_index is None else destination_index
        )

    def run(self, tasks: Iterable[PlaneTask]) -> ConversionResult:
        """
        Convert every task.

        Raises:
            FormatError: If a plane cannot be decoded or encoded
            DatasetIOError: If a read or write fails at the transport level
        """
        result = ConversionResult(total=_task_count(tasks))
        failed = True
        try:
            capacity = self.destination.plane_capacity(self.destination_index)
            plane = None
            for task in tasks:
                if task.sequential_no >= capacity:
                    result.skipped += 1
                else:
                    plane = read_task(self.source, self.image_index, task, plane)
                    out = self.transform(plane) if self.transform else plane
                    self._write(task, out)
                    result.written += 1
                _report(task.sequential_no + 1, result.total, self.progress)
            self._finish()
            failed = False
        finally:
            self._close(failed)
        if result.total is None:
            result.total = result.written + result.skipped
        if result.skipped:
            logger.info(
                "%s holds %d plane(s); %d plane(s) were not written.",
                self.destination.format_name,
                capacity,
                result.skipped,
            )
        return result

    def _write(self, task: PlaneTask, plane: Plane) -> None:
        try:
            self.destination.write_plane(self.destination_index, task.sequential_no, plane)
        except OSError as exc:
            raise DatasetIOError(
                f"Cannot write plane #{task.sequential_no} (index {task.flat_index}) "
                f"to {self.destination.path}: {exc}"
            ) from exc
        except (FormatError, ValueError) as exc:
            raise FormatError(
                f"Cannot write plane #{task.sequential_no} (index {task.flat_index}) "
                f"to {self.destination.path}: {exc}"
            ) from exc

    def _finish(self) -> None:
        try:
            self.destination.finish()
        except (DatasetIOError, FormatError):
            raise
        except OSError as exc:
            raise DatasetIOError(f"Cannot save {self.destination.path}: {exc}") from exc
        except ValueError as exc:
            raise FormatError(f"Cannot save {self.destination.path}: {exc}") from exc

    def _close(self, failed: bool) -> None:
        if failed:
            release(self.destination.abort, "discard partial output", self.destination.path)
        release(self.source.close, "close reader", self.source.path)
        release(self.destination.close, "close writer", self.destination.path)


def release(action: Callable[[], None], what: str, path: str) -> None:
    """
    Run a cleanup ``action``, logging a failure instead of raising it.

    Cleanup never replaces the result or the error of the work it follows.
    """
    try:
        action()
    except Exception as exc:
        logger.warning("Failed to %s for %s: %s", what, path, exc)


def apply_writer_options(destination: Destination, writer_config: Optional[WriterConfig]) -> None:
    """Pass the requested options the destination supports; warn about the rest."""
    if writer_config is None:
        return
    for option, value in writer_config.requested().items():
        if destination.supports(option):
            destination.set_option(option, value)
        else:
            logger.warning(
                "%s does not support option '%s'; ignoring it",
                destination.format_name,
                option,
            )


def convert_dataset(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    crop: Sequence[int] = (),
    plane_range: Sequence[int] = (),
    reader_config: Optional[ReaderConfig] = None,
    writer_config: Optional[WriterConfig] = None,
    guard: Optional[OverwriteGuard] = None,
    image_index: int = 0,
    location: Optional[str] = None,
    transform: Optional[Callable[[Plane], Plane]] = None,
    progress: Optional[ProgressCallback] = None,
) -> ConversionResult:
    """
    Convert one image of a dataset into a new dataset.

    Args:
        input_path: Dataset to read
        output_path: Dataset to create; its suffix selects the format
        crop: Alternating offset/length pairs over the planar axes
        plane_range: Alternating offset/length pairs over the non-planar axes
        reader_config: Reader options (filters, grouping, preloading)
        writer_config: Writer options (BigTIFF, compression)
        guard: Overwrite policy; prompts on stdin when None
        image_index: Image of the input to convert
        location: File on disk ``input_path`` is mapped to, if any
        transform: Optional function applied to each plane before writing
        progress: Optional ``(done, total)`` callback

    Returns:
        Plane counts of the run

    Raises:
        OverwriteAborted: If the destination exists and may not be replaced
        RangeError: If the crop or plane range does not fit the image
        FormatError: If a format cannot read, write or convert the data
        DatasetIOError: On transport failures
    """
    guard = guard or OverwriteGuard()
    guard.ensure(str(output_path))

    source = open_source(input_path, reader_config, location=location)
    destination = None
    try:
        metadata = source.get_metadata(image_index)
        if source.image_count > 1:
            logger.info(
                "%s contains %d images; converting image %d",
                source.path,
                source.image_count,
                image_index,
            )
        tasks = PlaneEnumerator.from_metadata(metadata, crop, plane_range)
        planar_lengths, non_planar_lengths = tasks.output_lengths()
        destination = open_destination(
            output_path, metadata.restricted(planar_lengths, non_planar_lengths)
        )
        apply_writer_options(destination, writer_config)
    except Exception:
        release(source.close, "close reader", source.path)
        if destination is not None:
            release(destination.close, "close writer", destination.path)
        raise

    logger.info("%s -> %s", source.format_name, destination.format_name)
    pipeline = ConversionPipeline(
        source,
        destination,
        image_index=image_index,
        transform=transform,
        progress=progress,
        destination_index=0,
    )
    return pipeline.run(tasks)
