from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import structlog
from pydantic import ValidationError

from .classifier import classify_pixels
from .composite import apply_mask, auto_enhance
from .config import MAX_WORKERS, PROGRESS_DONE, PROGRESS_FINALIZE, PROGRESS_ITEMS_SPAN
from .contracts import (
    BackgroundRemovalOptions,
    BatchResult,
    ClassificationParams,
    Dimensions,
    ImageInput,
    ItemResult,
    ResultMetadata,
)
from .errors import BackgroundRemovalError, InvalidParameterError, ProcessingCancelledError
from .io import decode_image, encode_image, mime_type
from .mask import build_mask
from .progress import ProgressReporter, ProgressSink
from .raster import RasterImage

log = structlog.get_logger(__name__)

ImageSource = Union[ImageInput, bytes, bytearray, Mapping[str, Any]]
OptionsLike = Union[BackgroundRemovalOptions, Mapping[str, Any], None]


@dataclass(frozen=True)
class StageTimings:
    decode_s: float
    separate_s: float
    encode_s: float
    total_s: float


def _check_cancel(cancel_event: Optional[threading.Event], stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise ProcessingCancelledError(f"Cancelled before {stage}")


def remove_background(
    image: RasterImage,
    params: ClassificationParams,
    *,
    cancel_event: Optional[threading.Event] = None,
) -> RasterImage:
    """
    Classify -> mask -> composite (-> auto-enhance) for one decoded image.

    Pure: the input image is never modified.
    """
    confidence = classify_pixels(image, params)
    _check_cancel(cancel_event, "mask")
    mask = build_mask(confidence, image, params.threshold, params.feather_edges)
    _check_cancel(cancel_event, "composite")
    out = apply_mask(image, mask, params.feather_edges)
    if params.auto_enhance:
        out = auto_enhance(out)
    return out


def _metadata(options: BackgroundRemovalOptions) -> ResultMetadata:
    return ResultMetadata(
        tolerance=options.tolerance,
        feather_edges=options.feather_edges,
        output_format=options.output_format,
        quality=options.quality,
    )


def _coerce_input(item: ImageSource) -> ImageInput:
    if isinstance(item, ImageInput):
        return item
    if isinstance(item, (bytes, bytearray)):
        return ImageInput(data=bytes(item))
    try:
        return ImageInput.model_validate(dict(item))
    except (TypeError, ValueError, ValidationError) as e:
        raise InvalidParameterError(f"Invalid image input: {type(item).__name__}") from e


def process_image(
    item: ImageSource,
    options: OptionsLike = None,
    *,
    cancel_event: Optional[threading.Event] = None,
) -> ItemResult:
    """
    Deterministic, linear pipeline for a single image:
      1) Decode
      2) Classify pixels, build mask, composite
      3) Encode

    Raises DecodeError / EncodeError / ProcessingCancelledError.
    """
    item = _coerce_input(item)
    options = BackgroundRemovalOptions.parse(options)
    params = options.classification()
    encoding = options.encoding()

    t0 = time.perf_counter()
    _check_cancel(cancel_event, "decode")
    image = decode_image(item.data, item.content_type)
    t1 = time.perf_counter()

    _check_cancel(cancel_event, "classify")
    out = remove_background(image, params, cancel_event=cancel_event)
    t2 = time.perf_counter()

    _check_cancel(cancel_event, "encode")
    encoded = encode_image(out, encoding)
    t3 = time.perf_counter()

    timings = StageTimings(decode_s=t1 - t0, separate_s=t2 - t1, encode_s=t3 - t2, total_s=t3 - t0)
    log.debug(
        "image processed",
        file_name=item.file_name,
        width=image.width,
        height=image.height,
        total_s=round(timings.total_s, 4),
        decode_s=round(timings.decode_s, 4),
        separate_s=round(timings.separate_s, 4),
        encode_s=round(timings.encode_s, 4),
    )

    return ItemResult(
        success=True,
        file_name=item.file_name,
        encoded_bytes=encoded,
        content_type=mime_type(encoding.output_format),
        original_size=len(item.data),
        final_size=len(encoded),
        dimensions=Dimensions(width=image.width, height=image.height),
        metadata=_metadata(options),
    )


def _failure(item: ImageInput, error: Exception, options: BackgroundRemovalOptions) -> ItemResult:
    code = error.code if isinstance(error, BackgroundRemovalError) else BackgroundRemovalError.code
    return ItemResult(
        success=False,
        file_name=item.file_name,
        error=str(error) or type(error).__name__,
        error_code=code,
        original_size=len(item.data),
        metadata=_metadata(options),
    )


def run_batch(
    items: Sequence[ImageSource],
    options: OptionsLike = None,
    progress: Optional[ProgressSink] = None,
    *,
    max_workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> BatchResult:
    """
    Run every item through `process_image` on a bounded thread pool.

    - results[i] always corresponds to items[i]
    - a failing item is recorded as a failure; siblings keep going
    - options are validated up front (InvalidParameterError, nothing runs)
    """
    options = BackgroundRemovalOptions.parse(options)
    inputs = [_coerce_input(item) for item in items]
    if not inputs:
        raise InvalidParameterError("No files provided")

    n = len(inputs)
    reporter = ProgressReporter(progress, total=n, items_span=PROGRESS_ITEMS_SPAN)
    results: List[Optional[ItemResult]] = [None] * n

    def _run(index: int) -> None:
        item = inputs[index]
        try:
            reporter.started(index)
            results[index] = process_image(item, options, cancel_event=cancel_event)
        except BackgroundRemovalError as e:
            log.warning("image failed", index=index, file_name=item.file_name, error_code=e.code, error=str(e))
            results[index] = _failure(item, e, options)
        except Exception as e:  # noqa: BLE001
            log.exception("image failed unexpectedly", index=index, file_name=item.file_name)
            results[index] = _failure(item, e, options)
        finally:
            reporter.finished(index)

    workers = max(1, min(int(max_workers or MAX_WORKERS), n))
    log.info("batch started", total=n, workers=workers, output_format=options.output_format)
    t0 = time.perf_counter()
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(_run, i) for i in range(n)]
        for future in futures:
            future.result()

    reporter.update("Finalizing results...", PROGRESS_FINALIZE)
    done = [r for r in results if r is not None]
    successful = sum(1 for r in done if r.success)
    log.info(
        "batch finished",
        total=n,
        successful=successful,
        failed=n - successful,
        elapsed_s=round(time.perf_counter() - t0, 3),
    )
    batch = BatchResult(success=successful > 0, results=done, total_files=n, successful_files=successful)
    reporter.update("Done", PROGRESS_DONE)
    return batch


def process_background_removal(
    files: Sequence[ImageSource],
    options: OptionsLike = None,
    progress: Optional[ProgressSink] = None,
    *,
    max_workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Dict[str, Any]:
    """
    Library entry point for the hosting request handler.

    One file -> that file's result payload.
    Several files -> {success, results, totalFiles, successfulFiles}.
    """
    batch = run_batch(files, options, progress, max_workers=max_workers, cancel_event=cancel_event)
    if batch.total_files == 1:
        return batch.results[0].to_payload()
    return batch.to_payload()
