from __future__ import annotations

from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import DEFAULT_FEATHER_EDGES, DEFAULT_OUTPUT_FORMAT, DEFAULT_QUALITY, DEFAULT_TOLERANCE
from .errors import InvalidParameterError

OutputFormat = Literal["png", "jpg", "webp"]


class _Contract(BaseModel):
    # Accept both the hosting app's camelCase keys and snake_case.
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ClassificationParams(_Contract):
    """
    Knobs consumed by classifier / mask / compositor.

    NOTE: `tolerance` is inverted relative to its name. Removal happens when
    confidence > tolerance / 100, so a HIGHER tolerance removes LESS.
    """

    tolerance: int = Field(default=DEFAULT_TOLERANCE, ge=0, le=100)
    feather_edges: bool = Field(default=DEFAULT_FEATHER_EDGES, alias="featherEdges")
    preserve_shadows: bool = Field(default=False, alias="preserveShadows")
    auto_enhance: bool = Field(default=False, alias="autoEnhance")

    @property
    def threshold(self) -> float:
        return self.tolerance / 100.0


class EncodingParams(_Contract):
    output_format: OutputFormat = Field(default=DEFAULT_OUTPUT_FORMAT, alias="outputFormat")
    # Only meaningful for lossy formats (jpg, webp).
    quality: int = Field(default=DEFAULT_QUALITY, ge=1, le=100)


class BackgroundRemovalOptions(ClassificationParams, EncodingParams):
    """Full option set accepted from the hosting application."""

    @classmethod
    def parse(cls, options: "BackgroundRemovalOptions | Mapping[str, Any] | None") -> "BackgroundRemovalOptions":
        """
        Validate caller options; range violations raise InvalidParameterError.
        """
        if isinstance(options, cls):
            return options
        try:
            return cls.model_validate(dict(options or {}))
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise InvalidParameterError(f"Invalid options: {fields}") from e

    def classification(self) -> ClassificationParams:
        return ClassificationParams(
            tolerance=self.tolerance,
            feather_edges=self.feather_edges,
            preserve_shadows=self.preserve_shadows,
            auto_enhance=self.auto_enhance,
        )

    def encoding(self) -> EncodingParams:
        return EncodingParams(output_format=self.output_format, quality=self.quality)


class ImageInput(_Contract):
    data: bytes
    file_name: Optional[str] = Field(default=None, alias="fileName")
    content_type: Optional[str] = Field(default=None, alias="contentType")


class Dimensions(_Contract):
    width: int
    height: int


class ResultMetadata(_Contract):
    tolerance: int
    feather_edges: bool = Field(alias="featherEdges")
    output_format: OutputFormat = Field(alias="outputFormat")
    quality: int


class ItemResult(_Contract):
    success: bool
    file_name: Optional[str] = Field(default=None, alias="fileName")
    encoded_bytes: Optional[bytes] = Field(default=None, alias="encodedBytes")
    content_type: Optional[str] = Field(default=None, alias="contentType")
    error: Optional[str] = None
    error_code: Optional[str] = Field(default=None, alias="errorCode")
    original_size: int = Field(default=0, alias="originalSize")
    final_size: Optional[int] = Field(default=None, alias="finalSize")
    dimensions: Optional[Dimensions] = None
    metadata: Optional[ResultMetadata] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class BatchResult(_Contract):
    success: bool
    results: List[ItemResult] = Field(default_factory=list)
    total_files: int = Field(alias="totalFiles")
    successful_files: int = Field(alias="successfulFiles")

    @property
    def failed_files(self) -> int:
        return self.total_files - self.successful_files

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
