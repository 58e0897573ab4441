"""Error taxonomy for the upload pipeline.

UploadError subclasses are user-facing and map to HTTP 400.
ClassificationError is recovered by the caller into a degraded analysis.
"""


class UploadError(Exception):
    """An uploaded file could not be turned into a table."""


class UnsupportedTypeError(UploadError):
    def __init__(self, extension: str):
        self.extension = extension
        super().__init__(
            "Unsupported file type. Please upload Excel (.xlsx, .xls) or CSV files."
        )


class EmptyFileError(UploadError):
    def __init__(self, message: str = "File contains no data"):
        super().__init__(message)


class ParseError(UploadError):
    def __init__(self, cause: str):
        self.cause = cause
        super().__init__(f"Failed to parse file: {cause}")


class FileTooLargeError(UploadError):
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"File is too large ({size:,} bytes, limit {limit:,} bytes)")


class ClassificationError(Exception):
    """The language model could not produce a usable analysis."""
