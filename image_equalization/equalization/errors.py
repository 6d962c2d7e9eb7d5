"""Exceptions raised while equalizing a frame. All of them are per-frame and recoverable."""

from __future__ import annotations


class EqualizationError(Exception):
    pass


class UnsupportedEncodingError(EqualizationError):
    def __init__(self, encoding: str, detail: str = ""):
        self.encoding = encoding
        message = f"Unsupported image encoding: {encoding!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ProcessingError(EqualizationError):
    """OpenCV failure during grayscale conversion or equalization."""

    def __init__(self, err: str, func: str = "", file: str = "", line: int = 0):
        self.err = err
        self.func = func
        self.file = file
        self.line = line
        super().__init__(f"{err} {func} {file} {line}".strip())

    @classmethod
    def from_cv_error(cls, exc: Exception) -> "ProcessingError":
        # cv2.error carries the C++ exception fields as attributes
        return cls(
            err=getattr(exc, "err", None) or str(exc),
            func=getattr(exc, "func", None) or "",
            file=getattr(exc, "file", None) or "",
            line=getattr(exc, "line", None) or 0,
        )


class MalformedFrameError(EqualizationError):
    """Image buffer smaller than its height, width and step describe."""
