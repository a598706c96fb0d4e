"""
Error types
===========

Every failure of a conversion is reported by raising one of the exceptions
below. None of them is retryable: the input is a static file, so parsing the
same bytes again cannot succeed.
"""

from typing import Optional


class ConversionError(Exception):
    """Base class for all conversion failures"""

    def __init__(self, message: str, **context):
        self.message = message
        self.context = context
        super().__init__(self._format())

    def _format(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={_fmt(v)}" for k, v in self.context.items())
        return f"{self.message} ({details})"


def _fmt(value) -> str:
    if isinstance(value, int) and not isinstance(value, bool):
        return f"0x{value:x}"
    return repr(value) if isinstance(value, (bytes, str)) else str(value)


class IoError(ConversionError):
    """Open/read/write/seek failure, including short reads"""

    def __init__(self, message: str, path: Optional[str] = None, **context):
        self.path = path
        if path is not None:
            context = {"path": path, **context}
        super().__init__(message, **context)


class FormatError(ConversionError):
    """Malformed or unsupported ELF input"""

    def __init__(self, message: str, field: Optional[str] = None, offset: Optional[int] = None,
                 expected=None, actual=None, **context):
        self.field = field
        self.offset = offset
        self.expected = expected
        self.actual = actual
        ctx = {}
        if field is not None:
            ctx["field"] = field
        if offset is not None:
            ctx["offset"] = offset
        if expected is not None:
            ctx["expected"] = expected
        if actual is not None:
            ctx["actual"] = actual
        ctx.update(context)
        super().__init__(message, **ctx)


class MissingCodeSectionError(ConversionError):
    """No PROGBITS section to load"""

    def __init__(self, message: str = "No progbits section found"):
        super().__init__(message)


class DiscontiguousZeroFillError(ConversionError):
    """Two NOBITS sections that do not form one contiguous memfill region"""

    def __init__(self, expected_base: int, actual_base: int):
        self.expected_base = expected_base
        self.actual_base = actual_base
        super().__init__("Got discontiguous memfill sections",
                         expected=expected_base, actual=actual_base)


class ObjectTooLargeError(ConversionError):
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__("Object is too big", size=size, limit=limit)


class InvalidRegionError(ConversionError):
    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Invalid region {code!r}, expected one of NA, E or J")
