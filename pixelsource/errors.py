class _BasePixelSourceError(ValueError):
    _msg = ""

    def __init__(self, *args):
        super().__init__(self._msg.format(*args))


class _BasePixelSourceIndexError(IndexError):
    _msg = ""

    def __init__(self, *args):
        super().__init__(self._msg.format(*args))


class FormatError(_BasePixelSourceError):
    _msg = "{0}"


class MetadataError(FormatError):
    _msg = "invalid image metadata: {0}"


class MissingSubIFDsError(FormatError):
    _msg = "directory {0} is missing sub-resolution offsets for level {1}"


class UnsupportedDtypeError(FormatError):
    _msg = "pixel type {0!r} not supported"


class UnsupportedCompressionError(FormatError):
    _msg = "cannot decode segments with compression {0} and predictor {1}"


class InvalidDimensionOrderError(FormatError, IndexError):
    _msg = "invalid OME-XML DimensionOrder, got {0!r}"


class InvalidDimensionError(_BasePixelSourceIndexError):
    _msg = "invalid dimension {0!r}; expected one of {1}"


class DuplicateLabelError(_BasePixelSourceIndexError):
    _msg = "labels must be unique, found duplicated label in {0!r}"


class SelectionBoundsError(_BasePixelSourceIndexError):
    _msg = "index {1} out of bounds for dimension {0!r} with size {2}"


class BoundsCheckError(_BasePixelSourceIndexError):
    _msg = "tile slice is zero-sized for dimension with length {0}"


class ShapeMismatchError(_BasePixelSourceError):
    _msg = "{0}"


class NotFoundError(LookupError):
    """No source is registered for a selection of a stacked image."""

    def __init__(self, selection):
        self.selection = dict(selection)
        super().__init__(f"no image available for selection {self.selection!r}")


class OperationAborted(Exception):
    """Raised when a read resumes after its abort signal was triggered.

    This is not a failure; callers drop it silently.
    """

    def __init__(self):
        super().__init__("operation aborted")
