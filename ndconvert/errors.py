"""Exception hierarchy shared by the ndconvert modules."""


class NdConvertError(Exception):
    """Base class for errors raised by ndconvert."""

    pass


class RangeError(NdConvertError, ValueError):
    """Raised when a crop or plane range is negative, empty or out of bounds."""

    pass


class FormatError(NdConvertError):
    """Raised when a format codec rejects a dataset, a plane or an option."""

    pass


class DatasetIOError(NdConvertError, OSError):
    """Raised on transport failures while probing, reading, writing or closing."""

    pass


class OverwriteAborted(NdConvertError):
    """Raised when a flag or the user declined to overwrite a destination."""

    pass
