# errors.py
"""Exception types raised across the capture, inference and storage layers."""


class CaptureAcquisitionError(IOError):
    """The capture device could not be opened (missing device, permission denied)."""


class ClassifierUnavailableError(RuntimeError):
    """The emotion model could not be loaded."""


class MalformedRecordError(ValueError):
    """A stored session record does not have the expected shape."""


class PersistenceError(RuntimeError):
    """A create/delete call against the session store failed."""
