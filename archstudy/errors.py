class ArchStudyError(Exception):
    """Base error for the study application"""


class RemoteStoreError(ArchStudyError):
    """Remote store unreachable, unauthenticated or rejected the request"""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")


class SnapshotFormatError(ArchStudyError):
    """Import payload is missing required keys or holds invalid records"""


class QuestionValidationError(ArchStudyError):
    """A question payload or CSV row failed validation"""
