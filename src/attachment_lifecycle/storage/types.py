"""Value types shared by the storage layer and the services."""

from dataclasses import dataclass


@dataclass(frozen=True)
class AttachmentRef:
    """Identifies one stored blob.

    ``stored_name`` is the generated file name inside the blob namespace and
    ``public_location`` is the locator handed to whoever serves the file.
    """

    stored_name: str
    public_location: str
