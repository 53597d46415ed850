"""
Per-collection field mapping for source documents.

Sources disagree on what they call the modification timestamp
(``lastModified``, ``ModifiedOn``, ...). The names are configuration, not
something inferred from the source URI.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from core.exceptions import MissingFieldError
from schemas.status import parse_timestamp


@dataclass(frozen=True)
class FieldMapping:
    """
    Attributes:
        key_field: Unique document id, used as the status record key
        modified_field: Last-modified timestamp
        target_id_field: Appended to the target URI; None posts every
            document to the target URI itself
    """
    key_field: str = "id"
    modified_field: str = "lastModified"
    target_id_field: Optional[str] = None

    def _require(self, document: Dict[str, Any], field_name: str) -> Any:
        value = document.get(field_name)
        if value is None or value == "":
            raise MissingFieldError(
                f"Document has no '{field_name}' field",
                context={
                    "field_name": field_name,
                    "available_fields": ", ".join(sorted(document.keys()))
                }
            )
        return value

    def key_of(self, document: Dict[str, Any]) -> str:
        return str(self._require(document, self.key_field))

    def modified_of(self, document: Dict[str, Any]) -> datetime:
        value = self._require(document, self.modified_field)
        try:
            return parse_timestamp(value)
        except ValueError as e:
            raise MissingFieldError(
                f"Field '{self.modified_field}' is not an ISO-8601 timestamp",
                context={"field_name": self.modified_field, "value": value},
                original_exception=e
            )

    def target_id_of(self, document: Dict[str, Any]) -> str:
        if self.target_id_field is None:
            return ""
        return str(self._require(document, self.target_id_field))
