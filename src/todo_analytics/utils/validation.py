"""Validation of record collections handed to the analytics engine.

Structurally invalid input (something that is not a collection, or items that
cannot be turned into task records) is rejected immediately. Missing optional
fields are not errors: they are replaced by neutral defaults when the record
is built.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, List

from ..record import TaskRecord

logger = logging.getLogger(__name__)


class RecordValidationError(ValueError):
    """Exception raised when a record collection is structurally invalid."""

    def __init__(self, message: str, field_name: str = None, index: int = None, value: Any = None):
        self.field_name = field_name
        self.index = index
        self.value = value
        super().__init__(message)


def ensure_records(records: Any) -> List[TaskRecord]:
    """Return ``records`` as a list of TaskRecord.

    Items may be TaskRecord instances or storage dictionaries.

    Raises:
        RecordValidationError: If records is not a collection, or an item is
            missing a required field or carries an unparseable timestamp
    """
    if isinstance(records, (str, bytes, Mapping)) or not isinstance(records, Iterable):
        raise RecordValidationError(
            f"Task records must be a list of records, got {type(records).__name__}",
            value=records,
        )

    result = []
    for index, item in enumerate(records):
        if isinstance(item, TaskRecord):
            result.append(item)
            continue

        if not isinstance(item, Mapping):
            raise RecordValidationError(
                f"Record {index} must be a mapping or TaskRecord, got {type(item).__name__}",
                index=index,
                value=item,
            )

        try:
            result.append(TaskRecord.from_dict(item))
        except KeyError as e:
            field_name = e.args[0]
            raise RecordValidationError(
                f"Record {index} is missing required field '{field_name}'",
                field_name=field_name,
                index=index,
                value=item,
            ) from None
        except (TypeError, ValueError) as e:
            raise RecordValidationError(
                f"Record {index} has an invalid value: {e}",
                index=index,
                value=item,
            ) from e

    return result


def count_inconsistent(records: List[TaskRecord]) -> int:
    """Count records whose update_time precedes create_time."""
    inconsistent = [r for r in records if not r.has_consistent_timestamps]
    if inconsistent:
        sample = ", ".join(r.id for r in inconsistent[:5])
        logger.warning(
            f"{len(inconsistent)} record(s) have update_time before create_time: {sample}"
        )
    return len(inconsistent)
