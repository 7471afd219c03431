"""
Privacy requests: right-to-be-forgotten, right-to-know, ownership.
"""

from .erasure import SubjectErasureService, parse_subject_id
from .data_export import SubjectDataService, address_confidence

__all__ = [
    "SubjectErasureService",
    "parse_subject_id",
    "SubjectDataService",
    "address_confidence",
]
