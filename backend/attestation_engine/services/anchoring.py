"""
Chain anchoring (best effort).

An anchor service writes the commitment of a compliance record into a public
chain and returns where it landed. The ledger never waits on it: any anchor
failure leaves chain_anchor_info empty and the event is stored regardless.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol

from .commitments import commitment_hash


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainAnchor:
    """Where a record hash was anchored."""
    network: str
    tx_hash: str
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "network": self.network,
            "tx_hash": self.tx_hash,
            "block_number": self.block_number,
        }


class ChainAnchorService(Protocol):
    def anchor(self, record_hash: str, record: Mapping[str, Any]) -> ChainAnchor:
        ...


def anchor_best_effort(
    service: Optional[ChainAnchorService],
    record: Mapping[str, Any],
) -> Optional[Dict[str, Any]]:
    """
    Anchor a compliance record, returning chain_anchor_info or None.

    Never raises.
    """
    if service is None:
        return None
    try:
        record_hash = commitment_hash(record)
        return service.anchor(record_hash, record).to_dict()
    except Exception as e:
        logger.warning(f"Chain anchoring failed, storing event without anchor: {e}")
        return None
