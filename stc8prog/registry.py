"""
Chip registry module for STC8 programmer.
Provides lookups from chip codes to models and from models to protocols.
"""

import logging
from typing import Optional, Sequence

from .config import CHIP_DEFS, PROTOCOL_DEFS, ChipModel, ProtocolDef, ProtocolVariant
from .exceptions import UnknownChipException, UnsupportedProtocolException

logger = logging.getLogger(__name__)


def model_lookup(chip_id: int, chips: Sequence[ChipModel] = CHIP_DEFS) -> Optional[ChipModel]:
    """Return the chip model with the given code, or None."""
    for model in chips:
        if model.id == chip_id:
            return model
    return None


def protocol_lookup(variant: ProtocolVariant,
                    protocols: Sequence[ProtocolDef] = PROTOCOL_DEFS) -> Optional[ProtocolDef]:
    """Return the protocol definition for the given variant, or None."""
    for protocol in protocols:
        if protocol.variant == variant:
            return protocol
    return None


class ChipRegistry:
    """Helper class for chip and protocol lookups."""

    def __init__(self, chips: Sequence[ChipModel] = CHIP_DEFS,
                 protocols: Sequence[ProtocolDef] = PROTOCOL_DEFS):
        """
        Initialize the registry with the given tables.

        Args:
            chips: Chip model table
            protocols: Protocol definition table
        """
        self.chips = tuple(chips)
        self.protocols = tuple(protocols)

    def model(self, chip_id: int) -> ChipModel:
        """
        Find the chip model for a chip code.

        Raises:
            UnknownChipException: If the code is not in the table
        """
        model = model_lookup(chip_id, self.chips)
        if model is None:
            logger.error(f"Unknown chip code {chip_id:04x}")
            raise UnknownChipException(chip_id)
        return model

    def protocol(self, model: ChipModel) -> ProtocolDef:
        """
        Find the protocol definition a chip model speaks.

        Raises:
            UnsupportedProtocolException: If no definition exists for the model's variant
        """
        protocol = protocol_lookup(model.protocol, self.protocols)
        if protocol is None:
            logger.error(f"No protocol definition for {model.name} ({model.protocol})")
            raise UnsupportedProtocolException(model.protocol)
        return protocol

    def max_flash_size(self) -> int:
        """Largest flash of any known chip, in bytes."""
        return max(model.flash_size_kb for model in self.chips) * 1024

    def missing_protocols(self):
        """Variants referenced by a chip model but lacking a protocol definition."""
        known = {protocol.variant for protocol in self.protocols}
        return sorted({model.protocol for model in self.chips} - known, key=lambda v: v.value)
