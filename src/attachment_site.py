"""
Attachment sites: claimable binding locations on DNA and mRNA.

A site holds at most one molecule at a time, either attached or on its way
to attach. Claiming is a compare-and-set on the occupant, and all claims
happen sequentially within a tick, so a site can never be claimed twice.
"""

import itertools
import logging

import numpy as np

from geometry import as_vector
from observable import Property

logger = logging.getLogger(__name__)

_site_ids = itertools.count()


def check_affinity(affinity: float) -> float:
    if not 0.0 < affinity <= 1.0:
        raise ValueError(f"affinity must be in (0, 1], got {affinity}")
    return float(affinity)


class AttachmentSite:
    """
    A location where a biomolecule may attach.

    Attributes:
        id: Stable identity of the site
        owner: DNA molecule, gene or mRNA that created the site
        position_property: Current 2D location, may move with its owner
        affinity_property: Binding strength in (0, 1]
        attached_or_attaching_molecule: Occupant, or None when free
    """

    def __init__(self, owner, position, affinity: float):
        self.id = next(_site_ids)
        self.owner = owner
        self.position_property = Property(as_vector(position))
        self.affinity_property = Property(check_affinity(affinity))
        self.attached_or_attaching_molecule = Property(None)

    @property
    def position(self) -> np.ndarray:
        return self.position_property.get()

    def set_position(self, position) -> None:
        self.position_property.set(as_vector(position))

    @property
    def affinity(self) -> float:
        return self.affinity_property.get()

    def set_affinity(self, affinity: float) -> None:
        self.affinity_property.set(check_affinity(affinity))

    @property
    def occupant(self):
        return self.attached_or_attaching_molecule.get()

    def is_occupied(self) -> bool:
        return self.occupant is not None

    def claim(self, molecule) -> bool:
        """
        Reserve the site for molecule if nobody else holds it.

        Returns:
            True if the molecule now holds the site
        """
        current = self.occupant
        if current is not None and current is not molecule:
            return False
        self.attached_or_attaching_molecule.set(molecule)
        logger.debug("Site %d claimed by %r", self.id, molecule)
        return True

    def release(self, molecule=None) -> None:
        """Free the site. If molecule is given it must be the current occupant."""
        if molecule is not None and self.occupant is not molecule:
            raise RuntimeError(f"{molecule!r} released site {self.id} held by {self.occupant!r}")
        self.attached_or_attaching_molecule.set(None)

    def is_molecule_attached(self) -> bool:
        """True if the occupant has arrived and is attached, not merely approaching."""
        occupant = self.occupant
        return occupant is not None and occupant.attachment_state_machine.is_attached()

    def distance_to(self, position) -> float:
        return float(np.linalg.norm(self.position - as_vector(position)[:2]))

    def __repr__(self) -> str:
        x, y = self.position
        return f"AttachmentSite(id={self.id}, pos=({x:.1f}, {y:.1f}), affinity={self.affinity:.3f})"
