"""
Messenger RNA: a growable strand that ribosomes translate and destroyers consume.

The strand is modelled as an ordered chain of shape segments, front to back.
The total length contained in the segments is the logical length of the
mRNA. While a ribosome translates, the segment inside its channel pushes
length out to the segment in front of it and refills from the segments
behind. A destroyer eats the strand from the front.

The shape-defining points are laid out along the strand at a fixed spacing:
flat from the leading end, then winding back and forth.
"""

import logging
from typing import Callable, Optional

import numpy as np

from attachment_site import AttachmentSite
from attachment_state_machines import AttachmentState, MessengerRnaAttachmentStateMachine
from biomolecules import MobileBiomolecule
from constants import (
    INTER_POINT_DISTANCE,
    LEADER_LENGTH,
    MRNA_DESTROYER_CONNECT_DISTANCE,
    RIBOSOME_CONNECTION_DISTANCE,
)
from geometry import Rect, bounding_rect

logger = logging.getLogger(__name__)

WINDING_ROW_LENGTH = INTER_POINT_DISTANCE * 8
WINDING_ROW_SPACING = INTER_POINT_DISTANCE
STRAND_THICKNESS = 20.0
SITE_AFFINITY = 1.0


class ShapeSegment:
    """
    A run of mRNA with a capacity and its own attachment site.

    Args:
        owner: The mRNA the segment belongs to
        capacity: Maximum length the segment may contain
        contained_length: Initial length
        is_flat: Flat segments are drawn straight, others wind
    """

    def __init__(self, owner, capacity: float = np.inf, contained_length: float = 0.0, is_flat: bool = True):
        if contained_length > capacity:
            raise ValueError(f"contained length {contained_length} exceeds capacity {capacity}")
        self.capacity = capacity
        self.contained_length = contained_length
        self.is_flat = is_flat
        self.attachment_site = AttachmentSite(owner, owner.position, SITE_AFFINITY)

    @property
    def remaining_capacity(self) -> float:
        return self.capacity - self.contained_length

    def is_empty(self) -> bool:
        return self.contained_length <= 0

    def add_length(self, amount: float) -> float:
        """Add as much of amount as fits. Returns the overflow."""
        accepted = min(amount, self.remaining_capacity)
        self.contained_length += accepted
        return amount - accepted

    def remove_length(self, amount: float) -> float:
        """Remove up to amount. Returns what was actually removed."""
        removed = min(amount, self.contained_length)
        self.contained_length -= removed
        return removed

    def __repr__(self) -> str:
        return f"ShapeSegment(length={self.contained_length:.1f}, capacity={self.capacity})"


class MessengerRna(MobileBiomolecule):
    """
    mRNA strand produced by transcription.

    Args:
        model: Container of the mRNA
        protein_prototype: Factory ``(model, position) -> Protein`` for the
            protein this mRNA encodes
        position: Position of the leading end
        rng: Random number generator
        fade_away_when_formed: Fade out and leave the model once released by
            the polymerase
    """

    def __init__(
        self,
        model,
        protein_prototype: Optional[Callable] = None,
        position=(0.0, 0.0),
        rng=None,
        fade_away_when_formed: bool = False,
    ):
        self.protein_prototype = protein_prototype
        self.fade_away_when_formed = fade_away_when_formed
        self.fully_formed = False
        self.messenger_rna_destroyer = None
        self.destruction_initiated = False
        self._ribosome_segments: dict[int, ShapeSegment] = {}
        self._ribosomes: dict = {}
        self._translated_length: dict[int, float] = {}
        self.segments: list[ShapeSegment] = []
        super().__init__(model, 0.0, 0.0, position, rng)
        self.segments = [
            ShapeSegment(self, LEADER_LENGTH, is_flat=True),
            ShapeSegment(self, np.inf, is_flat=False),
        ]
        self.position_property.lazy_link(self._update_segment_site_positions)

    def create_attachment_state_machine(self):
        return MessengerRnaAttachmentStateMachine(self, self.rng)

    # Geometry

    @property
    def length(self) -> float:
        return float(sum(segment.contained_length for segment in self.segments))

    @property
    def leading_site(self) -> AttachmentSite:
        return self.segments[0].attachment_site

    def point_at(self, arc_length: float) -> np.ndarray:
        """Location of the point arc_length along the strand from the leading end."""
        row = int(arc_length // WINDING_ROW_LENGTH)
        along = arc_length - row * WINDING_ROW_LENGTH
        if row % 2:
            along = WINDING_ROW_LENGTH - along
        return self.position + np.array([along, -row * WINDING_ROW_SPACING])

    def get_shape_defining_points(self) -> list[np.ndarray]:
        length = self.length
        if length <= 0:
            return [self.position.copy()]
        n = int(np.ceil(length / INTER_POINT_DISTANCE))
        return [self.point_at(min(k * INTER_POINT_DISTANCE, length)) for k in range(n + 1)]

    def compute_shape(self) -> Rect:
        bounds = bounding_rect(np.array(self.get_shape_defining_points()))
        t = STRAND_THICKNESS / 2
        return Rect(bounds.x_min - t, bounds.y_min - t, bounds.x_max + t, bounds.y_max + t)

    def _update_segment_site_positions(self, *_args) -> None:
        arc_length = 0.0
        for segment in self.segments:
            segment.attachment_site.set_position(self.point_at(arc_length))
            arc_length += segment.contained_length

    def _on_length_changed(self) -> None:
        self._update_segment_site_positions()
        self._invalidate_shape()
        shape = self.get_shape()
        self.shape_size_property.set((shape.width, shape.height))

    def set_user_controlled(self, user_controlled: bool) -> None:
        # Grabbing an mRNA leaves its ribosomes and destroyer in place
        self.user_controlled_property.set(user_controlled)

    # Synthesis

    def attach_to_polymerase(self) -> None:
        self._set_attached()

    def add_length(self, amount: float) -> None:
        """Grow the strand at its back end."""
        if amount < 0:
            raise ValueError(f"cannot add negative length {amount}")
        remaining = amount
        for segment in self.segments:
            remaining = segment.add_length(remaining)
            if remaining <= 0:
                break
        self._on_length_changed()

    def release_from_polymerase(self) -> None:
        self.fully_formed = True
        self._release_if_idle()

    def _set_attached(self) -> None:
        if self.attachment_state_machine.state is not AttachmentState.ATTACHED:
            self.attachment_state_machine.set_state(AttachmentState.ATTACHED)

    def _release_if_idle(self) -> None:
        if (
            self.fully_formed
            and not self._ribosome_segments
            and self.messenger_rna_destroyer is None
            and self.attachment_state_machine.state is AttachmentState.ATTACHED
        ):
            self.attachment_state_machine.set_state(AttachmentState.UNATTACHED_AND_AVAILABLE)

    # Translation

    def _is_channel(self, segment: ShapeSegment) -> bool:
        return any(segment is s for s in self._ribosome_segments.values())

    def is_being_translated(self) -> bool:
        return bool(self._ribosome_segments)

    def get_ribosomes(self) -> list:
        return list(self._ribosomes.values())

    def consider_proposal_from_ribosome(self, ribosome) -> Optional[AttachmentSite]:
        site = self.leading_site
        if not self.fully_formed or self.messenger_rna_destroyer is not None or self.length <= 0:
            return None
        if site.is_occupied() or self._is_channel(self.segments[0]):
            return None
        if site.distance_to(ribosome.get_translation_channel_entrance()) > RIBOSOME_CONNECTION_DISTANCE:
            return None
        return site

    def _fit_leading_segment_to_channel(self, channel_length: float) -> ShapeSegment:
        """Set the leading segment's capacity, moving any excess into a new segment behind it."""
        leading = self.segments[0]
        leading.capacity = channel_length
        if leading.contained_length > channel_length:
            excess = leading.contained_length - channel_length
            leading.contained_length = channel_length
            self.segments.insert(1, ShapeSegment(self, np.inf, excess, is_flat=False))
        return leading

    def _refill_channel(self, index: int) -> None:
        channel = self.segments[index]
        for segment in self.segments[index + 1:]:
            if channel.remaining_capacity <= 0 or self._is_channel(segment):
                break
            channel.add_length(segment.remove_length(channel.remaining_capacity))

    def _remove_empty_segments(self) -> None:
        kept = [
            segment for segment in self.segments
            if not segment.is_empty() or self._is_channel(segment) or segment.attachment_site.is_occupied()
        ]
        self.segments = kept or self.segments[:1]

    def initiate_translation(self, ribosome) -> None:
        if ribosome.id in self._ribosome_segments:
            raise RuntimeError(f"{ribosome!r} is already translating {self!r}")
        channel = self._fit_leading_segment_to_channel(ribosome.translation_channel_length)
        self._ribosome_segments[ribosome.id] = channel
        self._ribosomes[ribosome.id] = ribosome
        self._translated_length[ribosome.id] = 0.0
        self._refill_channel(0)
        self._set_attached()
        self._on_length_changed()
        logger.debug("%r started translating %r", ribosome, self)

    def advance_translation(self, ribosome, amount: float) -> bool:
        """
        Pull amount of strand through the ribosome's channel.

        Returns:
            True once all of the strand has passed through the ribosome
        """
        channel = self._ribosome_segments.get(ribosome.id)
        if channel is None:
            raise RuntimeError(f"{ribosome!r} is not translating {self!r}")
        index = self.segments.index(channel)
        if index == 0 or self._is_channel(self.segments[index - 1]):
            self.segments.insert(index, ShapeSegment(self, np.inf, is_flat=True))
            index += 1

        moved = channel.remove_length(amount)
        self.segments[index - 1].add_length(moved)
        self._translated_length[ribosome.id] += moved
        self._refill_channel(index)
        self._on_length_changed()

        return channel.is_empty() and all(s.is_empty() for s in self.segments[index + 1:])

    def get_proportion_of_translation_complete(self, ribosome) -> float:
        length = self.length
        if length <= 0:
            return 1.0
        return min(1.0, self._translated_length.get(ribosome.id, 0.0) / length)

    def release_from_ribosome(self, ribosome) -> None:
        channel = self._ribosome_segments.pop(ribosome.id, None)
        if channel is None:
            logger.warning("%r released by %r which was not translating it", self, ribosome)
            return
        self._ribosomes.pop(ribosome.id)
        self._translated_length.pop(ribosome.id)
        channel.capacity = np.inf
        self._remove_empty_segments()
        self._on_length_changed()
        self._release_if_idle()

    # Destruction

    def consider_proposal_from_messenger_rna_destroyer(self, destroyer) -> Optional[AttachmentSite]:
        site = self.leading_site
        if not self.fully_formed or self.messenger_rna_destroyer is not None:
            return None
        if self._ribosome_segments or site.is_occupied():
            return None
        if site.distance_to(destroyer.position) > MRNA_DESTROYER_CONNECT_DISTANCE:
            return None
        return site

    def set_pending_destroyer(self, destroyer) -> None:
        if self.messenger_rna_destroyer is not None and self.messenger_rna_destroyer is not destroyer:
            raise RuntimeError(f"{self!r} already has destroyer {self.messenger_rna_destroyer!r}")
        self.messenger_rna_destroyer = destroyer

    def abort_destruction(self) -> None:
        self.messenger_rna_destroyer = None
        self.destruction_initiated = False
        self._release_if_idle()

    def initiate_destruction(self, destroyer) -> None:
        if self.messenger_rna_destroyer is not destroyer:
            raise RuntimeError(f"{destroyer!r} has not claimed {self!r}")
        self._fit_leading_segment_to_channel(destroyer.destruction_channel_length)
        self.destruction_initiated = True
        self._set_attached()
        self._on_length_changed()

    def advance_destruction(self, amount: float) -> bool:
        """
        Destroy amount of strand from the leading end.

        Returns:
            True once nothing is left
        """
        if not self.destruction_initiated:
            logger.warning("Destruction of %r advanced before it was initiated", self)
            return True
        self.reduce_length(amount)
        return self.length <= 0

    def reduce_length(self, amount: float) -> None:
        if amount >= self.length:
            leading = self.segments[0]
            leading.contained_length = 0.0
            self.segments = [leading]
        else:
            remaining = amount
            for segment in self.segments:
                remaining -= segment.remove_length(remaining)
                if remaining <= 0:
                    break
        self._on_length_changed()

    def dispose(self) -> None:
        for ribosome in self.get_ribosomes():
            ribosome.attachment_state_machine.force_immediate_unattached_and_available()
        for segment in self.segments:
            occupant = segment.attachment_site.occupant
            if occupant is not None:
                occupant.attachment_state_machine.force_abort_pending_attachment()
        super().dispose()
