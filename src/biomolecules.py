"""
Mobile biomolecules of the gene expression model.

Every biomolecule has a position, a lazily computed shape, an attachment
state machine and a motion strategy. Variants differ in what they propose
to attach to and in the machine they carry.
"""

import itertools
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from attachment_state_machines import (
    AttachmentStateMachine,
    MessengerRnaDestroyerAttachmentStateMachine,
    ProteinAttachmentStateMachine,
    RibosomeAttachmentStateMachine,
    RnaPolymeraseAttachmentStateMachine,
    TranscriptionFactorAttachmentStateMachine,
)
from geometry import MotionBounds, Rect, as_vector
from observable import Property

logger = logging.getLogger(__name__)

_biomolecule_ids = itertools.count()


@dataclass(frozen=True)
class TranscriptionFactorConfig:
    """Identity of a transcription factor: whether it promotes or inhibits, and its name."""
    is_positive: bool
    name: str = "tf"


class MobileBiomolecule:
    """
    Base class for biomolecules that move around the cell.

    Args:
        model: Container providing motion bounds and spawning services
        width: Width of the shape bounds
        height: Height of the shape bounds
        position: Initial center position
        rng: Random number generator. Defaults to the model's.
    """

    def __init__(self, model, width: float, height: float, position=(0.0, 0.0), rng=None):
        self.id = next(_biomolecule_ids)
        self.model = model
        if rng is None:
            rng = model.rng if model is not None else np.random.default_rng()
        self.rng = rng

        self.position_property = Property(as_vector(position))
        self.z_position_property = Property(0.0)
        self.shape_size_property = Property((float(width), float(height)))
        self.attached_to_dna_property = Property(False)
        self.movable_by_user_property = Property(True)
        self.user_controlled_property = Property(False)
        self.existence_strength_property = Property(1.0)
        if model is not None:
            self.motion_bounds_property = model.motion_bounds_property
        else:
            self.motion_bounds_property = Property(MotionBounds())

        self._shape: Optional[Rect] = None
        self.position_property.lazy_link(self._invalidate_shape)
        self.shape_size_property.lazy_link(self._invalidate_shape)

        self.motion_strategy = None
        self.attachment_state_machine = self.create_attachment_state_machine()
        self.attachment_state_machine.enter_initial_state()

    def create_attachment_state_machine(self) -> AttachmentStateMachine:
        return AttachmentStateMachine(self, self.rng)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id})"

    # Observable state

    @property
    def position(self) -> np.ndarray:
        return self.position_property.get()

    def set_position(self, position) -> None:
        self.position_property.set(as_vector(position))

    @property
    def z_position(self) -> float:
        return self.z_position_property.get()

    def set_z_position(self, z: float) -> None:
        self.z_position_property.set(float(z))

    @property
    def attached_to_dna(self) -> bool:
        return self.attached_to_dna_property.get()

    def set_attached_to_dna(self, attached: bool) -> None:
        self.attached_to_dna_property.set(attached)

    @property
    def movable_by_user(self) -> bool:
        return self.movable_by_user_property.get()

    def set_movable_by_user(self, movable: bool) -> None:
        self.movable_by_user_property.set(movable)

    @property
    def user_controlled(self) -> bool:
        return self.user_controlled_property.get()

    def set_user_controlled(self, user_controlled: bool) -> None:
        """Grab or drop the biomolecule. Grabbing abandons any attachment."""
        if user_controlled and not self.user_controlled:
            self.attachment_state_machine.force_immediate_unattached_and_available()
        self.user_controlled_property.set(user_controlled)

    @property
    def existence_strength(self) -> float:
        return self.existence_strength_property.get()

    def set_existence_strength(self, strength: float) -> None:
        if not 0.0 <= strength <= 1.0:
            raise ValueError(f"existence strength must be in [0, 1], got {strength}")
        self.existence_strength_property.set(strength)

    @property
    def attachment_site(self):
        return self.attachment_state_machine.attachment_site

    # Shape

    def _invalidate_shape(self, *_args) -> None:
        self._shape = None

    def get_shape(self) -> Rect:
        if self._shape is None:
            self._shape = self.compute_shape()
        return self._shape

    def compute_shape(self) -> Rect:
        width, height = self.shape_size_property.get()
        return Rect.from_center(self.position, width, height)

    def is_position_in_motion_bounds(self, position) -> bool:
        return self.motion_bounds_property.get().test_if_in_motion_bounds(self.get_shape(), position)

    # Motion and stepping

    def set_motion_strategy(self, strategy) -> None:
        if self.motion_strategy is not None:
            self.motion_strategy.dispose()
        self.motion_strategy = strategy

    def get_detach_direction(self) -> np.ndarray:
        return np.array([0.0, 1.0 if self.rng.random() < 0.5 else -1.0])

    def step(self, dt: float) -> None:
        if self.user_controlled:
            return
        self.attachment_state_machine.step(dt)
        self.move(dt)

    def move(self, dt: float) -> None:
        if self.motion_strategy is None:
            return
        x, y = self.position
        next_position = self.motion_strategy.next_position_3d([x, y, self.z_position], self.get_shape(), dt)
        self.set_position(next_position[:2])
        self.set_z_position(next_position[2])

    def propose_attachments(self):
        """Return an attachment site to move towards, or None."""
        return None

    def get_adjacent_attachment_sites(self, site) -> list:
        return []

    def dispose(self) -> None:
        self.attachment_state_machine.dispose()
        self.set_motion_strategy(None)


class TranscriptionFactor(MobileBiomolecule):
    """Regulatory protein that attaches to matching sites near a gene."""

    WIDTH = 325.0
    HEIGHT = 240.0

    def __init__(self, model, config: TranscriptionFactorConfig, position=(0.0, 0.0), rng=None):
        self.config = config
        super().__init__(model, self.WIDTH, self.HEIGHT, position, rng)

    def create_attachment_state_machine(self):
        return TranscriptionFactorAttachmentStateMachine(self, self.rng)

    @property
    def is_positive(self) -> bool:
        return self.config.is_positive

    @property
    def dna(self):
        return self.model.dna

    def propose_attachments(self):
        return self.dna.consider_proposal_from_transcription_factor(self)

    def get_adjacent_attachment_sites(self, site) -> list:
        return self.dna.get_adjacent_attachment_sites_transcription_factor(self, site)


class RnaPolymerase(MobileBiomolecule):
    """
    Enzyme that transcribes genes into mRNA.

    Args:
        recycle_mode: After transcription, drift off and reappear in one of
            recycle_return_zones instead of wandering away
        recycle_return_zones: Rectangles where a recycled polymerase reappears
    """

    WIDTH = 340.0
    HEIGHT = 300.0
    # Output point of the mRNA relative to the polymerase center
    MESSENGER_RNA_OUTPUT_OFFSET = np.array([WIDTH * 0.4, HEIGHT * 0.4])

    def __init__(
        self,
        model,
        position=(0.0, 0.0),
        rng=None,
        recycle_mode: bool = False,
        recycle_return_zones: Sequence[Rect] = (),
    ):
        if recycle_mode and not recycle_return_zones:
            raise ValueError("recycle mode requires at least one return zone")
        self.recycle_mode = recycle_mode
        self.recycle_return_zones = list(recycle_return_zones)
        self.conformational_change_amount_property = Property(0.0)
        super().__init__(model, self.WIDTH, self.HEIGHT, position, rng)

    def create_attachment_state_machine(self):
        return RnaPolymeraseAttachmentStateMachine(self, self.rng)

    @property
    def dna(self):
        return self.model.dna

    def set_conformational_change_amount(self, amount: float) -> None:
        self.conformational_change_amount_property.set(amount)

    def get_messenger_rna_output_position(self) -> np.ndarray:
        return self.position + self.MESSENGER_RNA_OUTPUT_OFFSET

    def propose_attachments(self):
        return self.dna.consider_proposal_from_rna_polymerase(self)

    def get_adjacent_attachment_sites(self, site) -> list:
        return self.dna.get_adjacent_attachment_sites_rna_polymerase(self, site)


class Ribosome(MobileBiomolecule):
    """Translates mRNA into protein."""

    WIDTH = 430.0
    HEIGHT = 450.0
    TRANSLATION_CHANNEL_LENGTH = WIDTH * 0.95

    def __init__(self, model, position=(0.0, 0.0), rng=None):
        self.offset_to_translation_channel_entrance = np.array([self.WIDTH * 0.45, -self.HEIGHT * 0.23])
        super().__init__(model, self.WIDTH, self.HEIGHT, position, rng)

    def create_attachment_state_machine(self):
        return RibosomeAttachmentStateMachine(self, self.rng)

    @property
    def translation_channel_length(self) -> float:
        return self.TRANSLATION_CHANNEL_LENGTH

    def get_translation_channel_entrance(self) -> np.ndarray:
        return self.position + self.offset_to_translation_channel_entrance

    def get_protein_attachment_point(self) -> np.ndarray:
        return self.position + np.array([0.0, self.HEIGHT * 0.5])

    def propose_attachments(self):
        return self.model.consider_proposal_from_ribosome(self)


class MessengerRnaDestroyer(MobileBiomolecule):
    """Enzyme that consumes mRNA from its leading end."""

    WIDTH = 250.0
    HEIGHT = 250.0

    def __init__(self, model, position=(0.0, 0.0), rng=None):
        super().__init__(model, self.WIDTH, self.HEIGHT, position, rng)

    def create_attachment_state_machine(self):
        return MessengerRnaDestroyerAttachmentStateMachine(self, self.rng)

    @property
    def destruction_channel_length(self) -> float:
        return self.WIDTH / 2

    def propose_attachments(self):
        # A destroyer that has finished its job is on its way out
        if self.attachment_state_machine.fading:
            return None
        return self.model.consider_proposal_from_messenger_rna_destroyer(self)

    def advance_messenger_rna_destruction(self, amount: float) -> bool:
        """Consume amount of the target mRNA. Returns True once it is gone."""
        mrna = self.attachment_state_machine.messenger_rna
        if mrna is None:
            raise RuntimeError(f"{self!r} has no mRNA to destroy")
        return mrna.advance_destruction(amount)


class Protein(MobileBiomolecule):
    """
    Product of translation.

    A protein grows while its ribosome translates and is released into the
    cell once translation completes.
    """

    FULL_SIZE = 200.0

    def __init__(self, model, position=(0.0, 0.0), rng=None, name: str = "protein"):
        self.name = name
        self.full_size_proportion_property = Property(0.0)
        self.full_grown = False
        super().__init__(model, 0.0, 0.0, position, rng)
        self.full_size_proportion_property.link(self._on_full_size_proportion_changed)

    def create_attachment_state_machine(self):
        return ProteinAttachmentStateMachine(self, self.rng)

    def _on_full_size_proportion_changed(self, proportion, _old=None) -> None:
        size = self.FULL_SIZE * proportion
        self.shape_size_property.set((size, size))

    def set_full_size_proportion(self, proportion: float) -> None:
        self.full_size_proportion_property.set(min(1.0, max(0.0, float(proportion))))

    def attach_to_ribosome(self) -> None:
        self.attachment_state_machine.attach_to_ribosome()

    def release(self) -> None:
        """Let the protein loose once its ribosome has finished translating."""
        self.set_full_size_proportion(1.0)
        self.full_grown = True
        self.attachment_state_machine.force_immediate_unattached_and_available()
