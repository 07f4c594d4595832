"""
Attachment state machines for mobile biomolecules.

Each biomolecule owns one machine. The machine searches for attachment
sites, approaches a claimed site, stays attached until it detaches or its
work is done, and then cools down before searching again. States form a
closed enum with an explicit table of legal transitions; variants override
the per-state hooks.
"""

import logging
from enum import Enum
from typing import Optional

import numpy as np

from constants import (
    APPROACH_VELOCITY,
    ATTACHED_DISTANCE_THRESHOLD,
    DEFAULT_AFFINITY,
    DEFAULT_ATTACH_TIME,
    FADE_OUT_TIME,
    MRNA_DESTRUCTION_RATE,
    TRANSCRIPTION_VELOCITY,
    TRANSLATION_VELOCITY,
    UNAVAILABLE_TIME,
    VELOCITY_ON_DNA,
)
from motion_strategies import (
    DRIFT_VELOCITY,
    DriftThenTeleport,
    FollowAttachmentSite,
    MoveDirectlyToDestination,
    RandomWalk,
    Stillness,
    WanderInGeneralDirection,
)
from observable import Property

logger = logging.getLogger(__name__)


class AttachmentState(Enum):
    UNATTACHED_AND_AVAILABLE = "unattached_and_available"
    MOVING_TOWARDS_ATTACHMENT = "moving_towards_attachment"
    ATTACHED = "attached"
    ATTACHED_TO_BASE_PAIR = "attached_to_base_pair"
    ATTACHED_AND_CONFORMING = "attached_and_conforming"
    ATTACHED_AND_TRANSCRIBING = "attached_and_transcribing"
    UNATTACHED_BUT_UNAVAILABLE = "unattached_but_unavailable"
    BEING_RECYCLED = "being_recycled"


S = AttachmentState

ATTACHED_STATES = frozenset({
    S.ATTACHED,
    S.ATTACHED_TO_BASE_PAIR,
    S.ATTACHED_AND_CONFORMING,
    S.ATTACHED_AND_TRANSCRIBING,
})

# Forced resets to either unattached state are legal from anywhere
_ALWAYS_LEGAL = {S.UNATTACHED_AND_AVAILABLE, S.UNATTACHED_BUT_UNAVAILABLE}

TRANSITIONS = {
    S.UNATTACHED_AND_AVAILABLE: {S.MOVING_TOWARDS_ATTACHMENT, S.ATTACHED} | _ALWAYS_LEGAL,
    S.MOVING_TOWARDS_ATTACHMENT: {S.ATTACHED, S.ATTACHED_TO_BASE_PAIR} | _ALWAYS_LEGAL,
    S.ATTACHED: {S.MOVING_TOWARDS_ATTACHMENT} | _ALWAYS_LEGAL,
    S.ATTACHED_TO_BASE_PAIR: {S.MOVING_TOWARDS_ATTACHMENT, S.ATTACHED_AND_CONFORMING} | _ALWAYS_LEGAL,
    S.ATTACHED_AND_CONFORMING: {S.ATTACHED_AND_TRANSCRIBING} | _ALWAYS_LEGAL,
    S.ATTACHED_AND_TRANSCRIBING: {S.BEING_RECYCLED} | _ALWAYS_LEGAL,
    S.UNATTACHED_BUT_UNAVAILABLE: set(_ALWAYS_LEGAL),
    S.BEING_RECYCLED: set(_ALWAYS_LEGAL),
}

# Threshold decay per hop between adjacent sites
HOP_THRESHOLD_DECAY = 0.5 ** DEFAULT_ATTACH_TIME

CONFORMATIONAL_CHANGE_RATE = 1.0


def calculate_probability_of_detachment(affinity: float, dt: float) -> float:
    """
    Probability of detaching from a site within dt.

    Detachment is exponential with a half-life that grows with affinity. An
    affinity of 1 never detaches.
    """
    if affinity >= 1.0:
        return 0.0
    half_life = 0.05 * affinity / (1 - affinity)
    return float(1 - np.exp(-0.693 * dt / half_life))


class AttachmentStateMachine:
    """
    Base attachment state machine.

    Attributes:
        biomolecule: Owner of the machine
        attachment_site: Site currently claimed, or None
        destination_offset: Offset between the owner's position and the
            point that meets the attachment site
        state_property: Property publishing the current AttachmentState
    """

    attached_state = S.ATTACHED

    _STEP_HANDLERS = {
        S.UNATTACHED_AND_AVAILABLE: "_step_unattached_and_available",
        S.MOVING_TOWARDS_ATTACHMENT: "_step_moving_towards_attachment",
        S.ATTACHED: "_step_attached",
        S.ATTACHED_TO_BASE_PAIR: "_step_attached_to_base_pair",
        S.ATTACHED_AND_CONFORMING: "_step_attached_and_conforming",
        S.ATTACHED_AND_TRANSCRIBING: "_step_attached_and_transcribing",
        S.UNATTACHED_BUT_UNAVAILABLE: "_step_unattached_but_unavailable",
        S.BEING_RECYCLED: "_step_being_recycled",
    }

    def __init__(self, biomolecule, rng: Optional[np.random.Generator] = None):
        self.biomolecule = biomolecule
        self.rng = rng or np.random.default_rng()
        self.attachment_site = None
        self.destination_offset = np.zeros(2)
        self.state_property = Property(S.UNATTACHED_AND_AVAILABLE)
        self.unavailable_countdown = 0.0

    @property
    def state(self) -> AttachmentState:
        return self.state_property.get()

    def enter_initial_state(self) -> None:
        self._run_hook("enter", self.state)

    def is_attached(self) -> bool:
        return self.state in ATTACHED_STATES

    def set_state(self, new_state: AttachmentState) -> None:
        old_state = self.state
        if new_state not in TRANSITIONS[old_state]:
            raise RuntimeError(
                f"Illegal attachment transition {old_state.name} -> {new_state.name} for {self.biomolecule!r}"
            )
        self._run_hook("exit", old_state, new_state)
        self.state_property.set(new_state)
        logger.debug("%r: %s -> %s", self.biomolecule, old_state.name, new_state.name)
        self._run_hook("enter", new_state)

    def _run_hook(self, kind: str, state: AttachmentState, *args) -> None:
        # Enter hooks take no arguments, exit hooks receive the state being entered
        hook = getattr(self, f"_{kind}_{state.value}", None)
        if hook is not None:
            hook(*args)

    def step(self, dt: float) -> None:
        getattr(self, self._STEP_HANDLERS[self.state])(dt)

    # Site bookkeeping

    def _release_site(self) -> None:
        site = self.attachment_site
        if site is None:
            return
        if site.occupant is self.biomolecule:
            site.release()
        self.attachment_site = None

    def _claim(self, site) -> bool:
        if not site.claim(self.biomolecule):
            return False
        self.attachment_site = site
        self._on_site_claimed(site)
        return True

    def _on_site_claimed(self, site) -> None:
        pass

    def _start_moving_towards_site(self, velocity: float = APPROACH_VELOCITY) -> None:
        self.biomolecule.set_motion_strategy(MoveDirectlyToDestination(
            self.attachment_site.position_property,
            self.biomolecule.motion_bounds_property,
            self.destination_offset,
            velocity,
        ))
        self.set_state(S.MOVING_TOWARDS_ATTACHMENT)

    # External operations

    def detach(self) -> None:
        """Release the held site and cool down before searching again."""
        if self.attachment_site is None:
            raise RuntimeError(f"{self.biomolecule!r} asked to detach with no attachment site")
        self._release_site()
        self.set_state(S.UNATTACHED_BUT_UNAVAILABLE)

    def force_immediate_unattached_and_available(self) -> None:
        self._release_site()
        self.set_state(S.UNATTACHED_AND_AVAILABLE)

    def force_immediate_unattached_but_unavailable(self) -> None:
        self._release_site()
        self.set_state(S.UNATTACHED_BUT_UNAVAILABLE)

    def force_abort_pending_attachment(self) -> None:
        """Give up on a site that has been claimed but not yet reached."""
        logger.debug("%r: pending attachment to %r aborted", self.biomolecule, self.attachment_site)
        self.force_immediate_unattached_and_available()

    def dispose(self) -> None:
        self._release_site()

    # State behaviour

    def _enter_unattached_and_available(self) -> None:
        self._release_site()
        self.biomolecule.set_attached_to_dna(False)
        self.biomolecule.set_movable_by_user(True)
        self.biomolecule.set_motion_strategy(
            RandomWalk(self.biomolecule.motion_bounds_property, self.rng)
        )

    def _step_unattached_and_available(self, dt: float) -> None:
        site = self.biomolecule.propose_attachments()
        if site is None or not self._claim(site):
            return
        self._start_moving_towards_site()

    def _step_moving_towards_attachment(self, dt: float) -> None:
        if self.attachment_site is None:
            raise RuntimeError(f"{self.biomolecule!r} is moving towards an attachment with no site")
        target = self.attachment_site.position - self.destination_offset
        if np.linalg.norm(self.biomolecule.position - target) < ATTACHED_DISTANCE_THRESHOLD:
            self.set_state(self.attached_state)

    def _enter_attached(self) -> None:
        self.biomolecule.set_motion_strategy(FollowAttachmentSite(
            self.attachment_site, self.destination_offset, self.biomolecule.motion_bounds_property
        ))
        self.biomolecule.set_movable_by_user(True)

    def _step_attached(self, dt: float) -> None:
        affinity = self.attachment_site.affinity
        if self.rng.random() < calculate_probability_of_detachment(affinity, dt):
            self._on_detach_draw()

    def _step_attached_to_base_pair(self, dt: float) -> None:
        self._step_attached(dt)

    def _step_attached_and_conforming(self, dt: float) -> None:
        raise RuntimeError(f"{self.biomolecule!r} cannot conform")

    def _step_attached_and_transcribing(self, dt: float) -> None:
        raise RuntimeError(f"{self.biomolecule!r} cannot transcribe")

    def _step_being_recycled(self, dt: float) -> None:
        raise RuntimeError(f"{self.biomolecule!r} cannot be recycled")

    def _on_detach_draw(self) -> None:
        self._detach_and_wander()

    def _detach_and_wander(self) -> None:
        self._release_site()
        self.set_state(S.UNATTACHED_BUT_UNAVAILABLE)

    def _enter_unattached_but_unavailable(self) -> None:
        self._release_site()
        self.unavailable_countdown = UNAVAILABLE_TIME
        self.biomolecule.set_attached_to_dna(False)
        self.biomolecule.set_movable_by_user(True)
        self.biomolecule.set_motion_strategy(WanderInGeneralDirection(
            self.biomolecule.get_detach_direction(),
            self.biomolecule.motion_bounds_property,
            self.rng,
        ))

    def _step_unattached_but_unavailable(self, dt: float) -> None:
        self.unavailable_countdown -= dt
        if self.unavailable_countdown <= 0:
            self.set_state(S.UNATTACHED_AND_AVAILABLE)


class DnaAttachmentStateMachine(AttachmentStateMachine):
    """
    Machine for biomolecules that attach to DNA and slide along it.

    On a detach draw the biomolecule first tries to hop to a free adjacent
    site. Each hop lowers the threshold for the next one, so a molecule that
    has been sliding for a while becomes more likely to let go entirely.
    """

    def __init__(self, biomolecule, rng=None):
        super().__init__(biomolecule, rng)
        self.detach_threshold = 1.0

    def _enter_attached(self) -> None:
        super()._enter_attached()
        self.biomolecule.set_attached_to_dna(True)

    def _on_detach_draw(self) -> None:
        if self.rng.random() > self.detach_threshold:
            self._detach_and_wander()
            return

        candidates = [
            site for site in self.biomolecule.get_adjacent_attachment_sites(self.attachment_site)
            if site.occupant is None
            and self.biomolecule.is_position_in_motion_bounds(site.position - self.destination_offset)
        ]
        if not candidates:
            self._detach_and_wander()
            return

        self.rng.shuffle(candidates)
        self._release_site()
        self._claim(candidates[0])
        self.detach_threshold *= HOP_THRESHOLD_DECAY
        self._start_moving_towards_site(VELOCITY_ON_DNA)

    def _detach_and_wander(self) -> None:
        self.detach_threshold = 1.0
        super()._detach_and_wander()


class TranscriptionFactorAttachmentStateMachine(DnaAttachmentStateMachine):
    pass


class RnaPolymeraseAttachmentStateMachine(DnaAttachmentStateMachine):
    """
    Polymerase machine with the transcription and recycle paths.

    After attaching to a base pair the polymerase decides, based on the
    site's affinity, whether to transcribe. If it does, it changes
    conformation, then walks the transcribed region producing mRNA.
    """

    attached_state = S.ATTACHED_TO_BASE_PAIR

    def __init__(self, biomolecule, rng=None):
        super().__init__(biomolecule, rng)
        self.transcribe = False
        self.gene = None
        self.conformational_change_amount = 0.0
        self.messenger_rna = None
        self.dna_separation = None

    def _enter_attached_to_base_pair(self) -> None:
        self._enter_attached()
        site = self.attachment_site
        self.gene = self.biomolecule.dna.get_gene_for_polymerase_site(site)
        self.transcribe = (
            self.gene is not None
            and site.affinity > DEFAULT_AFFINITY
            and self.rng.random() < site.affinity
        )

    def _step_attached_to_base_pair(self, dt: float) -> None:
        if self.transcribe:
            self.detach_threshold = 1.0
            self.set_state(S.ATTACHED_AND_CONFORMING)
        else:
            self._step_attached(dt)

    def _enter_attached_and_conforming(self) -> None:
        self.conformational_change_amount = 0.0
        self.biomolecule.set_movable_by_user(False)
        self.biomolecule.set_motion_strategy(Stillness(self.biomolecule.motion_bounds_property))

    def _step_attached_and_conforming(self, dt: float) -> None:
        self.conformational_change_amount = min(
            1.0, self.conformational_change_amount + CONFORMATIONAL_CHANGE_RATE * dt
        )
        self.biomolecule.set_conformational_change_amount(self.conformational_change_amount)
        if self.conformational_change_amount >= 1.0:
            self.set_state(S.ATTACHED_AND_TRANSCRIBING)

    def _enter_attached_and_transcribing(self) -> None:
        polymerase = self.biomolecule
        self._release_site()
        self.messenger_rna = polymerase.model.spawn_messenger_rna(
            self.gene, polymerase.get_messenger_rna_output_position()
        )
        self.dna_separation = polymerase.dna.create_separation(polymerase.position[0])

    def _step_attached_and_transcribing(self, dt: float) -> None:
        polymerase = self.biomolecule
        x, y = polymerase.position
        end_x = self.gene.get_end_x()
        distance = max(0.0, min(TRANSCRIPTION_VELOCITY * dt, end_x - x))
        polymerase.set_position((x + distance, y))
        self.dna_separation.x = x + distance
        self.messenger_rna.add_length(distance)
        self.messenger_rna.set_position(polymerase.get_messenger_rna_output_position())
        if x + distance >= end_x:
            self._finish_transcription()

    def _finish_transcription(self) -> None:
        polymerase = self.biomolecule
        self.messenger_rna.release_from_polymerase()
        polymerase.dna.remove_separation(self.dna_separation)
        self.messenger_rna = None
        self.dna_separation = None
        polymerase.set_conformational_change_amount(0.0)
        if polymerase.recycle_mode:
            self.set_state(S.BEING_RECYCLED)
        else:
            self.set_state(S.UNATTACHED_BUT_UNAVAILABLE)

    def _exit_attached_and_transcribing(self, new_state) -> None:
        # Only non-empty when transcription was interrupted
        if self.messenger_rna is not None:
            self.messenger_rna.release_from_polymerase()
            self.messenger_rna = None
        if self.dna_separation is not None:
            self.biomolecule.dna.remove_separation(self.dna_separation)
            self.dna_separation = None
        self.biomolecule.set_conformational_change_amount(0.0)

    def _exit_attached_and_conforming(self, new_state) -> None:
        if new_state is not S.ATTACHED_AND_TRANSCRIBING:
            self.biomolecule.set_conformational_change_amount(0.0)

    def _enter_being_recycled(self) -> None:
        polymerase = self.biomolecule
        polymerase.set_attached_to_dna(False)
        polymerase.set_movable_by_user(False)
        direction = np.array([0.0, 1.0 if self.rng.random() < 0.5 else -1.0])
        polymerase.set_motion_strategy(DriftThenTeleport(
            polymerase.recycle_return_zones,
            polymerase.motion_bounds_property,
            direction * DRIFT_VELOCITY,
            self.rng,
        ))

    def _step_being_recycled(self, dt: float) -> None:
        position = self.biomolecule.position
        if any(zone.contains_point(position) for zone in self.biomolecule.recycle_return_zones):
            self.set_state(S.UNATTACHED_AND_AVAILABLE)

    def _enter_unattached_and_available(self) -> None:
        self.transcribe = False
        super()._enter_unattached_and_available()


class RibosomeAttachmentStateMachine(AttachmentStateMachine):
    """
    Ribosome machine: attach to the leading edge of an mRNA and translate it.

    Once translation has started the ribosome gives the mRNA's leading site
    back so that further ribosomes can follow it down the strand.
    """

    def __init__(self, biomolecule, rng=None):
        super().__init__(biomolecule, rng)
        self.destination_offset = biomolecule.offset_to_translation_channel_entrance
        self.messenger_rna = None
        self.protein = None

    def _enter_attached(self) -> None:
        ribosome = self.biomolecule
        self.messenger_rna = self.attachment_site.owner
        self.messenger_rna.initiate_translation(ribosome)
        self._release_site()
        ribosome.set_movable_by_user(False)
        ribosome.set_motion_strategy(Stillness(ribosome.motion_bounds_property))
        self.protein = ribosome.model.spawn_protein(
            self.messenger_rna.protein_prototype, ribosome.get_protein_attachment_point()
        )

    def _step_attached(self, dt: float) -> None:
        ribosome = self.biomolecule
        mrna = self.messenger_rna
        done = mrna.advance_translation(ribosome, TRANSLATION_VELOCITY * dt)
        self.protein.set_full_size_proportion(mrna.get_proportion_of_translation_complete(ribosome))
        self.protein.set_position(ribosome.get_protein_attachment_point())
        if done:
            mrna.release_from_ribosome(ribosome)
            self.protein.release()
            self.messenger_rna = None
            self.protein = None
            self.set_state(S.UNATTACHED_BUT_UNAVAILABLE)

    def _exit_attached(self, new_state) -> None:
        # Only non-empty when translation was interrupted
        if self.messenger_rna is not None:
            self.messenger_rna.release_from_ribosome(self.biomolecule)
            self.messenger_rna = None
        if self.protein is not None:
            self.biomolecule.model.remove_biomolecule(self.protein)
            self.protein = None


class MessengerRnaDestroyerAttachmentStateMachine(AttachmentStateMachine):
    """
    Destroyer machine: attach to the leading edge of an mRNA and consume it.

    When the mRNA is gone the destroyer detaches and fades out of the model.
    """

    def __init__(self, biomolecule, rng=None):
        super().__init__(biomolecule, rng)
        self.messenger_rna = None
        self.fading = False

    def _on_site_claimed(self, site) -> None:
        self.messenger_rna = site.owner
        self.messenger_rna.set_pending_destroyer(self.biomolecule)

    def _enter_attached(self) -> None:
        destroyer = self.biomolecule
        self.messenger_rna.initiate_destruction(destroyer)
        destroyer.set_movable_by_user(False)
        destroyer.set_motion_strategy(Stillness(destroyer.motion_bounds_property))

    def _step_attached(self, dt: float) -> None:
        if self.biomolecule.advance_messenger_rna_destruction(MRNA_DESTRUCTION_RATE * dt):
            mrna = self.messenger_rna
            self.messenger_rna = None
            self._release_site()
            self.fading = True
            self.set_state(S.UNATTACHED_BUT_UNAVAILABLE)
            self.biomolecule.model.remove_messenger_rna(mrna)

    def _exit_attached(self, new_state) -> None:
        if self.messenger_rna is not None:
            self.messenger_rna.abort_destruction()
            self.messenger_rna = None

    def _exit_moving_towards_attachment(self, new_state) -> None:
        # Leaving the approach for anything but arrival cancels the pending destruction
        if self.messenger_rna is not None and new_state is not S.ATTACHED:
            self.messenger_rna.abort_destruction()
            self.messenger_rna = None

    def _step_unattached_but_unavailable(self, dt: float) -> None:
        if not self.fading:
            super()._step_unattached_but_unavailable(dt)
            return
        destroyer = self.biomolecule
        destroyer.set_existence_strength(max(0.0, destroyer.existence_strength - dt / FADE_OUT_TIME))
        if destroyer.existence_strength <= 0:
            destroyer.model.remove_biomolecule(destroyer)


class ProteinAttachmentStateMachine(AttachmentStateMachine):
    """A protein is held by its ribosome until fully grown, then roams."""

    def attach_to_ribosome(self) -> None:
        self.set_state(S.ATTACHED)

    def _enter_attached(self) -> None:
        self.biomolecule.set_movable_by_user(False)
        self.biomolecule.set_motion_strategy(Stillness(self.biomolecule.motion_bounds_property))

    def _step_attached(self, dt: float) -> None:
        pass


class MessengerRnaAttachmentStateMachine(AttachmentStateMachine):
    """
    mRNA machine: ATTACHED while being synthesized, translated or destroyed,
    free to wander otherwise.
    """

    def _enter_attached(self) -> None:
        self.biomolecule.set_movable_by_user(False)
        self.biomolecule.set_motion_strategy(Stillness(self.biomolecule.motion_bounds_property))

    def _step_attached(self, dt: float) -> None:
        pass

    def _step_unattached_and_available(self, dt: float) -> None:
        mrna = self.biomolecule
        if mrna.fade_away_when_formed:
            mrna.set_existence_strength(max(0.0, mrna.existence_strength - dt / FADE_OUT_TIME))
            if mrna.existence_strength <= 0:
                mrna.model.remove_messenger_rna(mrna)
