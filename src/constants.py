"""
Physical constants shared across the gene expression model.

Distances are in picometers, times in seconds.
"""

# DNA geometry
LENGTH_PER_TWIST = 340.0
BASE_PAIRS_PER_TWIST = 10
DISTANCE_BETWEEN_BASE_PAIRS = LENGTH_PER_TWIST / BASE_PAIRS_PER_TWIST
INTER_STRAND_OFFSET = LENGTH_PER_TWIST * 0.3
DNA_MOLECULE_DIAMETER = 200.0
DNA_MOLECULE_Y_POS = 0.0

# Affinity of any base pair that is not part of a gene-specific site
DEFAULT_AFFINITY = 0.05

# Attachment
ATTACHED_DISTANCE_THRESHOLD = 1.0  # distance at which an approach counts as arrived
TRANSCRIPTION_FACTOR_ATTACHMENT_DISTANCE = 400.0
RNA_POLYMERASE_ATTACHMENT_DISTANCE = 400.0
RIBOSOME_CONNECTION_DISTANCE = 400.0
MRNA_DESTROYER_CONNECT_DISTANCE = 400.0

# Velocities
APPROACH_VELOCITY = 250.0  # moving towards an attachment site
VELOCITY_ON_DNA = 200.0  # hopping between adjacent base pairs
TRANSCRIPTION_VELOCITY = 1000.0
TRANSLATION_VELOCITY = 100.0
MRNA_DESTRUCTION_RATE = 250.0

# Time constants
DEFAULT_ATTACH_TIME = 0.15
UNAVAILABLE_TIME = 3.0  # cooldown after a detach before proposing again
FADE_OUT_TIME = 1.0

# mRNA
LEADER_LENGTH = 75.0
INTER_POINT_DISTANCE = 75.0
