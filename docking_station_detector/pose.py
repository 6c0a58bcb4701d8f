"""
Types de poses manipulés par l'estimateur.
"""

from dataclasses import dataclass
from typing import List, NamedTuple


class Pose2D(NamedTuple):
    """Pose plane: position (m) et cap (rad)."""
    x: float
    y: float
    heading: float


@dataclass(frozen=True)
class PoseEstimate:
    """
    Pose de la station estimée pour un candidat, avec son score.

    Le score est positif ou nul, sans borne supérieure : plus il est grand,
    plus l'appariement avec le gabarit est bon. Il est comparé au seuil
    d'acceptation par l'appelant.
    """
    x: float
    y: float
    heading: float
    score: float
    candidate_index: int = -1
    inliers: int = 0
    residual: float = 0.0
    converged: bool = False

    @property
    def pose(self) -> Pose2D:
        return Pose2D(self.x, self.y, self.heading)

    @property
    def is_sentinel(self) -> bool:
        """Vrai pour le résultat « aucun candidat » (scan vide)."""
        return self.candidate_index < 0

    def as_list(self) -> List[float]:
        """Contrat historique du finder : [x, y, heading, score]."""
        return [self.x, self.y, self.heading, self.score]


# Résultat renvoyé quand aucun candidat n'est exploitable
EMPTY_SCAN_RESULT = PoseEstimate(x=0.0, y=0.0, heading=0.0, score=0.0)
