"""
Estimateur complet : d'un scan à la pose la plus probable de la station.

Fonction pure d'un scan : aucun état n'est conservé d'un appel à l'autre.
"""

import logging
from typing import List, Optional

import numpy as np

from docking_station_detector.candidates import CandidateGenerator
from docking_station_detector.conversions import scan_to_points, xy_to_points
from docking_station_detector.pose import PoseEstimate
from docking_station_detector.scoring import PoseScorer
from docking_station_detector.selection import select_best
from docking_station_detector.template import TemplateModel


logger = logging.getLogger(__name__)


class DockingStationFinder:
    """
    Chaîne candidats -> recalage -> sélection pour un scan.

    Le gabarit est construit une fois et partagé par tous les scans.
    """

    def __init__(self, template: TemplateModel, generator: CandidateGenerator,
                 scorer: PoseScorer):
        self.template = template
        self.generator = generator
        self.scorer = scorer

    @classmethod
    def from_parameters(cls, params: dict) -> 'DockingStationFinder':
        """Construit l'estimateur depuis un dictionnaire de paramètres."""
        from docking_station_detector.config_loader import build_finder
        return build_finder(params)

    def estimate(self, points, indices: Optional[np.ndarray] = None,
                 max_range: Optional[float] = None) -> PoseEstimate:
        """
        Pose la plus probable de la station dans un nuage ordonné.

        Args:
            points: Nuage (N, 2) du scan, repère capteur
            indices: Indice d'origine de chaque point dans le scan
            max_range: Portée maximale du scan (m), points au-delà sans écho

        Returns:
            Meilleure estimation, ou résultat sentinelle (score 0) si aucun
            candidat n'est exploitable
        """
        candidates = self.generator.generate(points, indices, max_range)
        estimates = [self.scorer.score(c) for c in candidates]
        best = select_best(estimates)
        logger.debug("%d candidats, meilleur=%s score=%.2f",
                     len(candidates), best.candidate_index, best.score)
        return best

    def estimate_scan(self, ranges, angle_min: float, angle_increment: float,
                      range_min: float = 0.0, range_max: float = np.inf) -> PoseEstimate:
        """
        Estimation directe depuis les distances brutes d'un scan laser.

        Les mesures à `range_max` (portée annoncée par le capteur) sont des
        faisceaux sans écho et ne forment jamais de candidat.
        """
        points, indices = scan_to_points(ranges, angle_min, angle_increment,
                                         range_min, range_max)
        return self.estimate(points, indices, range_max)

    def get_most_likely_location(self, x_scan, y_scan) -> List[float]:
        """
        Contrat historique: [x, y, heading, score] depuis deux tableaux x/y.

        Raises:
            InvalidScanError: tableaux de tailles différentes
        """
        return self.estimate(xy_to_points(x_scan, y_scan)).as_list()
