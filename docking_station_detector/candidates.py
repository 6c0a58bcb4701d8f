"""
Génération des candidats : sous-ensembles contigus du scan susceptibles de
contenir la station de docking.

Étapes:
1. Suppression des points sans écho (portée maximale) ou non finis
2. Regroupement des points consécutifs proches (clusters)
3. Rejet rapide par étendue spatiale, fenêtres glissantes de la taille du
   gabarit sur les clusters trop grands (station collée à un mur par exemple)
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
from scipy.spatial.distance import pdist

from docking_station_detector.exceptions import ConfigurationError, InvalidScanError
from docking_station_detector.template import TemplateModel


logger = logging.getLogger(__name__)

# Marge sous la portée max pour considérer un point « sans écho » (m)
MAX_RANGE_EPS = 1e-6

# Marge sur l'étendue du gabarit (arrondis)
_EXTENT_EPS = 1e-9


@dataclass(frozen=True)
class Candidate:
    """Sous-ensemble contigu du scan, valable le temps d'une estimation."""
    index: int
    cluster_id: int
    start: int  # Indice (scan d'origine) du premier point
    stop: int   # Indice (scan d'origine) après le dernier point
    points: np.ndarray = field(repr=False, compare=False)

    @property
    def size(self) -> int:
        return len(self.points)


def as_point_array(points) -> np.ndarray:
    """
    Valide et convertit un nuage de points en tableau (N, 2).

    Raises:
        InvalidScanError: forme incompatible
    """
    arr = np.asarray(points, dtype=float)
    if arr.size == 0:
        return arr.reshape(0, 2)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise InvalidScanError(f"Nuage (N, 2) attendu, reçu shape={arr.shape}")
    return arr


def spatial_extent(points: np.ndarray) -> float:
    """Plus grande distance entre deux points du sous-ensemble."""
    if len(points) < 2:
        return 0.0
    return float(np.max(pdist(points)))


class CandidateGenerator:
    """
    Propose des candidats déterministes à partir d'un scan ordonné.

    Args:
        template: Gabarit de la station (sert au filtrage par étendue)
        max_range: Portée maximale du capteur (m), points au-delà ignorés
        cluster_gap: Écart max entre points consécutifs d'un cluster (m)
        min_points: Nombre minimal de points pour contraindre une pose
        extent_tolerance: Marge relative sur la diagonale du gabarit
        min_extent_ratio: Étendue minimale, en fraction de min(largeur, profondeur)
        window_stride: Pas (en points) des fenêtres glissantes
        max_candidates: Nombre maximal de candidats retournés
    """

    def __init__(self, template: TemplateModel, max_range: float,
                 cluster_gap: float = 0.1, min_points: int = 5,
                 extent_tolerance: float = 0.25, min_extent_ratio: float = 0.5,
                 window_stride: int = 3, max_candidates: int = 64):
        if not max_range > 0.0:
            raise ConfigurationError(f"Portée maximale invalide: {max_range}")
        if not cluster_gap > 0.0:
            raise ConfigurationError(f"Écart de cluster invalide: {cluster_gap}")
        if min_points < 3:
            raise ConfigurationError("Au moins 3 points sont nécessaires pour une pose")
        if extent_tolerance < 0.0 or min_extent_ratio < 0.0:
            raise ConfigurationError("Tolérances d'étendue négatives")
        if window_stride < 1 or max_candidates < 1:
            raise ConfigurationError("window_stride et max_candidates doivent être >= 1")

        self.template = template
        self.max_range = float(max_range)
        self.cluster_gap = float(cluster_gap)
        self.min_points = int(min_points)
        self.window_stride = int(window_stride)
        self.max_candidates = int(max_candidates)
        self.min_extent = min_extent_ratio * min(template.width, template.depth)
        self.max_extent = (1.0 + extent_tolerance) * template.diagonal
        self.window_extent = template.span

    def filter_returns(self, points: np.ndarray, indices: np.ndarray,
                       max_range: Optional[float] = None) -> Tuple[np.ndarray, np.ndarray]:
        """
        Retire les points non finis et ceux à portée maximale (pas d'écho).

        La portée retenue est la plus petite entre celle du générateur et
        `max_range` (portée annoncée par le scan).
        """
        limit = self.max_range if max_range is None else min(self.max_range, max_range)
        finite = np.all(np.isfinite(points), axis=1)
        ranges = np.hypot(points[:, 0], points[:, 1])
        keep = finite & (ranges < limit - MAX_RANGE_EPS)
        return points[keep], indices[keep]

    def split_clusters(self, points: np.ndarray) -> List[Tuple[int, int]]:
        """Coupe la séquence là où deux points consécutifs sont trop éloignés."""
        if len(points) == 0:
            return []
        gaps = np.linalg.norm(np.diff(points, axis=0), axis=1)
        breaks = np.flatnonzero(gaps > self.cluster_gap) + 1
        bounds = np.concatenate(([0], breaks, [len(points)]))
        return [(int(lo), int(hi)) for lo, hi in zip(bounds[:-1], bounds[1:])]

    def _is_plausible(self, points: np.ndarray) -> bool:
        if len(points) < self.min_points:
            return False
        extent = spatial_extent(points)
        return self.min_extent <= extent <= self.max_extent

    def sliding_windows(self, points: np.ndarray) -> List[Tuple[int, int]]:
        """
        Fenêtres contiguës dont l'étendue tient dans le gabarit.

        Chaque fenêtre démarre tous les `window_stride` points et grandit tant
        que le point suivant reste à moins de `window_extent` (plus grande
        dimension du V) de tous les autres : une station collée à un mur tient
        alors dans une fenêtre sans les points du mur. Entre deux fenêtres qui
        se terminent au même point, seule la plus courte est gardée.
        """
        n = len(points)
        windows = []
        for lo in range(0, n, self.window_stride):
            hi = lo + 1
            while hi < n:
                reach = np.max(np.linalg.norm(points[lo:hi] - points[hi], axis=1))
                if reach > self.window_extent:
                    break
                hi += 1
            if self._is_plausible(points[lo:hi]):
                if windows and windows[-1][1] == hi:
                    windows[-1] = (lo, hi)
                else:
                    windows.append((lo, hi))
            if hi == n:
                break
        return windows

    def generate(self, points, indices: Optional[np.ndarray] = None,
                 max_range: Optional[float] = None) -> List[Candidate]:
        """
        Génère la liste ordonnée des candidats d'un scan.

        Args:
            points: Nuage ordonné (N, 2) du scan, repère capteur
            indices: Indice d'origine de chaque point (défaut: 0..N-1)
            max_range: Portée maximale annoncée par le scan (m)

        Returns:
            Candidats dans l'ordre du scan (liste éventuellement vide)

        Raises:
            InvalidScanError: nuage ou indices mal formés
        """
        points = as_point_array(points)
        if indices is None:
            indices = np.arange(len(points))
        indices = np.asarray(indices)
        if indices.shape != (len(points),):
            raise InvalidScanError(
                f"{len(indices)} indices fournis pour {len(points)} points"
            )

        points, indices = self.filter_returns(points, indices, max_range)

        spans = []
        for cluster_id, (lo, hi) in enumerate(self.split_clusters(points)):
            cluster = points[lo:hi]
            if len(cluster) < self.min_points:
                continue
            if self._is_plausible(cluster):
                spans.append((cluster_id, lo, hi))
            # Plus grand que le V: la station peut n'occuper qu'une partie du cluster
            if spatial_extent(cluster) > self.window_extent + _EXTENT_EPS:
                spans.extend((cluster_id, lo + a, lo + b)
                             for a, b in self.sliding_windows(cluster)
                             if (a, b) != (0, hi - lo))

        if len(spans) > self.max_candidates:
            logger.debug("%d candidats tronqués à %d", len(spans), self.max_candidates)
            spans = spans[:self.max_candidates]

        candidates = [
            Candidate(index=i, cluster_id=cluster_id,
                      start=int(indices[lo]), stop=int(indices[hi - 1]) + 1,
                      points=points[lo:hi].copy())
            for i, (cluster_id, lo, hi) in enumerate(spans)
        ]
        logger.debug("%d points valides, %d candidats", len(points), len(candidates))
        return candidates
