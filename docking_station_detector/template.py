"""
Modèle géométrique de la station de docking (gabarit de recalage).

La station vue par le laser est un V ouvert vers le robot :

        (0, +w/2)
            \\
             \\
              > (d, 0)     apex
             /
            /
        (0, -w/2)

Repère local: origine au centre de l'ouverture, +x vers l'apex (vers
l'intérieur de la station).
"""

import math
import numbers
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from docking_station_detector.exceptions import ConfigurationError
from docking_station_detector.pose import Pose2D


# Dimensions nominales de la station (m)
STATION_WIDTH = 0.476   # Ouverture du V
STATION_DEPTH = 0.3     # Ouverture -> apex

# En dessous, un point est considéré exactement sur un segment
_ON_SEGMENT_EPS = 1e-12


def rotation_matrix(angle_rad: float) -> np.ndarray:
    """Matrice de rotation 2D."""
    c, s = math.cos(angle_rad), math.sin(angle_rad)
    return np.array([[c, -s], [s, c]])


@dataclass(frozen=True)
class TemplateModel:
    """
    Gabarit immuable de la station : un V de largeur `width` et profondeur
    `depth`, plus la distance `standoff` du but de docking devant l'ouverture.

    Raises:
        ConfigurationError: dimensions négatives, nulles ou non finies
    """
    width: float = STATION_WIDTH
    depth: float = STATION_DEPTH
    standoff: float = 0.0

    def __post_init__(self):
        for name in ('width', 'depth', 'standoff'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real) \
                    or not math.isfinite(value):
                raise ConfigurationError(f"{name} doit être un réel fini, reçu {value!r}")
        if self.width <= 0.0:
            raise ConfigurationError(f"Largeur invalide: {self.width} m")
        if self.depth <= 0.0:
            raise ConfigurationError(f"Profondeur invalide: {self.depth} m")
        if self.standoff < 0.0:
            raise ConfigurationError(f"Distance d'approche négative: {self.standoff} m")

    @property
    def footprint(self) -> Tuple[float, float]:
        """(largeur, profondeur) de l'encombrement en mètres."""
        return self.width, self.depth

    @property
    def diagonal(self) -> float:
        return math.hypot(self.width, self.depth)

    @property
    def span(self) -> float:
        """Plus grande distance entre deux points du gabarit (m)."""
        half = self.width / 2.0
        return max(self.width, math.hypot(self.depth, half))

    @property
    def vertices(self) -> np.ndarray:
        """Sommets ordonnés de la polyligne (3, 2) dans le repère local."""
        half = self.width / 2.0
        return np.array([[0.0, -half], [self.depth, 0.0], [0.0, half]])

    @property
    def segments(self) -> Tuple[np.ndarray, np.ndarray]:
        """(débuts, fins) des segments, chacun de forme (K, 2)."""
        v = self.vertices
        return v[:-1], v[1:]

    def feature_points(self, spacing: float = 0.01) -> np.ndarray:
        """
        Échantillonne la polyligne à pas régulier, dans l'ordre des sommets.

        Args:
            spacing: Pas d'échantillonnage maximal (m)

        Returns:
            Points (N, 2), extrémités incluses

        Examples:
            >>> pts = TemplateModel().feature_points(0.05)
            >>> assert np.allclose(pts[0], [0.0, -0.238])
        """
        if spacing <= 0.0:
            raise ConfigurationError(f"Pas d'échantillonnage invalide: {spacing}")
        starts, ends = self.segments
        chunks = []
        for a, b in zip(starts, ends):
            n = max(1, int(math.ceil(np.linalg.norm(b - a) / spacing)))
            t = np.linspace(0.0, 1.0, n + 1)[:-1]
            chunks.append(a + t[:, None] * (b - a))
        chunks.append(self.vertices[-1:])
        return np.vstack(chunks)

    def transformed(self, pose: Pose2D) -> np.ndarray:
        """Sommets de la polyligne placés à `pose` (repère capteur)."""
        x, y, heading = pose
        return self.vertices @ rotation_matrix(heading).T + np.array([x, y])

    def closest_points(self, points: np.ndarray,
                       vertices: np.ndarray = None) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Plus proche point de la polyligne pour chaque point requête.

        Args:
            points: Points (N, 2)
            vertices: Sommets à utiliser (par défaut ceux du repère local)

        Returns:
            (closest, normals, distances):
            - closest (N, 2): projection sur la polyligne
            - normals (N, 2): direction unitaire du résidu; normale du segment
              pour une projection intérieure, direction point->extrémité sinon
            - distances (N,): distances euclidiennes
        """
        if vertices is None:
            vertices = self.vertices
        points = np.asarray(points, dtype=float).reshape(-1, 2)
        a = vertices[:-1]
        d = vertices[1:] - a
        lengths2 = np.sum(d * d, axis=1)

        # Paramètre de projection sur chaque segment (N, K)
        rel = points[:, None, :] - a[None, :, :]
        t = np.sum(rel * d[None, :, :], axis=2) / lengths2[None, :]
        t_clamped = np.clip(t, 0.0, 1.0)
        proj = a[None, :, :] + t_clamped[:, :, None] * d[None, :, :]
        diff = points[:, None, :] - proj
        dist2 = np.sum(diff * diff, axis=2)

        rows = np.arange(len(points))
        k = np.argmin(dist2, axis=1)
        closest = proj[rows, k]
        offset = diff[rows, k]
        distances = np.sqrt(dist2[rows, k])

        seg_normals = np.column_stack((-d[:, 1], d[:, 0])) / np.sqrt(lengths2)[:, None]
        normals = seg_normals[k].copy()
        at_end = (t[rows, k] <= 0.0) | (t[rows, k] >= 1.0)
        use_offset = at_end & (distances > _ON_SEGMENT_EPS)
        normals[use_offset] = offset[use_offset] / distances[use_offset, None]
        return closest, normals, distances

    def docking_goal(self, pose: Pose2D) -> Pose2D:
        """
        But de docking : `standoff` mètres devant l'ouverture, face à la station.

        C'est le seul endroit où les dimensions de la station sont appliquées
        à la pose estimée.

        Examples:
            >>> goal = TemplateModel(standoff=0.5).docking_goal(Pose2D(2.0, 0.0, 0.0))
            >>> assert abs(goal.x - 1.5) < 1e-9
        """
        x, y, heading = pose
        return Pose2D(x - self.standoff * math.cos(heading),
                      y - self.standoff * math.sin(heading),
                      heading)
