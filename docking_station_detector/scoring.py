"""
Recalage d'un candidat sur le gabarit de la station et score de confiance.

Approche:
1. Alignement grossier par axes principaux (4 hypothèses à 90°)
2. Raffinement ICP point-segment (Gauss-Newton) borné en itérations, les
   points trop éloignés du gabarit (mur, obstacle voisin) étant écartés
3. Score décroissant avec le résidu, croissant avec la fraction d'inliers
"""

import logging
import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from docking_station_detector.candidates import Candidate, as_point_array
from docking_station_detector.conversions import normalize_angle
from docking_station_detector.exceptions import ConfigurationError
from docking_station_detector.pose import Pose2D, PoseEstimate
from docking_station_detector.template import TemplateModel, rotation_matrix


logger = logging.getLogger(__name__)

# Pas d'échantillonnage du gabarit pour l'alignement grossier (m)
_TEMPLATE_SPACING = 0.005


@dataclass(frozen=True)
class FitResult:
    """Résultat du recalage d'un nuage sur le gabarit."""
    pose: Pose2D
    cost: float       # Somme des distances au carré, tronquées à la tolérance inlier (m²)
    residual: float   # Résidu RMS des inliers (m)
    inliers: int
    converged: bool
    iterations: int = 0
    degenerate: bool = False


def principal_axis(points: np.ndarray) -> Tuple[float, float]:
    """
    Axe principal d'un nuage 2D.

    Returns:
        (angle, spread): angle de l'axe majeur (rad) et écart-type du nuage
        selon l'axe mineur (m)
    """
    centered = points - points.mean(axis=0)
    cov = centered.T @ centered / len(points)
    eigvals, eigvecs = np.linalg.eigh(cov)
    major = eigvecs[:, 1]
    return math.atan2(major[1], major[0]), math.sqrt(max(eigvals[0], 0.0))


def match_score(n_points: int, inliers: int, residual: float,
                tolerance: float, converged: bool = True,
                non_convergence_penalty: float = 0.5) -> float:
    """
    Score de confiance d'un recalage.

    score = inliers * (inliers / n) / (1 + (residual / tolerance)²)

    avec `residual` le résidu RMS des seuls inliers.

    Un recalage parfait de n points vaut n. Le score ne diminue jamais quand
    le résidu baisse ou quand la fraction d'inliers augmente. Un recalage non
    convergé est pénalisé d'un facteur `non_convergence_penalty`.

    Examples:
        >>> assert match_score(40, 40, 0.0, 0.02) == 40.0
        >>> assert match_score(40, 20, 0.0, 0.02) < match_score(40, 30, 0.0, 0.02)
    """
    if n_points <= 0 or inliers <= 0:
        return 0.0
    score = inliers * (inliers / n_points) / (1.0 + (residual / tolerance) ** 2)
    if not converged:
        score *= non_convergence_penalty
    return float(score)


class PoseScorer:
    """
    Estime la pose rigide (x, y, cap) qui aligne un candidat sur le gabarit.

    Args:
        template: Gabarit de la station
        inlier_tolerance: Distance max d'un point apparié (m)
        max_correspondence_distance: Distance max d'appariement pendant les
            premières itérations ICP (m)
        max_iterations: Nombre max d'itérations ICP par hypothèse
        convergence_tolerance: Variation de pose sous laquelle l'ICP s'arrête
        collinearity_tolerance: Écart-type mineur sous lequel le candidat est
            considéré aligné (cap non contraint)
        non_convergence_penalty: Facteur appliqué au score si l'ICP n'a pas convergé
    """

    def __init__(self, template: TemplateModel, inlier_tolerance: float = 0.02,
                 max_correspondence_distance: float = 0.1,
                 max_iterations: int = 50, convergence_tolerance: float = 1e-6,
                 collinearity_tolerance: float = 0.005,
                 non_convergence_penalty: float = 0.5):
        if not inlier_tolerance > 0.0:
            raise ConfigurationError(f"Tolérance inlier invalide: {inlier_tolerance}")
        if max_correspondence_distance < inlier_tolerance:
            raise ConfigurationError(
                f"max_correspondence_distance ({max_correspondence_distance}) "
                f"doit être >= inlier_tolerance ({inlier_tolerance})")
        if max_iterations < 1:
            raise ConfigurationError(f"max_iterations invalide: {max_iterations}")
        if not convergence_tolerance > 0.0:
            raise ConfigurationError(f"Tolérance de convergence invalide: {convergence_tolerance}")
        if collinearity_tolerance < 0.0:
            raise ConfigurationError(f"Tolérance de colinéarité invalide: {collinearity_tolerance}")
        if not 0.0 <= non_convergence_penalty <= 1.0:
            raise ConfigurationError("non_convergence_penalty doit être dans [0, 1]")

        self.template = template
        self.inlier_tolerance = float(inlier_tolerance)
        self.max_correspondence_distance = float(max_correspondence_distance)
        self.max_iterations = int(max_iterations)
        self.convergence_tolerance = float(convergence_tolerance)
        self.collinearity_tolerance = float(collinearity_tolerance)
        self.non_convergence_penalty = float(non_convergence_penalty)

        features = template.feature_points(_TEMPLATE_SPACING)
        self._template_centroid = features.mean(axis=0)
        self._template_axis, _ = principal_axis(features)

    def _evaluate(self, points: np.ndarray, pose: Pose2D) -> Tuple[float, float, int]:
        vertices = self.template.transformed(pose)
        _, _, distances = self.template.closest_points(points, vertices)
        inlier_mask = distances <= self.inlier_tolerance
        inliers = int(np.count_nonzero(inlier_mask))
        cost = float(np.sum(np.minimum(distances, self.inlier_tolerance) ** 2))
        kept = distances[inlier_mask] if inliers else distances
        residual = math.sqrt(float(np.mean(kept ** 2)))
        return cost, residual, inliers

    def refine(self, points: np.ndarray, initial: Pose2D) -> FitResult:
        """
        Raffinement ICP point-segment à partir d'une pose initiale.

        À chaque itération, chaque point est apparié au point le plus proche
        du gabarit placé; le problème linéarisé en (dx, dy, dθ) autour du
        barycentre des points est résolu aux moindres carrés, puis
        l'incrément rigide exact est appliqué.

        Seuls les points à moins de `max_correspondence_distance` participent
        à la résolution. Une fois stabilisé, le recalage reprend avec les seuls
        inliers; la convergence est déclarée à ce second palier.
        """
        x, y, heading = initial
        center = points.mean(axis=0)
        gate = self.max_correspondence_distance
        converged = False
        iterations = 0

        for iterations in range(1, self.max_iterations + 1):
            vertices = self.template.transformed(Pose2D(x, y, heading))
            closest, normals, distances = self.template.closest_points(points, vertices)

            used = distances <= gate
            if np.count_nonzero(used) < 3:
                used = np.ones(len(points), dtype=bool)
            closest, normals = closest[used], normals[used]

            lever = closest - center
            # Dérivée d'une rotation infinitésimale: J·q = (-q_y, q_x)
            rot = normals[:, 1] * lever[:, 0] - normals[:, 0] * lever[:, 1]
            A = np.column_stack((normals, rot))
            b = np.sum(normals * (points[used] - closest), axis=1)
            (dx, dy, dtheta), *_ = np.linalg.lstsq(A, b, rcond=None)

            R = rotation_matrix(dtheta)
            t = R @ (np.array([x, y]) - center) + center + np.array([dx, dy])
            x, y = float(t[0]), float(t[1])
            heading = normalize_angle(heading + dtheta)

            if math.hypot(dx, dy) < self.convergence_tolerance and \
                    abs(dtheta) < self.convergence_tolerance:
                if gate <= self.inlier_tolerance:
                    converged = True
                    break
                gate = self.inlier_tolerance

        pose = Pose2D(x, y, heading)
        cost, residual, inliers = self._evaluate(points, pose)
        return FitResult(pose=pose, cost=cost, residual=residual, inliers=inliers,
                         converged=converged, iterations=iterations)

    def fit(self, points) -> FitResult:
        """
        Recale un nuage de points sur le gabarit.

        Un nuage dégénéré (moins de 3 points, ou points alignés) renvoie un
        résultat `degenerate` de cap nul, positionné au barycentre.
        """
        points = as_point_array(points)
        if len(points) == 0:
            return FitResult(Pose2D(0.0, 0.0, 0.0), 0.0, 0.0, 0, False, degenerate=True)

        centroid = points.mean(axis=0)
        if len(points) < 3:
            return FitResult(Pose2D(float(centroid[0]), float(centroid[1]), 0.0),
                             0.0, 0.0, 0, False, degenerate=True)

        axis, spread = principal_axis(points)
        if spread < self.collinearity_tolerance:
            return FitResult(Pose2D(float(centroid[0]), float(centroid[1]), 0.0),
                             0.0, 0.0, 0, False, degenerate=True)

        best = None
        for k in range(4):
            heading = normalize_angle(axis - self._template_axis + k * math.pi / 2.0)
            t0 = centroid - rotation_matrix(heading) @ self._template_centroid
            result = self.refine(points, Pose2D(float(t0[0]), float(t0[1]), heading))
            if best is None or result.cost < best.cost:
                best = result
        return best

    def score(self, candidate: Candidate) -> PoseEstimate:
        """Recale un candidat et calcule son score de confiance."""
        fit = self.fit(candidate.points)
        if fit.degenerate:
            score = 0.0
        else:
            score = match_score(candidate.size, fit.inliers, fit.residual,
                                self.inlier_tolerance, fit.converged,
                                self.non_convergence_penalty)
            if not fit.converged:
                logger.debug("Candidat %d: ICP non convergé après %d itérations",
                             candidate.index, fit.iterations)

        x, y, heading = fit.pose
        return PoseEstimate(x=x, y=y, heading=heading, score=score,
                            candidate_index=candidate.index, inliers=fit.inliers,
                            residual=fit.residual, converged=fit.converged)
