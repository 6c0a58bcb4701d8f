"""
Module de conversions de coordonnées pour les scans laser.

Convention (repère laser ROS): x devant, y à gauche, angle 0 = devant,
angle positif = vers la gauche.
"""

import numpy as np
from typing import Tuple

from docking_station_detector.exceptions import InvalidScanError


def polar_to_cartesian(range_m: float, angle_rad: float) -> Tuple[float, float]:
    """
    Convertit une mesure polaire en coordonnées cartésiennes (2D).

    Args:
        range_m: Distance en mètres
        angle_rad: Angle du faisceau en radians (0 = devant, + = gauche)

    Returns:
        (x, y) en mètres (x = frontal, y = latéral)

    Examples:
        >>> x, y = polar_to_cartesian(2.0, 0.0)
        >>> assert abs(x - 2.0) < 1e-6 and abs(y) < 1e-6
    """
    x = range_m * np.cos(angle_rad)
    y = range_m * np.sin(angle_rad)
    return x, y


def normalize_angle(angle_rad: float) -> float:
    """
    Normalise un angle dans [-π, π].

    Examples:
        >>> assert abs(normalize_angle(3.5 * np.pi) - (-0.5 * np.pi)) < 1e-6
    """
    return float(np.arctan2(np.sin(angle_rad), np.cos(angle_rad)))


def scan_angles(count: int, angle_min: float, angle_increment: float) -> np.ndarray:
    """Angles des faisceaux d'un scan de `count` mesures."""
    return angle_min + angle_increment * np.arange(count, dtype=float)


def scan_to_points(ranges: np.ndarray, angle_min: float, angle_increment: float,
                   range_min: float = 0.0,
                   range_max: float = np.inf) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convertit un scan laser en nuage de points cartésien ordonné.

    Les mesures invalides (NaN, infinies, hors [range_min, range_max]) sont
    supprimées, jamais ramenées à l'origine. Les mesures égales à range_max
    sont conservées : c'est au générateur de candidats de les écarter
    (absence d'écho).

    Args:
        ranges: Distances mesurées (m), une par faisceau
        angle_min: Angle du premier faisceau (rad)
        angle_increment: Pas angulaire entre faisceaux (rad)
        range_min: Distance minimale valide (m)
        range_max: Distance maximale valide (m)

    Returns:
        (points, indices): points (N, 2) en mètres et indice d'origine de
        chaque point dans le scan

    Raises:
        InvalidScanError: si `ranges` n'est pas un tableau 1D

    Examples:
        >>> pts, idx = scan_to_points(np.array([1.0, np.nan, 2.0]), 0.0, 0.1)
        >>> assert pts.shape == (2, 2) and list(idx) == [0, 2]
    """
    ranges = np.asarray(ranges, dtype=float)
    if ranges.ndim != 1:
        raise InvalidScanError(f"Scan 1D attendu, reçu shape={ranges.shape}")

    angles = scan_angles(len(ranges), angle_min, angle_increment)
    with np.errstate(invalid='ignore'):
        valid = np.isfinite(ranges) & (ranges >= range_min) & (ranges <= range_max)

    indices = np.flatnonzero(valid)
    r = ranges[valid]
    a = angles[valid]
    points = np.column_stack((r * np.cos(a), r * np.sin(a)))
    return points.reshape(-1, 2), indices


def xy_to_points(x_scan, y_scan) -> np.ndarray:
    """
    Assemble deux tableaux de coordonnées en nuage (N, 2).

    Raises:
        InvalidScanError: si les tableaux ne sont pas 1D ou de tailles différentes
    """
    xs = np.asarray(x_scan, dtype=float)
    ys = np.asarray(y_scan, dtype=float)
    if xs.ndim != 1 or ys.ndim != 1:
        raise InvalidScanError("Coordonnées x/y attendues en tableaux 1D")
    if len(xs) != len(ys):
        raise InvalidScanError(
            f"Tailles incohérentes: {len(xs)} valeurs x pour {len(ys)} valeurs y"
        )
    return np.column_stack((xs, ys)).reshape(-1, 2)
