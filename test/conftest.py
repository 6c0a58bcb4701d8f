"""
Fixtures communes : gabarit, estimateur et simulateur de scan laser.
"""

import math

import numpy as np
import pytest

from docking_station_detector.config_loader import DEFAULT_PARAMETERS, build_finder
from docking_station_detector.pose import Pose2D
from docking_station_detector.template import TemplateModel, rotation_matrix


RANGE_MAX = DEFAULT_PARAMETERS['max_range']
BEAM_COUNT = 360
ANGLE_MIN = -math.pi
ANGLE_INCREMENT = 2.0 * math.pi / BEAM_COUNT


def _cross(a, b):
    return a[0] * b[1] - a[1] * b[0]


@pytest.fixture
def template():
    return TemplateModel()


@pytest.fixture
def finder():
    return build_finder(DEFAULT_PARAMETERS)


@pytest.fixture
def place():
    """Place des points du repère local à une pose (repère capteur)."""
    def _place(points, pose: Pose2D) -> np.ndarray:
        x, y, heading = pose
        return np.asarray(points) @ rotation_matrix(heading).T + np.array([x, y])
    return _place


@pytest.fixture
def ray_cast():
    """
    Simule un scan laser 360° sur des polylignes (repère capteur).

    Les faisceaux sans obstacle renvoient RANGE_MAX (pas d'écho).
    """
    def _ray_cast(polylines, beam_count=BEAM_COUNT, angle_min=ANGLE_MIN,
                  angle_increment=ANGLE_INCREMENT, range_max=RANGE_MAX):
        ranges = np.full(beam_count, range_max)
        for i in range(beam_count):
            angle = angle_min + i * angle_increment
            d = (math.cos(angle), math.sin(angle))
            for vertices in polylines:
                for p, q in zip(vertices[:-1], vertices[1:]):
                    e = (q[0] - p[0], q[1] - p[1])
                    denom = _cross(d, e)
                    if abs(denom) < 1e-12:
                        continue
                    s = _cross(p, e) / denom
                    u = _cross(p, d) / denom
                    if s > 0.0 and 0.0 <= u <= 1.0 and s < ranges[i]:
                        ranges[i] = s
        return ranges
    return _ray_cast
