"""
Utilitaires de transformations 2D (poses, quaternions) indépendants de ROS.

Les quaternions sont des tuples (x, y, z, w), dans l'ordre des messages
geometry_msgs/Quaternion.
"""

import math
from typing import Tuple

from docking_station_detector.conversions import normalize_angle
from docking_station_detector.pose import Pose2D


def euler_to_quaternion(roll: float, pitch: float, yaw: float) -> Tuple[float, float, float, float]:
    """
    Convertit angles d'Euler en quaternion.

    Args:
        roll: Roulis (rad)
        pitch: Tangage (rad)
        yaw: Lacet (rad)

    Returns:
        (x, y, z, w)

    Examples:
        >>> q = euler_to_quaternion(0.0, 0.0, math.pi / 2)
        >>> assert abs(q[2] - 0.707) < 0.01
    """
    cy = math.cos(yaw * 0.5)
    sy = math.sin(yaw * 0.5)
    cp = math.cos(pitch * 0.5)
    sp = math.sin(pitch * 0.5)
    cr = math.cos(roll * 0.5)
    sr = math.sin(roll * 0.5)

    w = cr * cp * cy + sr * sp * sy
    x = sr * cp * cy - cr * sp * sy
    y = cr * sp * cy + sr * cp * sy
    z = cr * cp * sy - sr * sp * cy
    return x, y, z, w


def quaternion_to_yaw(x: float, y: float, z: float, w: float) -> float:
    """
    Lacet (rotation autour de z) d'un quaternion.

    Examples:
        >>> assert abs(quaternion_to_yaw(0.0, 0.0, 0.7071068, 0.7071068) - math.pi / 2) < 1e-6
    """
    siny_cosp = 2.0 * (w * z + x * y)
    cosy_cosp = 1.0 - 2.0 * (y * y + z * z)
    return math.atan2(siny_cosp, cosy_cosp)


def yaw_to_quaternion(yaw: float) -> Tuple[float, float, float, float]:
    return euler_to_quaternion(0.0, 0.0, yaw)


def transform_pose(pose: Pose2D, transform: Pose2D) -> Pose2D:
    """
    Exprime une pose du repère source dans le repère cible.

    Args:
        pose: Pose dans le repère source
        transform: Pose du repère source dans le repère cible

    Returns:
        Pose dans le repère cible

    Examples:
        >>> p = transform_pose(Pose2D(1.0, 0.0, 0.0), Pose2D(0.2, 0.0, math.pi / 2))
        >>> assert abs(p.x - 0.2) < 1e-9 and abs(p.y - 1.0) < 1e-9
    """
    c, s = math.cos(transform.heading), math.sin(transform.heading)
    x = transform.x + c * pose.x - s * pose.y
    y = transform.y + s * pose.x + c * pose.y
    return Pose2D(x, y, normalize_angle(transform.heading + pose.heading))

