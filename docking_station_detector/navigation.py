"""
Pont entre l'estimateur et la navigation.

Applique le seuil de confiance, exprime le but de docking dans le repère du
robot et l'envoie au serveur d'action de navigation avec des délais bornés.
Les collaborateurs (lookup TF, client d'action, marqueur) sont injectés, ce
qui permet de tester la logique sans ROS.
"""

import enum
import logging
from typing import Callable, Optional

from docking_station_detector.exceptions import ConfigurationError, TransformUnavailable
from docking_station_detector.pose import Pose2D, PoseEstimate
from docking_station_detector.template import TemplateModel
from docking_station_detector.tf_utils import transform_pose


# Seuil d'acceptation historique du détecteur
DEFAULT_ACCEPTANCE_THRESHOLD = 10.0


class NavigationOutcome(enum.Enum):
    REJECTED = 'rejected'
    TRANSFORM_FAILED = 'transform_failed'
    SERVER_UNAVAILABLE = 'server_unavailable'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    TIMED_OUT = 'timed_out'


class GoalStatus(enum.Enum):
    """État final d'un but envoyé au serveur de navigation."""
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    TIMED_OUT = 'timed_out'


class FrameLookup:
    """Interface de lecture des transformations entre repères."""

    def lookup(self, target_frame: str, source_frame: str, timeout: float) -> Pose2D:
        """
        Pose du repère `source_frame` exprimée dans `target_frame`.

        Raises:
            TransformUnavailable: transformation absente après `timeout` secondes
        """
        raise NotImplementedError


class GoalClient:
    """Interface du client d'action de navigation."""

    def wait_for_server(self, timeout: float) -> bool:
        raise NotImplementedError

    def send_goal(self, goal: Pose2D, frame_id: str, timeout: float) -> GoalStatus:
        """Envoie un but et attend son résultat au plus `timeout` secondes."""
        raise NotImplementedError


class DockingNavigator:
    """
    Décide d'un docking à partir d'une estimation et pilote la navigation.

    Règle d'acceptation: score >= acceptance_threshold. Un score exactement
    égal au seuil déclenche donc la navigation.

    Args:
        template: Gabarit (calcul du but de docking)
        frame_lookup: Source des transformations capteur -> base
        goal_client: Client d'action de navigation
        acceptance_threshold: Score minimal pour naviguer
        base_frame: Repère du robot dans lequel le but est envoyé
        sensor_frame: Repère du laser
        transform_timeout: Attente max de la transformation (s)
        server_timeout: Attente max du serveur d'action (s)
        goal_timeout: Attente max du résultat de navigation (s)
        marker_sink: Appelé avec (but, repère) pour la visualisation
        logger: Logger (logging.Logger ou logger rclpy)
    """

    def __init__(self, template: TemplateModel, frame_lookup: FrameLookup,
                 goal_client: GoalClient,
                 acceptance_threshold: float = DEFAULT_ACCEPTANCE_THRESHOLD,
                 base_frame: str = 'base_link', sensor_frame: str = 'base_laser_link',
                 transform_timeout: float = 10.0, server_timeout: float = 5.0,
                 goal_timeout: float = 100.0,
                 marker_sink: Optional[Callable[[Pose2D, str], None]] = None,
                 logger=None):
        if acceptance_threshold < 0.0:
            raise ConfigurationError(f"Seuil d'acceptation négatif: {acceptance_threshold}")
        for name, value in (('transform_timeout', transform_timeout),
                            ('server_timeout', server_timeout),
                            ('goal_timeout', goal_timeout)):
            if not value > 0.0:
                raise ConfigurationError(f"{name} doit être > 0, reçu {value}")

        self.template = template
        self.frame_lookup = frame_lookup
        self.goal_client = goal_client
        self.acceptance_threshold = float(acceptance_threshold)
        self.base_frame = base_frame
        self.sensor_frame = sensor_frame
        self.transform_timeout = float(transform_timeout)
        self.server_timeout = float(server_timeout)
        self.goal_timeout = float(goal_timeout)
        self.marker_sink = marker_sink
        self.logger = logger if logger is not None else logging.getLogger(__name__)

    def accepts(self, estimate: PoseEstimate) -> bool:
        return estimate.score >= self.acceptance_threshold

    def goal_in_base_frame(self, estimate: PoseEstimate) -> Pose2D:
        """
        But de docking exprimé dans le repère de base.

        Raises:
            TransformUnavailable: transformation capteur -> base indisponible
        """
        sensor_in_base = self.frame_lookup.lookup(
            self.base_frame, self.sensor_frame, self.transform_timeout)
        goal_sensor = self.template.docking_goal(estimate.pose)
        return transform_pose(goal_sensor, sensor_in_base)

    def handle(self, estimate: PoseEstimate) -> NavigationOutcome:
        """
        Traite l'estimation d'un scan. Aucun nouvel essai automatique : en cas
        d'échec, le scan suivant est traité indépendamment.
        """
        if estimate.is_sentinel:
            self.logger.info('Aucun candidat dans le scan')
            return NavigationOutcome.REJECTED

        try:
            goal = self.goal_in_base_frame(estimate)
        except TransformUnavailable as e:
            self.logger.error(
                f'Transformation {self.sensor_frame} -> {self.base_frame} indisponible: {e}')
            return NavigationOutcome.TRANSFORM_FAILED

        if self.marker_sink is not None:
            self.marker_sink(goal, self.base_frame)

        if not self.accepts(estimate):
            self.logger.info(
                f'Station ignorée: score {estimate.score:.2f} < seuil {self.acceptance_threshold:.2f}')
            return NavigationOutcome.REJECTED

        if not self.goal_client.wait_for_server(self.server_timeout):
            self.logger.error(
                f'Serveur de navigation indisponible après {self.server_timeout:.1f}s')
            return NavigationOutcome.SERVER_UNAVAILABLE

        self.logger.info(
            f'Docking: but x={goal.x:.3f}, y={goal.y:.3f}, cap={goal.heading:.3f} '
            f'(score {estimate.score:.2f})')
        status = self.goal_client.send_goal(goal, self.base_frame, self.goal_timeout)

        if status == GoalStatus.SUCCEEDED:
            self.logger.info('But de docking atteint')
            return NavigationOutcome.SUCCEEDED
        if status == GoalStatus.TIMED_OUT:
            self.logger.error(f'But de docking non atteint après {self.goal_timeout:.1f}s')
            return NavigationOutcome.TIMED_OUT
        self.logger.error('Échec de la navigation vers la station')
        return NavigationOutcome.FAILED
