"""
Nœud ROS2 de détection de la station de docking dans les scans laser.

Pipeline par scan: LaserScan -> estimateur -> marqueur -> navigation (Nav2)
si le score dépasse le seuil. Le buffer TF et le client d'action sont créés
une seule fois au démarrage et réutilisés pour tous les scans.
"""

import threading

import numpy as np
import rclpy
from rclpy.action import ActionClient
from rclpy.callback_groups import ReentrantCallbackGroup
from rclpy.duration import Duration
from rclpy.executors import MultiThreadedExecutor
from rclpy.node import Node
from rclpy.time import Time
from action_msgs.msg import GoalStatus as ActionGoalStatus
from geometry_msgs.msg import PoseStamped, Quaternion
from nav2_msgs.action import NavigateToPose
from sensor_msgs.msg import LaserScan
from visualization_msgs.msg import Marker
import tf2_ros

from docking_station_detector.config_loader import (
    DEFAULT_PARAMETERS, build_finder, navigator_options
)
from docking_station_detector.exceptions import TransformUnavailable
from docking_station_detector.navigation import (
    DockingNavigator, FrameLookup, GoalClient, GoalStatus
)
from docking_station_detector.pose import Pose2D
from docking_station_detector.tf_utils import quaternion_to_yaw, yaw_to_quaternion


def _quaternion_msg(yaw: float) -> Quaternion:
    x, y, z, w = yaw_to_quaternion(yaw)
    return Quaternion(x=x, y=y, z=z, w=w)


def _wait_future(future, timeout: float) -> bool:
    """Attend la fin d'un future rclpy (exécuté par un autre thread)."""
    done = threading.Event()
    future.add_done_callback(lambda _: done.set())
    return done.wait(timeout)


class Tf2FrameLookup(FrameLookup):
    """Lookup TF2 sur un buffer partagé par tous les scans."""

    def __init__(self, buffer: tf2_ros.Buffer):
        self.buffer = buffer

    def lookup(self, target_frame: str, source_frame: str, timeout: float) -> Pose2D:
        try:
            t = self.buffer.lookup_transform(
                target_frame, source_frame, Time(),
                timeout=Duration(seconds=timeout))
        except tf2_ros.TransformException as e:
            raise TransformUnavailable(str(e)) from e

        q = t.transform.rotation
        return Pose2D(t.transform.translation.x,
                      t.transform.translation.y,
                      quaternion_to_yaw(q.x, q.y, q.z, q.w))


class Nav2GoalClient(GoalClient):
    """Client d'action NavigateToPose (Nav2) avec attentes bornées."""

    def __init__(self, node: Node, action_client: ActionClient):
        self.node = node
        self.client = action_client

    def wait_for_server(self, timeout: float) -> bool:
        return self.client.wait_for_server(timeout_sec=timeout)

    def send_goal(self, goal: Pose2D, frame_id: str, timeout: float) -> GoalStatus:
        msg = NavigateToPose.Goal()
        msg.pose = PoseStamped()
        msg.pose.header.frame_id = frame_id
        msg.pose.header.stamp = self.node.get_clock().now().to_msg()
        msg.pose.pose.position.x = float(goal.x)
        msg.pose.pose.position.y = float(goal.y)
        msg.pose.pose.orientation = _quaternion_msg(goal.heading)

        deadline = self.node.get_clock().now() + Duration(seconds=timeout)
        send_future = self.client.send_goal_async(msg)
        if not _wait_future(send_future, timeout):
            return GoalStatus.TIMED_OUT

        goal_handle = send_future.result()
        if goal_handle is None or not goal_handle.accepted:
            self.node.get_logger().warn('But de navigation refusé par le serveur')
            return GoalStatus.FAILED

        remaining = (deadline - self.node.get_clock().now()).nanoseconds / 1e9
        result_future = goal_handle.get_result_async()
        if remaining <= 0.0 or not _wait_future(result_future, remaining):
            goal_handle.cancel_goal_async()
            return GoalStatus.TIMED_OUT

        if result_future.result().status == ActionGoalStatus.STATUS_SUCCEEDED:
            return GoalStatus.SUCCEEDED
        return GoalStatus.FAILED


class DockingStationDetectorNode(Node):
    """Détecte la station dans chaque scan et lance le docking si confiant."""

    def __init__(self):
        super().__init__('docking_station_detector')

        # Paramètres (mêmes clés que config/docking_station_detector.yaml)
        for name, default in DEFAULT_PARAMETERS.items():
            self.declare_parameter(name, default)
        params = {name: self.get_parameter(name).value for name in DEFAULT_PARAMETERS}

        self.finder = build_finder(params)
        self.template = self.finder.template

        # Ressources longue durée (créées une fois)
        self.callback_group = ReentrantCallbackGroup()
        self.tf_buffer = tf2_ros.Buffer()
        self.tf_listener = tf2_ros.TransformListener(self.tf_buffer, self)
        self.action_client = ActionClient(
            self, NavigateToPose, params['navigate_action'],
            callback_group=self.callback_group)

        self.marker_pub = self.create_publisher(Marker, params['marker_topic'], 1)

        self.navigator = DockingNavigator(
            self.template,
            Tf2FrameLookup(self.tf_buffer),
            Nav2GoalClient(self, self.action_client),
            marker_sink=self.publish_marker,
            logger=self.get_logger(),
            **navigator_options(params),
        )

        # Un seul scan traité à la fois, les autres sont ignorés
        self._busy = threading.Lock()
        self.subscription = self.create_subscription(
            LaserScan, params['laser'], self.laser_scan_callback, 1,
            callback_group=self.callback_group)

        self.get_logger().info(
            f"Détecteur démarré: laser={params['laser']}, "
            f"seuil={params['acceptance_threshold']:.1f}")

    def publish_marker(self, pose: Pose2D, frame_id: str):
        """Publie un cube vert à la position du but de docking."""
        marker = Marker()
        marker.header.frame_id = frame_id
        marker.header.stamp = self.get_clock().now().to_msg()
        marker.ns = 'basic_shapes'
        marker.id = 0
        marker.type = Marker.CUBE
        marker.action = Marker.ADD

        marker.pose.position.x = float(pose.x)
        marker.pose.position.y = float(pose.y)
        marker.pose.position.z = 0.0
        marker.pose.orientation = _quaternion_msg(pose.heading)

        marker.scale.x = marker.scale.y = marker.scale.z = 0.1
        marker.color.r = 0.0
        marker.color.g = 1.0
        marker.color.b = 0.0
        marker.color.a = 0.7

        self.marker_pub.publish(marker)

    def laser_scan_callback(self, msg: LaserScan):
        if not self._busy.acquire(blocking=False):
            self.get_logger().debug('Scan ignoré: traitement précédent en cours')
            return
        try:
            self.get_logger().debug(f'Scan reçu: {len(msg.ranges)} mesures')
            estimate = self.finder.estimate_scan(
                np.asarray(msg.ranges, dtype=float), msg.angle_min,
                msg.angle_increment, msg.range_min, msg.range_max)
            self.get_logger().info(
                f'Meilleur score: x={estimate.x:.3f} y={estimate.y:.3f} '
                f'cap={estimate.heading:.3f} score={estimate.score:.2f}')
            outcome = self.navigator.handle(estimate)
            self.get_logger().debug(f'Résultat docking: {outcome.value}')
        finally:
            self._busy.release()


def main(args=None):
    rclpy.init(args=args)
    node = DockingStationDetectorNode()
    executor = MultiThreadedExecutor()
    executor.add_node(node)

    try:
        executor.spin()
    except KeyboardInterrupt:
        pass
    finally:
        node.destroy_node()
        rclpy.shutdown()


if __name__ == '__main__':
    main()
