"""
Launch file du détecteur de station de docking.
"""

from launch import LaunchDescription
from launch.actions import DeclareLaunchArgument
from launch.substitutions import LaunchConfiguration
from launch_ros.actions import Node
from ament_index_python.packages import get_package_share_directory
import os


def generate_launch_description():
    detector_config = os.path.join(
        get_package_share_directory('docking_station_detector'),
        'config',
        'docking_station_detector.yaml'
    )

    return LaunchDescription([
        DeclareLaunchArgument('laser', default_value='scan',
                              description='Topic LaserScan à analyser'),

        Node(
            package='docking_station_detector',
            executable='docking_station_detector',
            name='docking_station_detector',
            parameters=[detector_config, {'laser': LaunchConfiguration('laser')}],
            output='screen'
        ),
    ])
