from setuptools import find_packages, setup

package_name = 'docking_station_detector'

setup(
    name=package_name,
    version='0.1.0',
    packages=find_packages(exclude=['test']),
    data_files=[
        ('share/ament_index/resource_index/packages',
            ['resource/' + package_name]),
        ('share/' + package_name, ['package.xml']),
        ('share/' + package_name + '/config', ['config/docking_station_detector.yaml']),
        ('share/' + package_name + '/launch', ['launch/docking_station_detector.launch.py']),
    ],
    install_requires=['setuptools', 'numpy', 'scipy', 'PyYAML'],
    extras_require={'test': ['pytest']},
    zip_safe=True,
    maintainer='Maxime Lefevre',
    maintainer_email='maxime.lefevre@example.com',
    description='Détection de la station de docking dans un scan laser 2D',
    license='Apache-2.0',
    tests_require=['pytest'],
    entry_points={
        'console_scripts': [
            'docking_station_detector = docking_station_detector.detector_node:main',
        ],
    },
)
