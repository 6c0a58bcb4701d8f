"""
Chargeur de configuration depuis les fichiers YAML ROS2.

Les mêmes clés sont déclarées comme paramètres par le nœud ROS2, ce qui
permet d'utiliser l'estimateur hors ROS (tests, rejeu) avec le même fichier.
"""

import yaml

from docking_station_detector.candidates import CandidateGenerator
from docking_station_detector.exceptions import ConfigurationError
from docking_station_detector.finder import DockingStationFinder
from docking_station_detector.scoring import PoseScorer
from docking_station_detector.template import STATION_DEPTH, STATION_WIDTH, TemplateModel


NODE_NAME = 'docking_station_detector'

DEFAULT_PARAMETERS = {
    # Topics / repères
    'laser': 'scan',
    'marker_topic': 'dockingStationMarker',
    'navigate_action': 'navigate_to_pose',
    'base_frame': 'base_link',
    'sensor_frame': 'base_laser_link',
    # Gabarit de la station
    'station_width': STATION_WIDTH,
    'station_depth': STATION_DEPTH,
    'docking_standoff': 0.0,
    # Génération des candidats
    'max_range': 10.0,
    'cluster_gap': 0.1,
    'min_points': 5,
    'extent_tolerance': 0.25,
    'min_extent_ratio': 0.5,
    'window_stride': 3,
    'max_candidates': 64,
    # Recalage / score
    'inlier_tolerance': 0.02,
    'max_correspondence_distance': 0.1,
    'max_iterations': 50,
    'convergence_tolerance': 1e-6,
    'collinearity_tolerance': 0.005,
    'non_convergence_penalty': 0.5,
    # Navigation
    'acceptance_threshold': 10.0,
    'transform_timeout': 10.0,
    'server_timeout': 5.0,
    'goal_timeout': 100.0,
}


def _coerce(name: str, value):
    default = DEFAULT_PARAMETERS[name]
    if isinstance(default, bool) or isinstance(value, bool):
        raise ConfigurationError(f"Paramètre {name}: booléen inattendu ({value!r})")
    if isinstance(default, float) and isinstance(value, (int, float)):
        return float(value)
    if isinstance(default, int) and isinstance(value, int):
        return value
    if isinstance(default, str) and isinstance(value, str):
        return value
    raise ConfigurationError(
        f"Paramètre {name}: type {type(value).__name__} invalide "
        f"(attendu {type(default).__name__})"
    )


def merge_parameters(overrides: dict) -> dict:
    """
    Fusionne des paramètres avec les valeurs par défaut.

    Raises:
        ConfigurationError: clé inconnue ou type incompatible
    """
    unknown = sorted(set(overrides) - set(DEFAULT_PARAMETERS))
    if unknown:
        raise ConfigurationError(f"Paramètres inconnus: {', '.join(unknown)}")
    params = dict(DEFAULT_PARAMETERS)
    for name, value in overrides.items():
        params[name] = _coerce(name, value)
    return params


def load_detector_params(config_path: str, node_name: str = NODE_NAME) -> dict:
    """
    Charge les paramètres du détecteur depuis un fichier YAML ROS2.

    Le fichier suit le format des fichiers de paramètres ROS2:

        docking_station_detector:
          ros__parameters:
            station_width: 0.476

    Args:
        config_path: Chemin du fichier YAML
        node_name: Nom du nœud dans le fichier

    Returns:
        dict: Paramètres complets (valeurs par défaut + fichier)

    Raises:
        ConfigurationError: fichier illisible, YAML invalide ou paramètres invalides
    """
    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Lecture de {config_path} impossible: {e}") from e

    if not isinstance(config, dict):
        raise ConfigurationError(f"{config_path}: dictionnaire YAML attendu")
    section = config.get(node_name, config.get('/**', {})) or {}
    overrides = section.get('ros__parameters', {}) if isinstance(section, dict) else None
    if not isinstance(overrides, dict):
        raise ConfigurationError(f"{config_path}: section ros__parameters invalide")
    return merge_parameters(overrides)


def build_template(params: dict) -> TemplateModel:
    return TemplateModel(width=params['station_width'],
                         depth=params['station_depth'],
                         standoff=params['docking_standoff'])


def build_finder(params: dict) -> DockingStationFinder:
    """Construit l'estimateur complet (gabarit, générateur, scorer)."""
    params = merge_parameters(params)
    template = build_template(params)
    generator = CandidateGenerator(
        template,
        max_range=params['max_range'],
        cluster_gap=params['cluster_gap'],
        min_points=params['min_points'],
        extent_tolerance=params['extent_tolerance'],
        min_extent_ratio=params['min_extent_ratio'],
        window_stride=params['window_stride'],
        max_candidates=params['max_candidates'],
    )
    scorer = PoseScorer(
        template,
        inlier_tolerance=params['inlier_tolerance'],
        max_correspondence_distance=params['max_correspondence_distance'],
        max_iterations=params['max_iterations'],
        convergence_tolerance=params['convergence_tolerance'],
        collinearity_tolerance=params['collinearity_tolerance'],
        non_convergence_penalty=params['non_convergence_penalty'],
    )
    return DockingStationFinder(template, generator, scorer)


def navigator_options(params: dict) -> dict:
    """Arguments nommés de DockingNavigator issus des paramètres."""
    params = merge_parameters(params)
    return {
        'acceptance_threshold': params['acceptance_threshold'],
        'base_frame': params['base_frame'],
        'sensor_frame': params['sensor_frame'],
        'transform_timeout': params['transform_timeout'],
        'server_timeout': params['server_timeout'],
        'goal_timeout': params['goal_timeout'],
    }
