"""
Erreurs du détecteur de station de docking.

L'absence de station dans un scan n'est PAS une erreur : l'estimateur
renvoie alors un résultat sentinelle de score nul.
"""


class DockingError(Exception):
    """Classe de base des erreurs du paquet."""


class ConfigurationError(DockingError):
    """Paramètres invalides (dimensions du gabarit, seuils, fichier YAML)."""


class InvalidScanError(DockingError, ValueError):
    """Scan mal formé (tableaux de tailles différentes, dimensions invalides)."""


class TransformUnavailable(DockingError):
    """Transformation entre repères indisponible dans le délai imparti."""
