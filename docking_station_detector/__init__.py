"""
Détection de la station de docking dans un scan laser 2D.

Modules:
- conversions: Scan polaire -> nuage de points cartésien
- template: Modèle géométrique de la station (forme en V)
- candidates: Génération des sous-ensembles candidats
- scoring: Recalage ICP et score de confiance
- selection: Sélection du meilleur candidat
- finder: Estimateur complet pour un scan
- navigation: Seuil de confiance et envoi du but de navigation
- config_loader: Paramètres YAML partagés avec le nœud ROS2
- tf_utils: Utilitaires de poses 2D et quaternions
"""

__version__ = '0.1.0'
