"""
Sélection du meilleur candidat parmi les poses scorées.
"""

from typing import Iterable

from docking_station_detector.pose import EMPTY_SCAN_RESULT, PoseEstimate


def select_best(estimates: Iterable[PoseEstimate]) -> PoseEstimate:
    """
    Renvoie l'estimation de score maximal.

    En cas d'égalité, le candidat d'indice le plus faible l'emporte. Sans
    estimation, renvoie le résultat sentinelle (score nul) plutôt qu'une
    erreur.

    Examples:
        >>> a = PoseEstimate(0.0, 0.0, 0.0, score=5.0, candidate_index=1)
        >>> b = PoseEstimate(1.0, 0.0, 0.0, score=5.0, candidate_index=0)
        >>> assert select_best([a, b]) is b
    """
    best = None
    for estimate in estimates:
        if best is None or estimate.score > best.score or (
                estimate.score == best.score
                and estimate.candidate_index < best.candidate_index):
            best = estimate
    return best if best is not None else EMPTY_SCAN_RESULT
