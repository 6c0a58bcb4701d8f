"""
Tests du pont de navigation avec des collaborateurs simulés.
"""

import logging
import math

import pytest
import numpy as np
from docking_station_detector.exceptions import ConfigurationError, TransformUnavailable
from docking_station_detector.navigation import (
    DockingNavigator,
    FrameLookup,
    GoalClient,
    GoalStatus,
    NavigationOutcome
)
from docking_station_detector.pose import EMPTY_SCAN_RESULT, Pose2D, PoseEstimate
from docking_station_detector.template import TemplateModel


class FakeFrameLookup(FrameLookup):
    def __init__(self, transform=Pose2D(0.0, 0.0, 0.0), fail=False):
        self.transform = transform
        self.fail = fail
        self.calls = []

    def lookup(self, target_frame, source_frame, timeout):
        self.calls.append((target_frame, source_frame, timeout))
        if self.fail:
            raise TransformUnavailable('timeout')
        return self.transform


class FakeGoalClient(GoalClient):
    def __init__(self, server_up=True, status=GoalStatus.SUCCEEDED):
        self.server_up = server_up
        self.status = status
        self.server_waits = []
        self.sent = []

    def wait_for_server(self, timeout):
        self.server_waits.append(timeout)
        return self.server_up

    def send_goal(self, goal, frame_id, timeout):
        self.sent.append((goal, frame_id, timeout))
        return self.status


def _estimate(score, pose=Pose2D(1.0, 0.2, 0.3)):
    return PoseEstimate(x=pose.x, y=pose.y, heading=pose.heading, score=score,
                        candidate_index=0, inliers=30, converged=True)


@pytest.fixture
def lookup():
    return FakeFrameLookup()


@pytest.fixture
def client():
    return FakeGoalClient()


@pytest.fixture
def markers():
    return []


@pytest.fixture
def navigator(template, lookup, client, markers):
    return DockingNavigator(template, lookup, client,
                            marker_sink=lambda pose, frame: markers.append((pose, frame)))


class TestAcceptanceThreshold:
    """Règle d'acceptation: score >= seuil."""

    def test_default_threshold(self, navigator):
        assert navigator.acceptance_threshold == 10.0

    def test_score_at_threshold_accepted(self, navigator, client):
        outcome = navigator.handle(_estimate(10.0))
        assert navigator.accepts(_estimate(10.0))
        assert outcome == NavigationOutcome.SUCCEEDED
        assert len(client.sent) == 1

    def test_score_just_below_threshold_rejected(self, navigator, client, markers):
        score = float(np.nextafter(10.0, 0.0))
        outcome = navigator.handle(_estimate(score))
        assert not navigator.accepts(_estimate(score))
        assert outcome == NavigationOutcome.REJECTED
        assert client.sent == []
        assert client.server_waits == []
        # La visualisation reste publiée
        assert len(markers) == 1

    def test_sentinel_rejected_without_lookup(self, navigator, lookup, markers):
        assert navigator.handle(EMPTY_SCAN_RESULT) == NavigationOutcome.REJECTED
        assert lookup.calls == []
        assert markers == []

    def test_custom_threshold(self, template, lookup, client):
        navigator = DockingNavigator(template, lookup, client, acceptance_threshold=25.0)
        assert navigator.handle(_estimate(24.9)) == NavigationOutcome.REJECTED
        assert navigator.handle(_estimate(25.0)) == NavigationOutcome.SUCCEEDED


class TestGoalTransform:
    """But exprimé dans le repère de base."""

    def test_goal_with_sensor_offset(self, lookup, client, markers):
        lookup.transform = Pose2D(0.2, 0.0, 0.0)
        navigator = DockingNavigator(TemplateModel(standoff=0.5), lookup, client,
                                     marker_sink=lambda p, f: markers.append((p, f)))
        navigator.handle(_estimate(30.0, Pose2D(2.0, 0.0, 0.0)))

        goal, frame_id, timeout = client.sent[0]
        assert frame_id == 'base_link'
        assert timeout == 100.0
        assert abs(goal.x - 1.7) < 1e-9
        assert abs(goal.y) < 1e-9
        assert markers == [(goal, 'base_link')]

    def test_goal_with_rotated_sensor(self, template, lookup, client):
        lookup.transform = Pose2D(0.0, 0.0, math.pi / 2)
        navigator = DockingNavigator(template, lookup, client)
        navigator.handle(_estimate(30.0, Pose2D(1.5, 0.0, 0.0)))

        goal = client.sent[0][0]
        assert abs(goal.x) < 1e-9
        assert abs(goal.y - 1.5) < 1e-9
        assert abs(goal.heading - math.pi / 2) < 1e-9

    def test_lookup_frames_and_timeout(self, navigator, lookup):
        navigator.handle(_estimate(30.0))
        assert lookup.calls == [('base_link', 'base_laser_link', 10.0)]


class TestFailures:
    """Échecs des collaborateurs: journalisés, pas d'exception, pas de relance."""

    def test_transform_unavailable(self, template, client, markers, caplog):
        navigator = DockingNavigator(template, FakeFrameLookup(fail=True), client,
                                     marker_sink=lambda p, f: markers.append((p, f)))
        with caplog.at_level(logging.ERROR, logger='docking_station_detector.navigation'):
            outcome = navigator.handle(_estimate(30.0))

        assert outcome == NavigationOutcome.TRANSFORM_FAILED
        assert client.sent == []
        assert markers == []
        assert 'indisponible' in caplog.text

    def test_server_unavailable(self, template, lookup):
        client = FakeGoalClient(server_up=False)
        navigator = DockingNavigator(template, lookup, client, server_timeout=2.0)
        assert navigator.handle(_estimate(30.0)) == NavigationOutcome.SERVER_UNAVAILABLE
        assert client.server_waits == [2.0]
        assert client.sent == []

    def test_goal_failed(self, template, lookup):
        client = FakeGoalClient(status=GoalStatus.FAILED)
        navigator = DockingNavigator(template, lookup, client)
        assert navigator.handle(_estimate(30.0)) == NavigationOutcome.FAILED
        assert len(client.sent) == 1

    def test_goal_timeout(self, template, lookup):
        client = FakeGoalClient(status=GoalStatus.TIMED_OUT)
        navigator = DockingNavigator(template, lookup, client, goal_timeout=3.0)
        assert navigator.handle(_estimate(30.0)) == NavigationOutcome.TIMED_OUT
        assert client.sent[0][2] == 3.0

    def test_next_scan_processed_after_failure(self, template, client):
        lookup = FakeFrameLookup(fail=True)
        navigator = DockingNavigator(template, lookup, client)
        assert navigator.handle(_estimate(30.0)) == NavigationOutcome.TRANSFORM_FAILED
        lookup.fail = False
        assert navigator.handle(_estimate(30.0)) == NavigationOutcome.SUCCEEDED


class TestNavigatorConfiguration:
    """Paramètres invalides."""

    @pytest.mark.parametrize('kwargs', [
        {'acceptance_threshold': -1.0},
        {'transform_timeout': 0.0},
        {'server_timeout': -5.0},
        {'goal_timeout': 0.0},
    ])
    def test_invalid_parameters(self, template, lookup, client, kwargs):
        with pytest.raises(ConfigurationError):
            DockingNavigator(template, lookup, client, **kwargs)

    def test_interfaces_are_abstract(self):
        with pytest.raises(NotImplementedError):
            FrameLookup().lookup('a', 'b', 1.0)
        with pytest.raises(NotImplementedError):
            GoalClient().wait_for_server(1.0)
        with pytest.raises(NotImplementedError):
            GoalClient().send_goal(Pose2D(0.0, 0.0, 0.0), 'a', 1.0)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
