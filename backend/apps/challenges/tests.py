from __future__ import annotations

from django.core.cache import cache
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.test import APITestCase

from apps.challenges import scoring
from apps.challenges.models import Challenge, ChallengeResult
from apps.challenges.schemas import ChallengeCreateSchema, ChallengeStatusSchema, ResultCreateSchema, ResultUpdateSchema
from apps.challenges.services import (
    AwardPointsService,
    ChallengeCreateService,
    ChallengeStatusService,
    ComputePlacementsService,
    ResultAddService,
    ResultUpdateService,
)
from apps.common.exceptions import (
    ChallengeAlreadyCompletedError,
    ChallengeStateError,
    ConflictError,
    NoResultsToScoreError,
    ParticipantCapExceededError,
    ValidationError,
)
from apps.common.tests_utils import ISOLATED_SETTINGS, AuthenticatedAPIMixin, make_team, make_user
from apps.ledger.models import CreditEntry
from apps.teams.models import Team

TABLE = {"1": 100, "2": 75, "3": 50}


def make_challenge(challenge_type=Challenge.ChallengeType.TEAM_TIMED, **extra) -> Challenge:
    extra.setdefault("status", Challenge.Status.ACTIVE)
    extra.setdefault("points_distribution", TABLE)
    return Challenge.objects.create(title="Relay", challenge_type=challenge_type, **extra)


class ScoringTestCase(SimpleTestCase):
    """名次计算为纯函数：不访问数据库"""

    def _results(self, challenge, values, field):
        return [
            ChallengeResult(id=index, challenge=challenge, team_id=index * 10, **{field: value})
            for index, value in enumerate(values, start=1)
        ]

    def test_timed_orders_ascending_and_skips_incomplete(self):
        challenge = Challenge(challenge_type=Challenge.ChallengeType.TEAM_TIMED, points_distribution=TABLE)
        rows = scoring.compute_placements(challenge, self._results(challenge, [5000, None, 3000], "time_ms"))
        by_id = {row.result_id: row for row in rows}
        self.assertEqual((by_id[3].placement, by_id[3].points), (1, 100))
        self.assertEqual((by_id[1].placement, by_id[1].points), (2, 75))
        self.assertEqual((by_id[2].placement, by_id[2].points), (None, 0))

    def test_score_ties_keep_insertion_order(self):
        challenge = Challenge(challenge_type=Challenge.ChallengeType.TEAM_TASK, points_distribution=TABLE)
        rows = scoring.compute_placements(challenge, self._results(challenge, [7, 9, 9], "score"))
        placements = {row.result_id: row.placement for row in rows}
        self.assertEqual(placements, {2: 1, 3: 2, 1: 3})

    def test_ascending_score_direction(self):
        challenge = Challenge(
            challenge_type=Challenge.ChallengeType.TEAM_TASK,
            points_distribution=TABLE,
            score_direction=Challenge.ScoreDirection.ASC,
        )
        rows = scoring.compute_placements(challenge, self._results(challenge, [7, 2, 9], "score"))
        self.assertEqual([row.result_id for row in rows], [2, 1, 3])

    def test_top_n_limits_points(self):
        challenge = Challenge(
            challenge_type=Challenge.ChallengeType.TEAM_TIMED,
            points_mode=Challenge.PointsMode.TOP_N,
            points_distribution={"1": 30, "2": 20, "3": 10},
            top_n=2,
        )
        rows = scoring.compute_placements(challenge, self._results(challenge, [1, 2, 3], "time_ms"))
        self.assertEqual([row.points for row in rows], [30, 20, 0])

    def test_fixed_mode_pays_every_completion(self):
        challenge = Challenge(
            challenge_type=Challenge.ChallengeType.TEAM_TASK,
            points_mode=Challenge.PointsMode.FIXED,
            fixed_points=20,
        )
        rows = scoring.compute_placements(challenge, self._results(challenge, [1, 5, None], "score"))
        self.assertEqual(sorted(row.points for row in rows), [0, 20, 20])
        self.assertEqual(scoring.team_totals(rows), {10: 20, 20: 20, 30: 0})


@override_settings(**ISOLATED_SETTINGS)
class ChallengeScoringTestCase(TestCase):
    """
    挑战计分：
    - 成绩只在 active / scoring 状态下可录入
    - 发放积分每个挑战只成功一次
    """

    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user("admin", is_staff=True)
        cls.red = make_team("Red")
        cls.blue = make_team("Blue")
        cls.green = make_team("Green")
        cls.alice = make_user("alice", team=cls.red)
        cls.anna = make_user("anna", team=cls.red)
        cls.bob = make_user("bob", team=cls.blue)

    def setUp(self):
        cache.clear()

    def _add(self, challenge, **fields):
        return ResultAddService().execute(self.admin, challenge.id, ResultCreateSchema(**fields))

    def _total(self, team) -> int:
        return Team.objects.get(pk=team.pk).total_xp

    def test_fixed_award_happens_once(self):
        challenge = make_challenge(
            Challenge.ChallengeType.TEAM_TASK, points_mode=Challenge.PointsMode.FIXED, fixed_points=20
        )
        self._add(challenge, team_id=self.red.id, score=3)
        self._add(challenge, team_id=self.blue.id, score=8)

        summary = AwardPointsService().execute(self.admin, challenge.id)

        self.assertEqual(summary["challenge"]["status"], Challenge.Status.COMPLETED)
        self.assertEqual(self._total(self.red), 20)
        self.assertEqual(self._total(self.blue), 20)
        with self.assertRaises(ChallengeAlreadyCompletedError):
            AwardPointsService().execute(self.admin, challenge.id)
        self.assertEqual(self._total(self.red), 20)
        self.assertEqual(self._total(self.blue), 20)
        self.assertEqual(
            CreditEntry.objects.filter(source_type=CreditEntry.SourceType.CHALLENGE, source_id=challenge.id).count(), 2
        )

    def test_placement_table_award(self):
        challenge = make_challenge()
        self._add(challenge, team_id=self.red.id, time_ms=5000)
        self._add(challenge, team_id=self.blue.id, time_ms=3000)
        self._add(challenge, team_id=self.green.id, time_ms=4000)

        results = ComputePlacementsService().execute(self.admin, challenge.id)
        self.assertEqual([(r.team_id, r.placement, r.points_awarded) for r in results], [
            (self.blue.id, 1, 100),
            (self.green.id, 2, 75),
            (self.red.id, 3, 50),
        ])

        AwardPointsService().execute(self.admin, challenge.id)
        self.assertEqual(self._total(self.blue), 100)
        self.assertEqual(self._total(self.green), 75)
        self.assertEqual(self._total(self.red), 50)

    def test_individual_results_sum_per_team(self):
        challenge = make_challenge(Challenge.ChallengeType.INDIVIDUAL_TIMED, max_participants_per_team=2)
        self._add(challenge, user_id=self.alice.id, time_ms=1000)
        self._add(challenge, user_id=self.bob.id, time_ms=2000)
        self._add(challenge, user_id=self.anna.id, time_ms=3000)

        summary = AwardPointsService().execute(self.admin, challenge.id)

        self.assertEqual(
            summary["team_points"],
            sorted([{"team_id": self.red.id, "points": 150}, {"team_id": self.blue.id, "points": 75}],
                   key=lambda item: item["team_id"]),
        )
        self.assertEqual(self._total(self.red), 150)

    def test_participant_cap(self):
        challenge = make_challenge(Challenge.ChallengeType.INDIVIDUAL_TASK, max_participants_per_team=1)
        self._add(challenge, user_id=self.alice.id, score=10)
        with self.assertRaises(ParticipantCapExceededError):
            self._add(challenge, user_id=self.anna.id, score=12)
        self.assertEqual(ChallengeResult.objects.filter(challenge=challenge).count(), 1)

    def test_one_result_per_participant(self):
        challenge = make_challenge(Challenge.ChallengeType.INDIVIDUAL_TASK)
        self._add(challenge, user_id=self.alice.id, score=10)
        with self.assertRaises(ConflictError):
            self._add(challenge, user_id=self.alice.id, score=11)
        team_challenge = make_challenge(Challenge.ChallengeType.TEAM_TASK)
        self._add(team_challenge, team_id=self.red.id, score=3)
        with self.assertRaises(ConflictError):
            self._add(team_challenge, team_id=self.red.id, score=4)

    def test_result_measure_required(self):
        challenge = make_challenge()
        with self.assertRaises(ValidationError):
            self._add(challenge, team_id=self.red.id, score=5)

    def test_status_transitions(self):
        challenge = make_challenge(status=Challenge.Status.PENDING)
        with self.assertRaises(ChallengeStateError):
            self._add(challenge, team_id=self.red.id, time_ms=1000)
        with self.assertRaises(ChallengeStateError):
            ChallengeStatusService().execute(self.admin, challenge.id, ChallengeStatusSchema(status="scoring"))

        for target in ("active", "scoring", "active", "scoring"):
            challenge = ChallengeStatusService().execute(self.admin, challenge.id, ChallengeStatusSchema(status=target))
            self.assertEqual(challenge.status, target)

        with self.assertRaises(ChallengeStateError):
            ChallengeStatusService().execute(self.admin, challenge.id, ChallengeStatusSchema(status="completed"))

    def test_nothing_to_score(self):
        challenge = make_challenge()
        with self.assertRaises(NoResultsToScoreError):
            AwardPointsService().execute(self.admin, challenge.id)
        self.assertEqual(Challenge.objects.get(pk=challenge.pk).status, Challenge.Status.ACTIVE)

    def test_completed_challenge_is_frozen(self):
        challenge = make_challenge()
        result = self._add(challenge, team_id=self.red.id, time_ms=1000)
        AwardPointsService().execute(self.admin, challenge.id)

        with self.assertRaises(ChallengeAlreadyCompletedError):
            self._add(challenge, team_id=self.blue.id, time_ms=500)
        with self.assertRaises(ChallengeAlreadyCompletedError):
            ResultUpdateService().execute(self.admin, result.id, ResultUpdateSchema(time_ms=10))
        with self.assertRaises(ChallengeAlreadyCompletedError):
            ComputePlacementsService().execute(self.admin, challenge.id)
        with self.assertRaises(ChallengeAlreadyCompletedError):
            ChallengeStatusService().execute(self.admin, challenge.id, ChallengeStatusSchema(status="active"))

    def test_update_clears_stale_placement(self):
        challenge = make_challenge()
        result = self._add(challenge, team_id=self.red.id, time_ms=1000)
        ComputePlacementsService().execute(self.admin, challenge.id)
        updated = ResultUpdateService().execute(self.admin, result.id, ResultUpdateSchema(time_ms=900))
        self.assertIsNone(updated.placement)
        self.assertEqual(updated.points_awarded, 0)

    def test_create_uses_configured_distribution(self):
        challenge = ChallengeCreateService().execute(
            self.admin, ChallengeCreateSchema(title="Tug of war", challenge_type="team_task")
        )
        self.assertEqual(challenge.status, Challenge.Status.PENDING)
        self.assertEqual(challenge.points_distribution, {"1": 100, "2": 75, "3": 50, "4": 25, "5": 10})
        self.assertEqual(challenge.fixed_points, 50)


@override_settings(**ISOLATED_SETTINGS)
class ChallengeAPITestCase(AuthenticatedAPIMixin, APITestCase):
    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user("admin", is_staff=True)
        cls.team = make_team("Red")
        cls.player = make_user("player", team=cls.team)

    def setUp(self):
        cache.clear()
        self.admin_client = self.client_for(self.admin)
        self.player_client = self.client_for(self.player)

    def test_full_flow(self):
        created = self.admin_client.post(
            "/api/challenges/",
            {"title": "Sprint", "challenge_type": "team_timed", "points_distribution": {"1": 40}},
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        challenge_id = created.data["data"]["id"]

        started = self.admin_client.post(f"/api/challenges/{challenge_id}/status/", {"status": "active"}, format="json")
        self.assertEqual(started.data["data"]["status"], "active")

        added = self.admin_client.post(
            f"/api/challenges/{challenge_id}/results/", {"team_id": self.team.id, "time_ms": 61000}, format="json"
        )
        self.assertEqual(added.status_code, 201)

        awarded = self.admin_client.post(f"/api/challenges/{challenge_id}/award/")
        self.assertEqual(awarded.status_code, 200)
        self.assertEqual(awarded.data["data"]["team_points"], [{"team_id": self.team.id, "points": 40}])

        again = self.admin_client.post(f"/api/challenges/{challenge_id}/award/")
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.data["code"], 48501)

        board = self.player_client.get(f"/api/challenges/{challenge_id}/results/")
        self.assertEqual(board.data["data"][0]["placement"], 1)

    def test_participant_cannot_award(self):
        challenge = make_challenge()
        resp = self.player_client.post(f"/api/challenges/{challenge.id}/award/")
        self.assertEqual(resp.status_code, 403)
