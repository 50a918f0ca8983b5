from __future__ import annotations

from datetime import timedelta
from unittest import mock

from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.accounts.models import User
from apps.common.exceptions import (
    InvalidEvidenceError,
    MissionAlreadyCompletedError,
    MissionAlreadyPendingError,
    MissionCompletionLimitError,
    MissionInactiveError,
    MissionLevelTooLowError,
    MissionOutsideWindowError,
    PermissionDeniedError,
    RaceClosedError,
    RaceNotStartedError,
    RaceStateError,
    SubmissionAlreadyResolvedError,
    TeamRequiredError,
    ValidationError,
)
from apps.common.tests_utils import ISOLATED_SETTINGS, AuthenticatedAPIMixin, make_team, make_user
from apps.ledger.models import CreditEntry
from apps.missions import quiz
from apps.missions.models import Mission, Submission
from apps.missions.race_service import RaceApproveService, RaceEntriesService, RaceStartService, RaceStopService
from apps.missions.schemas import (
    MissionCreateSchema,
    MissionSubmitSchema,
    MissionUpdateSchema,
    SubmissionReviewSchema,
)
from apps.missions.services import (
    MissionSubmitService,
    MissionUpdateService,
    SubmissionApproveService,
    SubmissionRejectService,
)
from apps.teams.models import Team

QUIZ_DATA = {
    "questions": [
        {
            "id": "q1",
            "question": "2 + 2 = ?",
            "answers": [{"id": "a", "text": "3"}, {"id": "b", "text": "4", "is_correct": True}],
        },
        {
            "id": "q2",
            "question": "首都？",
            "answers": [{"id": "a", "text": "北京", "is_correct": True}, {"id": "b", "text": "上海"}],
        },
    ],
    "passing_score": 60,
    "mode": "classic",
}


def make_mission(title: str, mission_type: str, **extra) -> Mission:
    extra.setdefault("xp_reward", 100)
    return Mission.objects.create(title=title, mission_type=mission_type, **extra)


def submit(user, mission, **evidence) -> Submission:
    return MissionSubmitService().execute(user, mission.id, MissionSubmitSchema(**evidence))


class QuizGradingTestCase(TestCase):
    def test_round_percent_rounds_half_up(self):
        self.assertEqual(quiz.round_percent(1, 2), 50)
        self.assertEqual(quiz.round_percent(2, 3), 67)
        self.assertEqual(quiz.round_percent(1, 8), 13)

    def test_speedrun_keeps_time_only_when_perfect(self):
        data = {**QUIZ_DATA, "mode": "speedrun", "passing_score": 50}
        perfect = quiz.grade(data, {"q1": "b", "q2": "a"}, time_ms=4200)
        self.assertTrue(perfect.passed)
        self.assertEqual(perfect.time_ms, 4200)

        partial = quiz.grade(data, {"q1": "b", "q2": "b"}, time_ms=3000)
        self.assertTrue(partial.passed)
        self.assertIsNone(partial.time_ms)

    def test_public_quiz_hides_correct_flags(self):
        public = quiz.public_quiz(QUIZ_DATA)
        for question in public["questions"]:
            for answer in question["answers"]:
                self.assertNotIn("is_correct", answer)


@override_settings(**ISOLATED_SETTINGS)
class MissionSubmitTestCase(TestCase):
    """
    自动判定与审核：
    - 二维码/定位/测验创建即终态，通过时入账一次
    - 照片/人工进入待审核，审核迁移只发生一次
    """

    @classmethod
    def setUpTestData(cls):
        cls.team = make_team("Red Foxes")
        cls.admin = make_user("admin", is_staff=True)
        cls.alice = make_user("alice", team=cls.team)
        cls.bob = make_user("bob")

    def setUp(self):
        cache.clear()

    def _xp(self, user) -> int:
        return User.objects.get(pk=user.pk).total_xp

    def test_qr_code_completion_credits_user_and_team(self):
        mission = make_mission("Find the statue", Mission.MissionType.QR_CODE, qr_code_value="STATUE-42")

        submission = submit(self.alice, mission, qr_code="STATUE-42")

        self.assertEqual(submission.status, Submission.Status.APPROVED)
        self.assertEqual(submission.xp_awarded, 100)
        self.assertEqual(self._xp(self.alice), 100)
        self.assertEqual(Team.objects.get(pk=self.team.pk).total_xp, 100)
        self.assertEqual(
            CreditEntry.objects.filter(source_type=CreditEntry.SourceType.MISSION_SUBMISSION, source_id=submission.id).count(),
            1,
        )
        with self.assertRaises(MissionAlreadyCompletedError):
            submit(self.alice, mission, qr_code="STATUE-42")
        self.assertEqual(self._xp(self.alice), 100)

    def test_wrong_qr_code_leaves_no_record(self):
        mission = make_mission("Find the bench", Mission.MissionType.QR_CODE, qr_code_value="BENCH")
        with self.assertRaises(InvalidEvidenceError):
            submit(self.alice, mission, qr_code="NOPE")
        self.assertFalse(Submission.objects.filter(mission=mission).exists())
        self.assertEqual(self._xp(self.alice), 0)

    def test_gps_inside_and_outside_radius(self):
        mission = make_mission(
            "Fountain", Mission.MissionType.GPS, location_lat=40.0, location_lng=-75.0, location_radius=50
        )
        with self.assertRaises(InvalidEvidenceError) as ctx:
            submit(self.bob, mission, lat=40.01, lng=-75.0)
        self.assertGreater(ctx.exception.extra["distance_meters"], 1000)

        submission = submit(self.bob, mission, lat=40.0001, lng=-75.0)
        self.assertEqual(submission.status, Submission.Status.APPROVED)
        self.assertEqual(self._xp(self.bob), 100)

    def test_quiz_allows_single_attempt(self):
        mission = make_mission("Trivia", Mission.MissionType.QUIZ, quiz_data=QUIZ_DATA)

        failed = submit(self.bob, mission, answers={"q1": "b", "q2": "b"})
        self.assertEqual(failed.status, Submission.Status.REJECTED)
        self.assertEqual(failed.quiz_score, 50)
        self.assertEqual(self._xp(self.bob), 0)

        with self.assertRaises(MissionAlreadyCompletedError):
            submit(self.bob, mission, answers={"q1": "b", "q2": "a"})

    def test_speedrun_quiz_records_time(self):
        mission = make_mission("Speed trivia", Mission.MissionType.QUIZ, quiz_data={**QUIZ_DATA, "mode": "speedrun"})
        submission = submit(self.alice, mission, answers={"q1": "b", "q2": "a"}, time_ms=4200)
        self.assertEqual(submission.quiz_score, 100)
        self.assertEqual(submission.quiz_time_ms, 4200)
        self.assertEqual(self._xp(self.alice), 100)

    def test_photo_review_flow(self):
        mission = make_mission("Team selfie", Mission.MissionType.PHOTO)
        with self.assertRaises(InvalidEvidenceError):
            submit(self.alice, mission)

        submission = submit(self.alice, mission, photo_url="https://cdn.example.com/p.jpg")
        self.assertEqual(submission.status, Submission.Status.PENDING)
        self.assertEqual(self._xp(self.alice), 0)
        with self.assertRaises(MissionAlreadyPendingError):
            submit(self.alice, mission, photo_url="https://cdn.example.com/p2.jpg")

        approved = SubmissionApproveService().execute(self.admin, submission.id, SubmissionReviewSchema(xp_override=80))
        self.assertEqual(approved.status, Submission.Status.APPROVED)
        self.assertEqual(approved.xp_awarded, 80)
        self.assertEqual(self._xp(self.alice), 80)

        with self.assertRaises(SubmissionAlreadyResolvedError):
            SubmissionApproveService().execute(self.admin, submission.id, SubmissionReviewSchema())
        with self.assertRaises(SubmissionAlreadyResolvedError):
            SubmissionRejectService().execute(self.admin, submission.id, SubmissionReviewSchema())
        self.assertEqual(self._xp(self.alice), 80)
        with self.assertRaises(MissionAlreadyCompletedError):
            submit(self.alice, mission, photo_url="https://cdn.example.com/p3.jpg")

    def test_rejected_photo_can_be_resubmitted(self):
        mission = make_mission("Mural", Mission.MissionType.PHOTO)
        first = submit(self.bob, mission, photo_url="https://cdn.example.com/a.jpg")
        rejected = SubmissionRejectService().execute(self.admin, first.id, SubmissionReviewSchema(admin_notes="模糊"))
        self.assertEqual(rejected.status, Submission.Status.REJECTED)
        self.assertEqual(rejected.admin_notes, "模糊")
        self.assertEqual(self._xp(self.bob), 0)

        second = submit(self.bob, mission, photo_url="https://cdn.example.com/b.jpg")
        self.assertEqual(second.status, Submission.Status.PENDING)

    def test_participant_cannot_review(self):
        mission = make_mission("Mural", Mission.MissionType.PHOTO)
        submission = submit(self.bob, mission, photo_url="https://cdn.example.com/a.jpg")
        with self.assertRaises(PermissionDeniedError):
            SubmissionApproveService().execute(self.alice, submission.id, SubmissionReviewSchema())

    def test_completion_limit(self):
        mission = make_mission("Litter pick", Mission.MissionType.MANUAL, xp_reward=10, max_completions=2)
        for _ in range(2):
            submission = submit(self.bob, mission, note="done")
            SubmissionApproveService().execute(self.admin, submission.id, SubmissionReviewSchema())
        self.assertEqual(self._xp(self.bob), 20)
        with self.assertRaises(MissionCompletionLimitError):
            submit(self.bob, mission, note="again")

    def test_gating(self):
        inactive = make_mission("Closed", Mission.MissionType.MANUAL, status=Mission.Status.INACTIVE)
        with self.assertRaises(MissionInactiveError):
            submit(self.bob, inactive)

        later = make_mission("Later", Mission.MissionType.MANUAL, start_date=timezone.now() + timedelta(days=1))
        with self.assertRaises(MissionOutsideWindowError):
            submit(self.bob, later)

        expired = make_mission("Expired", Mission.MissionType.MANUAL, end_date=timezone.now() - timedelta(hours=1))
        with self.assertRaises(MissionOutsideWindowError):
            submit(self.bob, expired)

        advanced = make_mission("Advanced", Mission.MissionType.MANUAL, required_level=3)
        with self.assertRaises(MissionLevelTooLowError):
            submit(self.bob, advanced)
        self.assertFalse(Submission.objects.filter(user=self.bob).exists())


@override_settings(**ISOLATED_SETTINGS)
class RaceTestCase(TestCase):
    """
    竞速：名次按审核先后分配，用时从开始时间计，积分记在队伍名下
    """

    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user("admin", is_staff=True)
        cls.teams = [make_team(f"Team {i}") for i in range(1, 5)]
        cls.racers = [make_user(f"racer{i}", team=team) for i, team in enumerate(cls.teams, start=1)]
        cls.loner = make_user("loner")

    def setUp(self):
        cache.clear()
        self.mission = make_mission(
            "Sprint",
            Mission.MissionType.MANUAL,
            is_race=True,
            race_points_distribution={"1": 100, "2": 50, "3": 25},
        )

    def test_submissions_require_started_and_open_race(self):
        with self.assertRaises(RaceNotStartedError):
            submit(self.racers[0], self.mission)
        RaceStartService().execute(self.admin, self.mission.id)
        with self.assertRaises(TeamRequiredError):
            submit(self.loner, self.mission)
        RaceStopService().execute(self.admin, self.mission.id)
        with self.assertRaises(RaceClosedError):
            submit(self.racers[0], self.mission)

    def test_start_twice_is_rejected(self):
        RaceStartService().execute(self.admin, self.mission.id)
        with self.assertRaises(RaceStateError):
            RaceStartService().execute(self.admin, self.mission.id)

    def test_placements_follow_approval_order(self):
        started = timezone.now()
        with mock.patch("apps.missions.race_service.timezone.now", return_value=started):
            RaceStartService().execute(self.admin, self.mission.id)

        submissions = [submit(racer, self.mission, note="finished") for racer in self.racers]

        # 审核顺序与提交顺序相反
        results = []
        for offset, submission in enumerate(reversed(submissions), start=1):
            with mock.patch(
                "apps.missions.race_service.timezone.now", return_value=started + timedelta(seconds=90 * offset)
            ):
                results.append(RaceApproveService().execute(self.admin, submission.id, SubmissionReviewSchema()))

        self.assertEqual([r.race_placement for r in results], [1, 2, 3, 4])
        self.assertEqual([r.race_time_ms for r in results], [90000, 180000, 270000, 360000])
        self.assertEqual([r.xp_awarded for r in results], [100, 50, 25, 0])

        winner_team = Team.objects.get(pk=self.teams[3].pk)
        self.assertEqual(winner_team.total_xp, 100)
        # 竞速积分只记在队伍名下
        self.assertEqual(User.objects.get(pk=self.racers[3].pk).total_xp, 0)
        self.assertEqual(Team.objects.get(pk=self.teams[0].pk).total_xp, 0)

        entries = RaceEntriesService().execute(self.mission.id)
        self.assertEqual([e.race_placement for e in entries], [1, 2, 3, 4])

    def test_race_approval_is_single_shot(self):
        RaceStartService().execute(self.admin, self.mission.id)
        submission = submit(self.racers[0], self.mission)
        SubmissionApproveService().execute(self.admin, submission.id, SubmissionReviewSchema())
        with self.assertRaises(SubmissionAlreadyResolvedError):
            RaceApproveService().execute(self.admin, submission.id, SubmissionReviewSchema())
        self.assertEqual(Mission.objects.get(pk=self.mission.pk).race_placement_seq, 1)
        self.assertEqual(Team.objects.get(pk=self.teams[0].pk).total_xp, 100)

    def test_rejected_entry_gets_no_placement(self):
        RaceStartService().execute(self.admin, self.mission.id)
        rejected = submit(self.racers[0], self.mission)
        accepted = submit(self.racers[1], self.mission)
        SubmissionRejectService().execute(self.admin, rejected.id, SubmissionReviewSchema())
        result = RaceApproveService().execute(self.admin, accepted.id, SubmissionReviewSchema())
        self.assertEqual(result.race_placement, 1)
        self.assertIsNone(Submission.objects.get(pk=rejected.pk).race_placement)


@override_settings(**ISOLATED_SETTINGS)
class MissionAPITestCase(AuthenticatedAPIMixin, APITestCase):
    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user("admin", is_staff=True)
        cls.player = make_user("player")
        cls.mission = make_mission("Find the statue", Mission.MissionType.QR_CODE, qr_code_value="STATUE-42")

    def setUp(self):
        cache.clear()
        self.admin_client = self.client_for(self.admin)
        self.player_client = self.client_for(self.player)

    def test_participant_list_hides_qr_value(self):
        resp = self.player_client.get("/api/missions/")
        self.assertEqual(resp.status_code, 200)
        item = resp.data["data"][0]
        self.assertNotIn("qr_code_value", item)
        self.assertEqual(item["my_stats"]["attempts"], 0)
        self.assertEqual(resp.data["extra"]["total"], 1)

    def test_submit_and_stats(self):
        resp = self.player_client.post(
            f"/api/missions/{self.mission.id}/submit/", {"qr_code": "STATUE-42"}, format="json"
        )
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data["data"]["status"], "approved")

        stats = self.player_client.get(f"/api/missions/{self.mission.id}/stats/")
        self.assertEqual(stats.data["data"]["completed"], 1)
        self.assertFalse(stats.data["data"]["can_submit"])

        again = self.player_client.post(
            f"/api/missions/{self.mission.id}/submit/", {"qr_code": "STATUE-42"}, format="json"
        )
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.data["code"], 48203)

    def test_admin_creates_race_mission(self):
        resp = self.admin_client.post(
            "/api/missions/",
            {
                "title": "Photo race",
                "mission_type": "photo",
                "is_race": True,
                "race_points_distribution": {"1": 30, "2": 10},
            },
            format="json",
        )
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data["data"]["race_points_distribution"], {"1": 30, "2": 10})

    def test_race_must_be_reviewed_type(self):
        resp = self.admin_client.post(
            "/api/missions/",
            {"title": "QR race", "mission_type": "qr_code", "qr_code_value": "X", "is_race": True,
             "race_points_distribution": {"1": 10}},
            format="json",
        )
        self.assertEqual(resp.status_code, 400)

    def test_participant_cannot_see_review_queue(self):
        resp = self.player_client.get("/api/missions/submissions/pending/")
        self.assertEqual(resp.status_code, 403)

    def test_malformed_quiz_answers_rejected_with_400(self):
        resp = self.admin_client.post(
            "/api/missions/",
            {"title": "Broken quiz", "mission_type": "quiz",
             "quiz_data": {"questions": [{"id": "q1", "answers": ["a", "b"]}]}},
            format="json",
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["code"], 40002)
        self.assertFalse(Mission.objects.filter(title="Broken quiz").exists())

    def test_admin_clears_mission_window(self):
        resp = self.admin_client.patch(
            f"/api/missions/{self.mission.id}/",
            {"end_date": (timezone.now() + timedelta(days=1)).isoformat()},
            format="json",
        )
        self.assertEqual(resp.status_code, 200)
        self.assertIsNotNone(resp.data["data"]["end_date"])

        cleared = self.admin_client.patch(
            f"/api/missions/{self.mission.id}/", {"clear_fields": ["end_date"]}, format="json"
        )
        self.assertEqual(cleared.status_code, 200)
        self.assertIsNone(cleared.data["data"]["end_date"])


@override_settings(**ISOLATED_SETTINGS)
class MissionAdminTestCase(TestCase):
    """
    任务维护：
    - 测验题目结构不合法时在入参阶段拒绝
    - 修改任务时可通过 clear_fields 显式置空开放窗口与完成上限
    """

    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user("admin", is_staff=True)

    def _quiz(self, questions):
        return MissionCreateSchema(
            title="Quiz", mission_type=Mission.MissionType.QUIZ, quiz_data={"questions": questions}
        )

    def test_quiz_answers_must_be_object_list(self):
        with self.assertRaises(ValidationError):
            self._quiz([{"id": "q1", "answers": ["a", "b"]}])
        with self.assertRaises(ValidationError):
            self._quiz([{"id": "q1", "answers": "a"}])
        with self.assertRaises(ValidationError):
            self._quiz([{"id": "q1"}])

    def test_quiz_question_id_must_be_scalar(self):
        answers = [{"id": "a", "is_correct": True}]
        with self.assertRaises(ValidationError):
            self._quiz([{"id": {"x": 1}, "answers": answers}])
        with self.assertRaises(ValidationError):
            self._quiz([{"id": True, "answers": answers}])
        with self.assertRaises(ValidationError):
            self._quiz(["q1"])

        schema = self._quiz([{"id": 1, "answers": answers}])
        self.assertEqual(schema.quiz_data["passing_score"], 60)

    def test_clear_fields_resets_window_and_limit(self):
        now = timezone.now()
        mission = make_mission(
            "Timed", Mission.MissionType.MANUAL,
            start_date=now - timedelta(days=1), end_date=now + timedelta(days=1), max_completions=3,
        )

        updated = MissionUpdateService().execute(
            self.admin, mission.id,
            MissionUpdateSchema(clear_fields=["start_date", "end_date", "max_completions"]),
        )

        mission.refresh_from_db()
        self.assertIsNone(mission.start_date)
        self.assertIsNone(mission.end_date)
        self.assertIsNone(mission.max_completions)
        self.assertEqual(updated.title, "Timed")

    def test_untouched_fields_are_kept(self):
        end = timezone.now() + timedelta(days=2)
        mission = make_mission("Timed", Mission.MissionType.MANUAL, end_date=end, max_completions=2)

        MissionUpdateService().execute(self.admin, mission.id, MissionUpdateSchema(title="Renamed"))

        mission.refresh_from_db()
        self.assertEqual(mission.title, "Renamed")
        self.assertEqual(mission.end_date, end)
        self.assertEqual(mission.max_completions, 2)

    def test_clear_fields_rejects_unknown_or_conflicting_names(self):
        with self.assertRaises(ValidationError):
            MissionUpdateSchema(clear_fields=["title"])
        with self.assertRaises(ValidationError):
            MissionUpdateSchema(clear_fields="end_date")
        with self.assertRaises(ValidationError):
            MissionUpdateSchema(end_date=timezone.now(), clear_fields=["end_date"])
