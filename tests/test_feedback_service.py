import unittest
import uuid
from datetime import date, datetime, timedelta
from unittest.mock import MagicMock, patch

from core.ai_service import generate_feedback as real_generate_feedback
from core.config import cfg, set_config
from core.db import DB
from core.diary_service import create_diary, delete_diary
from core.errors import (
    AccessDeniedError,
    AIServiceError,
    AnalysisFailedError,
    DataValidationError,
    DuplicateFeedbackError,
    NotFoundError,
    QuotaExceededError,
)
from core.feedback_service import (
    create_feedback,
    delete_feedback,
    get_daily_usage,
    get_feedback,
    get_feedback_by_diary,
    get_feedback_history,
    serialize_feedback,
)
from core.models.ai_feedback import AIFeedback
from core.models.daily_feedback_usage import DailyFeedbackUsage
from core.models.diary import Diary
from core.models.user import User
from core.period_analysis_service import generate_period_analysis
from core.quota_service import get_usage
from core.user_service import create_user

NOW = datetime(2024, 1, 1, 10, 0)
YESTERDAY = NOW - timedelta(days=1)


class FeedbackServiceTestCase(unittest.TestCase):
    def setUp(self):
        DB.create_tables()
        self.session = DB.get_session()
        self.user = create_user(self.session, login_id=f"u_{uuid.uuid4().hex[:10]}")
        self.other = create_user(self.session, login_id=f"o_{uuid.uuid4().hex[:10]}")
        self.owner_ids = [self.user.id, self.other.id]
        self.d1 = create_diary(self.session, self.user.id, "今天顺利完成了项目汇报，心里轻松了很多。", date(2024, 1, 1))
        self.d2 = create_diary(self.session, self.user.id, "和朋友吵了一架，心情有点沉重。", date(2024, 1, 1))
        self.d3 = create_diary(self.session, self.user.id, "下了一整天的雨，哪里也没去。", date(2024, 1, 1))

        self._patches = [
            patch("core.ai_service.generate_summary", return_value="summary of the day"),
            patch("core.ai_service.generate_feedback", return_value="styled response"),
        ]
        self.summary_mock = self._patches[0].start()
        self.feedback_mock = self._patches[1].start()

    def tearDown(self):
        for p in self._patches:
            p.stop()
        self.session.rollback()
        for model in (AIFeedback, Diary, DailyFeedbackUsage):
            self.session.query(model).filter(model.owner_id.in_(self.owner_ids)).delete(synchronize_session=False)
        self.session.query(User).filter(User.id.in_(self.owner_ids)).delete(synchronize_session=False)
        self.session.commit()
        self.session.close()

    def test_create_feedback_persists_and_consumes_quota(self):
        feedback = create_feedback(self.session, self.user.id, self.d1.id, "encouraging", now=NOW)
        self.assertEqual(feedback.summary, "summary of the day")
        self.assertEqual(feedback.response, "styled response")
        self.assertEqual(feedback.feedback_style, "encouraging")
        self.assertEqual(feedback.owner_id, self.user.id)
        self.assertEqual(feedback.created_at, NOW)
        self.feedback_mock.assert_called_once_with(self.d1.content, "encouraging")
        self.assertEqual(get_usage(self.session, self.user.id, NOW.date()), 1)

    def test_example_scenario(self):
        create_feedback(self.session, self.user.id, self.d1.id, "encouraging", now=NOW)
        create_feedback(self.session, self.user.id, self.d2.id, "honest", now=NOW)
        self.assertEqual(get_usage(self.session, self.user.id, NOW.date()), 2)

        with self.assertRaises(QuotaExceededError) as ctx:
            create_feedback(self.session, self.user.id, self.d3.id, "encouraging", now=NOW)
        self.assertEqual(ctx.exception.limit, 2)
        self.assertIsNone(get_feedback_by_diary(self.session, self.d3.id))

        delete_feedback(self.session, self.user.id, self.d1.id, now=NOW)
        self.assertEqual(get_usage(self.session, self.user.id, NOW.date()), 1)

        with patch("core.ai_service.generate_period_summary", return_value="period"), \
                patch("core.ai_service.analyze_emotional_pattern", return_value="emotions"), \
                patch("core.ai_service.analyze_growth_pattern", return_value="growth"), \
                patch("core.ai_service.generate_recommendations", return_value="tips"):
            report = generate_period_analysis(self.session, self.user.id, NOW.date(), NOW.date())
        self.assertEqual(report["feedback_count"], 1)

    def test_duplicate_feedback_is_rejected_and_original_kept(self):
        original = create_feedback(self.session, self.user.id, self.d1.id, "encouraging", now=NOW)
        self.summary_mock.return_value = "another summary"
        with self.assertRaises(DuplicateFeedbackError):
            create_feedback(self.session, self.user.id, self.d1.id, "honest", now=NOW)
        current = get_feedback(self.session, self.user.id, self.d1.id)
        self.assertEqual(current.id, original.id)
        self.assertEqual(current.summary, "summary of the day")
        self.assertEqual(get_usage(self.session, self.user.id, NOW.date()), 1)

    def test_unique_constraint_catches_concurrent_duplicate(self):
        create_feedback(self.session, self.user.id, self.d1.id, "encouraging", now=NOW)
        with patch("core.feedback_service.get_feedback_by_diary", return_value=None):
            with self.assertRaises(DuplicateFeedbackError):
                create_feedback(self.session, self.user.id, self.d1.id, "honest", now=NOW)
        rows = self.session.query(AIFeedback).filter(AIFeedback.diary_id == self.d1.id).count()
        self.assertEqual(rows, 1)
        # 输掉并发竞争的请求已占用的配额不归还
        self.assertEqual(get_usage(self.session, self.user.id, NOW.date()), 2)

    def test_unknown_user(self):
        with self.assertRaises(NotFoundError) as ctx:
            create_feedback(self.session, "missing-user", self.d1.id, "encouraging", now=NOW)
        self.assertEqual(ctx.exception.entity, "user")

    def test_unknown_diary(self):
        with self.assertRaises(NotFoundError) as ctx:
            create_feedback(self.session, self.user.id, "missing-diary", "encouraging", now=NOW)
        self.assertEqual(ctx.exception.entity, "diary")

    def test_create_on_foreign_diary_is_denied(self):
        with self.assertRaises(AccessDeniedError):
            create_feedback(self.session, self.other.id, self.d1.id, "encouraging", now=NOW)
        self.assertEqual(get_usage(self.session, self.other.id, NOW.date()), 0)

    def test_unknown_style_has_no_side_effects(self):
        with self.assertRaises(DataValidationError):
            create_feedback(self.session, self.user.id, self.d1.id, "sarcastic", now=NOW)
        self.assertEqual(get_usage(self.session, self.user.id, NOW.date()), 0)
        self.summary_mock.assert_not_called()

    def test_ai_failure_keeps_consumed_quota(self):
        self.feedback_mock.side_effect = AIServiceError("upstream timeout")
        with self.assertRaises(AnalysisFailedError) as ctx:
            create_feedback(self.session, self.user.id, self.d1.id, "honest", now=NOW)
        self.assertIn("upstream timeout", ctx.exception.message)
        self.assertIsNone(get_feedback_by_diary(self.session, self.d1.id))
        self.assertEqual(get_usage(self.session, self.user.id, NOW.date()), 1)

    def test_malformed_model_reply_is_analysis_failure(self):
        reply = MagicMock(status_code=200, text="")
        reply.json.return_value = ["not", "a", "dict"]
        self.feedback_mock.side_effect = real_generate_feedback
        previous = {k: cfg.get(k, "") for k in ("ai.provider.base_url", "ai.provider.api_key")}
        set_config("ai.provider.base_url", "https://api.example.com/v1")
        set_config("ai.provider.api_key", "sk-test-key")
        try:
            with patch("core.ai_service.requests.post", return_value=reply):
                with self.assertRaises(AnalysisFailedError):
                    create_feedback(self.session, self.user.id, self.d1.id, "honest", now=NOW)
        finally:
            for key, value in previous.items():
                set_config(key, value)
        self.assertIsNone(get_feedback_by_diary(self.session, self.d1.id))
        self.assertEqual(get_usage(self.session, self.user.id, NOW.date()), 1)

    def test_get_feedback(self):
        created = create_feedback(self.session, self.user.id, self.d1.id, "empathetic", now=NOW)
        fetched = get_feedback(self.session, self.user.id, self.d1.id)
        self.assertEqual(fetched.id, created.id)
        data = serialize_feedback(fetched)
        self.assertEqual(data["diary_id"], self.d1.id)
        self.assertEqual(data["created_at"], NOW.isoformat())

    def test_get_feedback_missing(self):
        with self.assertRaises(NotFoundError) as ctx:
            get_feedback(self.session, self.user.id, self.d1.id)
        self.assertEqual(ctx.exception.entity, "feedback")

    def test_get_feedback_of_other_user_is_denied(self):
        create_feedback(self.session, self.user.id, self.d1.id, "encouraging", now=NOW)
        with self.assertRaises(AccessDeniedError):
            get_feedback(self.session, self.other.id, self.d1.id)

    def test_delete_same_day_releases_quota(self):
        create_feedback(self.session, self.user.id, self.d1.id, "encouraging", now=NOW)
        create_feedback(self.session, self.user.id, self.d2.id, "encouraging", now=NOW)
        delete_feedback(self.session, self.user.id, self.d1.id, now=NOW + timedelta(hours=3))
        self.assertIsNone(get_feedback_by_diary(self.session, self.d1.id))
        self.assertEqual(get_usage(self.session, self.user.id, NOW.date()), 1)
        create_feedback(self.session, self.user.id, self.d3.id, "encouraging", now=NOW)
        self.assertEqual(get_usage(self.session, self.user.id, NOW.date()), 2)

    def test_delete_prior_day_feedback_leaves_counters(self):
        create_feedback(self.session, self.user.id, self.d1.id, "encouraging", now=YESTERDAY)
        create_feedback(self.session, self.user.id, self.d2.id, "encouraging", now=NOW)
        delete_feedback(self.session, self.user.id, self.d1.id, now=NOW)
        self.assertEqual(get_usage(self.session, self.user.id, NOW.date()), 1)
        self.assertEqual(get_usage(self.session, self.user.id, YESTERDAY.date()), 1)

    def test_delete_requires_diary_owner(self):
        create_feedback(self.session, self.user.id, self.d1.id, "encouraging", now=NOW)
        with self.assertRaises(AccessDeniedError):
            delete_feedback(self.session, self.other.id, self.d1.id, now=NOW)
        self.assertIsNotNone(get_feedback_by_diary(self.session, self.d1.id))

    def test_delete_requires_feedback_owner(self):
        feedback = create_feedback(self.session, self.user.id, self.d1.id, "encouraging", now=NOW)
        feedback.owner_id = self.other.id
        self.session.commit()
        with self.assertRaises(AccessDeniedError):
            delete_feedback(self.session, self.user.id, self.d1.id, now=NOW)
        self.assertIsNotNone(get_feedback_by_diary(self.session, self.d1.id))
        self.assertEqual(get_usage(self.session, self.user.id, NOW.date()), 1)

    def test_delete_missing_feedback(self):
        with self.assertRaises(NotFoundError):
            delete_feedback(self.session, self.user.id, self.d1.id, now=NOW)

    def test_history_is_range_scoped_and_ordered(self):
        self.feedback_mock.return_value = "x" * 500
        create_feedback(self.session, self.user.id, self.d2.id, "honest", now=NOW)
        create_feedback(self.session, self.user.id, self.d1.id, "encouraging", now=YESTERDAY)
        create_feedback(self.session, self.user.id, self.d3.id, "encouraging", now=NOW + timedelta(days=3))

        history = get_feedback_history(self.session, self.user.id, YESTERDAY.date(), NOW.date())
        self.assertEqual(history["start_date"], "2023-12-31")
        self.assertEqual(history["end_date"], "2024-01-01")
        self.assertEqual([x["diary_id"] for x in history["items"]], [self.d1.id, self.d2.id])
        self.assertEqual(history["items"][0]["date"], "2023-12-31")
        self.assertLess(len(history["items"][0]["response_preview"]), 500)

    def test_history_rejects_inverted_range(self):
        with self.assertRaises(DataValidationError):
            get_feedback_history(self.session, self.user.id, NOW.date(), YESTERDAY.date())

    def test_daily_usage(self):
        usage = get_daily_usage(self.session, self.user.id, now=NOW)
        self.assertEqual((usage["used"], usage["limit"], usage["remaining"]), (0, 2, 2))
        create_feedback(self.session, self.user.id, self.d1.id, "encouraging", now=NOW)
        usage = get_daily_usage(self.session, self.user.id, now=NOW)
        self.assertEqual((usage["used"], usage["limit"], usage["remaining"]), (1, 2, 1))

    def test_delete_diary_removes_its_feedback(self):
        create_feedback(self.session, self.user.id, self.d1.id, "encouraging", now=NOW)
        delete_diary(self.session, self.user.id, self.d1.id)
        self.assertIsNone(get_feedback_by_diary(self.session, self.d1.id))
        self.assertEqual(get_usage(self.session, self.user.id, NOW.date()), 1)


if __name__ == "__main__":
    unittest.main()
