import unittest

from core.access_guard import check_ownership
from core.errors import AccessDeniedError


class AccessGuardTestCase(unittest.TestCase):
    def test_owner_passes(self):
        check_ownership("user-1", "user-1")

    def test_other_user_is_denied(self):
        with self.assertRaises(AccessDeniedError) as ctx:
            check_ownership("user-1", "user-2", "删除该反馈")
        self.assertEqual(ctx.exception.status_code, 403)
        self.assertIn("删除该反馈", ctx.exception.message)

    def test_empty_requester_is_denied(self):
        with self.assertRaises(AccessDeniedError):
            check_ownership("", "")
        with self.assertRaises(AccessDeniedError):
            check_ownership("user-1", None)


if __name__ == "__main__":
    unittest.main()
