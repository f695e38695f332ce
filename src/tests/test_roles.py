"""Role hierarchy ordering and fail-closed handling of unknown roles."""

from __future__ import annotations

from django.test import SimpleTestCase

from access_control.roles import ROLE_HIERARCHY, Role, dominates, level_of, roles_at_or_below


class RoleHierarchyTests(SimpleTestCase):
    def test_levels_are_strictly_ordered(self):
        ordered = [Role.SUPER_ADMIN, Role.EDITOR, Role.JOURNALIST, Role.CONTRIBUTOR, Role.SUBSCRIBER]
        levels = [level_of(role) for role in ordered]
        self.assertEqual(levels, [5, 4, 3, 2, 1])
        self.assertEqual(set(ROLE_HIERARCHY), set(Role.values))

    def test_plain_strings_and_members_agree(self):
        self.assertEqual(level_of("editor"), level_of(Role.EDITOR))
        self.assertTrue(dominates("journalist", Role.CONTRIBUTOR))

    def test_unknown_input_is_level_zero(self):
        for value in (None, "", "admin", "Editor", 4, object()):
            with self.subTest(value=value):
                self.assertEqual(level_of(value), 0)

    def test_dominates_is_reflexive_for_every_role(self):
        for role in Role:
            with self.subTest(role=role):
                self.assertTrue(dominates(role, role))

    def test_dominates_follows_levels(self):
        self.assertTrue(dominates(Role.SUPER_ADMIN, Role.EDITOR))
        self.assertFalse(dominates(Role.CONTRIBUTOR, Role.JOURNALIST))
        self.assertFalse(dominates(Role.SUBSCRIBER, Role.CONTRIBUTOR))

    def test_unknown_role_never_dominates_a_known_one(self):
        for role in Role:
            with self.subTest(role=role):
                self.assertFalse(dominates("intern", role))
                self.assertTrue(dominates(role, "intern"))

    def test_roles_at_or_below(self):
        self.assertEqual(
            set(roles_at_or_below(Role.JOURNALIST)),
            {Role.JOURNALIST.value, Role.CONTRIBUTOR.value, Role.SUBSCRIBER.value},
        )
        self.assertEqual(list(roles_at_or_below("nobody")), [])
