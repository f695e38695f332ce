"""Article lifecycle table, actor checks and in-memory transitions."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from types import SimpleNamespace

from django.test import SimpleTestCase

from access_control.roles import Role
from articles.lifecycle import (
    INITIAL_STATUSES,
    TRANSITIONS,
    ArticleLifecycle,
    ArticleStatus,
    rule_for,
    valid_targets,
)

AUTHOR_ID = "11111111-1111-1111-1111-111111111111"
OTHER_ID = "22222222-2222-2222-2222-222222222222"


def make_article(status, pk=1, published_at=None, author_id=AUTHOR_ID):
    return SimpleNamespace(pk=pk, status=status, published_at=published_at, author_id=author_id)


def make_profile(role, user_id=OTHER_ID):
    return SimpleNamespace(role=role, user_id=user_id)


class TransitionTableTests(SimpleTestCase):
    def test_every_edge_uses_known_statuses(self):
        for source, target in TRANSITIONS:
            with self.subTest(edge=(source, target)):
                self.assertIn(source, ArticleStatus.values)
                self.assertIn(target, ArticleStatus.values)

    def test_initial_statuses(self):
        self.assertEqual(set(INITIAL_STATUSES), {"draft", "pending"})

    def test_valid_targets(self):
        self.assertEqual(valid_targets(ArticleStatus.DRAFT), ["pending"])
        self.assertEqual(set(valid_targets("pending")), {"approved", "rejected", "draft"})
        self.assertEqual(valid_targets(ArticleStatus.ARCHIVED), [])
        self.assertEqual(valid_targets("bogus"), [])

    def test_illegal_edges_have_no_rule(self):
        self.assertIsNone(rule_for("draft", "published"))
        self.assertIsNone(rule_for("published", "draft"))
        self.assertIsNone(rule_for("archived", "published"))
        self.assertIsNone(rule_for("draft", "nonsense"))


class ArticleLifecycleTests(SimpleTestCase):
    def setUp(self):
        self.lifecycle = ArticleLifecycle()
        self.editor = make_profile(Role.EDITOR)
        self.author = make_profile(Role.CONTRIBUTOR, user_id=AUTHOR_ID)

    def test_editor_approves_pending_article(self):
        article = make_article(ArticleStatus.PENDING)
        result = self.lifecycle.transition(article, ArticleStatus.APPROVED, actor=self.editor)

        self.assertTrue(result.ok)
        self.assertEqual(article.status, "approved")
        self.assertEqual((result.from_status, result.to_status), ("pending", "approved"))
        self.assertIsNone(article.published_at)

    def test_publish_sets_published_at(self):
        now = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)
        article = make_article("approved")
        result = self.lifecycle.transition(article, "published", actor=self.editor, now=now)

        self.assertTrue(result.ok)
        self.assertEqual(article.published_at, now)

    def test_publish_keeps_existing_published_at(self):
        first = datetime(2024, 1, 1, tzinfo=timezone.utc)
        article = make_article("approved", published_at=first)
        self.lifecycle.transition(article, "published", actor=self.editor, now=datetime.now(timezone.utc))

        self.assertEqual(article.published_at, first)

    def test_archive_keeps_published_at(self):
        first = datetime(2024, 1, 1, tzinfo=timezone.utc)
        article = make_article("published", published_at=first)
        result = self.lifecycle.transition(article, ArticleStatus.ARCHIVED, actor=self.editor)

        self.assertTrue(result.ok)
        self.assertEqual(article.published_at, first)

    def test_illegal_transition_leaves_article_unchanged(self):
        article = make_article("draft")
        result = self.lifecycle.transition(article, "published", actor=self.editor)

        self.assertFalse(result.ok)
        self.assertTrue(result.illegal)
        self.assertFalse(result.denied)
        self.assertIn("Valid targets: pending", result.reason)
        self.assertEqual(article.status, "draft")

    def test_unknown_target_is_illegal_not_an_exception(self):
        article = make_article("pending")
        result = self.lifecycle.transition(article, "deleted", actor=self.editor)

        self.assertFalse(result.ok)
        self.assertTrue(result.illegal)
        self.assertEqual(article.status, "pending")

    def test_journalist_cannot_approve(self):
        article = make_article("pending")
        result = self.lifecycle.transition(article, "approved", actor=make_profile(Role.JOURNALIST))

        self.assertFalse(result.ok)
        self.assertTrue(result.denied)
        self.assertEqual(article.status, "pending")

    def test_author_submits_own_draft(self):
        article = make_article("draft")
        result = self.lifecycle.transition(article, "pending", actor=self.author)

        self.assertTrue(result.ok)
        self.assertEqual(article.status, "pending")

    def test_non_author_cannot_submit_draft(self):
        article = make_article("draft")
        result = self.lifecycle.transition(article, "pending", actor=make_profile(Role.JOURNALIST))

        self.assertTrue(result.denied)
        self.assertEqual(article.status, "draft")

    def test_subscriber_author_cannot_submit(self):
        article = make_article("draft")
        result = self.lifecycle.transition(
            article, "pending", actor=make_profile(Role.SUBSCRIBER, user_id=AUTHOR_ID)
        )

        self.assertTrue(result.denied)

    def test_author_or_editor_returns_rejected_to_draft(self):
        for actor in (self.author, self.editor):
            with self.subTest(role=actor.role):
                article = make_article("rejected")
                self.assertTrue(self.lifecycle.transition(article, "draft", actor=actor).ok)
                self.assertEqual(article.status, "draft")

    def test_rejection_carries_comment(self):
        article = make_article("pending")
        result = self.lifecycle.transition(article, "rejected", actor=self.editor, comment="Sumber kurang")

        self.assertTrue(result.ok)
        self.assertEqual(result.comment, "Sumber kurang")

    def test_missing_actor_is_denied(self):
        article = make_article("pending")
        result = self.lifecycle.transition(article, "approved", actor=None)

        self.assertTrue(result.denied)

    def test_system_may_only_publish(self):
        publish = self.lifecycle.transition(make_article("approved"), "published", system=True)
        approve = self.lifecycle.transition(make_article("pending"), "approved", system=True)

        self.assertTrue(publish.ok)
        self.assertTrue(approve.denied)

    def test_concurrent_transitions_on_one_article_apply_once(self):
        article = make_article("pending", pk=42)
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(self.lifecycle.transition(article, "approved", actor=self.editor))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sum(1 for r in results if r.ok), 1)
        self.assertEqual(article.status, "approved")

    def test_lock_pool_does_not_grow_with_articles(self):
        lifecycle = ArticleLifecycle(stripes=4)

        for pk in range(100):
            lifecycle.transition(make_article("pending", pk=pk), "approved", actor=self.editor)

        self.assertEqual(len(lifecycle._locks), 4)
        self.assertIs(
            lifecycle._lock_for(make_article("draft", pk=7)),
            lifecycle._lock_for(make_article("approved", pk=7)),
        )
