"""Publish approved articles whose scheduled time has come."""

from django.core.management.base import BaseCommand

from articles.services import publish_due_articles


class Command(BaseCommand):
    help = "Publish every approved article whose scheduled_at is in the past. Meant to run from cron."

    def handle(self, *args, **options):
        published = publish_due_articles()
        for article in published:
            self.stdout.write(f"Published {article.slug}")
        self.stdout.write(self.style.SUCCESS(f"{len(published)} article(s) published."))
