"""Seed categories, one demo account per role and sample articles."""

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from access_control.roles import Role
from articles.lifecycle import ArticleStatus
from articles.models import Article, Category
from articles.services import create_article

SEED_CATEGORIES = [
    ("Politik", "politik", "Berita politik terkini", "#3B82F6", 1),
    ("Ekonomi", "ekonomi", "Berita ekonomi dan bisnis", "#10B981", 2),
    ("Olahraga", "olahraga", "Berita olahraga", "#F97316", 3),
    ("Teknologi", "teknologi", "Berita teknologi", "#8B5CF6", 4),
    ("Hiburan", "hiburan", "Berita hiburan", "#EC4899", 5),
]

SEED_PASSWORD = "newsroom123"


def seed_accounts() -> list[tuple[str, str, str]]:
    """(email, full name, role) for the demo accounts."""
    domain = settings.NEWSROOM_EMAIL_DOMAIN
    return [
        (f"admin@{domain}", "Admin Opiniku", Role.SUPER_ADMIN.value),
        (f"editor@{domain}", "Editor Opiniku", Role.EDITOR.value),
        (f"journalist@{domain}", "Jurnalis Opiniku", Role.JOURNALIST.value),
        (f"contributor@{domain}", "Kontributor Opiniku", Role.CONTRIBUTOR.value),
        ("reader@example.com", "Pembaca", Role.SUBSCRIBER.value),
    ]


def create_seed_categories() -> dict[str, Category]:
    """Create or update the default categories and return them by slug."""
    categories = {}
    for name, slug, description, color, order in SEED_CATEGORIES:
        category, _ = Category.objects.update_or_create(
            slug=slug,
            defaults={
                "name": name,
                "description": description,
                "color_code": color,
                "sort_order": order,
                "is_active": True,
            },
        )
        categories[slug] = category
    return categories


def create_seed_users(password: str = SEED_PASSWORD) -> dict[str, object]:
    """Create missing demo accounts and return users keyed by role."""
    User = get_user_model()
    users = {}
    for email, full_name, role in seed_accounts():
        user = User.objects.filter(email=email).first()
        if user is None:
            user = User.objects.create_user(
                email=email,
                password=password,
                full_name=full_name,
                role=role,
                is_staff=role == Role.SUPER_ADMIN.value,
            )
        users[role] = user
    return users


def create_seed_articles(users, categories) -> list[Article]:
    """Create one sample article per non-terminal workflow stage."""
    now = timezone.now()
    samples = [
        (users[Role.JOURNALIST.value], "politik", "Sidang paripurna bahas RUU baru", ArticleStatus.PUBLISHED, True),
        (users[Role.JOURNALIST.value], "ekonomi", "Rupiah menguat terhadap dolar", ArticleStatus.PENDING, False),
        (users[Role.CONTRIBUTOR.value], "olahraga", "Timnas lolos ke babak final", ArticleStatus.DRAFT, False),
        (users[Role.CONTRIBUTOR.value], "teknologi", "Startup lokal raih pendanaan", ArticleStatus.APPROVED, False),
    ]
    articles = []
    for author, category, title, status, featured in samples:
        article = Article.objects.filter(title=title).first()
        if article is None:
            article = create_article(
                author,
                title=title,
                category=categories[category],
                excerpt=title,
                content=f"{title}. Artikel contoh untuk lingkungan pengembangan.",
                is_featured=featured,
            )
            # Placed directly in its stage, bypassing the lifecycle.
            article.status = status.value
            if status == ArticleStatus.PUBLISHED:
                article.published_at = now
            article.save(update_fields=["status", "published_at", "updated_at"])
        articles.append(article)
    return articles


class Command(BaseCommand):
    """Management command to seed newsroom categories, accounts and articles."""

    help = (
        "Seed categories, one demo account per editorial role and sample articles. "
        "Use --reset to clear previously seeded accounts and articles first."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--reset",
            action="store_true",
            help="Delete the demo accounts and their articles before seeding.",
        )
        parser.add_argument(
            "--password",
            default=SEED_PASSWORD,
            help="Password for newly created demo accounts.",
        )

    def handle(self, *args, **options):
        """Entrypoint for the management command."""
        with transaction.atomic():
            if options.get("reset"):
                self._reset_seeded_data()

            self.stdout.write("Seeding newsroom data...")
            categories = create_seed_categories()
            users = create_seed_users(options["password"])
            articles = create_seed_articles(users, categories)
        self.stdout.write(
            self.style.SUCCESS(
                f"Newsroom seed completed: {len(categories)} categories, "
                f"{len(users)} accounts, {len(articles)} articles."
            )
        )

    def _reset_seeded_data(self) -> None:
        self.stdout.write("Resetting previously seeded newsroom data...")
        User = get_user_model()
        emails = [email for email, _, _ in seed_accounts()]
        # Article.author is PROTECT.
        Article.objects.filter(author__email__in=emails).delete()
        User.objects.filter(email__in=emails).delete()
        self.stdout.write(self.style.WARNING("Seeded newsroom data cleared."))
