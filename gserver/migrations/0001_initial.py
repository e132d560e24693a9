import django.contrib.auth.models
import django.db.models.deletion
import django.db.models.expressions
import django.db.models.functions.text
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies: list[tuple[str, str]] = []

    operations = [
        migrations.CreateModel(
            name="UserProfile",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("password", models.CharField(max_length=128, verbose_name="password")),
                (
                    "last_login",
                    models.DateTimeField(blank=True, null=True, verbose_name="last login"),
                ),
                ("username", models.CharField(max_length=255, unique=True)),
                ("email", models.EmailField(max_length=254)),
                ("full_name", models.CharField(max_length=100)),
                ("external", models.BooleanField(default=False)),
                (
                    "state",
                    models.CharField(
                        choices=[("active", "Active"), ("blocked", "Blocked")],
                        default="active",
                        max_length=16,
                    ),
                ),
                ("confirmed_at", models.DateTimeField(default=None, null=True)),
                ("date_joined", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            managers=[
                ("objects", django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.AddConstraint(
            model_name="userprofile",
            constraint=models.UniqueConstraint(
                django.db.models.functions.text.Upper(django.db.models.expressions.F("email")),
                name="gserver_userprofile_email_uniq",
            ),
        ),
        migrations.CreateModel(
            name="ExternalAuthID",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("date_created", models.DateTimeField(default=django.utils.timezone.now)),
                ("provider", models.TextField()),
                ("external_id", models.TextField()),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="identities",
                        to="gserver.userprofile",
                    ),
                ),
            ],
        ),
        migrations.AddConstraint(
            model_name="externalauthid",
            constraint=models.UniqueConstraint(
                fields=("provider", "external_id"), name="gserver_externalauthid_uniq"
            ),
        ),
        migrations.AddConstraint(
            model_name="externalauthid",
            constraint=models.UniqueConstraint(
                fields=("user", "provider"), name="gserver_externalauthid_user_provider_uniq"
            ),
        ),
        migrations.CreateModel(
            name="ServerSettings",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("signup_enabled", models.BooleanField(default=True)),
                ("send_user_confirmation_email", models.BooleanField(default=False)),
            ],
        ),
        migrations.CreateModel(
            name="Project",
            fields=[
                (
                    "id",
                    models.AutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("name", models.CharField(max_length=255)),
                ("date_created", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "avatar_source",
                    models.CharField(
                        choices=[
                            ("G", "Hosted by Gravatar"),
                            ("U", "Uploaded by a project maintainer"),
                        ],
                        default="G",
                        max_length=1,
                    ),
                ),
                ("avatar_version", models.PositiveSmallIntegerField(default=1)),
            ],
        ),
    ]
