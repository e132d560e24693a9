from django.contrib.auth.models import AbstractBaseUser, UserManager
from django.db import models
from django.db.models import CASCADE, F
from django.db.models.functions import Upper
from django.utils.timezone import now as timezone_now
from typing_extensions import override


class UserProfile(AbstractBaseUser):
    USERNAME_FIELD = "username"
    EMAIL_FIELD = "email"
    REQUIRED_FIELDS = ["email"]
    MAX_NAME_LENGTH = 100
    MAX_USERNAME_LENGTH = 255

    STATE_ACTIVE = "active"
    STATE_BLOCKED = "blocked"
    STATES = (
        (STATE_ACTIVE, "Active"),
        (STATE_BLOCKED, "Blocked"),
    )

    username = models.CharField(max_length=MAX_USERNAME_LENGTH, unique=True)
    # Email lookups are case-insensitive; see the constraint in Meta.
    email = models.EmailField(max_length=254)
    full_name = models.CharField(max_length=MAX_NAME_LENGTH)

    # External users are members of one of the identity provider's
    # configured external groups; recomputed on every sign-in.
    external = models.BooleanField(default=False)
    state = models.CharField(default=STATE_ACTIVE, choices=STATES, max_length=16)
    # None until the email address is confirmed.  Accounts provisioned
    # through single sign-on are confirmed when they are created.
    confirmed_at = models.DateTimeField(null=True, default=None)
    date_joined = models.DateTimeField(default=timezone_now)

    objects = UserManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                Upper(F("email")),
                name="gserver_userprofile_email_uniq",
            ),
        ]

    @property
    @override
    def is_active(self) -> bool:  # type: ignore[override] # field on the base class
        return self.state == UserProfile.STATE_ACTIVE

    @property
    def blocked(self) -> bool:
        return self.state == UserProfile.STATE_BLOCKED

    @property
    def confirmed(self) -> bool:
        return self.confirmed_at is not None

    @override
    def __str__(self) -> str:
        return f"{self.username} <UserProfile: {self.email}>"


class ExternalAuthID(models.Model):
    """One identity an account holds at an external identity provider:
    a SAML IdP, where external_id is the IdP's permanent id for the
    user, or an LDAP directory, where it is the user's DN."""

    user = models.ForeignKey(UserProfile, on_delete=CASCADE, related_name="identities")
    date_created = models.DateTimeField(default=timezone_now)

    provider = models.TextField(db_index=False)
    external_id = models.TextField(db_index=False)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["provider", "external_id"],
                name="gserver_externalauthid_uniq",
            ),
            models.UniqueConstraint(
                fields=["user", "provider"],
                name="gserver_externalauthid_user_provider_uniq",
            ),
        ]

    @override
    def __str__(self) -> str:
        return f"<ExternalAuthID: {self.provider}:{self.external_id} for {self.user_id}>"
