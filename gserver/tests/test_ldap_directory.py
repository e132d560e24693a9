import logging
from typing import Any, Dict
from unittest import SkipTest, mock

from django.test import override_settings
from typing_extensions import override

try:
    import ldap
    from django_auth_ldap.config import LDAPSearch
    from fakeldap import MockLDAP
except ImportError:
    raise SkipTest("python-ldap, django-auth-ldap and fakeldap are needed for the LDAP tests")

from gproject.backends import ExternalIdentityResolver, get_directory_lookup
from gserver.lib.account_store import DjangoAccountStore
from gserver.lib.exceptions import GatehouseLDAPConfigurationError, GatehouseLDAPError
from gserver.lib.ldap_directory import (
    LDAPDirectory,
    LDAPDirectoryBackend,
    ldap_attr_values,
    normalize_dn,
)
from gserver.lib.test_classes import GatehouseTestCase
from gserver.lib.test_helpers import read_test_fixture


def mock_directory_entries(provider: str = "ldapmain") -> Dict[str, Dict[str, Any]]:
    """The people of a provider in directory.json, laid out as fakeldap
    expects: entries keyed by DN."""
    entries = {}
    for person in read_test_fixture("ldap", "directory.json")[provider]:
        entries[person["dn"].lower()] = {
            "objectClass": ["inetOrgPerson"],
            "uid": [person["uid"]],
            "mail": person["emails"],
            "cn": [person["name"]],
        }
    return entries


@override_settings(
    AUTH_LDAP_SERVER_URI="ldap://ldap.example.com",
    AUTH_LDAP_BIND_DN="",
    AUTH_LDAP_BIND_PASSWORD="",
    AUTH_LDAP_USER_SEARCH=LDAPSearch("ou=people,dc=example", ldap.SCOPE_ONELEVEL, "(uid=%(user)s)"),
    LDAP_PROVIDERS={"ldapmain": {}},
)
class LDAPTestCase(GatehouseTestCase):
    @override
    def setUp(self) -> None:
        super().setUp()
        ldap_patcher = mock.patch("django_auth_ldap.config.ldap.initialize")
        self.mock_initialize = ldap_patcher.start()
        self.addCleanup(ldap_patcher.stop)
        self.mock_ldap = MockLDAP(mock_directory_entries())
        self.mock_initialize.return_value = self.mock_ldap

        self.directory = LDAPDirectory()


class LDAPDirectoryTest(LDAPTestCase):
    def test_find_by_uid(self) -> None:
        person = self.directory.find_by_uid("ldapmain", "my-uid")

        assert person is not None
        self.assertEqual(person.provider, "ldapmain")
        self.assertEqual(person.uid, "my-uid")
        self.assertEqual(person.username, "my-uid")
        self.assertEqual(person.dn, "uid=user1,ou=people,dc=example")
        self.assertEqual(person.emails, ("john@mail.com", "john2@example.com"))
        self.assertEqual(person.email, "john@mail.com")
        self.assertEqual(person.name, "John")

    def test_find_by_uid_no_such_person(self) -> None:
        self.assertIsNone(self.directory.find_by_uid("ldapmain", "nobody"))

    def test_find_by_dn(self) -> None:
        person = self.directory.find_by_dn("ldapmain", "uid=hamlet,ou=people,dc=example")

        assert person is not None
        self.assertEqual(person.uid, "hamlet")
        self.assertEqual(person.name, "King Hamlet")
        self.assertEqual(person.emails, ("hamlet@example.com",))

    def test_find_by_dn_not_a_dn(self) -> None:
        self.assertIsNone(self.directory.find_by_dn("ldapmain", "my-uid"))
        self.mock_initialize.assert_not_called()

    def test_find_by_dn_no_such_entry(self) -> None:
        self.assertIsNone(self.directory.find_by_dn("ldapmain", "uid=nobody,ou=people,dc=example"))

    def test_server_down(self) -> None:
        self.mock_initialize.side_effect = ldap.SERVER_DOWN({"desc": "Can't contact LDAP server"})

        with self.assertRaises(GatehouseLDAPError) as e:
            self.directory.find_by_uid("ldapmain", "my-uid")
        self.assertTrue(str(e.exception).startswith("ldapmain: looking up uid my-uid failed"))

        with self.assertRaises(GatehouseLDAPError) as e:
            self.directory.find_by_dn("ldapmain", "uid=user1,ou=people,dc=example")
        self.assertTrue(
            str(e.exception).startswith("ldapmain: looking up uid=user1,ou=people,dc=example failed")
        )

    def test_unknown_provider(self) -> None:
        with self.assertRaisesRegex(GatehouseLDAPConfigurationError, "Unknown LDAP provider: ldapother"):
            self.directory.find_by_uid("ldapother", "my-uid")

    def test_missing_server_uri(self) -> None:
        with self.settings(AUTH_LDAP_SERVER_URI=""):
            with self.assertRaisesRegex(
                GatehouseLDAPConfigurationError, "AUTH_LDAP_SERVER_URI is not set"
            ):
                LDAPDirectory().find_by_uid("ldapmain", "my-uid")

    def test_missing_user_search(self) -> None:
        with self.settings(AUTH_LDAP_USER_SEARCH=None):
            with self.assertRaisesRegex(GatehouseLDAPConfigurationError, "AUTH_LDAP_USER_SEARCH"):
                LDAPDirectory().find_by_uid("ldapmain", "my-uid")

    def test_backend_never_authenticates(self) -> None:
        backend = LDAPDirectoryBackend("ldapmain")
        self.assertIsNone(backend.authenticate(None, username="my-uid", password="secret"))
        self.mock_initialize.assert_not_called()

    def test_get_directory_lookup(self) -> None:
        self.assertIsInstance(get_directory_lookup(), LDAPDirectory)


class LDAPEntryTest(LDAPTestCase):
    def test_person_from_entry_with_provider_attributes(self) -> None:
        directory = LDAPDirectory(
            {
                "ad": {
                    "uid_attr": "sAMAccountName",
                    "email_attrs": ["mail", "userPrincipalName"],
                    "name_attr": "displayName",
                }
            }
        )
        person = directory.person_from_entry(
            "ad",
            "CN=Ophelia,OU=Staff,DC=example,DC=org",
            {
                "samaccountname": [b"ophelia"],
                "userPrincipalName": [b"ophelia@example.org"],
                "mail": [b"ophelia@example.org", b"o.polonius@example.org"],
                "displayName": ["Ophelia Polonius"],
            },
        )

        assert person is not None
        self.assertEqual(person.uid, "ophelia")
        self.assertEqual(person.dn, "cn=Ophelia,ou=Staff,dc=example,dc=org")
        self.assertEqual(person.emails, ("ophelia@example.org", "o.polonius@example.org"))
        self.assertEqual(person.name, "Ophelia Polonius")

    def test_entry_without_uid(self) -> None:
        with self.assertLogs("gatehouse.ldap", level="WARNING") as m:
            person = self.directory.person_from_entry(
                "ldapmain", "cn=printer,dc=example", {"cn": [b"printer"]}
            )
        self.assertIsNone(person)
        self.assertEqual(
            m.output,
            [
                "WARNING:gatehouse.ldap:ldapmain: entry cn=printer,dc=example has no uid "
                "attribute, ignoring it"
            ],
        )

    def test_normalize_dn(self) -> None:
        self.assertEqual(
            normalize_dn("UID=user1,OU=People,DC=example"), "uid=user1,ou=People,dc=example"
        )
        self.assertEqual(normalize_dn(" not a DN "), "not a DN")

    def test_ldap_attr_values(self) -> None:
        attrs = {"Mail": [b"john@mail.com", "john2@example.com"]}
        self.assertEqual(ldap_attr_values(attrs, "mail"), ["john@mail.com", "john2@example.com"])
        self.assertEqual(ldap_attr_values(attrs, "cn"), [])


class LDAPAutoLinkTest(LDAPTestCase):
    def test_saml_sign_in_links_the_ldap_account(self) -> None:
        resolver = ExternalIdentityResolver(
            DjangoAccountStore(), self.directory, logger=logging.getLogger("gatehouse.auth.saml")
        )
        user_profile = resolver.resolve(
            self.saml_claims(),
            self.sso_policy(
                allow_single_sign_on=False,
                auto_link_directory_user=True,
                directory_providers=["ldapmain"],
            ),
        )

        self.assertEqual(user_profile.username, "my-uid")
        self.assertEqual(user_profile.email, "john@mail.com")
        self.assert_identities(
            user_profile,
            {("ldapmain", "uid=user1,ou=people,dc=example"), ("saml", "my-uid")},
        )
