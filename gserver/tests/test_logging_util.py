import logging

from gserver.lib.logging_util import GatehouseFormatter, abbrev_log_levelname, find_log_origin
from gserver.lib.test_classes import GatehouseTestCase


def make_record(name: str, level: int = logging.INFO, msg: str = "Linked identity") -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, msg, None, None)


class GatehouseFormatterTest(GatehouseTestCase):
    def test_abbrev_log_levelname(self) -> None:
        self.assertEqual(abbrev_log_levelname("WARNING"), "WARN")
        self.assertEqual(abbrev_log_levelname("CRITICAL"), "CRIT")
        self.assertEqual(abbrev_log_levelname("AUDIT"), "AUDI")

    def test_find_log_origin(self) -> None:
        self.assertEqual(find_log_origin(make_record("gatehouse.auth.saml")), "gatehouse.auth.saml")
        self.assertEqual(find_log_origin(make_record("django_auth_ldap")), "ldap")
        self.assertEqual(find_log_origin(make_record("root")), "")

    def test_format(self) -> None:
        record = make_record("gatehouse.auth.saml", logging.WARNING, "Skipping LDAP provider")
        output = GatehouseFormatter().format(record)
        self.assertTrue(output.endswith(" WARN [gatehouse.auth.saml] Skipping LDAP provider"))

    def test_format_with_pid(self) -> None:
        record = make_record("gatehouse.ldap")
        with self.settings(LOGGING_SHOW_PID=True):
            output = GatehouseFormatter().format(record)
        self.assertIn(f" INFO pid:{record.process} [gatehouse.ldap] Linked identity", output)
