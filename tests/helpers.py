"""Identities and timestamps shared by the test suites."""

from datetime import datetime, timezone


ADMIN = "0xadmin"
FARMER = "0xfarmer"
PROCESSOR = "0xprocessor"
RETAILER = "0xretailer"
REGULATOR = "0xregulator"
AUDITOR = "0xauditor"
ORACLE = "0xoracle"
PROTECTOR = "0xprotector"
ANALYST = "0xanalyst"
STRANGER = "0xstranger"

START = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
