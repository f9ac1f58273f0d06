# app/services/archival/errors.py
"""Errors raised by the archival engine and its repositories."""


class ArchivalError(Exception):
    """Base class for archival failures."""


class UnknownTable(ArchivalError, ValueError):
    """The table is not governed by the rule catalog."""


class RecordNotFound(ArchivalError):
    """No record with the requested id."""


class NotArchived(ArchivalError):
    """The record has not been moved to object storage."""


class RelationalUpdateFailed(ArchivalError):
    """
    The archival state could not be written.

    When this follows a successful storage write the object exists with no
    relational pointer until the next run rewrites it.
    """
