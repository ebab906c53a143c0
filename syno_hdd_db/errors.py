"""
Fatal error kinds.

Every service raises one of these instead of terminating the process; the CLI
driver turns them into exit statuses and the HTTP API into 503 responses.
"""


class HddDbError(RuntimeError):
    """Base class for all fatal conditions of a run."""

    exit_code = 1


class RootRequiredError(HddDbError):
    exit_code = 1


class NoDrivesFoundError(HddDbError):
    exit_code = 2


class ActiveDatabaseMissingError(HddDbError):
    exit_code = 3


class PendingDatabaseMissingError(HddDbError):
    exit_code = 4


class BackupError(HddDbError):
    exit_code = 5


class DatabaseError(HddDbError):
    """Database file unusable; read and write failures share exit status 6."""

    exit_code = 6


class DatabaseReadError(DatabaseError):
    pass


class DatabaseWriteError(DatabaseError):
    pass


class ConfigBackupError(HddDbError):
    exit_code = 7
