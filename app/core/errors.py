from fastapi import status


class QueryError(Exception):
    """Base error for everything the query layer can reject or fail on."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Query failed"

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.message)
        self.detail = detail or self.message


class ScenarioNotFound(QueryError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Scenario not found"

    def __init__(self, key: str):
        super().__init__(f"Scenario '{key}' does not exist")
        self.key = key


class MissingParameter(QueryError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Missing required parameter"

    def __init__(self, name: str):
        super().__init__(f"Missing required parameter: {name}")
        self.name = name


class EmptyStatement(QueryError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "SQL statement cannot be empty"


class StatementNotAllowed(QueryError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Only read-only statements (SELECT, WITH, SHOW, DESCRIBE, EXPLAIN) are allowed"


class UnknownDatabase(QueryError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Unknown database"

    def __init__(self, database: str):
        super().__init__(f"Unsupported database: {database}")
        self.database = database


class InvalidIdentifier(QueryError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid identifier"

    def __init__(self, name: str):
        super().__init__(f"Invalid identifier: {name}")
        self.name = name


class InvalidArgument(QueryError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid argument"


# Raised when the pool cannot hand out a connection in time
class ConnectionTimeout(QueryError):
    message = "Timed out waiting for a database connection"


# Driver-level SQL errors, message passed through as-is
class ExecutionFailure(QueryError):
    message = "Query execution failed"
