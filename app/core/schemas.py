import re
from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


# =========================
# Enums
# =========================
class DatabaseTarget(str, Enum):
    RELATIONAL = "rdb"
    TIME_SERIES = "tsdb"
    MIXED = "mixed"


class ExecutionType(str, Enum):
    SCENARIO = "scenario"
    CUSTOM = "custom"


# =========================
# SCENARIO
# =========================
class ScenarioInfo(BaseModel):
    key: str
    name: str
    description: str
    database: DatabaseTarget
    parameters: List[str] = []


class ScenarioDefinition(BaseModel):
    """
    A named, pre-authored query.

    `sql` uses positional placeholders ($1..$n); `parameters` names them in
    placeholder order, so parameters[0] feeds $1.
    """

    key: str = Field(min_length=1)
    name: str
    description: str = ""
    database: DatabaseTarget
    sql: str
    parameters: Tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_placeholders(self):
        found = {int(n) for n in re.findall(r"\$(\d+)", self.sql)}
        expected = set(range(1, len(self.parameters) + 1))
        if found != expected:
            raise ValueError(
                f"Scenario '{self.key}' declares {len(self.parameters)} parameters "
                f"but its SQL uses placeholders {sorted(found)}"
            )
        return self

    def info(self) -> ScenarioInfo:
        return ScenarioInfo(
            key=self.key,
            name=self.name,
            description=self.description,
            database=self.database,
            parameters=list(self.parameters),
        )


# =========================
# HISTORY
# =========================
class ExecutionRecord(BaseModel):
    id: int
    timestamp: datetime
    type: ExecutionType
    sql: str
    database: str
    row_count: int
    execution_time_ms: float = Field(serialization_alias="executionTime")
    scenario_key: Optional[str] = None
    scenario_name: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =========================
# REQUESTS
# =========================
class ExecuteScenarioRequest(BaseModel):
    parameters: Optional[Dict[str, Any]] = None


class CustomQueryRequest(BaseModel):
    # Left optional so a blank statement is reported as such, not as a 422
    sql: Optional[str] = None
    database: str = DatabaseTarget.RELATIONAL.value
    parameters: Optional[List[Any]] = None


class GenerateDataRequest(BaseModel):
    count: int = 10000


# =========================
# RESPONSES
# =========================
class ApiResponse(BaseModel):
    success: bool
    data: Optional[Any] = None
    message: Optional[str] = None
    error: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None
