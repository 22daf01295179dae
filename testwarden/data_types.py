"""Pydantic data models for testwarden.

Provides structured types for Rule Zero rules and violations, normalized
test records, acceptance-criteria catalogs, evidence images and the
compiled evidence report.
"""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Severity = Literal["critical", "warning"]
Language = Literal["script", "csharp", "python", "go"]
TestStatus = Literal["passed", "failed", "skipped"]
CoverageStatus = Literal["PASS", "FAIL", "BELOW-MIN"]

AC_ID_PATTERN = r"^AC-\d+$"


# --- Rule Zero Types ---

class ViolationRule(BaseModel):
    """A static catalog entry describing one kind of Rule Zero violation.

    ``where`` selects the region the matcher runs over: ``call`` restricts
    it to the argument span of script-execution calls, ``file`` to the
    whole file.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    language: Language
    severity: Severity
    pattern: str
    where: Literal["call", "file"] = "call"
    description: str
    rule: str


class Violation(BaseModel):
    """A positioned rule match inside one test file."""
    file: str
    line: int = Field(ge=1)
    id: str
    severity: Severity
    description: str
    rule: str
    context: str = Field(min_length=1)

    @property
    def key(self) -> tuple:
        """Deduplication key: (file, line, rule id)."""
        return (self.file, self.line, self.id)


class UnreadableFile(BaseModel):
    """A file the scanner could not read."""
    file: str
    error: str


class ScanSummary(BaseModel):
    """Aggregate result of one linter run."""
    files: int = 0
    violations: List[Violation] = []
    unreadable: List[UnreadableFile] = []

    @property
    def critical(self) -> List[Violation]:
        return [v for v in self.violations if v.severity == "critical"]

    @property
    def warnings(self) -> List[Violation]:
        return [v for v in self.violations if v.severity == "warning"]

    @property
    def status(self) -> Literal["clean", "warnings", "blocked"]:
        if self.critical:
            return "blocked"
        if self.warnings:
            return "warnings"
        return "clean"

    def to_json_dict(self) -> dict:
        result = {
            "files": self.files,
            "violations": [v.model_dump() for v in self.violations],
            "critical": len(self.critical),
            "warnings": len(self.warnings),
            "status": self.status,
        }
        if self.unreadable:
            result["unreadable"] = [u.model_dump() for u in self.unreadable]
        return result


# --- Test Result Types ---

class TestRecord(BaseModel):
    """One spec from a structured test run, flattened.

    Status reflects the final attempt; ``attempts`` counts every result
    entry the runner recorded for the spec.
    """
    __test__ = False

    title: str
    ac: Optional[str] = None
    file: str = ""
    line: Optional[int] = None
    status: TestStatus
    duration: int = 0  # milliseconds
    stdout: str = ""
    errors: List[str] = []
    project: str = ""  # lane tag, e.g. "api" or "e2e"
    attempts: int = 1
    flaky: bool = False

    @property
    def passed(self) -> bool:
        return self.status == "passed"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def lane(self) -> str:
        return "api" if self.project == "api" else "e2e"


# --- Acceptance Criteria Types ---

class ACDefinition(BaseModel):
    """A canonical acceptance criterion."""
    id: str = Field(pattern=AC_ID_PATTERN)
    description: str
    minimum: int = 1
    provenance: Literal["config", "markdown", "test-titles", "discovered"]

    @field_validator("minimum", mode="before")
    @classmethod
    def _minimum_at_least_one(cls, value):
        try:
            value = int(value)
        except (TypeError, ValueError):
            return 1
        return value if value >= 1 else 1


class ACCatalog(BaseModel):
    """Ordered AC definitions plus the source that supplied them."""
    definitions: Dict[str, ACDefinition] = {}
    project_name: Optional[str] = None
    source: str = ""

    def __bool__(self) -> bool:
        return bool(self.definitions)


# --- Evidence Types ---

class EvidenceImage(BaseModel):
    """A screenshot bound to an acceptance criterion by filename."""
    filename: str
    ac: Optional[str] = None
    caption: str
    data_uri: str


# --- Report Types ---

class ACCoverage(BaseModel):
    """Per-AC aggregate: one traceability-matrix row and detail section."""
    definition: ACDefinition
    tests: List[TestRecord] = []
    images: List[EvidenceImage] = []
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    api_count: int = 0
    e2e_count: int = 0
    duration: int = 0
    status: CoverageStatus = "BELOW-MIN"

    @property
    def id(self) -> str:
        return self.definition.id

    @property
    def is_gap(self) -> bool:
        return self.total < self.definition.minimum


class EvidenceReport(BaseModel):
    """Everything the template needs, before rendering."""
    project_name: str
    timestamp: str
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    duration: int = 0
    coverage: List[ACCoverage] = []
    unassigned_images: List[EvidenceImage] = []
    image_count: int = 0

    @property
    def gaps(self) -> List[ACCoverage]:
        return [c for c in self.coverage if c.is_gap]

    @property
    def acs_covered(self) -> int:
        return sum(1 for c in self.coverage if c.tests)
