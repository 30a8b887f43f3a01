"""
API request and response models for OrgRegistry REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
org/models.py, which own the internal domain representation. Route handlers
map between the two.

JSON field names are camelCase (firstName, hireDate, projectIds) to match the
existing web frontend. Python code uses snake_case everywhere; the
alias_generator does the translation, and populate_by_name lets server-side
code build models with snake_case keyword arguments.

Separation of concerns: auth/ + org/ models = domain truth; api/ models = API contract.
"""

from datetime import date
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, StringConstraints, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from auth.models import Registration, User
from org.models import Department, Employee, Project
from org.service import Page

# Request bodies: surrounding whitespace is dropped before length limits apply.
_CAMEL_INPUT = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)
_CAMEL_FROZEN = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


def _email_length(value: str) -> str:
    if len(value) > 100:
        raise ValueError("Email must be less than 100 characters")
    return value


# Email columns are VARCHAR(100).
_Email = Annotated[EmailStr, AfterValidator(_email_length)]


# ---------------------------------------------------------------------------
# Errors / health
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx JSON response.

    errors is present only on validation failures: field name -> reason.
    """

    model_config = ConfigDict(frozen=True)

    message: str
    errors: Optional[dict[str, str]] = None


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=100)


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    jwt: str


class RegisterRequest(BaseModel):
    """Request body for POST /api/auth/register."""

    model_config = _CAMEL_INPUT

    username: str = Field(min_length=3, max_length=50)
    # Stored as typed; login compares it unstripped.
    password: Annotated[str, StringConstraints(strip_whitespace=False, min_length=6, max_length=100)]
    email: _Email
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)

    def to_registration(self) -> Registration:
        return Registration(
            username=self.username,
            password=self.password,
            email=str(self.email),
            first_name=self.first_name,
            last_name=self.last_name,
        )


class UserResponse(BaseModel):
    """Public view of a user. hashed_password is deliberately absent."""

    model_config = _CAMEL_FROZEN

    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    roles: list[str]

    @classmethod
    def from_domain(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            roles=sorted(role.value for role in user.roles),
        )


# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------


class DepartmentIn(BaseModel):
    """Request body for POST/PUT /api/departments."""

    model_config = _CAMEL_INPUT

    name: str = Field(min_length=1, max_length=100)
    location: Optional[str] = Field(default=None, max_length=100)

    def to_domain(self) -> Department:
        return Department(name=self.name, location=self.location)


class DepartmentOut(BaseModel):
    model_config = _CAMEL_FROZEN

    id: int
    name: str
    location: Optional[str] = None

    @classmethod
    def from_domain(cls, department: Department) -> "DepartmentOut":
        return cls(id=department.id, name=department.name, location=department.location)


class DepartmentPage(BaseModel):
    """Response for GET /api/departments: one page plus collection totals."""

    model_config = _CAMEL_FROZEN

    content: list[DepartmentOut]
    total_elements: int
    total_pages: int
    number: int
    size: int

    @classmethod
    def from_page(cls, page: Page[Department]) -> "DepartmentPage":
        return cls(
            content=[DepartmentOut.from_domain(d) for d in page.content],
            total_elements=page.total_elements,
            total_pages=page.total_pages,
            number=page.number,
            size=page.size,
        )


# ---------------------------------------------------------------------------
# Employees
# ---------------------------------------------------------------------------


class EmployeeIn(BaseModel):
    """Request body for POST/PUT /api/employees.

    Project membership is not accepted here; it is managed through the
    /api/projects/{projectId}/employees/{employeeId} endpoints.
    """

    model_config = _CAMEL_INPUT

    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    email: _Email
    phone_number: Optional[str] = Field(default=None, max_length=20)
    hire_date: Optional[date] = None
    job_title: Optional[str] = Field(default=None, max_length=100)
    salary: Optional[float] = Field(default=None, ge=0)

    def to_domain(self) -> Employee:
        return Employee(
            first_name=self.first_name,
            last_name=self.last_name,
            email=str(self.email),
            phone_number=self.phone_number,
            hire_date=self.hire_date,
            job_title=self.job_title,
            salary=self.salary,
        )


class EmployeeOut(BaseModel):
    model_config = _CAMEL_FROZEN

    id: int
    first_name: str
    last_name: str
    email: str
    phone_number: Optional[str] = None
    hire_date: Optional[date] = None
    job_title: Optional[str] = None
    salary: Optional[float] = None
    project_ids: list[int] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, employee: Employee) -> "EmployeeOut":
        return cls(
            id=employee.id,
            first_name=employee.first_name,
            last_name=employee.last_name,
            email=employee.email,
            phone_number=employee.phone_number,
            hire_date=employee.hire_date,
            job_title=employee.job_title,
            salary=employee.salary,
            project_ids=list(employee.project_ids),
        )


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class ProjectIn(BaseModel):
    """Request body for POST/PUT /api/projects. Members are assigned separately."""

    model_config = _CAMEL_INPUT

    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("end_date")
    @classmethod
    def end_not_before_start(cls, value: Optional[date], info: ValidationInfo) -> Optional[date]:
        start = info.data.get("start_date")
        if value is not None and start is not None and value < start:
            raise ValueError("End date must not be before start date")
        return value

    def to_domain(self) -> Project:
        return Project(
            name=self.name,
            description=self.description,
            start_date=self.start_date,
            end_date=self.end_date,
        )


class ProjectOut(BaseModel):
    model_config = _CAMEL_FROZEN

    id: int
    name: str
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    employees: list[EmployeeOut] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, project: Project) -> "ProjectOut":
        return cls(
            id=project.id,
            name=project.name,
            description=project.description,
            start_date=project.start_date,
            end_date=project.end_date,
            employees=[EmployeeOut.from_domain(e) for e in project.employees],
        )
