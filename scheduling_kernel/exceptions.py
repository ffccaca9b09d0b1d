"""
Typed Exception Hierarchy for the Scheduling Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Schedule analytics fail for a small number of well-defined reasons: a bad
identifier, a project with no tasks, a dependency cycle, costs recorded in
the wrong currency. Callers need to tell these apart without parsing
message strings, so every failure has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (task ids, currencies, the offending cycle)

Example:
    try:
        calculator.calculate(tasks)
    except CyclicDependencyError as e:
        log.warning("cycle", extra={"cycle": e.cycle})
        return SchedulingResult.from_error(e)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SchedulingKernelError (base)
    |
    +-- SchedulingValidationError
    |   +-- InvalidIdentifierError
    |   +-- InvalidParameterError
    |   +-- EmptyScheduleError
    |   +-- MixedCurrencyError
    |
    +-- NotFoundError
    |   +-- ProjectNotFoundError
    |   +-- TaskNotFoundError
    |   +-- NoResourcesError
    |
    +-- ScheduleDomainError
        +-- CyclicDependencyError
        +-- CurrencyMismatchError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                  | When Raised
------------|-----------------------|------------------------------------------
Validation  | INVALID_IDENTIFIER    | Project id is not a well-formed UUID
            | INVALID_PARAMETER     | Negative target, inverted window, etc.
            | EMPTY_SCHEDULE        | EVM requested for a project with no tasks
            | MIXED_CURRENCY        | Task baselines use more than one currency
------------|-----------------------|------------------------------------------
Not found   | PROJECT_NOT_FOUND     | Project lookup returned nothing
            | TASK_NOT_FOUND        | Dependency references an unknown task
            | NO_RESOURCES          | Leveling requested with no resources
------------|-----------------------|------------------------------------------
Domain      | CYCLIC_DEPENDENCY     | Dependency graph contains a cycle
            | CURRENCY_MISMATCH     | Task actual cost currency != baseline
"""


class SchedulingKernelError(Exception):
    """
    Base exception for all scheduling kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SCHEDULING_KERNEL_ERROR"


# Validation exceptions


class SchedulingValidationError(SchedulingKernelError):
    """Base exception for rejected inputs."""

    code: str = "VALIDATION_ERROR"


class InvalidIdentifierError(SchedulingValidationError):
    """Identifier is empty or not a well-formed UUID."""

    code: str = "INVALID_IDENTIFIER"

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}: {value!r}")


class InvalidParameterError(SchedulingValidationError):
    """Operation parameter is outside its permitted range."""

    code: str = "INVALID_PARAMETER"

    def __init__(self, parameter: str, value: object, reason: str):
        self.parameter = parameter
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {parameter}={value!r}: {reason}")


class EmptyScheduleError(SchedulingValidationError):
    """Project has no tasks to analyse."""

    code: str = "EMPTY_SCHEDULE"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"No tasks found for project {project_id}")


class MixedCurrencyError(SchedulingValidationError):
    """Task baseline costs are not all in one currency."""

    code: str = "MIXED_CURRENCY"

    def __init__(self, currencies: list[str]):
        self.currencies = currencies
        super().__init__(
            f"Tasks use more than one currency: {', '.join(currencies)}"
        )


# Not-found exceptions


class NotFoundError(SchedulingKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class ProjectNotFoundError(NotFoundError):
    """Project with given ID was not found."""

    code: str = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class TaskNotFoundError(NotFoundError):
    """A dependency references a task that is not in the schedule."""

    code: str = "TASK_NOT_FOUND"

    def __init__(self, task_id: str, referenced_by: str | None = None):
        self.task_id = task_id
        self.referenced_by = referenced_by
        if referenced_by:
            msg = f"Task {referenced_by} references unknown task {task_id}"
        else:
            msg = f"Task not found: {task_id}"
        super().__init__(msg)


class NoResourcesError(NotFoundError):
    """Project has no resources to level."""

    code: str = "NO_RESOURCES"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"No resources found for project {project_id}")


# Domain exceptions


class ScheduleDomainError(SchedulingKernelError):
    """Base exception for schedules that cannot be analysed as given."""

    code: str = "SCHEDULE_DOMAIN_ERROR"


class CyclicDependencyError(ScheduleDomainError):
    """Dependency graph contains a cycle."""

    code: str = "CYCLIC_DEPENDENCY"

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(f"Circular dependency detected: {' -> '.join(cycle)}")


class CurrencyMismatchError(ScheduleDomainError):
    """Task actual cost is recorded in a different currency than its baseline."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, task_id: str, baseline_currency: str, actual_currency: str):
        self.task_id = task_id
        self.baseline_currency = baseline_currency
        self.actual_currency = actual_currency
        super().__init__(
            f"Currency mismatch on task {task_id}: "
            f"baseline {baseline_currency} vs actual {actual_currency}"
        )
