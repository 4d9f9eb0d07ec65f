"""Validation utilities used by the structural column validator.

Provides:
- ValidationIssue / ValidationResult for collecting check outcomes
- ValidationRegistry for running a named set of check functions
- Small type checks for fiscal years and amounts
"""

from typing import List, Dict, Any, Callable, Optional


class ValidationIssue:
    """A single problem found by a check."""

    def __init__(self, check_name: str, severity: str, detail: str,
                 sample: Optional[Any] = None):
        """Initialize a validation issue.

        Args:
            check_name: Name of the check that found this issue
            severity: Issue severity ('error' or 'warning')
            detail: Human-readable description of the issue
            sample: Offending value, kept for log messages
        """
        self.check_name = check_name
        self.severity = severity
        self.detail = detail
        self.sample = sample

    def __repr__(self) -> str:
        return f"ValidationIssue(check={self.check_name}, severity={self.severity})"


class ValidationResult:
    """Issues collected from one run of a ValidationRegistry."""

    def __init__(self):
        self.issues: List[ValidationIssue] = []

    def add_issue(self, issue: ValidationIssue) -> None:
        self.issues.append(issue)

    def get_issues_by_severity(self, severity: str) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == severity]

    def is_valid(self) -> bool:
        """True when no error-level issue was found."""
        return not self.get_issues_by_severity("error")


class ValidationRegistry:
    """Manages a collection of validation check functions.

    Each check is called with the same positional arguments passed to
    run_all() and returns a list of ValidationIssue (empty when it passes).
    """

    def __init__(self):
        self.checks: Dict[str, Callable[..., List[ValidationIssue]]] = {}

    def register(self, name: str, check_fn: Callable[..., List[ValidationIssue]]) -> None:
        self.checks[name] = check_fn

    def run_all(self, *subject: Any,
                skip_checks: Optional[List[str]] = None) -> ValidationResult:
        """Run all registered checks against *subject*, in registration order.

        A check that raises is recorded as an error issue instead of
        propagating.

        Args:
            subject: Arguments forwarded to every check
            skip_checks: List of check names to skip

        Returns:
            ValidationResult with all issues found
        """
        skip = skip_checks or []
        result = ValidationResult()

        for check_name, check_fn in self.checks.items():
            if check_name in skip:
                continue
            try:
                issues = check_fn(*subject)
            except Exception as e:
                issues = [ValidationIssue(check_name, "error",
                                          f"Check raised exception: {str(e)[:100]}")]
            for issue in issues or []:
                result.add_issue(issue)

        return result


def is_valid_fiscal_year(year: Any) -> bool:
    """Check if *year* names a fiscal year between 2000 and 2099.

    Accepts ints and four-digit strings such as ``"2024"``.
    """
    if isinstance(year, bool):
        return False
    if isinstance(year, str):
        year = year.strip()
        if not (len(year) == 4 and year.isdigit()):
            return False
        year = int(year)
    return isinstance(year, int) and 2000 <= year <= 2099


def is_number(value: Any) -> bool:
    """True for int/float values (bool excluded)."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)
