class LoanPolicyError(Exception):
    """Base class for errors that abort an analysis run."""


class JoinError(LoanPolicyError):
    """Join key is duplicated where it must be unique, or a row has no match."""


class UnhandledMissingValueError(LoanPolicyError):
    """A feature has missing values that no imputation rule covers."""

    def __init__(self, columns):
        self.columns = list(columns)
        super().__init__(
            "Missing values in columns without an imputation rule: " + ", ".join(self.columns)
        )


class EmptyInputError(LoanPolicyError):
    """An operation that needs labeled data received none."""


class MissingOutcomeError(LoanPolicyError):
    """Profit or confusion counts were requested for records without a known outcome."""


class ClassifierContractError(LoanPolicyError):
    """The classifier got a mismatched feature schema or returned an invalid probability."""
