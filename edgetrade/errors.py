"""Error types shared by the strategy and backtest layers."""


class InsufficientDataError(ValueError):
    """Raised when a run receives fewer bars than its warm-up window needs."""

    def __init__(self, required: int, actual: int) -> None:
        super().__init__(
            f"Need at least {required} bars, got {actual}"
        )
        self.required = required
        self.actual = actual
