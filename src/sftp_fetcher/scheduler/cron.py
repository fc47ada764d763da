"""Six-field, seconds-resolution cron expressions."""

from datetime import datetime

from croniter import CroniterBadDateError, croniter


class ScheduleParseError(ValueError):
    """Raised when a cron expression cannot be parsed."""

    pass


class CronSchedule:
    """A parsed cron expression.

    Fields are, in order: seconds, minutes, hours, day-of-month, month,
    day-of-week.
    """

    FIELDS = 6

    def __init__(self, expression: str) -> None:
        """Parse a cron expression.

        Args:
            expression: Cron expression with a leading seconds field.

        Raises:
            ScheduleParseError: If the expression is invalid.
        """
        if not isinstance(expression, str):
            raise ScheduleParseError(f"Cron expression must be a string: {expression!r}")

        fields = expression.split()
        if len(fields) != self.FIELDS:
            raise ScheduleParseError(
                f"Cron expression must have {self.FIELDS} fields "
                f"(sec min hour dom month dow), got {len(fields)}: {expression!r}"
            )

        self.expression = " ".join(fields)
        try:
            # Syntax alone is not enough: "0 0 0 31 2 *" parses but never matches.
            croniter(self.expression, datetime.now(), second_at_beginning=True).get_next(datetime)
        except (CroniterBadDateError, ValueError, KeyError, TypeError) as e:
            raise ScheduleParseError(f"Invalid cron expression {expression!r}: {e}") from e

    def next_after(self, moment: datetime) -> datetime:
        """Get the first matching instant strictly after ``moment``.

        Args:
            moment: Reference time. Timezone-aware times keep their zone.

        Returns:
            Next firing time.
        """
        it = croniter(self.expression, moment, second_at_beginning=True)
        return it.get_next(datetime)

    def __repr__(self) -> str:
        return f"CronSchedule({self.expression!r})"
