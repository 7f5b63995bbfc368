import click


class MinNumber(click.ParamType):
    """A number no smaller than `min_value`, converted with `cast`."""

    name = "number"

    def __init__(self, min_value, cast=float):
        self.min_value = min_value
        self.cast = cast

    def convert(self, value, param, ctx):
        try:
            number = self.cast(value)
        except (TypeError, ValueError):
            self.fail(f"{value!r} is not a valid {self.cast.__name__}", param, ctx)
        if number < self.min_value:
            self.fail(f"{value} is below the minimum of {self.min_value}", param, ctx)
        return number


def MinInt(min_value: int) -> MinNumber:
    return MinNumber(min_value, cast=int)


def MinFloat(min_value: float) -> MinNumber:
    return MinNumber(min_value, cast=float)
